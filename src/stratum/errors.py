"""Error taxonomy for pattern loading and resolution.

Everything the engine raises derives from :class:`StratumError`. The three
pattern failures (:class:`YAMLSyntaxError`, :class:`PatternNotFoundError`,
:class:`CircularDependencyError`) form a closed set under
:class:`PatternError`; each carries a ``kind`` tag plus the structured payload
needed to fix the offending YAML, so callers can branch on ``exc.kind``
instead of parsing message text.
"""

from __future__ import annotations

from pathlib import Path
from typing import ClassVar, Literal, Sequence

from stratum.utils import rank_candidates

ErrorKind = Literal["syntax", "not_found", "circular_dependency"]

SUGGESTION_THRESHOLD = 0.5
CONTEXT_LINES = 3


class StratumError(RuntimeError):
    """Base error for pattern engine failures."""


class ConfigError(StratumError):
    """Raised when a pattern or project config is structurally invalid."""


class PatternError(ConfigError):
    kind: ClassVar[ErrorKind]


def render_context(content: str, line_index: int, *, context_lines: int = CONTEXT_LINES) -> str:
    lines = content.splitlines()
    if not lines:
        return ""
    failing = min(max(line_index, 0), len(lines) - 1) + 1
    start = max(1, failing - context_lines)
    end = min(len(lines), failing + context_lines)
    rendered = []
    for number in range(start, end + 1):
        marker = "> " if number == failing else "  "
        rendered.append(f"{marker}{number:>4} | {lines[number - 1]}")
    return "\n".join(rendered)


class YAMLSyntaxError(PatternError):
    kind = "syntax"

    def __init__(
        self,
        *,
        file_path: str | Path,
        line_number: int,
        column: int,
        problem: str,
        content: str,
    ) -> None:
        self.file_path = str(file_path)
        # Zero-based, as reported by the parser.
        self.line_number = line_number
        self.column = column
        self.problem = problem
        self.context = render_context(content, line_number)
        header = (
            f"YAML syntax error in {self.file_path}:{line_number + 1}:{column + 1}"
        )
        if problem:
            header = f"{header}: {problem}"
        super().__init__(f"{header}\n{self.context}" if self.context else header)


class PatternNotFoundError(PatternError):
    kind = "not_found"

    def __init__(
        self,
        pattern_name: str,
        pattern_type: str,
        available_patterns: Sequence[str],
    ) -> None:
        self.pattern_name = pattern_name
        self.pattern_type = pattern_type
        self.available_patterns = sorted(set(available_patterns))
        self.candidates = rank_candidates(pattern_name, self.available_patterns)
        self.suggestion: str | None = None
        if self.candidates and self.candidates[0][1] > SUGGESTION_THRESHOLD:
            self.suggestion = self.candidates[0][0]

        listed = "\n".join(f"  - {name}" for name in self.available_patterns)
        message = (
            f'Pattern "{pattern_name}" not found in {pattern_type}\n\n'
            f"Available {pattern_type}:\n{listed or '  (none)'}"
        )
        if self.suggestion is not None:
            message += f'\n\nDid you mean "{self.suggestion}"?'
        super().__init__(message)


class CircularDependencyError(PatternError):
    kind = "circular_dependency"

    def __init__(
        self,
        dependency_chain: Sequence[str],
        *,
        entry_path: Sequence[str] = (),
    ) -> None:
        self.dependency_chain = list(dependency_chain)
        self.entry_path = list(entry_path)
        message = f"Circular dependency detected: {' -> '.join(self.dependency_chain)}"
        if self.entry_path:
            message += f" (reached from {' -> '.join(self.entry_path)})"
        super().__init__(message)
