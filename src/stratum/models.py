from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from stratum.errors import ConfigError

PATTERN_TYPES: tuple[str, ...] = ("workflows", "phases", "documents")
ORIGINS: tuple[str, ...] = ("shipped", "user")
DEPENDENCY_KEY = "defaults"
SELF_MARKER = "_self_"
NO_DESCRIPTION = "No description"

_TYPE_ALIASES = {
    "workflow": "workflows",
    "phase": "phases",
    "document": "documents",
}


def normalize_pattern_type(value: Any, *, label: str = "pattern type") -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{label} must be a non-empty string")
    text = value.strip().lower()
    text = _TYPE_ALIASES.get(text, text)
    if text not in PATTERN_TYPES:
        raise ConfigError(
            f"{label} '{value}' is not one of {list(PATTERN_TYPES)} "
            "(singular forms are accepted)"
        )
    return text


@dataclass(frozen=True)
class SearchRoot:
    path: Path
    origin: str = "user"

    def __post_init__(self) -> None:
        if self.origin not in ORIGINS:
            raise ConfigError(
                f"search root origin must be one of {list(ORIGINS)}, got '{self.origin}'"
            )
        object.__setattr__(self, "path", Path(self.path))

    def type_dir(self, pattern_type: str) -> Path:
        return self.path / pattern_type


@dataclass(frozen=True, order=True)
class PatternRef:
    pattern_type: str
    name: str

    @property
    def key(self) -> str:
        return f"{self.pattern_type}/{self.name}"

    def label(self, relative_to: str | None = None) -> str:
        """Bare name inside *relative_to*'s type, ``type/name`` otherwise."""
        if relative_to == self.pattern_type:
            return self.name
        return self.key


@dataclass(frozen=True)
class PatternSource:
    """A discovered pattern file that has not been parsed yet."""

    name: str
    pattern_type: str
    path: Path
    origin: str


@dataclass(frozen=True)
class PatternDescriptor:
    name: str
    pattern_type: str
    source_path: Path
    origin: str
    document: Mapping[str, Any]
    dependencies: tuple[PatternRef, ...] = ()

    @property
    def ref(self) -> PatternRef:
        return PatternRef(self.pattern_type, self.name)

    @property
    def description(self) -> str | None:
        value = self.document.get("description")
        return str(value) if value is not None else None

    @property
    def usage_example(self) -> str | None:
        value = self.document.get("usageExample")
        return str(value) if value is not None else None

    def to_json(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.pattern_type,
            "path": str(self.source_path),
            "origin": self.origin,
            "dependencies": [ref.key for ref in self.dependencies],
        }


@dataclass(frozen=True)
class PatternSummary:
    name: str
    pattern_type: str
    path: Path
    origin: str
    description: str = NO_DESCRIPTION
    usage_example: str | None = None
    error: str | None = None

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "type": self.pattern_type,
            "path": str(self.path),
            "origin": self.origin,
            "description": self.description,
        }
        if self.usage_example is not None:
            payload["usageExample"] = self.usage_example
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class PatternListing:
    shipped: tuple[PatternSummary, ...] = ()
    user_defined: tuple[PatternSummary, ...] = ()

    def all(self) -> list[PatternSummary]:
        return [*self.shipped, *self.user_defined]

    def to_json(self) -> dict[str, Any]:
        return {
            "shipped": [item.to_json() for item in self.shipped],
            "userDefined": [item.to_json() for item in self.user_defined],
        }


@dataclass(frozen=True)
class TraceStep:
    pattern: str
    pattern_type: str
    origin: str
    source_path: Path
    value: Any
    is_final: bool = False

    def to_json(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern,
            "type": self.pattern_type,
            "origin": self.origin,
            "path": str(self.source_path),
            "value": self.value,
            "final": self.is_final,
        }


@dataclass(frozen=True)
class TraceResult:
    path: str
    final_value: Any
    steps: tuple[TraceStep, ...] = field(default_factory=tuple)

    @property
    def found(self) -> bool:
        return bool(self.steps)

    def to_json(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "final_value": self.final_value,
            "steps": [step.to_json() for step in self.steps],
        }
