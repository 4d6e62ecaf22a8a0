from __future__ import annotations

import re
from copy import deepcopy
from typing import Any, Mapping, Sequence

from stratum.errors import ConfigError
from stratum.models import PatternDescriptor, TraceResult, TraceStep

_INDEXED_SEGMENT_RE = re.compile(r"^(?P<key>[^\[\]]+)\[(?P<index>\d+)\]$")


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def _split_path(path: str) -> list[tuple[str, int | None]]:
    if not isinstance(path, str) or not path.strip():
        raise ConfigError("key path must be a non-empty string")
    segments: list[tuple[str, int | None]] = []
    for raw in path.strip().split("."):
        if not raw:
            raise ConfigError(f"key path '{path}' has an empty segment")
        match = _INDEXED_SEGMENT_RE.match(raw)
        if match:
            segments.append((match.group("key"), int(match.group("index"))))
        else:
            segments.append((raw, None))
    return segments


def get_nested(value: Any, path: str) -> Any:
    """Look up a dotted path such as ``phases.review.steps[0]``.

    Returns :data:`MISSING` when any segment is absent.
    """
    current = value
    for key, index in _split_path(path):
        if not isinstance(current, Mapping) or key not in current:
            return MISSING
        current = current[key]
        if index is not None:
            if not isinstance(current, list) or index >= len(current):
                return MISSING
            current = current[index]
    return current


def extract_section(config: Mapping[str, Any], path: str) -> Any:
    section = get_nested(config, path)
    if section is MISSING:
        raise ConfigError(f"Section not found: {path}")
    return section


def trace_value(
    path: str,
    descriptors: Sequence[PatternDescriptor],
    resolved: Mapping[str, Any],
) -> TraceResult:
    """Record which patterns in a resolution order set *path*.

    The last contributor is marked final; it is the one whose value survives
    the merge unless a later pattern replaced a parent mapping with a scalar.
    """
    steps: list[TraceStep] = []
    for descriptor in descriptors:
        value = get_nested(descriptor.document, path)
        if value is MISSING:
            continue
        steps.append(
            TraceStep(
                pattern=descriptor.name,
                pattern_type=descriptor.pattern_type,
                origin=descriptor.origin,
                source_path=descriptor.source_path,
                value=deepcopy(value),
            )
        )
    if steps:
        last = steps[-1]
        steps[-1] = TraceStep(
            pattern=last.pattern,
            pattern_type=last.pattern_type,
            origin=last.origin,
            source_path=last.source_path,
            value=last.value,
            is_final=True,
        )
    final_value = get_nested(resolved, path)
    return TraceResult(
        path=path,
        final_value=None if final_value is MISSING else deepcopy(final_value),
        steps=tuple(steps),
    )
