from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from stratum.errors import CircularDependencyError, PatternNotFoundError
from stratum.loader import load_source, locate
from stratum.models import (
    PatternDescriptor,
    PatternRef,
    PatternSource,
    SearchRoot,
    normalize_pattern_type,
)

_log = logging.getLogger("stratum.resolver")


@dataclass
class _Walk:
    """State of one resolution request; discarded when it returns."""

    root_type: str
    candidates: dict[str, dict[str, PatternSource]] = field(default_factory=dict)
    loaded: dict[PatternRef, PatternDescriptor] = field(default_factory=dict)
    done: set[PatternRef] = field(default_factory=set)
    order: list[PatternDescriptor] = field(default_factory=list)


class PatternResolver:
    """Turn a pattern name into its dependencies-first resolution order.

    Search roots are consulted in the given order with later roots taking
    precedence. Every call starts from an empty candidate set, so results
    always reflect the files on disk at call time.
    """

    def __init__(self, search_paths: Sequence[SearchRoot]) -> None:
        self.search_paths = tuple(search_paths)

    def resolve(self, name: str, pattern_type: str = "workflows") -> list[PatternDescriptor]:
        resolved_type = normalize_pattern_type(pattern_type)
        return self.resolve_refs([PatternRef(resolved_type, name)], root_type=resolved_type)

    def find(self, name: str, pattern_type: str = "workflows") -> PatternSource:
        """Return the winning file for *name* without parsing it."""
        resolved_type = normalize_pattern_type(pattern_type)
        candidates = locate(resolved_type, self.search_paths)
        source = candidates.get(name)
        if source is None:
            raise PatternNotFoundError(name, resolved_type, list(candidates))
        return source

    def resolve_refs(
        self,
        refs: Iterable[PatternRef],
        *,
        root_type: str = "workflows",
    ) -> list[PatternDescriptor]:
        """Resolve several roots into one order, each pattern appearing once."""
        walk = _Walk(root_type=normalize_pattern_type(root_type))
        for ref in refs:
            self._visit(ref, walk=walk, stack=[])
        _log.debug(
            "resolution_order root_type=%s order=%s",
            walk.root_type,
            ",".join(descriptor.ref.key for descriptor in walk.order),
        )
        return list(walk.order)

    def _candidates(self, pattern_type: str, walk: _Walk) -> dict[str, PatternSource]:
        if pattern_type not in walk.candidates:
            walk.candidates[pattern_type] = locate(pattern_type, self.search_paths)
        return walk.candidates[pattern_type]

    def _load(self, ref: PatternRef, walk: _Walk) -> PatternDescriptor:
        if ref in walk.loaded:
            return walk.loaded[ref]
        candidates = self._candidates(ref.pattern_type, walk)
        source = candidates.get(ref.name)
        if source is None:
            raise PatternNotFoundError(ref.name, ref.pattern_type, list(candidates))
        descriptor = load_source(source)
        walk.loaded[ref] = descriptor
        return descriptor

    def _visit(self, ref: PatternRef, *, walk: _Walk, stack: list[PatternRef]) -> None:
        if ref in walk.done:
            return
        if ref in stack:
            start = stack.index(ref)
            cycle = [*stack[start:], ref]
            raise CircularDependencyError(
                [item.label(walk.root_type) for item in cycle],
                entry_path=[item.label(walk.root_type) for item in stack[:start]],
            )

        descriptor = self._load(ref, walk)
        stack.append(ref)
        for dependency in descriptor.dependencies:
            self._visit(dependency, walk=walk, stack=stack)
        stack.pop()

        walk.done.add(ref)
        walk.order.append(descriptor)
