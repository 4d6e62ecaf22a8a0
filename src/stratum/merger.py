from __future__ import annotations

from typing import Any, Iterable, Mapping

from stratum.models import DEPENDENCY_KEY, PatternDescriptor
from stratum.utils import string_keyed


def merge_values(base: Any, override: Any) -> Any:
    """Combine two values; *override* wins except where both are mappings.

    Mappings merge key by key, recursively. Sequences and scalars from
    *override* replace whatever *base* held, so lists are never concatenated.
    Neither input is mutated.
    """
    if isinstance(base, Mapping) and isinstance(override, Mapping):
        return merge_mappings(base, override)
    return string_keyed(override)


def merge_mappings(
    base: Mapping[Any, Any], override: Mapping[Any, Any]
) -> dict[str, Any]:
    merged = string_keyed(base)
    for key, value in override.items():
        key_s = str(key)
        if key_s in merged:
            merged[key_s] = merge_values(merged[key_s], value)
        else:
            merged[key_s] = string_keyed(value)
    return merged


def merge_documents(documents: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for document in documents:
        merged = merge_mappings(merged, document)
    return merged


def _mergeable(document: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in document.items() if key != DEPENDENCY_KEY}


def merge(descriptors: Iterable[PatternDescriptor]) -> dict[str, Any]:
    """Fold a resolution order into one config, left to right.

    Expects the resolver's dependencies-first order, so every pattern lands
    after everything it depends on and the requested pattern has the last
    word. The dependency declaration itself is not part of the result.
    """
    return merge_documents(_mergeable(descriptor.document) for descriptor in descriptors)
