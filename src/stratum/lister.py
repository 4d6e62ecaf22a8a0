from __future__ import annotations

import logging
from typing import Sequence

from stratum.errors import ConfigError
from stratum.loader import iter_root_sources, read_yaml_mapping
from stratum.models import (
    NO_DESCRIPTION,
    PATTERN_TYPES,
    PatternListing,
    PatternSource,
    PatternSummary,
    SearchRoot,
    normalize_pattern_type,
)

_log = logging.getLogger("stratum.lister")


def _types_for(pattern_type: str) -> tuple[str, ...]:
    if isinstance(pattern_type, str) and pattern_type.strip().lower() == "all":
        return PATTERN_TYPES
    return (normalize_pattern_type(pattern_type),)


def summarize(source: PatternSource, *, usage: bool = False) -> PatternSummary:
    try:
        document = read_yaml_mapping(source.path)
    except ConfigError as exc:
        _log.warning("pattern_summary_failed path=%s", source.path)
        return PatternSummary(
            name=source.name,
            pattern_type=source.pattern_type,
            path=source.path,
            origin=source.origin,
            error=str(exc),
        )

    description = document.get("description")
    usage_example = document.get("usageExample") if usage else None
    return PatternSummary(
        name=source.name,
        pattern_type=source.pattern_type,
        path=source.path,
        origin=source.origin,
        description=str(description) if description else NO_DESCRIPTION,
        usage_example=str(usage_example) if usage_example else None,
    )


def list_patterns(
    pattern_type: str,
    search_paths: Sequence[SearchRoot],
    *,
    usage: bool = False,
) -> PatternListing:
    """Enumerate pattern files grouped by where they came from.

    This is a plain inventory: nothing is resolved or merged, and a user file
    that shadows a shipped one is listed next to it rather than replacing it.
    """
    shipped: list[PatternSummary] = []
    user_defined: list[PatternSummary] = []
    for resolved_type in _types_for(pattern_type):
        for root in search_paths:
            for source in iter_root_sources(root, resolved_type):
                summary = summarize(source, usage=usage)
                if source.origin == "shipped":
                    shipped.append(summary)
                else:
                    user_defined.append(summary)
    return PatternListing(shipped=tuple(shipped), user_defined=tuple(user_defined))
