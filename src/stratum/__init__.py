"""Layered YAML pattern resolution and merging."""

from stratum.engine import PatternEngine, default_search_paths
from stratum.errors import (
    CircularDependencyError,
    ConfigError,
    PatternError,
    PatternNotFoundError,
    StratumError,
    YAMLSyntaxError,
)
from stratum.lister import list_patterns
from stratum.loader import discover, load_one
from stratum.merger import merge
from stratum.models import PatternDescriptor, SearchRoot
from stratum.resolver import PatternResolver

__all__ = [
    "CircularDependencyError",
    "ConfigError",
    "PatternDescriptor",
    "PatternEngine",
    "PatternError",
    "PatternNotFoundError",
    "PatternResolver",
    "SearchRoot",
    "StratumError",
    "YAMLSyntaxError",
    "default_search_paths",
    "discover",
    "list_patterns",
    "load_one",
    "merge",
]
