"""Entry points tying search paths, resolution and merging together."""

from __future__ import annotations

import logging
from copy import deepcopy
from pathlib import Path
from typing import Any, MutableMapping, Sequence

from stratum.errors import ConfigError
from stratum.lister import list_patterns
from stratum.loader import parse_dependencies, read_yaml_mapping
from stratum.merger import merge
from stratum.models import (
    DEPENDENCY_KEY,
    PatternDescriptor,
    PatternListing,
    SearchRoot,
    TraceResult,
)
from stratum.resolver import PatternResolver
from stratum.tracer import trace_value
from stratum.utils import env_default

_log = logging.getLogger("stratum.engine")

PROJECT_DIRNAME = ".stratum"
PROJECT_CONFIG_FILE = "project.yaml"
USER_PATTERNS_DIRNAME = "patterns"
PROJECT_PATTERN_TYPE = "project"
SHIPPED_PATTERNS_ENV = "STRATUM_SHIPPED_PATTERNS"


def shipped_patterns_dir() -> Path:
    bundled = Path(__file__).resolve().parent / "patterns"
    return Path(env_default(SHIPPED_PATTERNS_ENV, str(bundled))).expanduser().resolve()


def find_project_root(start: str | Path | None = None) -> Path:
    current = Path(start).expanduser().resolve() if start is not None else Path.cwd()
    for candidate in (current, *current.parents):
        if (candidate / PROJECT_DIRNAME).is_dir():
            return candidate
    raise ConfigError(
        f"Not a stratum project (no {PROJECT_DIRNAME} directory found "
        f"in {current} or any parent)"
    )


def user_patterns_dir(project_root: str | Path) -> Path:
    return Path(project_root).expanduser().resolve() / PROJECT_DIRNAME / USER_PATTERNS_DIRNAME


def project_config_path(project_root: str | Path) -> Path:
    return Path(project_root).expanduser().resolve() / PROJECT_DIRNAME / PROJECT_CONFIG_FILE


def default_search_paths(
    project_root: str | Path | None = None,
    *,
    shipped_dir: str | Path | None = None,
) -> list[SearchRoot]:
    shipped = (
        Path(shipped_dir).expanduser().resolve()
        if shipped_dir is not None
        else shipped_patterns_dir()
    )
    root = project_root if project_root is not None else Path.cwd()
    return [
        SearchRoot(shipped, origin="shipped"),
        SearchRoot(user_patterns_dir(root), origin="user"),
    ]


class PatternEngine:
    """Resolve and merge patterns for one set of search roots.

    No state survives between calls unless a *cache* mapping is handed in,
    in which case :meth:`get` memoizes project configs by path. Every dict
    returned is a fresh copy owned by the caller.
    """

    def __init__(
        self,
        search_paths: Sequence[SearchRoot],
        *,
        cache: MutableMapping[str, dict[str, Any]] | None = None,
    ) -> None:
        self.search_paths = tuple(search_paths)
        self.resolver = PatternResolver(self.search_paths)
        self.cache = cache

    @classmethod
    def for_project(
        cls,
        project_root: str | Path | None = None,
        *,
        shipped_dir: str | Path | None = None,
        cache: MutableMapping[str, dict[str, Any]] | None = None,
    ) -> "PatternEngine":
        return cls(
            default_search_paths(project_root, shipped_dir=shipped_dir), cache=cache
        )

    def resolve(self, name: str, pattern_type: str = "workflows") -> list[PatternDescriptor]:
        return self.resolver.resolve(name, pattern_type)

    def resolve_config(self, name: str, pattern_type: str = "workflows") -> dict[str, Any]:
        order = self.resolve(name, pattern_type)
        _log.info(
            "pattern_resolved name=%s type=%s contributors=%d",
            name,
            pattern_type,
            len(order),
        )
        return merge(order)

    def project_order(self, config_path: str | Path) -> list[PatternDescriptor]:
        """Resolution order for a project config; the config itself comes last."""
        path = Path(config_path).expanduser().resolve()
        if not path.is_file():
            raise ConfigError(f"Project config not found: {path}")
        document = read_yaml_mapping(path)
        refs = parse_dependencies(
            document.get(DEPENDENCY_KEY), default_type="workflows", source_path=path
        )
        order = self.resolver.resolve_refs(refs, root_type="workflows")
        order.append(
            PatternDescriptor(
                name=path.stem,
                pattern_type=PROJECT_PATTERN_TYPE,
                source_path=path,
                origin="user",
                document=document,
                dependencies=refs,
            )
        )
        return order

    def load_project_config(self, config_path: str | Path) -> dict[str, Any]:
        path = Path(config_path).expanduser().resolve()
        merged = merge(self.project_order(path))
        _log.info("project_config_loaded path=%s", path)
        if self.cache is not None:
            self.cache[str(path)] = deepcopy(merged)
        return merged

    def get(self, config_path: str | Path) -> dict[str, Any]:
        path = Path(config_path).expanduser().resolve()
        if self.cache is not None and str(path) in self.cache:
            _log.debug("project_config_cache_hit path=%s", path)
            return deepcopy(self.cache[str(path)])
        return self.load_project_config(path)

    def clear_cache(self) -> None:
        if self.cache is not None:
            self.cache.clear()

    def list_patterns(self, pattern_type: str = "all", *, usage: bool = False) -> PatternListing:
        return list_patterns(pattern_type, self.search_paths, usage=usage)

    def trace(self, path: str, name: str, pattern_type: str = "workflows") -> TraceResult:
        order = self.resolve(name, pattern_type)
        return trace_value(path, order, merge(order))

    def trace_project(self, path: str, config_path: str | Path) -> TraceResult:
        order = self.project_order(config_path)
        return trace_value(path, order, merge(order))
