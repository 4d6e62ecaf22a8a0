from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from stratum.errors import ConfigError, YAMLSyntaxError
from stratum.models import (
    DEPENDENCY_KEY,
    PATTERN_TYPES,
    SELF_MARKER,
    PatternDescriptor,
    PatternRef,
    PatternSource,
    SearchRoot,
    normalize_pattern_type,
)
from stratum.utils import string_keyed

_log = logging.getLogger("stratum.loader")

PATTERN_SUFFIXES = (".yaml", ".yml")


def parse_yaml_text(content: str, *, source_path: str | Path) -> Any:
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None) or getattr(exc, "context_mark", None)
        problem = getattr(exc, "problem", None) or str(exc)
        raise YAMLSyntaxError(
            file_path=source_path,
            line_number=mark.line if mark is not None else 0,
            column=mark.column if mark is not None else 0,
            problem=str(problem),
            content=content,
        ) from exc


def decode_yaml_bytes(data: bytes, *, source_path: str | Path) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        line_start = data.rfind(b"\n", 0, exc.start) + 1
        raise YAMLSyntaxError(
            file_path=source_path,
            line_number=data.count(b"\n", 0, exc.start),
            column=exc.start - line_start,
            problem=f"invalid UTF-8 byte 0x{data[exc.start]:02x}: {exc.reason}",
            content=data.decode("utf-8", errors="replace"),
        ) from exc


def read_yaml_mapping(path: Path) -> dict[str, Any]:
    """Parse *path* and require a mapping root; an empty file yields ``{}``."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ConfigError(f"{path}: cannot read pattern file: {exc.strerror or exc}") from exc
    content = decode_yaml_bytes(data, source_path=path)
    raw = parse_yaml_text(content, source_path=path)
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{path}: YAML root must be a mapping")
    return string_keyed(raw)


def parse_dependencies(
    raw: Any, *, default_type: str, source_path: Path | str
) -> tuple[PatternRef, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigError(f"{source_path}: {DEPENDENCY_KEY} must be a list")

    refs: list[PatternRef] = []
    seen: set[PatternRef] = set()
    for index, entry in enumerate(raw):
        label = f"{source_path}: {DEPENDENCY_KEY}[{index}]"
        if isinstance(entry, str):
            name = entry.strip()
            if not name:
                raise ConfigError(f"{label} must be a non-empty string")
            if name == SELF_MARKER:
                continue
            ref = PatternRef(default_type, name)
        elif isinstance(entry, Mapping):
            if len(entry) != 1:
                raise ConfigError(
                    f"{label} must map exactly one pattern type to a name, "
                    f"e.g. {{phase: review}}"
                )
            ((type_raw, name_raw),) = entry.items()
            pattern_type = normalize_pattern_type(type_raw, label=f"{label} type")
            if not isinstance(name_raw, str) or not name_raw.strip():
                raise ConfigError(f"{label}.{type_raw} must be a non-empty string")
            ref = PatternRef(pattern_type, name_raw.strip())
        else:
            raise ConfigError(
                f"{label} must be a pattern name or a one-key mapping, "
                f"got {type(entry).__name__}"
            )
        if ref in seen:
            continue
        seen.add(ref)
        refs.append(ref)
    return tuple(refs)


def _infer_pattern_type(path: Path) -> str:
    parent = path.parent.name
    if parent not in PATTERN_TYPES:
        raise ConfigError(
            f"{path}: cannot infer pattern type from directory '{parent}'; "
            f"expected one of {list(PATTERN_TYPES)}"
        )
    return parent


def load_one(
    path: str | Path,
    *,
    origin: str = "user",
    pattern_type: str | None = None,
) -> PatternDescriptor:
    source_path = Path(path)
    resolved_type = (
        normalize_pattern_type(pattern_type)
        if pattern_type is not None
        else _infer_pattern_type(source_path)
    )
    document = read_yaml_mapping(source_path)
    dependencies = parse_dependencies(
        document.get(DEPENDENCY_KEY),
        default_type=resolved_type,
        source_path=source_path,
    )
    return PatternDescriptor(
        name=source_path.stem,
        pattern_type=resolved_type,
        source_path=source_path,
        origin=origin,
        document=document,
        dependencies=dependencies,
    )


def load_source(source: PatternSource) -> PatternDescriptor:
    return load_one(source.path, origin=source.origin, pattern_type=source.pattern_type)


def iter_root_sources(root: SearchRoot, pattern_type: str) -> list[PatternSource]:
    """Pattern files of one type under one search root, ``.yaml`` over ``.yml``."""
    directory = root.type_dir(pattern_type)
    if not directory.is_dir():
        _log.debug("pattern_dir_missing type=%s dir=%s", pattern_type, directory)
        return []

    by_name: dict[str, PatternSource] = {}
    for path in sorted(directory.iterdir()):
        if path.suffix not in PATTERN_SUFFIXES or not path.is_file():
            continue
        existing = by_name.get(path.stem)
        if existing is not None:
            # sorted() visits name.yaml before name.yml
            _log.warning(
                "pattern_ext_conflict name=%s kept=%s ignored=%s",
                path.stem,
                existing.path,
                path,
            )
            continue
        by_name[path.stem] = PatternSource(path.stem, pattern_type, path, root.origin)
    return [by_name[name] for name in sorted(by_name)]


def locate(
    pattern_type: str, search_paths: Sequence[SearchRoot]
) -> dict[str, PatternSource]:
    """Map every visible pattern name to the file that wins for it.

    Later search roots take precedence, so a user pattern shadows a shipped
    one of the same name. Nothing is parsed here.
    """
    resolved_type = normalize_pattern_type(pattern_type)
    winners: dict[str, PatternSource] = {}
    for root in search_paths:
        for source in iter_root_sources(root, resolved_type):
            shadowed = winners.get(source.name)
            if shadowed is not None:
                _log.debug(
                    "pattern_shadowed type=%s name=%s winner=%s shadowed=%s",
                    resolved_type,
                    source.name,
                    source.path,
                    shadowed.path,
                )
            winners[source.name] = source
    return {name: winners[name] for name in sorted(winners)}


def discover_with_errors(
    pattern_type: str, search_paths: Sequence[SearchRoot]
) -> tuple[list[PatternDescriptor], list[ConfigError]]:
    descriptors: list[PatternDescriptor] = []
    errors: list[ConfigError] = []
    for source in locate(pattern_type, search_paths).values():
        try:
            descriptors.append(load_source(source))
        except ConfigError as exc:
            _log.warning(
                "pattern_load_failed type=%s name=%s path=%s error=%s",
                source.pattern_type,
                source.name,
                source.path,
                str(exc).splitlines()[0],
            )
            errors.append(exc)
    return descriptors, errors


def discover(
    pattern_type: str, search_paths: Sequence[SearchRoot]
) -> list[PatternDescriptor]:
    descriptors, _errors = discover_with_errors(pattern_type, search_paths)
    return descriptors
