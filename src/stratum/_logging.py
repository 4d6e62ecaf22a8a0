"""Centralized logging configuration for stratum."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable

_STREAM_HANDLER_ID = "stratum_stream"
_FILE_HANDLER_ID = "stratum_file"
_FORMAT = "ts=%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)s"
_VERBOSITY_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def level_for_verbosity(verbosity: int) -> int:
    """Map a count of ``-v`` flags to a logging level."""
    index = max(0, min(verbosity, len(_VERBOSITY_LEVELS) - 1))
    return _VERBOSITY_LEVELS[index]


def _resolve_level(level: int | None) -> int:
    if level is not None:
        return level
    env_level = os.environ.get("STRATUM_LOG_LEVEL", "").strip().upper()
    resolved = getattr(logging, env_level, None) if env_level else None
    if not isinstance(resolved, int):
        return logging.WARNING
    return resolved


def _find_handler(root: logging.Logger, handler_id: str) -> logging.Handler | None:
    for handler in root.handlers:
        if getattr(handler, "_stratum_handler_id", None) == handler_id:
            return handler
    return None


def _drop_handler(root: logging.Logger, handler_id: str) -> None:
    handler = _find_handler(root, handler_id)
    if handler is not None:
        root.removeHandler(handler)
        handler.close()


def _install_handler(
    root: logging.Logger,
    handler_id: str,
    *,
    level: int,
    factory: Callable[[], logging.Handler],
    reuse: Callable[[logging.Handler], bool] = lambda _handler: True,
) -> None:
    handler = _find_handler(root, handler_id)
    if handler is not None and not reuse(handler):
        _drop_handler(root, handler_id)
        handler = None
    if handler is None:
        handler = factory()
        setattr(handler, "_stratum_handler_id", handler_id)
        root.addHandler(handler)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler.setLevel(level)


def setup_logging(*, level: int | None = None) -> None:
    """Configure the ``stratum`` logger hierarchy.

    The stream level comes from *level*, else ``STRATUM_LOG_LEVEL``
    (DEBUG, INFO, WARNING, ERROR), else WARNING. When ``STRATUM_LOG_FILE``
    is set, a file handler records at least INFO-level events. Repeated
    calls reconfigure the tagged handlers instead of stacking new ones.
    """
    stream_level = _resolve_level(level)
    root = logging.getLogger("stratum")
    _install_handler(
        root, _STREAM_HANDLER_ID, level=stream_level, factory=logging.StreamHandler
    )

    effective_level = stream_level
    file_path_raw = os.environ.get("STRATUM_LOG_FILE", "").strip()
    if file_path_raw:
        file_path = Path(file_path_raw).expanduser().resolve()
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_level = min(stream_level, logging.INFO)
        _install_handler(
            root,
            _FILE_HANDLER_ID,
            level=file_level,
            factory=lambda: logging.FileHandler(file_path, encoding="utf-8"),
            reuse=lambda handler: isinstance(handler, logging.FileHandler)
            and Path(handler.baseFilename).resolve() == file_path,
        )
        effective_level = min(effective_level, file_level)
    else:
        _drop_handler(root, _FILE_HANDLER_ID)

    root.setLevel(effective_level)
