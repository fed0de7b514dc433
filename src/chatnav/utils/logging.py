"""Logging setup for the chat URL navigator.

The navigator runs inside a host application that owns the root logger,
so only the ``chatnav`` package logger is configured here. Records are
written to a rotating file and, optionally, to stderr; they do not
propagate to the host's handlers.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["PACKAGE_LOGGER", "setup_logging", "get_log_path"]

PACKAGE_LOGGER = "chatnav"
LOG_FILE_NAME = "chatnav.log"
_DEFAULT_LOG_DIR = Path.home() / ".chatnav" / "logs"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_CONFIGURED = False
_LOG_PATH: Path | None = None
_HANDLERS: list[logging.Handler] = []


def setup_logging(
    level: int | str | None = None,
    *,
    log_dir: Path | str | None = None,
    console: bool = False,
    max_bytes: int = 256_000,
    backup_count: int = 2,
    force: bool = False,
) -> Path:
    """Attach file (and optional console) handlers to the ``chatnav`` logger.

    ``level`` falls back to ``CHATNAV_LOG_LEVEL`` and then INFO; the log
    directory falls back to ``CHATNAV_LOG_DIR`` and then ``~/.chatnav/logs``.
    Repeated calls return the first log path unless ``force`` is set.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    resolved_level = _resolve_level(level)
    log_path = _resolve_log_dir(log_dir) / LOG_FILE_NAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in _HANDLERS:
        package_logger.removeHandler(handler)
        handler.close()
    _HANDLERS.clear()

    formatter = logging.Formatter(_FORMAT)
    _HANDLERS.append(
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    )
    if console:
        _HANDLERS.append(logging.StreamHandler())
    for handler in _HANDLERS:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
    package_logger.setLevel(resolved_level)
    package_logger.propagate = False

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    return _LOG_PATH


def _resolve_level(level: int | str | None) -> int:
    raw = level if level is not None else os.environ.get("CHATNAV_LOG_LEVEL", "INFO")
    if isinstance(raw, int):
        return raw
    resolved = logging.getLevelName(raw.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    return Path(log_dir or os.environ.get("CHATNAV_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
