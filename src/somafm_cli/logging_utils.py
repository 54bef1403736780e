"""Logging helpers for :mod:`somafm_cli`."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from platformdirs import user_cache_dir

__all__ = ["configure_logging", "get_logger", "get_log_file_path"]

PACKAGE_LOGGER = "somafm_cli"
LEVEL_ENV = "SOMAFM_CLI_LOG_LEVEL"
FILE_ENV = "SOMAFM_CLI_LOG_FILE"
DEFAULT_LOG_PATH = Path(user_cache_dir("somafm-cli")) / "somafm.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 1_000_000
LOG_BACKUPS = 2

# The terminal belongs to the status line; only problems reach stderr unless
# a level was asked for explicitly.
_QUIET_STREAM_LEVEL = logging.WARNING


@dataclass
class _LoggingState:
    configured: bool = False
    level: int = logging.INFO
    stream_handler: Optional[logging.Handler] = None
    file_handler: Optional[logging.Handler] = None
    log_path: Optional[Path] = None


_state = _LoggingState()


def _coerce_level(value: str) -> int:
    """Turn a level name or number into a :mod:`logging` level."""

    text = value.strip().upper()
    if text.isdigit():
        number = int(text)
        return number if 0 <= number <= logging.CRITICAL else logging.INFO
    level = logging.getLevelName(text)
    return level if isinstance(level, int) else logging.INFO


def _close_file_handler(logger: logging.Logger) -> None:
    handler = _state.file_handler
    if handler is None:
        return
    logger.removeHandler(handler)
    handler.close()
    _state.file_handler = None
    _state.log_path = None


def _open_file_handler(logger: logging.Logger, destination: str) -> None:
    """Send records to ``destination``; an empty destination disables file logging."""

    _close_file_handler(logger)
    if not destination:
        return
    path = Path(destination).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf8"
        )
    except OSError as exc:
        logger.warning("Cannot write log file %s: %s", path, exc)
        return
    handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    logger.addHandler(handler)
    _state.file_handler = handler
    _state.log_path = path


def configure_logging(
    *,
    level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Set up the package logger on first use.

    Later calls may change the level or move the log file; calls without
    arguments return the logger as it is.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)
    if _state.configured and level is None and log_file is None:
        return logger

    requested = level or os.getenv(LEVEL_ENV)
    _state.level = _coerce_level(requested or "INFO")

    if not _state.configured:
        logger.propagate = False
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
        logger.addHandler(stream_handler)
        _state.stream_handler = stream_handler
        if log_file is None:
            env_file = os.getenv(FILE_ENV)
            log_file = str(DEFAULT_LOG_PATH) if env_file is None else env_file
        _state.configured = True
    if log_file is not None:
        _open_file_handler(logger, log_file)

    logger.setLevel(_state.level)
    if _state.stream_handler is not None:
        _state.stream_handler.setLevel(
            _state.level if requested else max(_state.level, _QUIET_STREAM_LEVEL)
        )
    if _state.file_handler is not None:
        _state.file_handler.setLevel(_state.level)
    logger.debug("Log level %s, file %s", logging.getLevelName(_state.level), _state.log_path)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return ``name`` as a child of the package logger."""

    package = configure_logging()
    if not name or name == PACKAGE_LOGGER:
        return package
    if name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    return package.getChild(name)


def get_log_file_path() -> Optional[Path]:
    """Return the file currently receiving log records, if any."""

    return _state.log_path
