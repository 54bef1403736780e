"""Tests for :mod:`somafm_cli.logging_utils`."""

from __future__ import annotations

import importlib
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import pytest


def _fresh_logging_utils(monkeypatch: pytest.MonkeyPatch) -> Any:
    """Reload the module and drop handler state left behind by other tests."""

    monkeypatch.setenv("SOMAFM_CLI_LOG_FILE", "")
    monkeypatch.delenv("SOMAFM_CLI_LOG_LEVEL", raising=False)
    from somafm_cli import logging_utils

    module = importlib.reload(logging_utils)
    logger = logging.getLogger("somafm_cli")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    return module


def test_explicit_level_applies_to_every_handler(monkeypatch: pytest.MonkeyPatch) -> None:
    module = _fresh_logging_utils(monkeypatch)

    package = module.configure_logging(level="warning")
    assert package.level == logging.WARNING

    module.configure_logging(level="debug")
    assert package.level == logging.DEBUG
    assert {handler.level for handler in package.handlers} == {logging.DEBUG}


def test_terminal_stays_quiet_without_explicit_level(monkeypatch: pytest.MonkeyPatch) -> None:
    """Only warnings reach stderr unless a level was requested."""

    module = _fresh_logging_utils(monkeypatch)

    logger = module.configure_logging()
    assert logger.level == logging.INFO
    assert module._state.stream_handler.level == logging.WARNING


def test_log_file_can_be_moved_at_runtime(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    module = _fresh_logging_utils(monkeypatch)

    package = module.configure_logging(level="info")
    assert module.get_log_file_path() is None

    first = tmp_path / "logs" / "first.log"
    second = tmp_path / "second.log"
    module.configure_logging(log_file=str(first))
    module.configure_logging(log_file=str(second))

    rotating = [h for h in package.handlers if isinstance(h, RotatingFileHandler)]
    assert len(rotating) == 1
    assert rotating[0].baseFilename == str(second)
    assert first.parent.is_dir()
    assert module.get_log_file_path() == second

    module.configure_logging(log_file="")
    assert module.get_log_file_path() is None
    assert not any(isinstance(h, RotatingFileHandler) for h in package.handlers)


def test_get_logger_nests_under_package(monkeypatch: pytest.MonkeyPatch) -> None:
    module = _fresh_logging_utils(monkeypatch)

    assert module.get_logger("somafm_cli.catalog").name == "somafm_cli.catalog"
    assert module.get_logger("plugins").name == "somafm_cli.plugins"
    assert module.get_logger().name == "somafm_cli"


@pytest.mark.parametrize(("value", "expected"), [("debug", logging.DEBUG), ("30", 30), ("bogus", logging.INFO)])
def test_coerce_level(monkeypatch: pytest.MonkeyPatch, value: str, expected: int) -> None:
    module = _fresh_logging_utils(monkeypatch)
    assert module._coerce_level(value) == expected
