"""Small JSON key-value documents stored in per-application directories."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from platformdirs import user_cache_dir, user_config_dir

from .logging_utils import get_logger

APP_NAME = "somafm-cli"

log = get_logger(__name__)


def config_dir() -> Path:
    return Path(user_config_dir(APP_NAME))


def cache_dir() -> Path:
    return Path(user_cache_dir(APP_NAME))


class JsonStore:
    """A JSON object persisted at ``<directory>/<name>.json``.

    Every operation opens, reads or writes, and closes the file. Concurrent
    writers are last-write-wins.
    """

    __slots__ = ("_path",)

    def __init__(self, name: str, directory: Optional[Path] = None) -> None:
        base = directory if directory is not None else config_dir()
        self._path = Path(base) / f"{name}.json"

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            log.warning("Ignoring unreadable store %s: %s", self._path, exc)
            return {}
        if not isinstance(raw, dict):
            log.warning("Ignoring store %s with non-object content", self._path)
            return {}
        return raw

    def _write(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf8"
        )

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)
        log.debug("Stored %s in %s", key, self._path)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    def clear(self) -> None:
        if self._path.exists():
            try:
                self._path.unlink()
            except OSError as exc:  # pragma: no cover - best effort cleanup
                log.warning("Failed to remove %s: %s", self._path, exc)


__all__ = ["APP_NAME", "JsonStore", "cache_dir", "config_dir"]
