"""Configuration management for the SomaFM CLI."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .catalog import DEFAULT_CACHE_TTL, DEFAULT_CATALOG_URL
from .keys import DEFAULT_KEY_BINDINGS, Action, parse_bindings
from .logging_utils import get_logger
from .player import DEFAULT_PLAYER_CANDIDATES, DEFAULT_RIPPER, PLAYERS, RIPPERS
from .store import config_dir
from .streams import DEFAULT_STREAM_PREFERENCES, StreamPreference, parse_preferences

CONFIG_ENV = "SOMAFM_CLI_CONFIG"
CONFIG_PATH = config_dir() / "config.json"

log = get_logger(__name__)


@dataclass(slots=True)
class LastFmCredentials:
    api_key: str = ""
    api_secret: str = ""
    username: str = ""
    password: str = ""

    @property
    def complete(self) -> bool:
        return all((self.api_key, self.api_secret, self.username, self.password))


@dataclass(slots=True)
class Settings:
    """Top level application configuration."""

    catalog_url: str = DEFAULT_CATALOG_URL
    cache_ttl: float = DEFAULT_CACHE_TTL
    stream_preferences: list[StreamPreference] = field(
        default_factory=lambda: list(DEFAULT_STREAM_PREFERENCES)
    )
    players: list[str] = field(default_factory=lambda: list(DEFAULT_PLAYER_CANDIDATES))
    ripper: str = DEFAULT_RIPPER
    audio_dir: Optional[str] = None
    notifications: bool = True
    key_bindings: dict[str, Action] = field(default_factory=lambda: dict(DEFAULT_KEY_BINDINGS))
    lastfm: LastFmCredentials = field(default_factory=LastFmCredentials)
    theme: Optional[str] = None

    def as_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "catalog_url": self.catalog_url,
            "cache_ttl": self.cache_ttl,
            "stream_preferences": [str(preference) for preference in self.stream_preferences],
            "players": list(self.players),
            "ripper": self.ripper,
            "notifications": self.notifications,
            "key_bindings": {key: action.value for key, action in self.key_bindings.items()},
        }
        if self.audio_dir:
            data["audio_dir"] = self.audio_dir
        if self.theme:
            data["theme"] = self.theme
        if any((self.lastfm.api_key, self.lastfm.api_secret, self.lastfm.username, self.lastfm.password)):
            data["lastfm"] = {
                "api_key": self.lastfm.api_key,
                "api_secret": self.lastfm.api_secret,
                "username": self.lastfm.username,
                "password": self.lastfm.password,
            }
        return data


def default_config_path() -> Path:
    override = os.getenv(CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return CONFIG_PATH


def _parse_bool(value: object, *, default: bool = True) -> bool:
    """Coerce *value* into a boolean flag."""

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "yes", "on", "1"}:
            return True
        if normalized in {"false", "no", "off", "0"}:
            return False
    return default


def _parse_positive_float(value: object, default: float, name: str) -> float:
    if value is None:
        return default
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        log.warning("Ignoring invalid %s value %r", name, value)
        return default
    if number <= 0:
        log.warning("%s must be positive; using default %.1f", name, default)
        return default
    return number


def _parse_names(value: object, known: dict, default: list[str], name: str) -> list[str]:
    if value is None:
        return default
    if not isinstance(value, list):
        log.warning("Ignoring %s: expected a list", name)
        return default
    names = []
    for entry in value:
        if str(entry) in known:
            names.append(str(entry))
        else:
            log.warning("Ignoring unsupported %s entry %r", name, entry)
    return names or default


def _parse_lastfm(value: object) -> LastFmCredentials:
    if not isinstance(value, dict):
        return LastFmCredentials()
    return LastFmCredentials(
        api_key=str(value.get("api_key") or ""),
        api_secret=str(value.get("api_secret") or ""),
        username=str(value.get("username") or ""),
        password=str(value.get("password") or ""),
    )


def load_config(path: Optional[Path] = None) -> Settings:
    """Load configuration from *path* or return the defaults."""

    config_path = path or default_config_path()
    if not config_path.exists():
        log.info("Configuration file missing at %s; using defaults", config_path)
        return Settings()
    log.debug("Loading configuration from %s", config_path)
    try:
        data = json.loads(config_path.read_text(encoding="utf8") or "{}")
    except (OSError, json.JSONDecodeError) as exc:
        log.warning("Could not read configuration %s (%s); using defaults", config_path, exc)
        return Settings()
    if not isinstance(data, dict):
        log.warning("Configuration %s is not an object; using defaults", config_path)
        return Settings()

    settings = Settings()
    if isinstance(data.get("catalog_url"), str) and data["catalog_url"].strip():
        settings.catalog_url = data["catalog_url"].strip()
    settings.cache_ttl = _parse_positive_float(data.get("cache_ttl"), DEFAULT_CACHE_TTL, "cache_ttl")
    raw_preferences = data.get("stream_preferences")
    if isinstance(raw_preferences, list):
        preferences = parse_preferences(raw_preferences)
        if preferences:
            settings.stream_preferences = preferences
    settings.players = _parse_names(
        data.get("players"), dict(PLAYERS), list(DEFAULT_PLAYER_CANDIDATES), "players"
    )
    ripper = data.get("ripper")
    if isinstance(ripper, str) and ripper in RIPPERS:
        settings.ripper = ripper
    elif ripper is not None:
        log.warning("Ignoring unsupported ripper %r", ripper)
    audio_dir = data.get("audio_dir")
    if isinstance(audio_dir, str) and audio_dir.strip():
        settings.audio_dir = audio_dir.strip()
    settings.notifications = _parse_bool(data.get("notifications"), default=True)
    raw_bindings = data.get("key_bindings")
    if isinstance(raw_bindings, dict):
        settings.key_bindings = parse_bindings(raw_bindings)
    settings.lastfm = _parse_lastfm(data.get("lastfm"))
    theme = data.get("theme")
    if isinstance(theme, str) and theme.strip():
        settings.theme = theme.strip()
    log.info("Loaded configuration from %s", config_path)
    return settings


def save_config(settings: Settings, path: Optional[Path] = None) -> None:
    """Persist *settings* to disk at *path*."""

    config_path = path or default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(settings.as_dict(), indent=2) + "\n", encoding="utf8")
    log.info("Configuration saved to %s", config_path)


__all__ = [
    "CONFIG_ENV",
    "CONFIG_PATH",
    "LastFmCredentials",
    "Settings",
    "default_config_path",
    "load_config",
    "save_config",
]
