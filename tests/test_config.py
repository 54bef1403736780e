import json
from pathlib import Path

from somafm_cli.config import LastFmCredentials, Settings, load_config, save_config
from somafm_cli.keys import DEFAULT_KEY_BINDINGS, Action
from somafm_cli.streams import DEFAULT_STREAM_PREFERENCES, StreamPreference


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    settings = load_config(tmp_path / "config.json")
    assert settings.catalog_url == "https://somafm.com/channels.json"
    assert settings.cache_ttl == 60.0
    assert settings.stream_preferences == list(DEFAULT_STREAM_PREFERENCES)
    assert settings.key_bindings == dict(DEFAULT_KEY_BINDINGS)
    assert settings.notifications
    assert settings.theme is None
    assert not settings.lastfm.complete


def test_load_and_save_round_trip(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "config.json"
    settings = Settings(
        cache_ttl=300.0,
        stream_preferences=[StreamPreference("slowpls", "mp3")],
        players=["mpv"],
        audio_dir="~/Music/SomaFM",
        notifications=False,
        key_bindings={"l": Action.ADD_FAVOURITE, "x": Action.QUIT},
        lastfm=LastFmCredentials("key", "secret", "listener", "hunter2"),
        theme="soma-day",
    )
    save_config(settings, config_path)
    raw = json.loads(config_path.read_text(encoding="utf8"))
    assert raw["stream_preferences"] == ["slowpls/mp3"]
    assert raw["key_bindings"] == {"l": "add_favourite", "x": "quit"}

    loaded = load_config(config_path)
    assert loaded.cache_ttl == 300.0
    assert loaded.stream_preferences == [StreamPreference("slowpls", "mp3")]
    assert loaded.players == ["mpv"]
    assert loaded.audio_dir == "~/Music/SomaFM"
    assert not loaded.notifications
    assert loaded.key_bindings == {"l": Action.ADD_FAVOURITE, "x": Action.QUIT}
    assert loaded.lastfm.complete
    assert loaded.theme == "soma-day"


def test_invalid_fields_fall_back_to_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "cache_ttl": -5,
                "players": ["vlc", "mpg123"],
                "ripper": "wget",
                "stream_preferences": ["nonsense"],
                "notifications": "off",
                "key_bindings": {"long": "quit", "p": "add_favourite"},
            }
        ),
        encoding="utf8",
    )
    settings = load_config(config_path)
    assert settings.cache_ttl == 60.0
    assert settings.players == ["mpg123"]
    assert settings.ripper == "streamripper"
    assert settings.stream_preferences == list(DEFAULT_STREAM_PREFERENCES)
    assert settings.notifications is False
    assert settings.key_bindings == {"p": Action.ADD_FAVOURITE}


def test_unreadable_config_uses_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2", encoding="utf8")
    assert load_config(config_path) == Settings()


def test_config_path_can_come_from_environment(tmp_path: Path, monkeypatch) -> None:
    config_path = tmp_path / "elsewhere.json"
    config_path.write_text(json.dumps({"theme": "soma-night"}), encoding="utf8")
    monkeypatch.setenv("SOMAFM_CLI_CONFIG", str(config_path))
    assert load_config().theme == "soma-night"
