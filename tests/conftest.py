"""Shared fixtures for the SomaFM CLI test-suite."""
from __future__ import annotations

import copy
import os
from pathlib import Path

import pytest

# Modules configure logging on import; keep test runs away from the user's log file.
os.environ.setdefault("SOMAFM_CLI_LOG_FILE", "")


@pytest.fixture(autouse=True)
def isolated_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Point the config and cache directories at a temporary location."""

    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("SOMAFM_CLI_CONFIG", str(tmp_path / "config" / "config.json"))
    # Pin the terminal width so argparse help wrapping does not depend on the host.
    monkeypatch.setenv("COLUMNS", "200")
    return tmp_path


CATALOG_PAYLOAD = {
    "channels": [
        {
            "id": "groovesalad",
            "title": "Groove Salad",
            "description": "A nicely chilled plate of ambient/downtempo beats and grooves.",
            "dj": "Rusty Hodge",
            "genre": "ambient|electronica",
            "listeners": "1200",
            "lastPlaying": "Bonobo - Kiara",
            "playlists": [
                {"url": "https://somafm.com/groovesalad130.pls", "format": "aac", "quality": "highest"},
                {"url": "https://somafm.com/groovesalad.pls", "format": "mp3", "quality": "highestpls"},
                {"url": "https://somafm.com/groovesalad64.pls", "format": "aacp", "quality": "fastpls"},
            ],
        },
        {
            "id": "dronezone",
            "title": "Drone Zone",
            "description": "Served best chilled, safe with most medications.",
            "dj": "Stephen Hill",
            "genre": "ambient",
            "listeners": 800,
            "playlists": [
                {"url": "https://somafm.com/dronezone130.pls", "format": "aac", "quality": "highestpls"},
            ],
        },
        {
            "id": "defcon",
            "title": "DEF CON Radio",
            "description": "Music for hacking.",
            "dj": "DEF CON",
            "genre": "electronica",
            "listeners": 300,
            "playlists": [
                {"url": "https://somafm.com/defcon.pls", "format": "mp3", "quality": "slowpls"},
            ],
        },
    ]
}

PLAYLIST_TEXT = """[playlist]
numberofentries=2
File2=https://ice2.somafm.com/groovesalad-128-mp3
Title2=SomaFM: Groove Salad
File1=https://ice1.somafm.com/groovesalad-128-mp3
Title1=SomaFM: Groove Salad
Length1=-1
Version=2
"""


@pytest.fixture
def catalog_payload() -> dict:
    return copy.deepcopy(CATALOG_PAYLOAD)


@pytest.fixture
def playlist_text() -> str:
    return PLAYLIST_TEXT
