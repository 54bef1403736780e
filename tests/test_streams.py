"""Tests for :mod:`somafm_cli.streams`."""
from __future__ import annotations

import asyncio

import pytest

from somafm_cli.errors import FetchError, ResolutionError
from somafm_cli.streams import (
    DEFAULT_STREAM_PREFERENCES,
    StreamCandidate,
    StreamPreference,
    StreamRef,
    expand_stream,
    parse_pls,
    parse_preferences,
    resolve_stream,
)


CANDIDATES = [
    StreamCandidate("slowpls", "mp3", "https://somafm.com/slow.pls"),
    StreamCandidate("highestpls", "mp3", "https://somafm.com/highest-mp3.pls"),
    StreamCandidate("fastpls", "mp3", "https://somafm.com/fast.pls"),
]


def test_resolve_stream_follows_preference_order() -> None:
    stream = resolve_stream(CANDIDATES)
    assert stream == StreamRef("highestpls", "mp3", "https://somafm.com/highest-mp3.pls")


def test_resolve_stream_is_independent_of_candidate_order() -> None:
    assert resolve_stream(list(reversed(CANDIDATES))) == resolve_stream(CANDIDATES)


def test_resolve_stream_returns_none_without_match() -> None:
    candidates = [StreamCandidate("highest", "flac", "https://somafm.com/x.flac")]
    assert resolve_stream(candidates) is None
    assert resolve_stream([]) is None


def test_resolve_stream_with_custom_preferences() -> None:
    preferences = [StreamPreference("slowpls", "mp3")]
    stream = resolve_stream(CANDIDATES, preferences)
    assert stream is not None and stream.url == "https://somafm.com/slow.pls"


def test_parse_preferences_skips_malformed_entries() -> None:
    preferences = parse_preferences(["highestpls/aac", "bogus", "/mp3", " fastpls / mp3 "])
    assert preferences == [StreamPreference("highestpls", "aac"), StreamPreference("fastpls", "mp3")]
    assert str(DEFAULT_STREAM_PREFERENCES[0]) == "highestpls/aac"


def test_parse_pls_orders_entries_by_index(playlist_text: str) -> None:
    assert parse_pls(playlist_text) == [
        "https://ice1.somafm.com/groovesalad-128-mp3",
        "https://ice2.somafm.com/groovesalad-128-mp3",
    ]


def test_parse_pls_requires_playlist_section() -> None:
    with pytest.raises(FetchError):
        parse_pls("File1=https://example.invalid/stream\n")


def test_stream_ref_detects_playlists() -> None:
    assert StreamRef("highestpls", "aac", "https://somafm.com/gs.pls").is_playlist
    assert not StreamRef("highest", "aac", "https://ice1.somafm.com/gs-256-aac").is_playlist


def test_expand_stream_returns_direct_url_unchanged() -> None:
    async def _unexpected_fetch(url: str) -> str:  # pragma: no cover - only used when failing
        raise AssertionError("direct streams should not be fetched")

    stream = StreamRef("highest", "mp3", "https://ice1.somafm.com/gs-128-mp3")
    assert asyncio.run(expand_stream(stream, _unexpected_fetch)) == [stream.url]


def test_expand_stream_rejects_empty_playlist() -> None:
    async def _empty(url: str) -> str:
        return "[playlist]\nnumberofentries=0\n"

    with pytest.raises(ResolutionError):
        asyncio.run(expand_stream(StreamRef("highestpls", "mp3", "https://somafm.com/x.pls"), _empty))


def test_first_preference_with_a_match_wins() -> None:
    candidates = [StreamCandidate("high", "mp3", "u1"), StreamCandidate("low", "aac", "u2")]
    preferences = [StreamPreference("high", "aac"), StreamPreference("high", "mp3"), StreamPreference("low", "aac")]
    assert resolve_stream(candidates, preferences) == StreamRef("high", "mp3", "u1")
