import asyncio
import hashlib

import pytest

from somafm_cli import scrobbler as scrobbler_module
from somafm_cli.scrobbler import LastFmScrobbler, ScrobbleError, Song, sign


def test_song_from_title_splits_artist_and_track() -> None:
    assert Song.from_title("Bonobo - Kiara") == Song("Bonobo", "Kiara")
    assert Song.from_title("Boards of Canada - Dayvan Cowboy - Edit") == Song(
        "Boards of Canada", "Dayvan Cowboy - Edit"
    )
    assert Song.from_title("SomaFM station id") is None


def test_sign_sorts_parameters_and_skips_format() -> None:
    params = {"method": "track.love", "api_key": "k", "format": "json", "artist": "A"}
    expected = hashlib.md5(b"api_keykartistAmethodtrack.lovesecret").hexdigest()
    assert sign(params, "secret") == expected


def test_scrobbler_authenticates_once(monkeypatch: pytest.MonkeyPatch) -> None:
    requests: list[dict] = []

    def fake_post(params, timeout):
        requests.append(dict(params))
        if params["method"] == "auth.getMobileSession":
            return {"session": {"key": "session-key", "name": "listener"}}
        return {}

    monkeypatch.setattr(scrobbler_module, "_post", fake_post)
    client = LastFmScrobbler("key", "secret", "listener", "hunter2")

    async def scenario() -> None:
        await client.update_now_playing(Song("Bonobo", "Kiara"))
        await client.scrobble(Song("Bonobo", "Kiara"), 1700000000.9)

    asyncio.run(scenario())

    assert [request["method"] for request in requests] == [
        "auth.getMobileSession",
        "track.updateNowPlaying",
        "track.scrobble",
    ]
    assert requests[1]["sk"] == "session-key"
    assert requests[2]["timestamp"] == "1700000000"
    assert all(request["format"] == "json" for request in requests)
    assert all("api_sig" in request for request in requests)


def test_scrobbler_raises_on_api_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        scrobbler_module,
        "_post",
        lambda params, timeout: {"error": 4, "message": "Invalid authentication token"},
    )
    client = LastFmScrobbler("key", "secret", "listener", "wrong")
    with pytest.raises(ScrobbleError, match="Invalid authentication token"):
        asyncio.run(client.love(Song("Bonobo", "Kiara")))
