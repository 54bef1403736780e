"""Minimal Last.fm client for now-playing updates, scrobbles and loves."""
from __future__ import annotations

import asyncio
import hashlib
import json
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib import error, parse, request

from .fetch import DEFAULT_TIMEOUT, USER_AGENT
from .logging_utils import get_logger

log = get_logger(__name__)

API_URL = "https://ws.audioscrobbler.com/2.0/"
TITLE_SEPARATOR = " - "


class ScrobbleError(RuntimeError):
    """Raised when Last.fm rejects a request or cannot be reached."""


@dataclass(frozen=True, slots=True)
class Song:
    artist: str
    track: str

    @classmethod
    def from_title(cls, title: str) -> Optional["Song"]:
        """Split a stream title of the form ``Artist - Track``."""

        artist, sep, track = title.partition(TITLE_SEPARATOR)
        if not sep or not artist.strip() or not track.strip():
            return None
        return cls(artist=artist.strip(), track=track.strip())


def sign(params: Mapping[str, str], secret: str) -> str:
    """Return the ``api_sig`` for ``params``."""

    payload = "".join(
        f"{key}{params[key]}" for key in sorted(params) if key not in {"format", "callback"}
    )
    return hashlib.md5((payload + secret).encode("utf8")).hexdigest()


def _post(params: Mapping[str, str], timeout: float) -> dict[str, object]:
    data = parse.urlencode(params).encode("utf8")
    req = request.Request(API_URL, data=data, method="POST")
    req.add_header("User-Agent", USER_AGENT)
    req.add_header("Content-Type", "application/x-www-form-urlencoded")
    try:
        with request.urlopen(req, timeout=timeout) as response:  # type: ignore[call-arg]
            body = response.read()
    except error.HTTPError as exc:
        # Last.fm reports API errors with 4xx status and a JSON body.
        body = exc.read()
    return json.loads(body.decode("utf8"))


class LastFmScrobbler:
    """Authenticate lazily and submit track events to Last.fm."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        username: str,
        password: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._username = username
        self._password = password
        self._timeout = timeout
        self._session_key: Optional[str] = None

    async def _call(self, method: str, params: Mapping[str, str]) -> dict[str, object]:
        signed = {"method": method, "api_key": self._api_key, **params}
        signed["api_sig"] = sign(signed, self._api_secret)
        signed["format"] = "json"
        try:
            payload = await asyncio.to_thread(_post, signed, self._timeout)
        except (error.URLError, OSError, json.JSONDecodeError) as exc:
            raise ScrobbleError(f"{method} failed: {exc}") from exc
        if "error" in payload:
            raise ScrobbleError(f"{method} failed: {payload.get('message', payload['error'])}")
        log.debug("Last.fm %s succeeded", method)
        return payload

    async def _session(self) -> str:
        if self._session_key is None:
            payload = await self._call(
                "auth.getMobileSession",
                {"username": self._username, "password": self._password},
            )
            session = payload.get("session")
            if not isinstance(session, dict) or not session.get("key"):
                raise ScrobbleError("auth.getMobileSession returned no session key")
            self._session_key = str(session["key"])
            log.info("Authenticated with Last.fm as %s", self._username)
        return self._session_key

    async def update_now_playing(self, song: Song) -> None:
        sk = await self._session()
        await self._call(
            "track.updateNowPlaying", {"artist": song.artist, "track": song.track, "sk": sk}
        )

    async def scrobble(self, song: Song, started_at: float) -> None:
        sk = await self._session()
        await self._call(
            "track.scrobble",
            {
                "artist": song.artist,
                "track": song.track,
                "timestamp": str(int(started_at)),
                "sk": sk,
            },
        )

    async def love(self, song: Song) -> None:
        sk = await self._session()
        await self._call("track.love", {"artist": song.artist, "track": song.track, "sk": sk})


__all__ = ["API_URL", "LastFmScrobbler", "ScrobbleError", "Song", "sign"]
