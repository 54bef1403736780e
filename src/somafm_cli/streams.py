"""Quality-tier stream selection and playlist expansion."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from .errors import FetchError, ResolutionError
from .logging_utils import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class StreamCandidate:
    """One advertised (quality, format, url) combination for a channel."""

    quality: str
    format: str
    url: str


@dataclass(frozen=True, slots=True)
class StreamPreference:
    quality: str
    format: str

    def __str__(self) -> str:
        return f"{self.quality}/{self.format}"


@dataclass(frozen=True, slots=True)
class StreamRef:
    """The stream chosen for a channel by :func:`resolve_stream`."""

    quality: str
    format: str
    url: str

    @property
    def is_playlist(self) -> bool:
        return is_playlist_url(self.url) or self.quality.endswith("pls")


DEFAULT_STREAM_PREFERENCES: tuple[StreamPreference, ...] = (
    StreamPreference("highestpls", "aac"),
    StreamPreference("highestpls", "mp3"),
    StreamPreference("fastpls", "mp3"),
    StreamPreference("fastpls", "aacp"),
    StreamPreference("slowpls", "aacp"),
    StreamPreference("slowpls", "mp3"),
)

_PLS_KEY = re.compile(r"^file(\d+)$", re.IGNORECASE)


def parse_preferences(values: Iterable[str]) -> list[StreamPreference]:
    """Parse ``quality/format`` strings, skipping malformed entries."""

    preferences: list[StreamPreference] = []
    for value in values:
        quality, sep, fmt = str(value).strip().partition("/")
        if not sep or not quality or not fmt:
            log.warning("Ignoring malformed stream preference %r", value)
            continue
        preferences.append(StreamPreference(quality.strip(), fmt.strip()))
    return preferences


def resolve_stream(
    candidates: Sequence[StreamCandidate],
    preferences: Sequence[StreamPreference] = DEFAULT_STREAM_PREFERENCES,
) -> Optional[StreamRef]:
    """Return the first candidate matching the preference list, in preference order."""

    for preference in preferences:
        for candidate in candidates:
            if candidate.quality == preference.quality and candidate.format == preference.format:
                return StreamRef(candidate.quality, candidate.format, candidate.url)
    return None


def is_playlist_url(url: str) -> bool:
    path = url.split("?", 1)[0].lower()
    return path.endswith(".pls")


def parse_pls(text: str) -> list[str]:
    """Return the ``FileN`` URLs of a ``[playlist]`` document ordered by ``N``."""

    in_playlist = False
    seen_section = False
    entries: list[tuple[int, str]] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith((";", "#")):
            continue
        if line.startswith("[") and line.endswith("]"):
            in_playlist = line[1:-1].strip().lower() == "playlist"
            seen_section = seen_section or in_playlist
            continue
        if not in_playlist:
            continue
        key, sep, value = line.partition("=")
        match = _PLS_KEY.match(key.strip())
        if not sep or match is None or not value.strip():
            continue
        entries.append((int(match.group(1)), value.strip()))
    if not seen_section:
        raise FetchError("Playlist has no [playlist] section")
    entries.sort(key=lambda entry: entry[0])
    return [url for _, url in entries]


async def expand_stream(
    stream: StreamRef,
    fetch_text: Callable[[str], Awaitable[str]],
) -> list[str]:
    """Return the direct media URLs behind ``stream``; the first is primary."""

    if not stream.is_playlist:
        return [stream.url]
    log.info("Expanding playlist %s", stream.url)
    urls = parse_pls(await fetch_text(stream.url))
    if not urls:
        raise ResolutionError(f"Playlist {stream.url} contains no streams")
    log.debug("Playlist %s expanded to %d url(s)", stream.url, len(urls))
    return urls


__all__ = [
    "DEFAULT_STREAM_PREFERENCES",
    "StreamCandidate",
    "StreamPreference",
    "StreamRef",
    "expand_stream",
    "is_playlist_url",
    "parse_pls",
    "parse_preferences",
    "resolve_stream",
]
