"""Remote channel catalog with a time-bounded local cache."""
from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence

from rapidfuzz.distance import Levenshtein

from .errors import ChannelNotFoundError, FetchError
from .fetch import fetch_json, fetch_text
from .logging_utils import get_logger
from .search import CHANNEL_FIELDS, filter_records, normalize, split_terms
from .store import JsonStore
from .streams import (
    DEFAULT_STREAM_PREFERENCES,
    StreamCandidate,
    StreamPreference,
    StreamRef,
    expand_stream,
    resolve_stream,
)

log = get_logger(__name__)

DEFAULT_CATALOG_URL = "https://somafm.com/channels.json"
DEFAULT_CACHE_TTL = 60.0
BRAND_PREFIX = "SomaFM"

_CACHE_KEY = "catalog"


@dataclass(frozen=True, slots=True)
class Channel:
    """A station as published in one catalog snapshot."""

    id: str
    title: str
    full_title: str = ""
    description: str = ""
    dj: str = ""
    genre: str = ""
    last_playing: str = ""
    listeners: int = 0
    image_url: Optional[str] = None
    candidates: tuple[StreamCandidate, ...] = ()
    stream: Optional[StreamRef] = None
    stream_urls: tuple[str, ...] = ()

    @property
    def primary_url(self) -> Optional[str]:
        if self.stream_urls:
            return self.stream_urls[0]
        if self.stream is not None:
            return self.stream.url
        return None


class SortOrder(str, Enum):
    NONE = "none"
    ALPHA = "alpha"
    POPULARITY = "popularity"


@dataclass(slots=True)
class CatalogQuery:
    """The recognized options of a channel listing request."""

    force_refresh: bool = False
    sort_order: SortOrder = SortOrder.ALPHA
    search_terms: list[str] = field(default_factory=list)

    @classmethod
    def from_options(
        cls,
        *,
        force_refresh: bool = False,
        sort: str | SortOrder = SortOrder.ALPHA,
        search: Optional[str | Iterable[str]] = None,
    ) -> "CatalogQuery":
        return cls(
            force_refresh=force_refresh,
            sort_order=SortOrder(sort),
            search_terms=split_terms(search),
        )


@dataclass(slots=True)
class CacheEnvelope:
    """A cached value stamped with its storage time and maximum age (seconds)."""

    value: list[Channel]
    stored_at: float
    max_age: float

    def is_fresh(self, now: float) -> bool:
        return now - self.stored_at < self.max_age


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _coerce_listeners(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    try:
        return max(int(float(str(value).strip())), 0)
    except (ValueError, OverflowError):
        return 0


def _parse_candidates(raw: object) -> tuple[StreamCandidate, ...]:
    if not isinstance(raw, list):
        return ()
    candidates: list[StreamCandidate] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        url = _text(entry.get("url"))
        quality = _text(entry.get("quality"))
        fmt = _text(entry.get("format"))
        if url and quality and fmt:
            candidates.append(StreamCandidate(quality=quality, format=fmt, url=url))
    return tuple(candidates)


def parse_channel(
    entry: dict[str, Any],
    preferences: Sequence[StreamPreference] = DEFAULT_STREAM_PREFERENCES,
) -> Optional[Channel]:
    """Convert one catalog entry, or return None if it has no id."""

    channel_id = _text(entry.get("id")).lower()
    if not channel_id:
        return None
    title = _text(entry.get("title")) or channel_id
    candidates = _parse_candidates(entry.get("playlists"))
    stream = resolve_stream(candidates, preferences)
    if stream is None:
        log.debug("No preferred stream for channel %s", channel_id)
    return Channel(
        id=channel_id,
        title=title,
        full_title=f"{BRAND_PREFIX} {title}",
        description=_text(entry.get("description")),
        dj=_text(entry.get("dj")),
        genre=_text(entry.get("genre")).replace("|", "/"),
        last_playing=_text(entry.get("lastPlaying")),
        listeners=_coerce_listeners(entry.get("listeners")),
        image_url=_text(entry.get("image")) or None,
        candidates=candidates,
        stream=stream,
    )


def _raw_entries(payload: object) -> list[dict[str, Any]]:
    if not isinstance(payload, dict) or not isinstance(payload.get("channels"), list):
        raise FetchError("Catalog payload has no channel list")
    return [entry for entry in payload["channels"] if isinstance(entry, dict)]


def parse_catalog(
    payload: object,
    preferences: Sequence[StreamPreference] = DEFAULT_STREAM_PREFERENCES,
) -> list[Channel]:
    """Parse the catalog document into channels, skipping entries without ids."""

    channels: list[Channel] = []
    seen: set[str] = set()
    for entry in _raw_entries(payload):
        channel = parse_channel(entry, preferences)
        if channel is None or channel.id in seen:
            continue
        seen.add(channel.id)
        channels.append(channel)
    log.info("Parsed %d channel(s) from catalog", len(channels))
    return channels


def sort_channels(channels: Iterable[Channel], order: SortOrder) -> list[Channel]:
    if order is SortOrder.ALPHA:
        return sorted(channels, key=lambda channel: channel.title.lower())
    if order is SortOrder.POPULARITY:
        return sorted(channels, key=lambda channel: (-channel.listeners, channel.title.lower()))
    return list(channels)


class ChannelCatalog:
    """Cached-or-fresh access to the remote channel catalog.

    The in-memory snapshot is backed by a :class:`JsonStore` so separate
    invocations within the TTL share one fetch. When a refresh fails the
    previous snapshot, however old, is served instead of an error.
    """

    def __init__(
        self,
        *,
        url: str = DEFAULT_CATALOG_URL,
        ttl: float = DEFAULT_CACHE_TTL,
        store: Optional[JsonStore] = None,
        preferences: Sequence[StreamPreference] = DEFAULT_STREAM_PREFERENCES,
        json_fetcher: Callable[[str], Awaitable[object]] = fetch_json,
        text_fetcher: Callable[[str], Awaitable[str]] = fetch_text,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._url = url
        self._ttl = ttl
        self._store = store
        self._preferences = tuple(preferences)
        self._fetch_json = json_fetcher
        self._fetch_text = text_fetcher
        self._clock = clock
        self._envelope: Optional[CacheEnvelope] = None

    @property
    def ttl(self) -> float:
        return self._ttl

    def _restore_envelope(self) -> Optional[CacheEnvelope]:
        if self._envelope is not None or self._store is None:
            return self._envelope
        raw = self._store.get(_CACHE_KEY)
        if not isinstance(raw, dict):
            return None
        try:
            channels = parse_catalog({"channels": raw.get("channels")}, self._preferences)
            self._envelope = CacheEnvelope(
                value=channels,
                stored_at=float(raw["stored_at"]),
                max_age=float(raw.get("max_age", self._ttl)),
            )
        except (FetchError, KeyError, TypeError, ValueError) as exc:
            log.warning("Discarding unreadable catalog cache: %s", exc)
            return None
        log.debug("Restored catalog cache from %s", self._store.path)
        return self._envelope

    def _persist(self, payload: object, envelope: CacheEnvelope) -> None:
        if self._store is None:
            return
        try:
            self._store.set(
                _CACHE_KEY,
                {
                    "stored_at": envelope.stored_at,
                    "max_age": envelope.max_age,
                    "channels": _raw_entries(payload),
                },
            )
        except OSError as exc:
            log.warning("Failed to write catalog cache: %s", exc)

    async def get_catalog(self, force_refresh: bool = False) -> list[Channel]:
        """Return the channel list, fetching when cold, expired or forced."""

        envelope = self._restore_envelope()
        now = self._clock()
        if not force_refresh and envelope is not None and envelope.is_fresh(now):
            log.debug("Catalog cache hit (age %.1fs)", now - envelope.stored_at)
            return list(envelope.value)
        log.info("Fetching channel catalog from %s", self._url)
        try:
            payload = await self._fetch_json(self._url)
            channels = parse_catalog(payload, self._preferences)
        except FetchError as exc:
            if envelope is None:
                raise
            log.warning("Catalog refresh failed (%s); serving cached snapshot", exc)
            return list(envelope.value)
        fresh = CacheEnvelope(value=channels, stored_at=now, max_age=self._ttl)
        self._envelope = fresh
        self._persist(payload, fresh)
        return list(channels)

    async def list_channels(self, query: Optional[CatalogQuery] = None) -> list[Channel]:
        query = query or CatalogQuery()
        channels = await self.get_catalog(query.force_refresh)
        matched = filter_records(channels, query.search_terms, CHANNEL_FIELDS)
        return sort_channels(matched, query.sort_order)

    async def get_channel(self, channel_id: str, *, resolve_urls: bool = True) -> Channel:
        """Return the channel for ``channel_id`` (exact, then closest match)."""

        wanted = (channel_id or "").strip().lower()
        if not wanted:
            raise ChannelNotFoundError(channel_id)
        channels = await self.get_catalog()
        channel = next((item for item in channels if item.id == wanted), None)
        if channel is None:
            channel = _closest_channel(channels, wanted)
        if channel is None:
            raise ChannelNotFoundError(channel_id)
        log.info("Resolved channel %r to %s", channel_id, channel.id)
        if resolve_urls and channel.stream is not None:
            urls = await expand_stream(channel.stream, self._fetch_text)
            channel = replace(channel, stream_urls=tuple(urls))
        return channel


def _closest_channel(channels: Sequence[Channel], wanted: str) -> Optional[Channel]:
    matches = filter_records(channels, [wanted], ("id", "title"))
    if not matches:
        return None

    def distance(channel: Channel) -> int:
        return min(
            Levenshtein.distance(wanted, channel.id),
            Levenshtein.distance(wanted, normalize(channel.title)),
        )

    return min(matches, key=distance)


__all__ = [
    "BRAND_PREFIX",
    "DEFAULT_CACHE_TTL",
    "DEFAULT_CATALOG_URL",
    "CacheEnvelope",
    "CatalogQuery",
    "Channel",
    "ChannelCatalog",
    "SortOrder",
    "parse_catalog",
    "parse_channel",
    "sort_channels",
]
