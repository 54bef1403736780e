"""Liked track titles persisted in the favourites store."""
from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from .logging_utils import get_logger
from .search import FAVOURITE_FIELDS, filter_records
from .store import JsonStore

if TYPE_CHECKING:  # pragma: no cover - only for typing
    from .catalog import Channel

log = get_logger(__name__)

_FAVOURITES_KEY = "favourites"


@dataclass(slots=True)
class Favourite:
    """A track title that was playing when the user liked it."""

    title: str
    channel_id: Optional[str] = None
    channel_title: Optional[str] = None
    timestamp: Optional[int] = None

    def as_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"title": self.title}
        if self.channel_id:
            data["channelId"] = self.channel_id
        if self.channel_title:
            data["channelTitle"] = self.channel_title
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_raw(cls, raw: object) -> Optional["Favourite"]:
        # Early versions stored bare title strings.
        if isinstance(raw, str):
            return cls(title=raw) if raw else None
        if not isinstance(raw, dict) or not raw.get("title"):
            return None
        timestamp = raw.get("timestamp")
        return cls(
            title=str(raw["title"]),
            channel_id=str(raw["channelId"]) if raw.get("channelId") else None,
            channel_title=str(raw["channelTitle"]) if raw.get("channelTitle") else None,
            timestamp=int(timestamp) if isinstance(timestamp, (int, float)) else None,
        )


class FavouritesStore:
    """Add, remove and query favourites keyed by track title.

    Each call re-reads the backing file, so edits made in an external editor
    are picked up; concurrent writers are last-write-wins.
    """

    def __init__(
        self,
        store: Optional[JsonStore] = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store if store is not None else JsonStore("favourites")
        self._clock = clock

    def _read(self) -> list[Favourite]:
        raw = self._store.get(_FAVOURITES_KEY, [])
        if not isinstance(raw, list):
            log.warning("Favourites file %s has no list; treating as empty", self._store.path)
            return []
        favourites = []
        for entry in raw:
            favourite = Favourite.from_raw(entry)
            if favourite is None:
                log.warning("Skipping malformed favourite entry: %r", entry)
                continue
            favourites.append(favourite)
        return favourites

    def _write(self, favourites: Sequence[Favourite]) -> None:
        self._store.set(_FAVOURITES_KEY, [favourite.as_dict() for favourite in favourites])

    def is_favourite(self, title: Optional[str]) -> bool:
        if not title:
            return False
        return any(favourite.title == title for favourite in self._read())

    def add(self, title: str, channel: Optional["Channel"] = None) -> bool:
        """Store ``title``; returns False if it was already a favourite."""

        favourites = self._read()
        if any(favourite.title == title for favourite in favourites):
            log.debug("Track %r is already a favourite", title)
            return False
        favourites.append(
            Favourite(
                title=title,
                channel_id=channel.id if channel is not None else None,
                channel_title=channel.full_title if channel is not None else None,
                timestamp=int(self._clock() * 1000),
            )
        )
        self._write(favourites)
        log.info("Added favourite %r", title)
        return True

    def remove(self, title: str) -> bool:
        """Forget ``title``; returns False if it was not stored."""

        favourites = self._read()
        remaining = [favourite for favourite in favourites if favourite.title != title]
        if len(remaining) == len(favourites):
            return False
        self._write(remaining)
        log.info("Removed favourite %r", title)
        return True

    def list(self, terms: Optional[Sequence[str]] = None) -> list[Favourite]:
        return filter_records(self._read(), terms, FAVOURITE_FIELDS)

    def locate(self) -> Path:
        return self._store.path


__all__ = ["Favourite", "FavouritesStore"]
