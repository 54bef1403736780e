"""HTTP helpers for the catalog and playlist endpoints."""
from __future__ import annotations

import asyncio
import json
from typing import Optional
from urllib import error, request

from . import __version__
from .errors import FetchError
from .logging_utils import get_logger

log = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0
USER_AGENT = f"somafm-cli/{__version__}"


def _fetch_bytes(url: str, timeout: float, *, user_agent: Optional[str] = None) -> bytes:
    log.debug("Fetching %s (timeout=%s)", url, timeout)
    req = request.Request(url)
    req.add_header("User-Agent", user_agent or USER_AGENT)
    with request.urlopen(req, timeout=timeout) as response:  # type: ignore[call-arg]
        payload = response.read()
    log.debug("Received %d bytes from %s", len(payload), url)
    return payload


async def fetch_text(url: str, *, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Fetch ``url`` on a worker thread and return the decoded body."""

    try:
        payload = await asyncio.to_thread(_fetch_bytes, url, timeout)
    except (error.URLError, OSError, ValueError) as exc:  # pragma: no cover - network errors
        log.error("Failed to fetch %s: %s", url, exc)
        raise FetchError(f"Failed to fetch {url}: {exc}") from exc
    return payload.decode("utf8", errors="replace")


async def fetch_json(url: str, *, timeout: float = DEFAULT_TIMEOUT) -> object:
    """Fetch ``url`` and decode the body as JSON."""

    text = await fetch_text(url, timeout=timeout)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        log.error("Malformed JSON from %s: %s", url, exc)
        raise FetchError(f"Malformed response from {url}: {exc}") from exc


__all__ = ["DEFAULT_TIMEOUT", "USER_AGENT", "fetch_json", "fetch_text"]
