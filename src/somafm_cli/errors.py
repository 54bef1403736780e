"""Exception hierarchy shared by the catalog, resolver and session layers."""
from __future__ import annotations


class SomaFMError(RuntimeError):
    """Base class for errors surfaced to the command line layer."""

    exit_code = 1


class FetchError(SomaFMError):
    """Raised when the catalog or a stream playlist cannot be fetched or parsed."""

    exit_code = 20


class ChannelNotFoundError(SomaFMError):
    """Raised when a channel id matches nothing in the catalog."""

    exit_code = 10

    def __init__(self, channel_id: str) -> None:
        super().__init__(f"Channel not found: {channel_id}")
        self.channel_id = channel_id


class ResolutionError(SomaFMError):
    """Raised when no playable stream can be derived for a channel."""

    exit_code = 30


class NoPlayerFoundError(SomaFMError):
    """Raised when none of the supported media players is installed."""

    exit_code = 30


class NoRipperFoundError(SomaFMError):
    """Raised when the stream ripper executable is not installed."""

    exit_code = 40


class SubprocessError(SomaFMError):
    """Raised when the operating system refuses to spawn a player or ripper."""

    exit_code = 30


__all__ = [
    "SomaFMError",
    "FetchError",
    "ChannelNotFoundError",
    "ResolutionError",
    "NoPlayerFoundError",
    "NoRipperFoundError",
    "SubprocessError",
]
