"""Keyboard commands available while a station is playing."""
from __future__ import annotations

import asyncio
import os
import re
import sys
from enum import Enum
from typing import IO, Mapping, Optional

from .logging_utils import get_logger

log = get_logger(__name__)

CTRL_C = "\x03"
ESCAPE = "\x1b"


class Action(str, Enum):
    COPY_TO_CLIPBOARD = "copy_to_clipboard"
    ADD_FAVOURITE = "add_favourite"
    REMOVE_FAVOURITE = "remove_favourite"
    INCREASE_VOLUME = "increase_volume"
    DECREASE_VOLUME = "decrease_volume"
    TOGGLE_MUTE = "toggle_mute"
    START_RECORDING = "start_recording"
    TOGGLE_NOTIFICATIONS = "toggle_notifications"
    QUIT = "quit"


DEFAULT_KEY_BINDINGS: Mapping[str, Action] = {
    "c": Action.COPY_TO_CLIPBOARD,
    "f": Action.ADD_FAVOURITE,
    "u": Action.REMOVE_FAVOURITE,
    "*": Action.INCREASE_VOLUME,
    "0": Action.INCREASE_VOLUME,
    "/": Action.DECREASE_VOLUME,
    "9": Action.DECREASE_VOLUME,
    "m": Action.TOGGLE_MUTE,
    "r": Action.START_RECORDING,
    "n": Action.TOGGLE_NOTIFICATIONS,
    "q": Action.QUIT,
}

_FORCED_QUIT_KEYS = frozenset({CTRL_C, ESCAPE})

# CSI (arrows, function keys) and SS3 sequences, including ones cut off at the
# end of a read.
_ESCAPE_SEQUENCE = re.compile(r"\x1b(?:\[[0-?]*[ -/]*(?:[@-~]|$)|O(?:.|$))", re.DOTALL)


def split_keys(data: str) -> list[str]:
    """Split raw terminal input into key presses.

    Escape sequences sent by arrow and function keys are dropped so only a
    bare escape reads as :data:`ESCAPE`.
    """

    return list(_ESCAPE_SEQUENCE.sub("", data))


def parse_bindings(raw: Mapping[str, str]) -> dict[str, Action]:
    """Convert a ``key -> action name`` mapping, skipping invalid entries."""

    bindings: dict[str, Action] = {}
    for key, name in raw.items():
        if not isinstance(key, str) or len(key) != 1:
            log.warning("Ignoring key binding for %r: keys must be single characters", key)
            continue
        try:
            bindings[key] = Action(str(name).strip().lower())
        except ValueError:
            log.warning("Ignoring key binding %r -> %r: unknown action", key, name)
    return bindings


class KeyMap:
    """Resolve single key presses into session actions."""

    __slots__ = ("_bindings",)

    def __init__(self, bindings: Optional[Mapping[str, Action]] = None) -> None:
        self._bindings = dict(DEFAULT_KEY_BINDINGS if bindings is None else bindings)

    def resolve(self, key: str) -> Optional[Action]:
        if key in _FORCED_QUIT_KEYS:
            return Action.QUIT
        return self._bindings.get(key)

    def keys_for(self, action: Action) -> list[str]:
        return [key for key, bound in self._bindings.items() if bound is action]


class RawKeyboard:
    """Deliver unbuffered key presses from a terminal through an asyncio queue.

    Used as an async context manager; the terminal is switched to cbreak mode
    on entry and restored on exit. When ``stream`` is not a tty the keyboard
    stays inert and :meth:`get` never returns.
    """

    def __init__(self, stream: Optional[IO[str]] = None) -> None:
        self._stream = stream if stream is not None else sys.stdin
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._saved_attributes: Optional[list] = None
        self._fd: Optional[int] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def active(self) -> bool:
        return self._fd is not None

    async def __aenter__(self) -> "RawKeyboard":
        try:
            fd = self._stream.fileno()
        except (AttributeError, OSError, ValueError):
            return self
        if not os.isatty(fd):
            log.debug("stdin is not a terminal; keyboard commands disabled")
            return self
        import termios
        import tty

        self._saved_attributes = termios.tcgetattr(fd)
        tty.setcbreak(fd)
        # ctrl-c must arrive as a key press rather than SIGINT.
        attributes = termios.tcgetattr(fd)
        attributes[3] &= ~termios.ISIG
        termios.tcsetattr(fd, termios.TCSADRAIN, attributes)
        self._loop = asyncio.get_running_loop()
        self._loop.add_reader(fd, self._on_readable)
        self._fd = fd
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._fd is None:
            return
        import termios

        assert self._loop is not None
        self._loop.remove_reader(self._fd)
        if self._saved_attributes is not None:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_attributes)
        self._fd = None

    def _on_readable(self) -> None:
        assert self._fd is not None
        data = os.read(self._fd, 32)
        for key in split_keys(data.decode("utf8", errors="ignore")):
            self._queue.put_nowait(key)

    async def get(self) -> str:
        return await self._queue.get()


__all__ = [
    "Action",
    "CTRL_C",
    "DEFAULT_KEY_BINDINGS",
    "ESCAPE",
    "KeyMap",
    "RawKeyboard",
    "parse_bindings",
    "split_keys",
]
