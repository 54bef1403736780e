"""Single-line live status rendering for the now-playing display."""
from __future__ import annotations

import sys
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.control import Control, ControlType
from rich.text import Text

_GLYPHS = {"play": "▶", "heart": "❤", "recording": "▼"}
_WINDOWS_GLYPHS = {"play": "►", "heart": "♥", "recording": "▼"}

GLYPHS = _WINDOWS_GLYPHS if sys.platform == "win32" else _GLYPHS

TIME_FORMAT = "%H:%M:%S"


def format_track_line(
    started_at: datetime,
    title: str,
    *,
    favourite: bool = False,
    announcement: bool = False,
    recording: bool = False,
) -> Text:
    """Return the rendered status line for one track."""

    glyph = GLYPHS["heart"] if favourite else GLYPHS["play"]
    line = Text("  ")
    line.append(started_at.strftime(TIME_FORMAT), style="yellow")
    line.append("  ")
    line.append(glyph, style="red" if favourite else "green")
    if recording:
        line.append(GLYPHS["recording"], style="bold red")
    line.append("  ")
    line.append(title, style="dim" if announcement else "bold" if favourite else "")
    return line


class StatusLine:
    """A mutable render target that always occupies exactly one terminal line.

    :meth:`update` overwrites whatever the line currently shows and
    :meth:`finalize` commits it, after which the next update starts a new line.
    """

    __slots__ = ("_console", "_active", "_last")

    def __init__(self, console: Console) -> None:
        self._console = console
        self._active = False
        self._last: Optional[Text] = None

    @property
    def active(self) -> bool:
        return self._active

    @property
    def last(self) -> Optional[Text]:
        return self._last

    def update(self, renderable: Text) -> None:
        line = renderable.copy()
        width = max(self._console.width - 1, 10)
        line.truncate(width, overflow="ellipsis")
        if self._active:
            self._console.control(
                Control.move_to_column(0), Control((ControlType.ERASE_IN_LINE, 2))
            )
        self._console.print(line, end="", soft_wrap=True)
        self._console.file.flush()
        self._active = True
        self._last = line

    def finalize(self) -> None:
        if not self._active:
            return
        self._console.print()
        self._active = False

    def begin(self, window_title: Optional[str] = None) -> None:
        self._console.show_cursor(False)
        if window_title:
            self._console.set_window_title(window_title)

    def restore(self) -> None:
        self.finalize()
        self._console.show_cursor(True)
        self._console.set_window_title("")


__all__ = ["GLYPHS", "StatusLine", "format_track_line"]
