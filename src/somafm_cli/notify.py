"""Desktop notification and clipboard helpers used during playback."""
from __future__ import annotations

import asyncio
import shutil
from typing import Optional, Sequence

from plyer import notification

from .logging_utils import get_logger

log = get_logger(__name__)

APP_NAME = "SomaFM"

CLIPBOARD_COMMANDS: Sequence[tuple[str, ...]] = (
    ("wl-copy",),
    ("xclip", "-selection", "clipboard"),
    ("xsel", "--clipboard", "--input"),
    ("pbcopy",),
    ("clip",),
)


class Notifier:
    """Send track-change notifications; can be toggled while playing."""

    def __init__(self, enabled: bool = True, *, timeout: int = 5) -> None:
        self.enabled = enabled
        self._timeout = timeout

    def toggle(self) -> bool:
        self.enabled = not self.enabled
        log.info("Desktop notifications %s", "enabled" if self.enabled else "disabled")
        return self.enabled

    def _send(self, title: str, message: str) -> None:
        notification.notify(
            title=title,
            message=message,
            app_name=APP_NAME,
            timeout=self._timeout,
        )

    async def notify(self, title: str, message: str) -> bool:
        if not self.enabled:
            return False
        try:
            await asyncio.to_thread(self._send, title, message)
        except Exception as exc:  # plyer backends raise assorted platform errors
            log.warning("Desktop notification failed: %s", exc)
            return False
        return True


class Clipboard:
    """Copy text through the first installed clipboard utility."""

    def __init__(self, commands: Sequence[tuple[str, ...]] = CLIPBOARD_COMMANDS) -> None:
        self._commands = commands

    def _detect(self) -> Optional[list[str]]:
        for command in self._commands:
            path = shutil.which(command[0])
            if path:
                return [path, *command[1:]]
        return None

    async def copy(self, text: str) -> bool:
        command = self._detect()
        if command is None:
            log.warning("No clipboard utility found (%s)", ", ".join(c[0] for c in self._commands))
            return False
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await process.communicate(text.encode("utf8"))
        except OSError as exc:
            log.warning("Clipboard command %s failed: %s", command[0], exc)
            return False
        if process.returncode != 0:
            log.warning("Clipboard command %s exited with %s", command[0], process.returncode)
            return False
        log.debug("Copied %r to clipboard via %s", text, command[0])
        return True


__all__ = ["APP_NAME", "CLIPBOARD_COMMANDS", "Clipboard", "Notifier"]
