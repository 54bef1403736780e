"""Recording a station through an external stream ripper."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional

from rich.console import Console
from rich.text import Text

from .catalog import Channel
from .errors import ResolutionError
from .logging_utils import get_logger
from .player import (
    DEFAULT_RIPPER,
    RIPPER_FILE_PATTERN,
    RIPPERS,
    PlayerCommand,
    RipperDescriptor,
    build_ripper_command,
    iter_lines,
    launch_process,
    terminate_process,
)
from .status import TIME_FORMAT

log = get_logger(__name__)

DIRECTORY_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
_STATUS_LABELS = {"r": "Recording", "sk": "Skipping "}


@dataclass(frozen=True, slots=True)
class RipperEvent:
    """One progress line reported by the ripper."""

    status: str
    title: str
    size: str

    @property
    def label(self) -> str:
        return _STATUS_LABELS.get(self.status, self.status)


def _event_from_match(match) -> RipperEvent:
    return RipperEvent(
        status=match.group("status"),
        title=match.group("title").strip(),
        size=match.group("size").strip(),
    )


def parse_ripper_output(
    text: str, descriptor: RipperDescriptor = RIPPERS[DEFAULT_RIPPER]
) -> list[RipperEvent]:
    """Return every progress event found in ``text``."""

    return [_event_from_match(match) for match in descriptor.line_pattern.finditer(text)]


class RipperMonitor:
    """Collapse the ripper's repeated progress lines into track transitions."""

    __slots__ = ("_descriptor", "_status", "_title")

    def __init__(self, descriptor: RipperDescriptor = RIPPERS[DEFAULT_RIPPER]) -> None:
        self._descriptor = descriptor
        self._status: Optional[str] = None
        self._title: Optional[str] = None

    def feed(self, line: str) -> Optional[RipperEvent]:
        """Return an event if ``line`` starts a new (status, title) pair."""

        match = self._descriptor.line_pattern.search(line)
        if match is None:
            return None
        event = _event_from_match(match)
        if len(event.title) <= 1:
            return None
        if event.status == self._status and event.title == self._title:
            return None
        if event.size.replace(" ", "").lower() == "0b":
            return None
        self._status = event.status
        self._title = event.title
        return event


def _safe_component(text: str) -> str:
    return text.replace("/", "-").replace("\\", "-").strip() or "recording"


def recording_pattern(channel: Channel, started_at: datetime) -> str:
    """Return the ripper's relative output pattern for ``channel``."""

    stamp = started_at.strftime(DIRECTORY_TIMESTAMP_FORMAT)
    return f"{_safe_component(channel.full_title or channel.title)}/{stamp}/{RIPPER_FILE_PATTERN}"


def recording_directory(
    channel: Channel, started_at: datetime, audio_dir: Optional[Path] = None
) -> Path:
    """Return the directory the recording of ``channel`` is written to."""

    base = Path(audio_dir).expanduser() if audio_dir else Path.cwd()
    stamp = started_at.strftime(DIRECTORY_TIMESTAMP_FORMAT)
    return base / _safe_component(channel.full_title or channel.title) / stamp


def build_recording_command(
    channel: Channel,
    started_at: datetime,
    *,
    audio_dir: Optional[Path] = None,
    ripper: str = DEFAULT_RIPPER,
) -> PlayerCommand:
    """Return the ripper command; raises before anything is spawned."""

    url = channel.primary_url
    if url is None:
        raise ResolutionError(f"No supported stream available for {channel.id}")
    base = Path(audio_dir).expanduser() if audio_dir else Path.cwd()
    return build_ripper_command(
        url,
        directory=base,
        pattern=recording_pattern(channel, started_at),
        ripper=ripper,
    )


class RecordingSession:
    """Run the ripper for one channel and report each track transition."""

    def __init__(
        self,
        channel: Channel,
        command: PlayerCommand,
        *,
        console: Optional[Console] = None,
        report: Optional[Callable[[RipperEvent], None]] = None,
        launcher: Callable[[PlayerCommand], Awaitable[asyncio.subprocess.Process]] = launch_process,
        clock: Callable[[], datetime] = datetime.now,
        stop_timeout: float = 3.0,
    ) -> None:
        descriptor = command.descriptor
        if not isinstance(descriptor, RipperDescriptor):
            raise TypeError("RecordingSession needs a ripper command")
        self.channel = channel
        self._command = command
        self._console = console or Console()
        self._report = report or self._print_event
        self._launcher = launcher
        self._clock = clock
        self._stop_timeout = stop_timeout
        self._monitor = RipperMonitor(descriptor)
        self._process: Optional[asyncio.subprocess.Process] = None
        self.events: list[RipperEvent] = []

    def _print_event(self, event: RipperEvent) -> None:
        line = Text("  ")
        line.append(self._clock().strftime(TIME_FORMAT), style="yellow")
        line.append("  ")
        line.append(event.label, style="bold")
        line.append("  ")
        line.append(event.title)
        self._console.print(line)

    def handle_line(self, line: str) -> Optional[RipperEvent]:
        event = self._monitor.feed(line)
        if event is None:
            return None
        self.events.append(event)
        log.info("%s %s (%s)", event.label.strip(), event.title, event.size)
        self._report(event)
        return event

    async def run(self) -> int:
        """Spawn the ripper and return its exit code once it exits."""

        self._process = await self._launcher(self._command)
        log.info("Recording %s with %s", self.channel.id, self._command.executable)
        assert self._process.stdout is not None
        async for line in iter_lines(self._process.stdout):
            self.handle_line(line)
        returncode = await self._process.wait()
        log.info("Ripper exited with code %s", returncode)
        return returncode

    async def stop(self) -> None:
        if self._process is not None:
            await terminate_process(self._process, timeout=self._stop_timeout)


__all__ = [
    "RecordingSession",
    "RipperEvent",
    "RipperMonitor",
    "build_recording_command",
    "parse_ripper_output",
    "recording_directory",
    "recording_pattern",
]
