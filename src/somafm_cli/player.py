"""Player and ripper detection and spawning helpers."""
from __future__ import annotations

import asyncio
import codecs
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Iterable, Mapping, Optional, Sequence

from .errors import NoPlayerFoundError, NoRipperFoundError, SubprocessError
from .keys import Action
from .logging_utils import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PlayerDescriptor:
    """How to invoke a media player and read track titles from its output.

    ``controls`` maps session actions to the bytes the player understands on
    stdin; players without in-band control leave it empty.
    """

    name: str
    args: tuple[str, ...]
    title_pattern: re.Pattern[str]
    controls: Mapping[Action, bytes] = field(default_factory=dict)

    def extract_title(self, line: str) -> Optional[str]:
        match = self.title_pattern.search(line)
        if match is None:
            return None
        title = match.group("title").strip()
        return title or None

    def supports(self, action: Action) -> bool:
        return action in self.controls


@dataclass(frozen=True, slots=True)
class RipperDescriptor:
    """How to invoke a stream ripper and read its progress output."""

    name: str
    args: tuple[str, ...]
    line_pattern: re.Pattern[str]


PLAYERS: Mapping[str, PlayerDescriptor] = {
    "mplayer": PlayerDescriptor(
        name="mplayer",
        args=("-quiet", "{url}"),
        title_pattern=re.compile(r"StreamTitle='(?P<title>.*?)';"),
        controls={
            Action.INCREASE_VOLUME: b"*",
            Action.DECREASE_VOLUME: b"/",
            Action.TOGGLE_MUTE: b"m",
        },
    ),
    "mpv": PlayerDescriptor(
        name="mpv",
        args=("--no-video", "--no-input-terminal", "{url}"),
        title_pattern=re.compile(r"icy-title:\s*(?P<title>.+)$"),
    ),
    "ffplay": PlayerDescriptor(
        name="ffplay",
        args=("-nodisp", "-hide_banner", "-loglevel", "info", "{url}"),
        title_pattern=re.compile(r"StreamTitle\s*:\s*(?P<title>.+)$"),
    ),
    "mpg123": PlayerDescriptor(
        name="mpg123",
        args=("--quiet", "{url}"),
        title_pattern=re.compile(r"ICY-META: StreamTitle='(?P<title>.*?)';"),
    ),
}

DEFAULT_PLAYER_CANDIDATES: Sequence[str] = ("mplayer", "mpv", "ffplay", "mpg123")

RIPPERS: Mapping[str, RipperDescriptor] = {
    "streamripper": RipperDescriptor(
        name="streamripper",
        args=("{url}", "-d", "{directory}", "-D", "{pattern}"),
        line_pattern=re.compile(
            r"^\[(?P<status>r|sk)(?:ipping|ecording)[^\]]*\]\s+(?P<title>.*?)\s+"
            r"\[\s*(?P<size>[^\]]*?)\s*\]\s*$",
            re.MULTILINE,
        ),
    ),
}

DEFAULT_RIPPER = "streamripper"
RIPPER_FILE_PATTERN = "%1q %A - %T"


@dataclass(slots=True)
class PlayerCommand:
    """Describe a player or ripper invocation."""

    executable: str
    args: list[str]
    descriptor: PlayerDescriptor | RipperDescriptor

    def as_sequence(self) -> list[str]:
        return [self.executable, *self.args]


def detect_executable(
    candidates: Iterable[str],
    preferred: Optional[str] = None,
) -> Optional[tuple[str, str]]:
    """Return ``(candidate, path)`` for the first installed candidate."""

    search_order: list[str] = []
    if preferred:
        log.debug("Preferred executable requested: %s", preferred)
        search_order.append(preferred)
    for candidate in candidates:
        if candidate not in search_order:
            search_order.append(candidate)
    for executable in search_order:
        path = shutil.which(executable)
        if path:
            log.info("Selected executable: %s (from candidate %s)", path, executable)
            return executable, path
        log.debug("Candidate %s not found on PATH", executable)
    return None


def _descriptor_for(name: str) -> Optional[PlayerDescriptor]:
    return PLAYERS.get(Path(name).name.lower())


def build_player_command(
    url: str,
    *,
    candidates: Sequence[str] = DEFAULT_PLAYER_CANDIDATES,
    preferred: Optional[str] = None,
) -> PlayerCommand:
    """Construct a command for the first installed supported player."""

    supported = [name for name in candidates if _descriptor_for(name) is not None]
    if preferred and _descriptor_for(preferred) is None:
        log.warning("Player %s is not supported; ignoring preference", preferred)
        preferred = None
    detected = detect_executable(supported, preferred)
    if detected is None:
        log.error("Unable to locate supported media player")
        raise NoPlayerFoundError(
            f"No supported media player found ({', '.join(supported)}). "
            "Please install one of them and make sure it is on your PATH."
        )
    name, path = detected
    descriptor = _descriptor_for(name)
    assert descriptor is not None
    command = PlayerCommand(
        executable=path,
        args=[arg.format(url=url) for arg in descriptor.args],
        descriptor=descriptor,
    )
    log.info("Built player command: %s", command.as_sequence())
    return command


def build_ripper_command(
    url: str,
    *,
    directory: Path,
    pattern: str,
    ripper: str = DEFAULT_RIPPER,
) -> PlayerCommand:
    descriptor = RIPPERS.get(ripper)
    detected = detect_executable([ripper]) if descriptor is not None else None
    if descriptor is None or detected is None:
        raise NoRipperFoundError(
            f"{ripper} executable not found. Please ensure it is installed "
            f'and runnable with the "{ripper}" command.'
        )
    _, path = detected
    command = PlayerCommand(
        executable=path,
        args=[
            arg.format(url=url, directory=str(directory), pattern=pattern)
            for arg in descriptor.args
        ],
        descriptor=descriptor,
    )
    log.info("Built ripper command: %s", command.as_sequence())
    return command


async def launch_process(command: PlayerCommand) -> asyncio.subprocess.Process:
    """Spawn ``command`` with piped stdin and combined stdout/stderr."""

    log.info("Launching %s", command.executable)
    try:
        process = await asyncio.create_subprocess_exec(
            *command.as_sequence(),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env=os.environ.copy(),
        )
    except OSError as exc:
        log.error("Failed to spawn %s: %s", command.executable, exc)
        raise SubprocessError(f"Failed to start {command.executable}: {exc}") from exc
    log.debug("Spawned process PID %s", getattr(process, "pid", "unknown"))
    return process


async def iter_lines(stream: asyncio.StreamReader, *, chunk_size: int = 4096) -> AsyncIterator[str]:
    """Yield decoded lines from ``stream``, treating ``\\r`` as a line break.

    Players redraw their status with carriage returns, so ``readline`` alone
    would hold titles back until the next newline.
    """

    decoder = codecs.getincrementaldecoder("utf8")(errors="replace")
    buffer = ""
    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            buffer += decoder.decode(b"", final=True)
            break
        buffer += decoder.decode(chunk)
        parts = re.split(r"\r\n|\r|\n", buffer)
        buffer = parts.pop()
        for part in parts:
            yield part
    if buffer:
        yield buffer


async def terminate_process(
    process: asyncio.subprocess.Process, *, timeout: float = 3.0
) -> Optional[int]:
    """Ask ``process`` to exit, killing it after ``timeout`` seconds."""

    if process.returncode is not None:
        return process.returncode
    try:
        process.terminate()
    except ProcessLookupError:
        return process.returncode
    try:
        return await asyncio.wait_for(process.wait(), timeout)
    except asyncio.TimeoutError:
        log.warning("Process %s ignored SIGTERM; killing it", getattr(process, "pid", "?"))
        try:
            process.kill()
        except ProcessLookupError:
            pass
        return await process.wait()


__all__ = [
    "DEFAULT_PLAYER_CANDIDATES",
    "DEFAULT_RIPPER",
    "PLAYERS",
    "RIPPERS",
    "RIPPER_FILE_PATTERN",
    "PlayerCommand",
    "PlayerDescriptor",
    "RipperDescriptor",
    "build_player_command",
    "build_ripper_command",
    "detect_executable",
    "iter_lines",
    "launch_process",
    "terminate_process",
]
