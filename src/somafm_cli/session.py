"""The interactive now-playing session around one player subprocess."""
from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Coroutine, Optional

from rich.console import Console

from .catalog import Channel
from .errors import SomaFMError
from .favourites import FavouritesStore
from .keys import Action, KeyMap, RawKeyboard
from .logging_utils import get_logger
from .notify import Clipboard, Notifier
from .player import (
    PlayerCommand,
    PlayerDescriptor,
    iter_lines,
    launch_process,
    terminate_process,
)
from .recording import RecordingSession
from .scrobbler import LastFmScrobbler, Song
from .status import StatusLine, format_track_line

log = get_logger(__name__)

ANNOUNCEMENT_PHRASES: tuple[str, ...] = (
    "somafm",
    "soma fm",
    "listener supported",
    "listener-supported",
    "commercial free",
    "commercial-free",
    "big url",
    "station id",
)

SCROBBLE_MIN_SECONDS = 30.0

_VOLUME_ACTIONS = frozenset({Action.INCREASE_VOLUME, Action.DECREASE_VOLUME, Action.TOGGLE_MUTE})


class SessionPhase(str, Enum):
    STARTING = "starting"
    PLAYING = "playing"
    STOPPING = "stopping"
    EXITED = "exited"


@dataclass(slots=True)
class PlaybackState:
    """What the session currently shows for its channel."""

    channel: Channel
    track_title: Optional[str] = None
    track_started_at: Optional[datetime] = None
    is_favourite: bool = False
    is_announcement: bool = False
    is_playing: bool = False
    is_recording: bool = False


def announcement_pattern(channel: Channel) -> re.Pattern[str]:
    """Match station identification titles, including the channel's own name."""

    phrases = [*ANNOUNCEMENT_PHRASES]
    if channel.title:
        phrases.append(channel.title)
    return re.compile("|".join(re.escape(phrase) for phrase in phrases), re.IGNORECASE)


class PlaybackSession:
    """Play one channel, track its titles and react to key presses.

    Output lines and key presses are handled on the same event loop and both
    render through a single :class:`StatusLine`, so the terminal only ever
    shows one live line.
    """

    def __init__(
        self,
        channel: Channel,
        command: PlayerCommand,
        *,
        favourites: FavouritesStore,
        key_map: Optional[KeyMap] = None,
        console: Optional[Console] = None,
        notifier: Optional[Notifier] = None,
        clipboard: Optional[Clipboard] = None,
        scrobbler: Optional[LastFmScrobbler] = None,
        recorder_factory: Optional[Callable[[Channel], RecordingSession]] = None,
        launcher: Callable[[PlayerCommand], Awaitable[asyncio.subprocess.Process]] = launch_process,
        keyboard_factory: Optional[Callable[[], RawKeyboard]] = RawKeyboard,
        clock: Callable[[], datetime] = datetime.now,
        stop_timeout: float = 3.0,
    ) -> None:
        if not isinstance(command.descriptor, PlayerDescriptor):
            raise TypeError("PlaybackSession needs a player command")
        self.channel = channel
        self.state = PlaybackState(channel=channel)
        self.phase = SessionPhase.STARTING
        self._command = command
        self._descriptor: PlayerDescriptor = command.descriptor
        self._favourites = favourites
        self._key_map = key_map or KeyMap()
        self._console = console or Console()
        self._status = StatusLine(self._console)
        self._notifier = notifier
        self._clipboard = clipboard
        self._scrobbler = scrobbler
        self._recorder_factory = recorder_factory
        self._recorder: Optional[RecordingSession] = None
        self._launcher = launcher
        self._keyboard_factory = keyboard_factory
        self._clock = clock
        self._stop_timeout = stop_timeout
        self._announcements = announcement_pattern(channel)
        self._process: Optional[asyncio.subprocess.Process] = None
        self._quit_requested: Optional[asyncio.Event] = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def status_line(self) -> StatusLine:
        return self._status

    # Output handling -------------------------------------------------

    def handle_output_line(self, line: str) -> Optional[str]:
        """Process one player output line; returns the title if it changed."""

        title = self._descriptor.extract_title(line)
        if title is None or title == self.state.track_title:
            return None
        self._begin_track(title)
        return title

    def _begin_track(self, title: str) -> None:
        previous_title = self.state.track_title
        previous_started = self.state.track_started_at
        previous_announcement = self.state.is_announcement

        self._status.finalize()
        self.state.track_title = title
        self.state.track_started_at = self._clock()
        self.state.is_favourite = self._favourites.is_favourite(title)
        self.state.is_announcement = bool(self._announcements.search(title))
        log.info(
            "Now playing on %s: %s%s",
            self.channel.id,
            title,
            " (announcement)" if self.state.is_announcement else "",
        )
        self.render()

        announcement = self.state.is_announcement
        if self._notifier is not None and self._notifier.enabled and not announcement:
            self._spawn(self._notifier.notify(self.channel.full_title, title))
        if self._scrobbler is not None:
            # Station IDs are never scrobbled but must not swallow the song before them.
            self._spawn(
                self._submit_track(
                    previous_title if not previous_announcement else None,
                    previous_started,
                    None if announcement else title,
                )
            )

    async def _submit_track(
        self,
        previous_title: Optional[str],
        previous_started: Optional[datetime],
        title: Optional[str],
    ) -> None:
        assert self._scrobbler is not None
        if previous_title and previous_started is not None:
            played = (self._clock() - previous_started).total_seconds()
            previous = Song.from_title(previous_title)
            if previous is not None and played >= SCROBBLE_MIN_SECONDS:
                await self._scrobbler.scrobble(previous, previous_started.timestamp())
        song = Song.from_title(title) if title else None
        if song is not None:
            await self._scrobbler.update_now_playing(song)

    def render(self) -> None:
        if self.state.track_title is None or self.state.track_started_at is None:
            return
        self._status.update(
            format_track_line(
                self.state.track_started_at,
                self.state.track_title,
                favourite=self.state.is_favourite,
                announcement=self.state.is_announcement,
                recording=self.state.is_recording,
            )
        )

    # Key handling ----------------------------------------------------

    async def handle_key(self, key: str) -> Optional[Action]:
        action = self._key_map.resolve(key)
        if action is None:
            log.debug("Ignoring unbound key %r", key)
            return None
        await self.perform(action)
        return action

    async def perform(self, action: Action) -> None:
        """Carry out one session action."""

        title = self.state.track_title
        if action is Action.QUIT:
            self.request_quit()
        elif action is Action.TOGGLE_NOTIFICATIONS:
            if self._notifier is not None:
                self._notifier.toggle()
        elif action in _VOLUME_ACTIONS:
            await self._forward_control(action)
        elif action is Action.START_RECORDING:
            self._start_recording()
        elif title is None:
            log.debug("No track playing; ignoring %s", action.value)
        elif action is Action.COPY_TO_CLIPBOARD:
            if self._clipboard is not None:
                await self._clipboard.copy(title)
        elif action is Action.ADD_FAVOURITE:
            self._favourites.add(title, self.channel)
            self.state.is_favourite = True
            self.render()
            song = Song.from_title(title)
            if self._scrobbler is not None and song is not None:
                self._spawn(self._scrobbler.love(song))
        elif action is Action.REMOVE_FAVOURITE:
            self._favourites.remove(title)
            self.state.is_favourite = False
            self.render()

    async def _forward_control(self, action: Action) -> None:
        payload = self._descriptor.controls.get(action)
        if payload is None:
            log.debug("%s has no in-band control for %s", self._descriptor.name, action.value)
            return
        process = self._process
        if process is None or process.stdin is None or process.returncode is not None:
            return
        try:
            process.stdin.write(payload)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            log.debug("Player stdin closed: %s", exc)

    def _start_recording(self) -> None:
        if self._recorder_factory is None or self.state.is_recording:
            return
        try:
            recorder = self._recorder_factory(self.channel)
        except SomaFMError as exc:
            log.warning("Cannot start recording: %s", exc)
            return
        self._recorder = recorder
        self.state.is_recording = True
        self.render()
        task = self._spawn(recorder.run())
        task.add_done_callback(self._recording_finished)

    def _recording_finished(self, task: asyncio.Task[Any]) -> None:
        self.state.is_recording = False
        self._recorder = None
        if self.phase is SessionPhase.PLAYING:
            self.render()

    def request_quit(self) -> None:
        log.info("Quit requested for %s", self.channel.id)
        if self._quit_requested is not None:
            self._quit_requested.set()

    # Lifecycle -------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.warning("Background task failed: %s", exc)

    async def _consume_output(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        async for line in iter_lines(self._process.stdout):
            self.handle_output_line(line)
        log.info("Player output closed for %s", self.channel.id)

    async def _consume_keys(self, keyboard: RawKeyboard) -> None:
        while True:
            key = await keyboard.get()
            try:
                await self.handle_key(key)
            except (SomaFMError, OSError) as exc:
                log.error("Key %r failed: %s", key, exc)

    async def run(self) -> int:
        """Play until the user quits or the player exits; returns the exit code."""

        self._quit_requested = asyncio.Event()
        self._process = await self._launcher(self._command)
        self.phase = SessionPhase.PLAYING
        self.state.is_playing = True
        self._status.begin(self.channel.full_title)
        keyboard = self._keyboard_factory() if self._keyboard_factory is not None else None
        output_task = asyncio.create_task(self._consume_output())
        quit_task = asyncio.create_task(self._quit_requested.wait())
        key_task: Optional[asyncio.Task[None]] = None
        try:
            if keyboard is not None:
                await keyboard.__aenter__()
                key_task = asyncio.create_task(self._consume_keys(keyboard))
            await asyncio.wait({output_task, quit_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self.phase = SessionPhase.STOPPING
            pending = [task for task in (key_task, quit_task) if task is not None]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            if keyboard is not None:
                await keyboard.__aexit__(None, None, None)
            self._status.restore()
            if self._recorder is not None:
                await self._recorder.stop()
            returncode = await terminate_process(self._process, timeout=self._stop_timeout)
            log.info("Player exited with code %s", returncode)
            await asyncio.gather(output_task, return_exceptions=True)
            for task in list(self._tasks):
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self.state.is_playing = False
            self.phase = SessionPhase.EXITED
        return 0


__all__ = [
    "ANNOUNCEMENT_PHRASES",
    "PlaybackSession",
    "PlaybackState",
    "SessionPhase",
    "announcement_pattern",
]
