"""Command line entry point for the SomaFM CLI."""
from __future__ import annotations

import argparse
import asyncio
import os
import shlex
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.text import Text

from . import __version__
from .catalog import CatalogQuery, Channel, ChannelCatalog, SortOrder
from .config import Settings, default_config_path, load_config
from .errors import ResolutionError, SomaFMError, SubprocessError
from .favourites import Favourite, FavouritesStore
from .keys import KeyMap
from .logging_utils import configure_logging, get_log_file_path, get_logger
from .notify import Clipboard, Notifier
from .picker import ChannelPickerApp
from .player import PLAYERS, build_player_command
from .recording import RecordingSession, RipperEvent, build_recording_command, recording_directory
from .scrobbler import LastFmScrobbler
from .session import PlaybackSession
from .store import JsonStore, cache_dir
from .themes import CUSTOM_THEMES

log = get_logger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_RECORDING_FAILED = 40
EXIT_INTERRUPTED = 130

_FALLBACK_EDITORS = ("nano", "vi")


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="somafm", description="Listen to and record SomaFM channels from the terminal"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Path to configuration file (default: {default_config_path()})",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override SOMAFM_CLI_LOG_LEVEL for this invocation",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write logs to this file instead of the default or SOMAFM_CLI_LOG_FILE",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    theme_names = ", ".join(sorted(CUSTOM_THEMES))
    parser.add_argument(
        "--theme",
        default=None,
        help=f"Theme of the channel picker. Available options: {theme_names}.",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    list_parser = commands.add_parser("list", help="List channels, optionally filtered by keywords")
    list_parser.add_argument("keywords", nargs="*", help="Only show channels matching every keyword")
    list_parser.add_argument(
        "--sort",
        choices=[order.value for order in SortOrder],
        default=SortOrder.ALPHA.value,
        help="Channel ordering (default: %(default)s)",
    )
    list_parser.add_argument(
        "--refresh", action="store_true", help="Ignore the cached catalog and fetch it again"
    )

    info_parser = commands.add_parser("info", help="Show details about a channel")
    info_parser.add_argument("channel", help="Channel id (close matches are accepted)")

    play_parser = commands.add_parser("play", help="Play a channel")
    play_parser.add_argument("channel", help="Channel id (close matches are accepted)")
    play_parser.add_argument(
        "--no-notify", action="store_true", help="Disable desktop notifications for this session"
    )
    play_parser.add_argument(
        "--player",
        dest="preferred_player",
        default=None,
        help=(
            "Preferred media player (one of: "
            f"{', '.join(PLAYERS)}; falls back to auto-detect)"
        ),
    )

    record_parser = commands.add_parser("record", help="Record a channel with streamripper")
    record_parser.add_argument("channel", help="Channel id (close matches are accepted)")

    favourites_parser = commands.add_parser("list-favourites", help="List favourite tracks")
    favourites_parser.add_argument("keywords", nargs="*", help="Only show favourites matching every keyword")

    commands.add_parser("edit-favourites", help="Open the favourites file in $VISUAL or $EDITOR")

    logs_parser = commands.add_parser("logs", help="Print the log file, optionally filtered")
    logs_parser.add_argument("keyword", nargs="?", default=None, help="Only print lines mentioning this text")

    return parser.parse_args(argv)


def build_catalog(settings: Settings) -> ChannelCatalog:
    return ChannelCatalog(
        url=settings.catalog_url,
        ttl=settings.cache_ttl,
        store=JsonStore("channels", cache_dir()),
        preferences=settings.stream_preferences,
    )


def build_scrobbler(settings: Settings) -> Optional[LastFmScrobbler]:
    credentials = settings.lastfm
    if not credentials.complete:
        return None
    log.info("Scrobbling to Last.fm as %s", credentials.username)
    return LastFmScrobbler(
        credentials.api_key,
        credentials.api_secret,
        credentials.username,
        credentials.password,
    )


def _audio_dir(settings: Settings) -> Optional[Path]:
    return Path(settings.audio_dir).expanduser() if settings.audio_dir else None


def channel_summary(channel: Channel) -> Text:
    """Return the two-line listing entry for ``channel``."""

    summary = Text.from_markup(
        f"[bold]{escape(channel.title)}[/bold] [green]\\[{escape(channel.id)}][/green]"
        f" ([blue]{channel.listeners}[/blue])"
    )
    if channel.description:
        summary.append("\n")
        summary.append(channel.description)
    return summary


def favourite_summary(favourite: Favourite) -> Text:
    summary = Text(favourite.title, style="bold")
    if favourite.channel_title:
        summary.append(f" ({favourite.channel_title})", style="dim")
    return summary


async def list_channels(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    catalog = build_catalog(settings)
    query = CatalogQuery.from_options(
        force_refresh=args.refresh, sort=args.sort, search=args.keywords
    )
    channels = await catalog.list_channels(query)
    if not channels:
        console.print("No channels found.")
        return EXIT_OK
    for channel in channels:
        console.print(channel_summary(channel))
        console.print()
    return EXIT_OK


async def show_info(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    catalog = build_catalog(settings)
    channel = await catalog.get_channel(args.channel, resolve_urls=False)
    console.print(Text(channel.full_title, style="bold"))
    rows = (
        ("Id", channel.id),
        ("Description", channel.description),
        ("Genre", channel.genre),
        ("DJ", channel.dj),
        ("Listeners", str(channel.listeners)),
        ("Now playing", channel.last_playing),
        ("Stream", channel.primary_url or "none"),
    )
    for label, value in rows:
        if value:
            console.print(Text.assemble((f"{label}: ", "cyan"), value))
    return EXIT_OK


def _log_ripper_event(event: RipperEvent) -> None:
    log.info("Recorder: %s %s", event.label.strip(), event.title)


def _recorder_factory(settings: Settings, console: Console) -> Callable[[Channel], RecordingSession]:
    def create(channel: Channel) -> RecordingSession:
        started_at = datetime.now()
        command = build_recording_command(
            channel, started_at, audio_dir=_audio_dir(settings), ripper=settings.ripper
        )
        log.info(
            "Recording %s into %s",
            channel.id,
            recording_directory(channel, started_at, _audio_dir(settings)),
        )
        return RecordingSession(channel, command, console=console, report=_log_ripper_event)

    return create


async def play_channel(
    channel_id: str,
    settings: Settings,
    console: Console,
    *,
    preferred_player: Optional[str] = None,
    notifications: bool = True,
) -> int:
    catalog = build_catalog(settings)
    channel = await catalog.get_channel(channel_id)
    url = channel.primary_url
    if url is None:
        raise ResolutionError(f"No supported stream available for {channel.id}")
    command = build_player_command(url, candidates=settings.players, preferred=preferred_player)
    console.print(Text.assemble(("Playing ", "dim"), (channel.full_title, "bold")))
    session = PlaybackSession(
        channel,
        command,
        favourites=FavouritesStore(),
        key_map=KeyMap(settings.key_bindings),
        console=console,
        notifier=Notifier(settings.notifications and notifications),
        clipboard=Clipboard(),
        scrobbler=build_scrobbler(settings),
        recorder_factory=_recorder_factory(settings, console),
    )
    return await session.run()


async def record_channel(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    catalog = build_catalog(settings)
    started_at = datetime.now()
    try:
        channel = await catalog.get_channel(args.channel)
        command = build_recording_command(
            channel, started_at, audio_dir=_audio_dir(settings), ripper=settings.ripper
        )
    except ResolutionError as exc:
        log.error("Cannot record %s: %s", args.channel, exc)
        console.print(f"[red]Recording failed:[/red] {escape(str(exc))}")
        return EXIT_RECORDING_FAILED
    console.print(
        Text.assemble(
            ("Recording ", "dim"),
            (channel.full_title, "bold"),
            (f" into {recording_directory(channel, started_at, _audio_dir(settings))}", "dim"),
        )
    )
    session = RecordingSession(channel, command, console=console)
    try:
        returncode = await session.run()
    except SubprocessError as exc:
        log.error("Recording failed: %s", exc)
        console.print(f"[red]Recording failed:[/red] {escape(str(exc))}")
        return EXIT_RECORDING_FAILED
    except asyncio.CancelledError:
        await session.stop()
        raise
    if returncode != 0:
        log.error("Ripper exited with code %s", returncode)
        return EXIT_RECORDING_FAILED
    return EXIT_OK


def list_favourites(args: argparse.Namespace, console: Console) -> int:
    favourites = FavouritesStore().list(args.keywords)
    if not favourites:
        console.print("No favourites found.")
        return EXIT_OK
    for favourite in favourites:
        console.print(favourite_summary(favourite))
    return EXIT_OK


def _editor_command() -> Optional[list[str]]:
    for variable in ("VISUAL", "EDITOR"):
        value = os.environ.get(variable)
        if value:
            return shlex.split(value)
    for candidate in _FALLBACK_EDITORS:
        if shutil.which(candidate):
            return [candidate]
    return None


def edit_favourites(console: Console) -> int:
    path = FavouritesStore().locate()
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text('{\n  "favourites": []\n}\n', encoding="utf8")
    editor = _editor_command()
    if editor is None:
        console.print(f"No editor found; set $EDITOR or edit {path} directly.")
        return EXIT_USAGE
    log.info("Opening %s with %s", path, editor[0])
    try:
        return subprocess.call([*editor, str(path)])
    except OSError as exc:
        log.error("Failed to launch editor %s: %s", editor[0], exc)
        console.print(f"[red]Could not launch {escape(editor[0])}:[/red] {escape(str(exc))}")
        return EXIT_USAGE


def print_logs(keyword: Optional[str]) -> int:
    """Write log entries, optionally those mentioning *keyword*, to stdout."""

    log_path = get_log_file_path()
    if log_path is None:
        print("File logging is not enabled; set --log-file or SOMAFM_CLI_LOG_FILE.")
        return EXIT_OK

    if not log_path.exists():
        print(f"No log file found at {log_path}")
        return EXIT_OK

    token = keyword.lower() if keyword else None
    matches = 0

    print(f"Log file: {log_path}")
    with log_path.open("r", encoding="utf8", errors="replace") as handle:
        for raw_line in handle:
            line = raw_line.rstrip("\n")
            if token is None or token in line.lower():
                print(line)
                matches += 1

    if keyword and matches == 0:
        print(f"No log entries mentioning '{keyword}' were found.")
    return EXIT_OK


def pick_channel(channels: Sequence[Channel], theme: Optional[str]) -> Optional[str]:
    app = ChannelPickerApp(channels, theme=theme or None)
    log.info("Launching channel picker")
    return app.run()


async def _load_picker_channels(settings: Settings) -> list[Channel]:
    catalog = build_catalog(settings)
    return await catalog.list_channels(CatalogQuery(sort_order=SortOrder.POPULARITY))


def dispatch(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    command = args.command
    if command == "list":
        return asyncio.run(list_channels(args, settings, console))
    if command == "info":
        return asyncio.run(show_info(args, settings, console))
    if command == "play":
        return asyncio.run(
            play_channel(
                args.channel,
                settings,
                console,
                preferred_player=args.preferred_player,
                notifications=not args.no_notify,
            )
        )
    if command == "record":
        return asyncio.run(record_channel(args, settings, console))
    if command == "list-favourites":
        return list_favourites(args, console)
    if command == "edit-favourites":
        return edit_favourites(console)
    if command == "logs":
        return print_logs(args.keyword)

    channels = asyncio.run(_load_picker_channels(settings))
    choice = pick_channel(channels, args.theme or settings.theme)
    if not choice:
        log.info("Picker closed without a selection")
        return EXIT_OK
    return asyncio.run(play_channel(choice, settings, console))


def main(argv: Iterable[str] | None = None) -> int:
    try:
        args = parse_args(argv)
    except SystemExit as exc:
        return EXIT_OK if exc.code in (0, None) else EXIT_USAGE
    configure_logging(
        level=args.log_level,
        log_file=str(args.log_file) if args.log_file is not None else None,
    )
    log.info("CLI invoked with command=%s config=%s", args.command, args.config)
    console = Console()
    settings = load_config(args.config)
    try:
        return dispatch(args, settings, console)
    except SomaFMError as exc:
        log.error("%s: %s", type(exc).__name__, exc)
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        return exc.exit_code
    except KeyboardInterrupt:
        log.info("Keyboard interrupt received; exiting")
        return EXIT_INTERRUPTED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
