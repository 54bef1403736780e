import asyncio
import shutil
from pathlib import Path

import pytest

from somafm_cli.errors import NoPlayerFoundError, NoRipperFoundError, SubprocessError
from somafm_cli.keys import Action
from somafm_cli.player import (
    PLAYERS,
    RIPPERS,
    PlayerCommand,
    build_player_command,
    build_ripper_command,
    detect_executable,
    iter_lines,
    launch_process,
)


def test_detect_executable_prefers_preferred(monkeypatch):
    calls = []

    def fake_which(cmd: str):
        calls.append(cmd)
        return "/usr/bin/mpv" if cmd == "mpv" else None

    monkeypatch.setattr(shutil, "which", fake_which)
    assert detect_executable(["mplayer", "mpv"], "mpv") == ("mpv", "/usr/bin/mpv")
    assert calls[0] == "mpv"


def test_build_player_command_raises_when_missing(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda _: None)
    with pytest.raises(NoPlayerFoundError) as excinfo:
        build_player_command("http://example")
    assert excinfo.value.exit_code == 30


def test_build_player_command_uses_first_candidate(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
    command = build_player_command("http://example/stream")
    assert isinstance(command, PlayerCommand)
    assert command.executable == "/usr/bin/mplayer"
    assert command.args == ["-quiet", "http://example/stream"]
    assert command.descriptor is PLAYERS["mplayer"]


def test_build_player_command_honours_preference(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
    command = build_player_command("http://example/stream", preferred="mpv")
    assert command.executable == "/usr/bin/mpv"
    assert command.args[-1] == "http://example/stream"


def test_unsupported_preference_falls_back(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
    command = build_player_command("http://example/stream", preferred="vlc")
    assert command.descriptor.name == "mplayer"


def test_build_ripper_command_formats_arguments(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
    command = build_ripper_command(
        "http://example/stream", directory=tmp_path, pattern="SomaFM X/20240101_120000/%1q %A - %T"
    )
    assert command.as_sequence() == [
        "/usr/bin/streamripper",
        "http://example/stream",
        "-d",
        str(tmp_path),
        "-D",
        "SomaFM X/20240101_120000/%1q %A - %T",
    ]


def test_build_ripper_command_raises_when_missing(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(shutil, "which", lambda _: None)
    with pytest.raises(NoRipperFoundError) as excinfo:
        build_ripper_command("http://example/stream", directory=tmp_path, pattern="x")
    assert excinfo.value.exit_code == 40


@pytest.mark.parametrize(
    ("player", "line", "title"),
    [
        ("mplayer", "ICY Info: StreamTitle='Bonobo - Kiara';StreamUrl='';", "Bonobo - Kiara"),
        ("mpv", " icy-title: Bonobo - Kiara", "Bonobo - Kiara"),
        ("mpg123", "ICY-META: StreamTitle='Bonobo - Kiara';", "Bonobo - Kiara"),
        ("mplayer", "Cache fill: 12.5%", None),
        ("mplayer", "ICY Info: StreamTitle='';", None),
    ],
)
def test_player_title_extraction(player, line, title):
    assert PLAYERS[player].extract_title(line) == title


def test_only_mplayer_takes_volume_controls():
    assert PLAYERS["mplayer"].supports(Action.INCREASE_VOLUME)
    assert not PLAYERS["mpv"].supports(Action.INCREASE_VOLUME)


def test_ripper_pattern_reads_progress_lines():
    match = RIPPERS["streamripper"].line_pattern.search("[ripping...    ] Bonobo - Kiara [  1.21mb]")
    assert match is not None
    assert match.group("status") == "r"
    assert match.group("title") == "Bonobo - Kiara"
    assert match.group("size") == "1.21mb"


def test_iter_lines_splits_on_carriage_returns():
    async def collect():
        reader = asyncio.StreamReader()
        reader.feed_data(b"A: 1.0\rA: 2.0\r\nICY Info: StreamTitle='X';\npartial")
        reader.feed_eof()
        return [line async for line in iter_lines(reader)]

    assert asyncio.run(collect()) == ["A: 1.0", "A: 2.0", "ICY Info: StreamTitle='X';", "partial"]


def test_launch_process_wraps_os_errors(monkeypatch):
    async def fake_exec(*args, **kwargs):
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    command = PlayerCommand(executable="/missing/mplayer", args=["x"], descriptor=PLAYERS["mplayer"])
    with pytest.raises(SubprocessError):
        asyncio.run(launch_process(command))


def test_iter_lines_keeps_characters_split_across_reads():
    encoded = "ICY Info: StreamTitle='Björk - Jóga';\n".encode("utf8")
    cut = encoded.index("ö".encode("utf8")) + 1

    async def collect():
        reader = asyncio.StreamReader()
        reader.feed_data(encoded[:cut])
        reader.feed_data(encoded[cut:])
        reader.feed_eof()
        return [line async for line in iter_lines(reader, chunk_size=cut)]

    assert asyncio.run(collect()) == ["ICY Info: StreamTitle='Björk - Jóga';"]


def test_iter_lines_flushes_truncated_character_at_eof():
    async def collect():
        reader = asyncio.StreamReader()
        reader.feed_data("tail é".encode("utf8")[:-1])
        reader.feed_eof()
        return [line async for line in iter_lines(reader)]

    assert asyncio.run(collect()) == ["tail �"]
