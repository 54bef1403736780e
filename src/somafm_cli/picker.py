"""Searchable channel picker shown when no command is given."""
from __future__ import annotations

from typing import Optional, Sequence

from rich.text import Text
from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header, Input, OptionList
from textual.widgets.option_list import Option

from .catalog import Channel
from .logging_utils import get_logger
from .search import CHANNEL_FIELDS, filter_records, split_terms
from .themes import CUSTOM_THEMES, DEFAULT_THEME_NAME

log = get_logger(__name__)


def channel_label(channel: Channel) -> Text:
    label = Text()
    label.append(channel.title, style="bold")
    label.append(f" [{channel.id}]", style="green")
    label.append(f"  {channel.listeners} listening", style="dim")
    if channel.genre:
        label.append(f"  {channel.genre}", style="cyan")
    return label


class ChannelPickerApp(App[Optional[str]]):
    """Pick a channel by typing keywords; Enter returns the channel id."""

    TITLE = "SomaFM"
    CSS = """
    #search {
        dock: top;
        margin: 0 1;
    }
    #channels {
        height: 1fr;
        margin: 0 1;
    }
    """
    BINDINGS = [
        Binding("escape", "cancel", "Cancel", priority=True),
        Binding("ctrl+c", "cancel", "Cancel", show=False, priority=True),
        Binding("down", "focus_list", "Channels", show=False),
    ]

    def __init__(self, channels: Sequence[Channel], *, theme: Optional[str] = None) -> None:
        super().__init__()
        for custom in CUSTOM_THEMES.values():
            self.register_theme(custom)
        requested = theme or DEFAULT_THEME_NAME
        if self.get_theme(requested) is None:
            log.warning("Requested theme '%s' is unavailable; using %s", requested, DEFAULT_THEME_NAME)
            requested = DEFAULT_THEME_NAME
        self.theme = requested
        self._channels = list(channels)
        self.matches: list[Channel] = list(channels)

    def compose(self) -> ComposeResult:
        yield Header()
        yield Input(placeholder="Search channels (id, title, genre, DJ)", id="search")
        yield OptionList(*self._build_options(self._channels), id="channels")
        yield Footer()

    def _build_options(self, channels: Sequence[Channel]) -> list[Option]:
        return [Option(channel_label(channel), id=channel.id) for channel in channels]

    def on_mount(self) -> None:
        self.sub_title = f"{len(self._channels)} channels"
        self.query_one("#search", Input).focus()

    @on(Input.Changed, "#search")
    def filter_channels(self, event: Input.Changed) -> None:
        self.matches = filter_records(self._channels, split_terms(event.value), CHANNEL_FIELDS)
        option_list = self.query_one("#channels", OptionList)
        option_list.clear_options()
        option_list.add_options(self._build_options(self.matches))
        if self.matches:
            option_list.highlighted = 0
        self.sub_title = f"{len(self.matches)} of {len(self._channels)} channels"
        log.debug("Picker search %r shows %d channel(s)", event.value, len(self.matches))

    @on(Input.Submitted, "#search")
    def submit_search(self) -> None:
        option_list = self.query_one("#channels", OptionList)
        index = option_list.highlighted if option_list.highlighted is not None else 0
        if 0 <= index < len(self.matches):
            self.exit(self.matches[index].id)

    @on(OptionList.OptionSelected, "#channels")
    def choose_channel(self, event: OptionList.OptionSelected) -> None:
        self.exit(event.option.id)

    def action_focus_list(self) -> None:
        self.query_one("#channels", OptionList).focus()

    def action_cancel(self) -> None:
        self.exit(None)


__all__ = ["ChannelPickerApp", "channel_label"]
