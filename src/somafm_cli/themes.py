"""Theme definitions for the channel picker."""
from __future__ import annotations

from typing import Mapping

from textual.theme import Theme

__all__ = [
    "CUSTOM_THEMES",
    "DEFAULT_THEME_NAME",
]

# Palette taken from the station's own web player.
_SOMA_RED = "#c8102e"
_SOMA_ORANGE = "#f28c28"
_SOMA_YELLOW = "#e8c547"
_SOMA_GREEN = "#6a9f4b"
_SOMA_BLUE = "#3f7cac"
_SOMA_INK = "#1b1b1e"
_SOMA_SLATE = "#2a2a30"
_SOMA_FOG = "#d8d8dc"
_SOMA_PAPER = "#f6f4ef"

_SOMA_NIGHT = Theme(
    "soma-night",
    primary=_SOMA_RED,
    secondary=_SOMA_BLUE,
    warning=_SOMA_YELLOW,
    error=_SOMA_RED,
    success=_SOMA_GREEN,
    accent=_SOMA_ORANGE,
    foreground=_SOMA_FOG,
    background=_SOMA_INK,
    surface=_SOMA_SLATE,
    panel=_SOMA_SLATE,
    dark=True,
)

_SOMA_DAY = Theme(
    "soma-day",
    primary=_SOMA_RED,
    secondary=_SOMA_BLUE,
    warning=_SOMA_ORANGE,
    error=_SOMA_RED,
    success=_SOMA_GREEN,
    accent=_SOMA_BLUE,
    foreground=_SOMA_INK,
    background=_SOMA_PAPER,
    surface=_SOMA_FOG,
    panel=_SOMA_FOG,
    dark=False,
)

CUSTOM_THEMES: Mapping[str, Theme] = {
    _SOMA_NIGHT.name: _SOMA_NIGHT,
    _SOMA_DAY.name: _SOMA_DAY,
}
"""Themes bundled with the application keyed by their names."""

DEFAULT_THEME_NAME = _SOMA_NIGHT.name
"""Default theme to apply when none is specified explicitly."""
