from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
import logging
from typing import Any, Mapping

from layerplot.errors import PlotDataError
from layerplot.palettes import is_color

LOGGER = logging.getLogger(__name__)

LEGEND_POSITIONS = frozenset({"right", "bottom", "none"})


@dataclass(frozen=True)
class Theme:
    """Flat set of style properties; colour values are hex strings, names, or None (not drawn)."""

    background: str | None = "#FFFFFF"
    panel_background: str | None = "#EBEBEB"
    panel_border: str | None = None
    grid_major: str | None = "#FFFFFF"
    grid_minor: str | None = "#F5F5F5"
    axis_line: str | None = None
    axis_ticks: str | None = "#333333"
    axis_text: str = "#4D4D4D"
    axis_title: str = "#000000"
    title_color: str = "#000000"
    subtitle_color: str = "#333333"
    caption_color: str = "#333333"
    strip_background: str | None = "#D9D9D9"
    strip_text: str = "#1A1A1A"
    legend_background: str | None = None
    legend_text: str = "#000000"
    legend_position: str = "right"
    font_family: str = "DejaVu Sans"
    base_font_px: float = 12.0
    title_font_px: float = 16.0
    tick_length_px: int = 4
    line_width_px: int = 1
    plot_margin_px: int = 10
    panel_spacing_px: int = 8

    def merged(self, overrides: Mapping[str, Any] | None = None) -> "Theme":
        return merge_overrides(self, overrides)


_COLOR_KEYS = (
    "background",
    "panel_background",
    "panel_border",
    "grid_major",
    "grid_minor",
    "axis_line",
    "axis_ticks",
    "axis_text",
    "axis_title",
    "title_color",
    "subtitle_color",
    "caption_color",
    "strip_background",
    "strip_text",
    "legend_background",
    "legend_text",
)
_NULLABLE_KEYS = frozenset(
    {
        "background",
        "panel_background",
        "panel_border",
        "grid_major",
        "grid_minor",
        "axis_line",
        "axis_ticks",
        "strip_background",
        "legend_background",
    }
)

PRESETS: dict[str, Theme] = {
    "default": Theme(),
    "minimal": Theme(
        panel_background=None,
        grid_major="#EBEBEB",
        grid_minor=None,
        axis_ticks=None,
        strip_background=None,
    ),
    "classic": Theme(
        panel_background=None,
        grid_major=None,
        grid_minor=None,
        axis_line="#000000",
        strip_background="#FFFFFF",
    ),
    "dark": Theme(
        background="#0C1017",
        panel_background="#141A24",
        panel_border="#3C434E",
        grid_major="#2C3542",
        grid_minor=None,
        axis_ticks="#7C8A9C",
        axis_text="#D0DAE8",
        axis_title="#D0DAE8",
        title_color="#D0DAE8",
        subtitle_color="#AAB6C6",
        caption_color="#AAB6C6",
        strip_background="#2C3542",
        strip_text="#D0DAE8",
        legend_text="#D0DAE8",
    ),
    "high_contrast": Theme(
        background="#FFFFFF",
        panel_background="#FFFFFF",
        panel_border="#000000",
        grid_major="#BFBFBF",
        grid_minor=None,
        axis_line="#000000",
        axis_ticks="#000000",
        axis_text="#000000",
        strip_background="#000000",
        strip_text="#FFFFFF",
        base_font_px=14.0,
        title_font_px=18.0,
        line_width_px=2,
    ),
}


def theme(preset: str = "default", **overrides: Any) -> Theme:
    """Theme from a named preset with ``overrides`` layered on top."""
    try:
        base = PRESETS[preset]
    except KeyError:
        raise PlotDataError(f"unknown theme preset: {preset}") from None
    return merge_overrides(base, overrides)


def merge_overrides(base: Theme, overrides: Mapping[str, Any] | None = None) -> Theme:
    """Merge ``overrides`` onto ``base``; later keys win, unknown keys are ignored."""
    if not overrides:
        return base
    known = {f.name for f in fields(Theme)}
    accepted: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            LOGGER.warning("ignoring unknown theme property: %s", key)
            continue
        accepted[key] = value
    merged = replace(base, **accepted)
    validate_theme(merged)
    return merged


def validate_theme(value: Theme) -> Theme:
    raw = asdict(value)
    for key in _COLOR_KEYS:
        color = raw[key]
        if color is None and key in _NULLABLE_KEYS:
            continue
        if not is_color(color):
            raise PlotDataError(f"Theme property `{key}` must be a color (#RRGGBB, #RRGGBBAA or a name)")

    if raw["legend_position"] not in LEGEND_POSITIONS:
        raise PlotDataError(f"Theme property `legend_position` must be one of {sorted(LEGEND_POSITIONS)}")

    if not isinstance(raw["font_family"], str) or not raw["font_family"].strip():
        raise PlotDataError("Theme property `font_family` must be a non-empty string")

    for key in ("base_font_px", "title_font_px"):
        if not isinstance(raw[key], (int, float)) or float(raw[key]) <= 0:
            raise PlotDataError(f"Theme property `{key}` must be a positive number")

    for key in ("tick_length_px", "line_width_px", "plot_margin_px", "panel_spacing_px"):
        if not isinstance(raw[key], int) or raw[key] < 0:
            raise PlotDataError(f"Theme property `{key}` must be a non-negative integer")
    return value


@dataclass(frozen=True)
class ThemeOverrides:
    """Partial theme merged onto whatever theme the plot already has."""

    values: tuple[tuple[str, Any], ...]

    def apply(self, base: Theme) -> Theme:
        return merge_overrides(base, dict(self.values))


def theme_update(**overrides: Any) -> ThemeOverrides:
    return ThemeOverrides(values=tuple(overrides.items()))
