from __future__ import annotations

import colorsys
import re
from typing import Any, Sequence

import numpy as np
from PIL import ImageColor

from layerplot.errors import PlotDataError


RGBA = tuple[int, int, int, int]

_GREY_LEVEL = re.compile(r"^gr[ae]y(\d{1,3})$")

# Categorical slots, assigned to categories in first-encountered order.
QUALITATIVE: tuple[str, ...] = (
    "#1F77B4",
    "#FF7F0E",
    "#2CA02C",
    "#D62728",
    "#9467BD",
    "#8C564B",
    "#E377C2",
    "#7F7F7F",
    "#BCBD22",
    "#17BECF",
)

VIRIDIS: tuple[str, ...] = (
    "#440154",
    "#482878",
    "#3E4A89",
    "#31688E",
    "#26828E",
    "#1F9E89",
    "#35B779",
    "#6DCD59",
    "#B4DE2C",
    "#FDE725",
)

DEFAULT_GRADIENT: tuple[str, str] = ("#132B43", "#56B1F7")

GRADIENTS: dict[str, tuple[str, ...]] = {
    "default": DEFAULT_GRADIENT,
    "viridis": VIRIDIS,
    "blues": ("#F7FBFF", "#6BAED6", "#08306B"),
    "reds": ("#FFF5F0", "#FB6A4A", "#67000D"),
    "greens": ("#F7FCF5", "#74C476", "#00441B"),
    "diverging": ("#2166AC", "#F7F7F7", "#B2182B"),
}

SHAPES: tuple[str, ...] = ("circle", "triangle", "square", "diamond", "cross", "plus")


def parse_color(value: Any) -> RGBA:
    """Accept a hex string, a CSS colour name, ``greyNN``, ``transparent`` or an RGB(A) tuple."""
    if isinstance(value, str):
        text = value.strip().lower()
        if text == "transparent":
            return (0, 0, 0, 0)
        grey = _GREY_LEVEL.match(text)
        if grey is not None:
            level = int(grey.group(1))
            if level > 100:
                raise PlotDataError(f"invalid color: {value!r}")
            v = int(level * 255 / 100 + 0.5)
            return (v, v, v, 255)
        try:
            r, g, b, a = ImageColor.getcolor(text, "RGBA")
        except ValueError:
            raise PlotDataError(f"invalid color: {value!r}") from None
        return (r, g, b, a)
    if isinstance(value, (tuple, list)) and len(value) in (3, 4):
        parts = [int(v) for v in value]
        if any(p < 0 or p > 255 for p in parts):
            raise PlotDataError(f"invalid color: {value!r}")
        if len(parts) == 3:
            parts.append(255)
        return (parts[0], parts[1], parts[2], parts[3])
    raise PlotDataError(f"invalid color: {value!r}")


def is_color(value: Any) -> bool:
    try:
        parse_color(value)
    except PlotDataError:
        return False
    return True


def with_alpha(color: RGBA, alpha: float) -> RGBA:
    a = int(round(max(0.0, min(1.0, alpha)) * color[3]))
    return (color[0], color[1], color[2], a)


def qualitative(n: int, name: str | None = None) -> list[RGBA]:
    """``n`` distinct colours: the fixed slot table first, evenly spaced hues beyond it."""
    if name is not None and name != "default":
        if name == "viridis":
            rows = gradient_colors(VIRIDIS, np.linspace(0.0, 1.0, max(n, 1)))[:n]
            return [(int(r[0]), int(r[1]), int(r[2]), int(r[3])) for r in rows]
        if name == "hue":
            return hue_palette(n)
        raise PlotDataError(f"unknown palette: {name}")
    if n <= len(QUALITATIVE):
        return [parse_color(c) for c in QUALITATIVE[:n]]
    return hue_palette(n)


def hue_palette(n: int, *, lightness: float = 0.55, saturation: float = 0.65) -> list[RGBA]:
    out: list[RGBA] = []
    for i in range(n):
        h = (15.0 + 360.0 * i / max(n, 1)) % 360.0 / 360.0
        r, g, b = colorsys.hls_to_rgb(h, lightness, saturation)
        out.append((int(round(r * 255)), int(round(g * 255)), int(round(b * 255)), 255))
    return out


def gradient_colors(stops: Sequence[Any], t: np.ndarray) -> np.ndarray:
    """Interpolate evenly spaced colour stops at positions ``t`` in [0, 1]; returns (N, 4) uint8."""
    if len(stops) < 2:
        raise PlotDataError("a gradient needs at least two colors")
    rgba = np.asarray([parse_color(s) for s in stops], dtype=np.float64)
    pos = np.linspace(0.0, 1.0, len(stops))
    t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
    out = np.empty((t.size, 4), dtype=np.float64)
    for ch in range(4):
        out[:, ch] = np.interp(t, pos, rgba[:, ch])
    return np.rint(out).astype(np.uint8)


def gradient_stops(name: str | None = None, low: Any = None, high: Any = None, mid: Any = None) -> tuple[Any, ...]:
    if low is not None or high is not None:
        lo = low if low is not None else DEFAULT_GRADIENT[0]
        hi = high if high is not None else DEFAULT_GRADIENT[1]
        return (lo, mid, hi) if mid is not None else (lo, hi)
    key = name or "default"
    try:
        return GRADIENTS[key]
    except KeyError:
        raise PlotDataError(f"unknown gradient: {key}") from None
