"""Pillow text on RGBA canvases.

Each (string, family, size) is rasterised once into a coverage mask, turned
in quarter steps with numpy and blended with its box centred on the anchor.
"""

from __future__ import annotations

from functools import lru_cache
import logging

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from layerplot.raster.canvas import RGBA, blend, fill_rect

LOGGER = logging.getLogger(__name__)

DEFAULT_FONT_FAMILY = "DejaVu Sans"
DEFAULT_FONT_PX = 12.0
# File names Pillow finds on its own in the system font directories.
FALLBACK_FONT_FILES = ("DejaVuSans.ttf", "LiberationSans-Regular.ttf", "Arial.ttf", "Helvetica.ttc")

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


def draw_text(
    dst: np.ndarray,
    cx: float,
    cy: float,
    text: str,
    color: RGBA,
    *,
    font_family: str = DEFAULT_FONT_FAMILY,
    font_px: float = DEFAULT_FONT_PX,
    background: RGBA | None = None,
    rotate: int = 0,
) -> None:
    """Blend ``text`` with its bounding box centred on ``(cx, cy)``.

    ``background`` fills the box under the glyphs. ``rotate`` turns the text
    counter-clockwise in multiples of 90 degrees.
    """
    if not text:
        return
    mask = np.rot90(_coverage(text, font_family, float(font_px)), k=_quarter_turns(rotate))
    h, w = mask.shape
    x0 = int(round(cx - w / 2.0))
    y0 = int(round(cy - h / 2.0))
    if background is not None:
        fill_rect(dst, x0, y0, x0 + w, y0 + h, background)
    xa, ya = max(0, x0), max(0, y0)
    xb, yb = min(dst.shape[1], x0 + w), min(dst.shape[0], y0 + h)
    if xb <= xa or yb <= ya:
        return
    cover = mask[ya - y0 : yb - y0, xa - x0 : xb - x0].astype(np.float32) / 255.0
    blend(dst[ya:yb, xa:xb], color, cover)


def text_size(
    text: str,
    *,
    font_family: str = DEFAULT_FONT_FAMILY,
    font_px: float = DEFAULT_FONT_PX,
    rotate: int = 0,
) -> tuple[int, int]:
    """``(width, height)`` in pixels of the box :func:`draw_text` covers."""
    if text:
        h, w = _coverage(text, font_family, float(font_px)).shape
    else:
        ascent, descent = _font(font_family, float(font_px)).getmetrics()
        w, h = 0, max(1, int(ascent + descent))
    return (h, w) if _quarter_turns(rotate) % 2 else (w, h)


@lru_cache(maxsize=512)
def _coverage(text: str, family: str, px: float) -> np.ndarray:
    font = _font(family, px)
    left, top, right, bottom = (int(v) for v in font.getbbox(text))
    image = Image.new("L", (max(1, right - left), max(1, bottom - top)), 0)
    ImageDraw.Draw(image).text((-left, -top), text, fill=255, font=font)
    mask = np.array(image, dtype=np.uint8)
    # Shared through the cache.
    mask.flags.writeable = False
    return mask


@lru_cache(maxsize=64)
def _font(family: str, px: float) -> Font:
    size = max(1, int(round(px)))
    names = FALLBACK_FONT_FILES
    if family.strip():
        names = (family.replace(" ", "") + ".ttf",) + names
    for name in names:
        try:
            return ImageFont.truetype(name, size=size)
        except OSError:
            continue
    LOGGER.debug("no TrueType font found for %r, using Pillow's default", family)
    return ImageFont.load_default(size=size)


def _quarter_turns(rotate: int) -> int:
    if rotate % 90:
        raise ValueError("text rotation must be a multiple of 90 degrees")
    return (rotate // 90) % 4
