from __future__ import annotations

import numpy as np

from layerplot.coords import clip_segment
from layerplot.raster.canvas import RGBA, blend


def draw_polyline(dst: np.ndarray, xs: np.ndarray, ys: np.ndarray, color: RGBA, width: int = 1) -> None:
    """Stroke connected segments; the stroke is blended once so overlaps do not darken."""
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    live = np.isfinite(xs) & np.isfinite(ys)
    if xs.size < 2 or not np.any(live):
        return
    radius = max(0, int(width) // 2)
    x0 = max(0, int(np.floor(xs[live].min())) - radius)
    y0 = max(0, int(np.floor(ys[live].min())) - radius)
    x1 = min(dst.shape[1], int(np.ceil(xs[live].max())) + radius + 1)
    y1 = min(dst.shape[0], int(np.ceil(ys[live].max())) + radius + 1)
    if x1 <= x0 or y1 <= y0:
        return
    mask = np.zeros((y1 - y0, x1 - x0), dtype=bool)
    window = (x0 - radius - 1.0, y0 - radius - 1.0, x1 + radius + 1.0, y1 + radius + 1.0)
    for i in range(xs.size - 1):
        if not (live[i] and live[i + 1]):
            continue
        # Step only the part of the segment that can touch the mask.
        clipped = clip_segment((xs[i], ys[i]), (xs[i + 1], ys[i + 1]), window)
        if clipped is None:
            continue
        (ax, ay), (bx, by) = clipped
        _draw_line_segment(
            mask,
            int(round(ax)) - x0,
            int(round(ay)) - y0,
            int(round(bx)) - x0,
            int(round(by)) - y0,
            radius=radius,
        )
    view = dst[y0:y1, x0:x1]
    blend(view, color, mask.astype(np.float32))


def draw_segment(dst: np.ndarray, x0: float, y0: float, x1: float, y1: float, color: RGBA, width: int = 1) -> None:
    draw_polyline(dst, np.asarray([x0, x1]), np.asarray([y0, y1]), color, width=width)


def _draw_line_segment(mask: np.ndarray, x0: int, y0: int, x1: int, y1: int, *, radius: int) -> None:
    dx = abs(x1 - x0)
    sx = 1 if x0 < x1 else -1
    dy = -abs(y1 - y0)
    sy = 1 if y0 < y1 else -1
    err = dx + dy

    while True:
        _stamp_square_brush(mask, x0, y0, radius=radius)
        if x0 == x1 and y0 == y1:
            break
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x0 += sx
        if e2 <= dx:
            err += dx
            y0 += sy


def _stamp_square_brush(mask: np.ndarray, x: int, y: int, *, radius: int) -> None:
    ya = max(0, y - radius)
    yb = min(mask.shape[0], y + radius + 1)
    xa = max(0, x - radius)
    xb = min(mask.shape[1], x + radius + 1)
    if ya < yb and xa < xb:
        mask[ya:yb, xa:xb] = True
