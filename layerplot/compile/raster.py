from __future__ import annotations

import numpy as np

from layerplot.raster import (
    clip_view,
    draw_marker,
    draw_polyline,
    draw_segment,
    draw_text,
    fill_polygon,
    fill_rect,
    new_canvas,
    stroke_rect,
)
from layerplot.render import DisplayList, Line, Marker, Polygon, Polyline, Primitive, Rect, Text

TRANSPARENT = (0, 0, 0, 0)


def rasterize(display: DisplayList) -> np.ndarray:
    """Paint every primitive in order onto a fresh ``(H, W, 4)`` uint8 canvas."""
    canvas = new_canvas(display.width, display.height, color=display.background or TRANSPARENT)
    for item in display.items:
        view, ox, oy = clip_view(canvas, item.clip)
        if view.size == 0:
            continue
        _paint(view, item, ox, oy)
    return canvas


def _paint(view: np.ndarray, item: Primitive, ox: int, oy: int) -> None:
    if isinstance(item, Rect):
        if item.fill is not None:
            fill_rect(view, item.x0 - ox, item.y0 - oy, item.x1 - ox, item.y1 - oy, item.fill)
        if item.stroke is not None:
            stroke_rect(view, item.x0 - ox, item.y0 - oy, item.x1 - ox, item.y1 - oy, item.stroke, width=item.stroke_width)
    elif isinstance(item, Line):
        draw_segment(view, item.x0 - ox, item.y0 - oy, item.x1 - ox, item.y1 - oy, item.color, width=item.width)
    elif isinstance(item, Polyline):
        xs = np.asarray(item.xs, dtype=np.float64) - ox
        ys = np.asarray(item.ys, dtype=np.float64) - oy
        draw_polyline(view, xs, ys, item.color, width=item.width)
    elif isinstance(item, Polygon):
        xs = np.asarray(item.xs, dtype=np.float64) - ox
        ys = np.asarray(item.ys, dtype=np.float64) - oy
        if item.fill is not None:
            fill_polygon(view, xs, ys, item.fill)
        if item.stroke is not None and xs.size >= 2:
            draw_polyline(view, np.append(xs, xs[0]), np.append(ys, ys[0]), item.stroke, width=item.stroke_width)
    elif isinstance(item, Marker):
        draw_marker(view, item.x - ox, item.y - oy, item.fill, radius=item.radius, shape=item.shape, stroke=item.stroke)
    elif isinstance(item, Text):
        draw_text(
            view,
            item.cx - ox,
            item.cy - oy,
            item.text,
            item.color,
            font_family=item.font_family,
            font_px=item.font_px,
            background=item.background,
            rotate=item.rotate,
        )
    else:
        raise TypeError(f"unsupported primitive: {type(item).__name__}")
