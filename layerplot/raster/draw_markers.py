from __future__ import annotations

import numpy as np

from layerplot.raster.canvas import RGBA, blend


def draw_marker(
    dst: np.ndarray,
    x: float,
    y: float,
    color: RGBA,
    *,
    radius: float = 2.0,
    shape: str = "circle",
    stroke: RGBA | None = None,
) -> None:
    r = max(0.5, float(radius))
    x0 = max(0, int(np.floor(x - r - 1)))
    y0 = max(0, int(np.floor(y - r - 1)))
    x1 = min(dst.shape[1], int(np.ceil(x + r + 2)))
    y1 = min(dst.shape[0], int(np.ceil(y + r + 2)))
    if x1 <= x0 or y1 <= y0:
        return
    gy, gx = np.mgrid[y0:y1, x0:x1].astype(np.float32)
    dx = gx + 0.5 - x
    dy = gy + 0.5 - y
    coverage = _coverage(shape, dx, dy, r)
    view = dst[y0:y1, x0:x1]
    blend(view, color, coverage)
    if stroke is not None and shape in {"circle", "square", "diamond", "triangle"}:
        inner = _coverage(shape, dx, dy, max(0.0, r - 1.0))
        blend(view, stroke, np.clip(coverage - inner, 0.0, 1.0))


def _coverage(shape: str, dx: np.ndarray, dy: np.ndarray, r: float) -> np.ndarray:
    if shape == "circle":
        dist = np.sqrt(dx * dx + dy * dy)
        return np.clip(r + 0.5 - dist, 0.0, 1.0)
    if shape == "square":
        return ((np.abs(dx) <= r) & (np.abs(dy) <= r)).astype(np.float32)
    if shape == "diamond":
        return (np.abs(dx) + np.abs(dy) <= r * 1.3).astype(np.float32)
    if shape == "triangle":
        # Apex up; base at half a radius below centre.
        inside = (dy <= 0.5 * r) & (dy >= -r) & (np.abs(dx) <= (dy + r) * 0.58)
        return inside.astype(np.float32)
    arm = max(0.75, r * 0.25)
    box = (np.abs(dx) <= r) & (np.abs(dy) <= r)
    if shape == "cross":
        hit = (np.abs(dx - dy) <= arm * 1.41) | (np.abs(dx + dy) <= arm * 1.41)
        return (hit & box).astype(np.float32)
    if shape == "plus":
        return (((np.abs(dx) <= arm) | (np.abs(dy) <= arm)) & box).astype(np.float32)
    raise ValueError(f"unknown marker shape: {shape}")
