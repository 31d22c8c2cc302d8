from __future__ import annotations

import numpy as np


RGBA = tuple[int, int, int, int]


def new_canvas(width: int, height: int, color: RGBA = (255, 255, 255, 255)) -> np.ndarray:
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be > 0")
    canvas = np.zeros((height, width, 4), dtype=np.uint8)
    canvas[:, :, 0] = color[0]
    canvas[:, :, 1] = color[1]
    canvas[:, :, 2] = color[2]
    canvas[:, :, 3] = color[3]
    return canvas


def clip_view(dst: np.ndarray, clip: tuple[int, int, int, int] | None) -> tuple[np.ndarray, int, int]:
    """Sub-array for an ``(x0, y0, x1, y1)`` clip rect plus the offset to subtract from coordinates."""
    if clip is None:
        return dst, 0, 0
    x0 = max(0, int(clip[0]))
    y0 = max(0, int(clip[1]))
    x1 = min(dst.shape[1], int(clip[2]))
    y1 = min(dst.shape[0], int(clip[3]))
    if x1 <= x0 or y1 <= y0:
        return dst[0:0, 0:0], x0, y0
    return dst[y0:y1, x0:x1], x0, y0


def blend(view: np.ndarray, color: RGBA, coverage: np.ndarray | float = 1.0) -> None:
    """Source-over blend ``color`` onto ``view`` with per-pixel ``coverage`` in [0, 1]."""
    if view.size == 0:
        return
    a = (color[3] / 255.0) * np.asarray(coverage, dtype=np.float32)
    a = np.broadcast_to(a, view.shape[:-1])[..., None]
    inv = 1.0 - a
    src = np.asarray(color[0:3], dtype=np.float32)
    view[..., :3] = (src * a + view[..., :3].astype(np.float32) * inv).astype(np.uint8)
    dst_a = view[..., 3:4].astype(np.float32) / 255.0
    view[..., 3] = np.clip((a + dst_a * inv)[..., 0] * 255.0, 0, 255).astype(np.uint8)


def draw_hline(dst: np.ndarray, x0: int, x1: int, y: int, color: RGBA) -> None:
    if y < 0 or y >= dst.shape[0]:
        return
    xa = max(0, min(x0, x1))
    xb = min(dst.shape[1] - 1, max(x0, x1))
    if xa > xb:
        return
    blend(dst[y, xa : xb + 1], color)


def draw_vline(dst: np.ndarray, x: int, y0: int, y1: int, color: RGBA) -> None:
    if x < 0 or x >= dst.shape[1]:
        return
    ya = max(0, min(y0, y1))
    yb = min(dst.shape[0] - 1, max(y0, y1))
    if ya > yb:
        return
    blend(dst[ya : yb + 1, x], color)


def fill_rect(dst: np.ndarray, x0: float, y0: float, x1: float, y1: float, color: RGBA) -> None:
    left = max(0, int(round(min(x0, x1))))
    right = min(dst.shape[1], int(round(max(x0, x1))))
    top = max(0, int(round(min(y0, y1))))
    bottom = min(dst.shape[0], int(round(max(y0, y1))))
    if right <= left or bottom <= top:
        return
    blend(dst[top:bottom, left:right], color)


def stroke_rect(dst: np.ndarray, x0: float, y0: float, x1: float, y1: float, color: RGBA, width: int = 1) -> None:
    left, right = int(round(min(x0, x1))), int(round(max(x0, x1))) - 1
    top, bottom = int(round(min(y0, y1))), int(round(max(y0, y1))) - 1
    for k in range(max(1, width)):
        draw_hline(dst, left, right, top + k, color)
        draw_hline(dst, left, right, bottom - k, color)
        draw_vline(dst, left + k, top + width, bottom - width, color)
        draw_vline(dst, right - k, top + width, bottom - width, color)


def fill_polygon(dst: np.ndarray, xs: np.ndarray, ys: np.ndarray, color: RGBA) -> None:
    """Even-odd scanline fill sampled at pixel centres."""
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    if xs.size < 3:
        return
    x_next = np.roll(xs, -1)
    y_next = np.roll(ys, -1)
    top = max(0, int(np.floor(ys.min())))
    bottom = min(dst.shape[0], int(np.ceil(ys.max())) + 1)
    for row in range(top, bottom):
        yc = row + 0.5
        crosses = ((ys <= yc) & (y_next > yc)) | ((y_next <= yc) & (ys > yc))
        if not np.any(crosses):
            continue
        x0 = xs[crosses]
        t = (yc - ys[crosses]) / (y_next[crosses] - ys[crosses])
        hits = np.sort(x0 + t * (x_next[crosses] - x0))
        for a, b in zip(hits[0::2], hits[1::2]):
            left = max(0, int(np.ceil(a - 0.5)))
            right = min(dst.shape[1], int(np.floor(b - 0.5)) + 1)
            if right > left:
                blend(dst[row, left:right], color)
