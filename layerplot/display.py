from __future__ import annotations

import math


DEFAULT_ASPECT_RATIO = 4.0 / 3.0
DEFAULT_SIZE = (800, 600)
MAX_SIDE_PX = 16384


def resolve_figure_size(
    width: int | None = None,
    height: int | None = None,
    *,
    aspect_ratio: float = DEFAULT_ASPECT_RATIO,
) -> tuple[int, int]:
    """Fill in whichever of ``width``/``height`` is missing from ``aspect_ratio``."""
    if aspect_ratio <= 0:
        raise ValueError("aspect_ratio must be > 0")
    if width is None and height is None:
        return _fit_aspect(DEFAULT_SIZE[0], DEFAULT_SIZE[1], aspect_ratio)
    if width is None and height is not None:
        if height <= 0:
            raise ValueError("height must be > 0")
        width = max(1, int(round(height * aspect_ratio)))
    elif width is not None and height is None:
        if width <= 0:
            raise ValueError("width must be > 0")
        height = max(1, int(round(width / aspect_ratio)))
    assert width is not None and height is not None
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be > 0")
    if width > MAX_SIDE_PX or height > MAX_SIDE_PX:
        raise ValueError(f"width and height must be <= {MAX_SIDE_PX}")
    return (int(width), int(height))


def _fit_aspect(max_w: int, max_h: int, aspect_ratio: float) -> tuple[int, int]:
    w = max_w
    h = int(round(w / aspect_ratio))
    if h > max_h:
        h = max_h
        w = int(round(h * aspect_ratio))
    return (max(1, int(math.floor(w))), max(1, int(math.floor(h))))
