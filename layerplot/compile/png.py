from __future__ import annotations

import io

import numpy as np
from PIL import Image


def encode_png(frame_rgba: np.ndarray) -> bytes:
    if frame_rgba.dtype != np.uint8:
        raise ValueError("frame_rgba must be uint8")
    if frame_rgba.ndim != 3 or frame_rgba.shape[2] != 4:
        raise ValueError("frame_rgba must have shape (H, W, 4)")
    image = Image.fromarray(np.ascontiguousarray(frame_rgba))
    buffer = io.BytesIO()
    # Fixed settings keep the encoded bytes stable across calls.
    image.save(buffer, format="PNG", optimize=False, compress_level=6)
    return buffer.getvalue()
