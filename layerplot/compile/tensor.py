from __future__ import annotations

import numpy as np
import torch


def frame_to_tensor(frame_rgba: np.ndarray) -> torch.Tensor:
    """Wrap an ``(H, W, 4)`` uint8 frame as a torch tensor without copying contiguous input."""
    if frame_rgba.dtype != np.uint8:
        raise ValueError("frame_rgba must be uint8")
    if frame_rgba.ndim != 3 or frame_rgba.shape[2] != 4:
        raise ValueError("frame_rgba must have shape (H, W, 4)")
    return torch.from_numpy(np.ascontiguousarray(frame_rgba))
