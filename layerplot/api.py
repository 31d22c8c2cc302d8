from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import torch

from layerplot.build import build
from layerplot.compile import display_list_to_svg, encode_png, frame_to_tensor, rasterize
from layerplot.display import DEFAULT_ASPECT_RATIO, resolve_figure_size
from layerplot.render import DisplayList, render_plot
from layerplot.scene import Scene

LOGGER = logging.getLogger(__name__)

SAVE_FORMATS = {".png": "png", ".svg": "svg"}


def render_display_list(
    scene: Scene,
    width: int | None = None,
    height: int | None = None,
    *,
    aspect_ratio: float = DEFAULT_ASPECT_RATIO,
) -> DisplayList:
    """Build ``scene`` and lay it out; every PlotError surfaces here before any pixels exist."""
    width, height = resolve_figure_size(width, height, aspect_ratio=aspect_ratio)
    built = build(scene)
    display = render_plot(built, width, height)
    LOGGER.debug("display list: %d primitives at %dx%d", len(display), width, height)
    return display


def render_rgba(
    scene: Scene,
    width: int | None = None,
    height: int | None = None,
    *,
    aspect_ratio: float = DEFAULT_ASPECT_RATIO,
) -> np.ndarray:
    return rasterize(render_display_list(scene, width, height, aspect_ratio=aspect_ratio))


def to_png_bytes(scene: Scene, width: int | None = None, height: int | None = None) -> bytes:
    return encode_png(render_rgba(scene, width, height))


def to_svg(scene: Scene, width: int | None = None, height: int | None = None) -> str:
    return display_list_to_svg(render_display_list(scene, width, height))


def to_tensor(scene: Scene, width: int | None = None, height: int | None = None) -> torch.Tensor:
    return frame_to_tensor(render_rgba(scene, width, height))


def save(scene: Scene, path: str | Path, width: int | None = None, height: int | None = None) -> Path:
    """Write ``scene`` to ``path``; the suffix picks PNG or SVG."""
    path = Path(path)
    fmt = SAVE_FORMATS.get(path.suffix.lower())
    if fmt is None:
        raise ValueError(f"unsupported output format {path.suffix!r}; expected one of {sorted(SAVE_FORMATS)}")
    if fmt == "svg":
        path.write_text(to_svg(scene, width, height), encoding="utf-8")
    else:
        path.write_bytes(to_png_bytes(scene, width, height))
    LOGGER.info("wrote %s", path)
    return path
