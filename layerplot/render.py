"""BuiltPlot -> display list of pixel-space primitives.

Layout runs in the spirit of a single-axes figure: measure tick labels and
titles with Pillow, reserve gutters, then split what is left into a panel
grid. Backends (raster, SVG) only ever see the primitives defined here.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Sequence

import numpy as np

from layerplot.build import BuiltPlot, PanelLayer
from layerplot.facet import PanelSpec
from layerplot.legend import Legend, LegendKey
from layerplot.palettes import RGBA, parse_color, with_alpha
from layerplot.raster.draw_text import text_size
from layerplot.scales import PositionScale
from layerplot.theme import Theme

LOGGER = logging.getLogger(__name__)

Clip = tuple[int, int, int, int]

FILLED_GEOMS = frozenset({"bar", "col", "histogram", "area", "density", "boxplot", "violin", "polygon"})
DEFAULT_KEY_COLOR = "#333333"
DEFAULT_KEY_FILL = "#595959"


@dataclass(frozen=True)
class Rect:
    x0: float
    y0: float
    x1: float
    y1: float
    fill: RGBA | None = None
    stroke: RGBA | None = None
    stroke_width: int = 1
    clip: Clip | None = None


@dataclass(frozen=True)
class Line:
    x0: float
    y0: float
    x1: float
    y1: float
    color: RGBA
    width: int = 1
    clip: Clip | None = None


@dataclass(frozen=True)
class Polyline:
    xs: tuple[float, ...]
    ys: tuple[float, ...]
    color: RGBA
    width: int = 1
    clip: Clip | None = None


@dataclass(frozen=True)
class Polygon:
    xs: tuple[float, ...]
    ys: tuple[float, ...]
    fill: RGBA | None = None
    stroke: RGBA | None = None
    stroke_width: int = 1
    clip: Clip | None = None


@dataclass(frozen=True)
class Marker:
    x: float
    y: float
    radius: float
    fill: RGBA
    shape: str = "circle"
    stroke: RGBA | None = None
    clip: Clip | None = None


@dataclass(frozen=True)
class Text:
    """Text whose bounding box is centred on ``(cx, cy)``.

    ``rotate`` is counter-clockwise degrees: 0, 90 (reads bottom to top) or 270.
    """

    cx: float
    cy: float
    text: str
    color: RGBA
    font_px: float
    font_family: str
    rotate: int = 0
    background: RGBA | None = None
    clip: Clip | None = None


Primitive = Rect | Line | Polyline | Polygon | Marker | Text


@dataclass(frozen=True)
class DisplayList:
    width: int
    height: int
    background: RGBA | None
    items: tuple[Primitive, ...]

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class _Fonts:
    family: str
    tick: float
    axis_title: float
    strip: float
    legend: float
    title: float
    subtitle: float
    caption: float


@dataclass(frozen=True)
class _PanelBox:
    spec: PanelSpec
    x0: int
    y0: int
    w: int
    h: int

    @property
    def clip(self) -> Clip:
        return (self.x0, self.y0, self.x0 + self.w, self.y0 + self.h)


def render_plot(built: BuiltPlot, width: int, height: int) -> DisplayList:
    """Lay out panels, axes, strips, titles and legends and emit primitives."""
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be > 0")
    theme = built.theme
    fonts = _fonts(theme)
    flip = built.coord.flip
    h_scale = built.y_scale if flip else built.x_scale
    v_scale = built.x_scale if flip else built.y_scale
    h_title = built.y_title if flip else built.x_title
    v_title = built.x_title if flip else built.y_title
    items: list[Primitive] = []

    margin = theme.plot_margin_px
    top = margin
    if built.title:
        top += text_size(built.title, font_family=fonts.family, font_px=fonts.title)[1] + 6
    if built.subtitle:
        top += text_size(built.subtitle, font_family=fonts.family, font_px=fonts.subtitle)[1] + 6
    bottom = margin
    if built.caption:
        bottom += text_size(built.caption, font_family=fonts.family, font_px=fonts.caption)[1] + 6
    caption_room = bottom - margin
    left = margin
    right = margin

    legend_sizes = [_legend_size(legend, fonts, theme.legend_position) for legend in built.legends]
    legend_gap = 10
    if legend_sizes and theme.legend_position == "right":
        right += max(w for w, _ in legend_sizes) + legend_gap
    elif legend_sizes and theme.legend_position == "bottom":
        bottom += max(h for _, h in legend_sizes) + legend_gap

    h_ticks = h_scale.ticks()
    v_ticks = v_scale.ticks()
    tick_len = theme.tick_length_px
    tick_h = max((_size(label, fonts.family, fonts.tick)[1] for _, label in h_ticks), default=0)
    tick_w = max((_size(label, fonts.family, fonts.tick)[0] for _, label in v_ticks), default=0)
    h_title_h = _size(h_title, fonts.family, fonts.axis_title)[1] if h_title else 0
    v_title_w = _size(v_title, fonts.family, fonts.axis_title, rotate=90)[0] if v_title else 0
    bottom += tick_len + 3 + tick_h + (h_title_h + 6 if h_title else 0)
    left += tick_len + 3 + tick_w + (v_title_w + 6 if v_title else 0)

    layout = built.layout
    strip_thickness = _size("Ag", fonts.family, fonts.strip)[1] + 8
    strip_h = strip_thickness if any(p.label for p in layout.panels) else 0
    strip_w = strip_thickness if any(p.row_label for p in layout.panels) else 0

    # Keep a drawable panel area on small canvases.
    left = min(left, max(4, width // 3))
    right = min(right, max(4, width // 2))
    top = min(top, max(4, height // 3))
    bottom = min(bottom, max(4, height // 2))

    boxes = _panel_boxes(built, x0=left, y0=top, x1=width - right, y1=height - bottom, strip_h=strip_h, strip_w=strip_w)
    LOGGER.debug("laid out %d panels in %dx%d", len(boxes), width, height)

    for box in boxes:
        items.extend(_panel_background(box, h_scale, v_scale, theme))
        for pl in built.panel_layers(box.spec.index):
            items.extend(_draw_layer(pl, box, h_scale, v_scale, flip, fonts))
        items.extend(_panel_frame(box, theme))
        items.extend(_strips(box, layout.ncol, strip_h, strip_w, theme, fonts, wrap=not layout.grid))

    for box in boxes:
        spec = box.spec
        if not layout.occupied(spec.row + 1, spec.col):
            items.extend(_h_axis(box, h_scale, h_ticks, theme, fonts))
        if spec.col == 0:
            items.extend(_v_axis(box, v_scale, v_ticks, theme, fonts))

    if boxes:
        gx0 = min(b.x0 for b in boxes)
        gx1 = max(b.x0 + b.w for b in boxes)
        gy0 = min(b.y0 for b in boxes) - strip_h
        gy1 = max(b.y0 + b.h for b in boxes)
        axis_color = parse_color(theme.axis_title)
        if h_title:
            cy = gy1 + tick_len + 3 + tick_h + 6 + h_title_h / 2.0
            items.append(Text((gx0 + gx1) / 2.0, cy, h_title, axis_color, fonts.axis_title, fonts.family))
        if v_title:
            cx = gx0 - tick_len - 3 - tick_w - 6 - v_title_w / 2.0
            items.append(Text(cx, (gy0 + gy1) / 2.0, v_title, axis_color, fonts.axis_title, fonts.family, rotate=90))
        items.extend(_titles(built, fonts, theme, x0=gx0, width=width, height=height))
        items.extend(
            _legends(
                built.legends,
                legend_sizes,
                theme,
                fonts,
                grid=(gx0, gy0, gx1, gy1),
                width=width,
                bottom=height - theme.plot_margin_px - caption_room,
            )
        )

    background = parse_color(theme.background) if theme.background is not None else None
    return DisplayList(width=width, height=height, background=background, items=tuple(items))


# ----------------------------
# Layout
# ----------------------------


def _fonts(theme: Theme) -> _Fonts:
    base = float(theme.base_font_px)
    return _Fonts(
        family=theme.font_family,
        tick=base * 0.85,
        axis_title=base,
        strip=base * 0.85,
        legend=base * 0.85,
        title=float(theme.title_font_px),
        subtitle=base,
        caption=base * 0.8,
    )


def _size(text: str, family: str, font_px: float, rotate: int = 0) -> tuple[int, int]:
    return text_size(text, font_family=family, font_px=font_px, rotate=rotate)


def _panel_boxes(
    built: BuiltPlot,
    *,
    x0: int,
    y0: int,
    x1: int,
    y1: int,
    strip_h: int,
    strip_w: int,
) -> list[_PanelBox]:
    layout = built.layout
    spacing = built.theme.panel_spacing_px
    # Grid strips sit once above the top row; wrap strips sit above every panel.
    grid = layout.grid
    avail_w = max(2, x1 - x0 - strip_w - spacing * (layout.ncol - 1))
    if grid:
        avail_h = max(2, y1 - y0 - strip_h - spacing * (layout.nrow - 1))
    else:
        avail_h = max(2, y1 - y0 - (strip_h + spacing) * layout.nrow + spacing)
    panel_w = max(2.0, avail_w / layout.ncol)
    panel_h = max(2.0, avail_h / layout.nrow)

    if built.coord.fixed_aspect:
        h_scale = built.y_scale if built.coord.flip else built.x_scale
        v_scale = built.x_scale if built.coord.flip else built.y_scale
        ratio = abs(h_scale.limits[1] - h_scale.limits[0]) / max(1e-12, abs(v_scale.limits[1] - v_scale.limits[0]))
        if panel_w / panel_h > ratio:
            panel_w = max(2.0, panel_h * ratio)
        else:
            panel_h = max(2.0, panel_w / ratio)

    used_w = panel_w * layout.ncol + spacing * (layout.ncol - 1) + strip_w
    strips_h = strip_h if grid else strip_h * layout.nrow
    used_h = panel_h * layout.nrow + spacing * (layout.nrow - 1) + strips_h
    off_x = x0 + max(0.0, (x1 - x0 - used_w) / 2.0)
    off_y = y0 + max(0.0, (y1 - y0 - used_h) / 2.0)

    boxes: list[_PanelBox] = []
    for spec in layout.panels:
        px = off_x + spec.col * (panel_w + spacing)
        if grid:
            py = off_y + strip_h + spec.row * (panel_h + spacing)
        else:
            py = off_y + spec.row * (panel_h + strip_h + spacing) + strip_h
        boxes.append(_PanelBox(spec=spec, x0=int(round(px)), y0=int(round(py)), w=int(panel_w), h=int(panel_h)))
    return boxes


# ----------------------------
# Panels, axes and strips
# ----------------------------


def _to_px(box: _PanelBox, h_scale: PositionScale, v_scale: PositionScale, hv: Any, vv: Any) -> tuple[np.ndarray, np.ndarray]:
    px = box.x0 + h_scale.rescale(np.asarray(hv, dtype=np.float64)) * box.w
    py = box.y0 + box.h - v_scale.rescale(np.asarray(vv, dtype=np.float64)) * box.h
    return px, py


def _panel_background(box: _PanelBox, h_scale: PositionScale, v_scale: PositionScale, theme: Theme) -> list[Primitive]:
    out: list[Primitive] = []
    x1 = box.x0 + box.w
    y1 = box.y0 + box.h
    if theme.panel_background is not None:
        out.append(Rect(box.x0, box.y0, x1, y1, fill=parse_color(theme.panel_background)))
    h_major = np.asarray([v for v, _ in h_scale.ticks()], dtype=np.float64)
    v_major = np.asarray([v for v, _ in v_scale.ticks()], dtype=np.float64)
    if theme.grid_minor is not None:
        minor = parse_color(theme.grid_minor)
        if not h_scale.is_discrete:
            for px in box.x0 + h_scale.rescale(_midpoints(h_major)) * box.w:
                out.append(Line(px, box.y0, px, y1, minor, clip=box.clip))
        if not v_scale.is_discrete:
            for py in y1 - v_scale.rescale(_midpoints(v_major)) * box.h:
                out.append(Line(box.x0, py, x1, py, minor, clip=box.clip))
    if theme.grid_major is not None:
        major = parse_color(theme.grid_major)
        for px in box.x0 + h_scale.rescale(h_major) * box.w:
            out.append(Line(px, box.y0, px, y1, major, width=theme.line_width_px, clip=box.clip))
        for py in y1 - v_scale.rescale(v_major) * box.h:
            out.append(Line(box.x0, py, x1, py, major, width=theme.line_width_px, clip=box.clip))
    return out


def _midpoints(ticks: np.ndarray) -> np.ndarray:
    if ticks.size < 2:
        return np.empty(0)
    step = float(ticks[1] - ticks[0])
    mids = (ticks[:-1] + ticks[1:]) / 2.0
    return np.concatenate(([ticks[0] - step / 2.0], mids, [ticks[-1] + step / 2.0]))


def _panel_frame(box: _PanelBox, theme: Theme) -> list[Primitive]:
    out: list[Primitive] = []
    x1 = box.x0 + box.w
    y1 = box.y0 + box.h
    if theme.panel_border is not None:
        out.append(Rect(box.x0, box.y0, x1, y1, stroke=parse_color(theme.panel_border), stroke_width=theme.line_width_px))
    if theme.axis_line is not None:
        color = parse_color(theme.axis_line)
        out.append(Line(box.x0, y1 - 1, x1, y1 - 1, color, width=theme.line_width_px))
        out.append(Line(box.x0, box.y0, box.x0, y1, color, width=theme.line_width_px))
    return out


def _h_axis(box: _PanelBox, scale: PositionScale, ticks: Sequence[tuple[float, str]], theme: Theme, fonts: _Fonts) -> list[Primitive]:
    out: list[Primitive] = []
    y1 = box.y0 + box.h
    text_color = parse_color(theme.axis_text)
    tick_color = parse_color(theme.axis_ticks) if theme.axis_ticks is not None else None
    for value, label in ticks:
        px = float(box.x0 + scale.rescale(np.asarray([value]))[0] * box.w)
        if tick_color is not None and theme.tick_length_px > 0:
            out.append(Line(px, y1, px, y1 + theme.tick_length_px, tick_color))
        h = _size(label, fonts.family, fonts.tick)[1]
        out.append(Text(px, y1 + theme.tick_length_px + 3 + h / 2.0, label, text_color, fonts.tick, fonts.family))
    return out


def _v_axis(box: _PanelBox, scale: PositionScale, ticks: Sequence[tuple[float, str]], theme: Theme, fonts: _Fonts) -> list[Primitive]:
    out: list[Primitive] = []
    y1 = box.y0 + box.h
    text_color = parse_color(theme.axis_text)
    tick_color = parse_color(theme.axis_ticks) if theme.axis_ticks is not None else None
    for value, label in ticks:
        py = float(y1 - scale.rescale(np.asarray([value]))[0] * box.h)
        if tick_color is not None and theme.tick_length_px > 0:
            out.append(Line(box.x0 - theme.tick_length_px, py, box.x0, py, tick_color))
        w = _size(label, fonts.family, fonts.tick)[0]
        out.append(Text(box.x0 - theme.tick_length_px - 3 - w / 2.0, py, label, text_color, fonts.tick, fonts.family))
    return out


def _strips(
    box: _PanelBox,
    ncol: int,
    strip_h: int,
    strip_w: int,
    theme: Theme,
    fonts: _Fonts,
    *,
    wrap: bool,
) -> list[Primitive]:
    out: list[Primitive] = []
    spec = box.spec
    bg = parse_color(theme.strip_background) if theme.strip_background is not None else None
    color = parse_color(theme.strip_text)
    if spec.label and strip_h and (wrap or spec.row == 0):
        y0 = box.y0 - strip_h
        if bg is not None:
            out.append(Rect(box.x0, y0, box.x0 + box.w, box.y0, fill=bg))
        out.append(Text(box.x0 + box.w / 2.0, y0 + strip_h / 2.0, spec.label, color, fonts.strip, fonts.family))
    if spec.row_label and strip_w and spec.col == ncol - 1:
        x0 = box.x0 + box.w
        if bg is not None:
            out.append(Rect(x0, box.y0, x0 + strip_w, box.y0 + box.h, fill=bg))
        out.append(Text(x0 + strip_w / 2.0, box.y0 + box.h / 2.0, spec.row_label, color, fonts.strip, fonts.family, rotate=270))
    return out


def _titles(built: BuiltPlot, fonts: _Fonts, theme: Theme, *, x0: float, width: int, height: int) -> list[Primitive]:
    out: list[Primitive] = []
    y = float(theme.plot_margin_px)
    for text, font_px, color in (
        (built.title, fonts.title, theme.title_color),
        (built.subtitle, fonts.subtitle, theme.subtitle_color),
    ):
        if not text:
            continue
        w, h = _size(text, fonts.family, font_px)
        out.append(Text(x0 + w / 2.0, y + h / 2.0, text, parse_color(color), font_px, fonts.family))
        y += h + 6
    if built.caption:
        w, h = _size(built.caption, fonts.family, fonts.caption)
        cx = width - theme.plot_margin_px - w / 2.0
        cy = height - theme.plot_margin_px - h / 2.0
        out.append(Text(cx, cy, built.caption, parse_color(theme.caption_color), fonts.caption, fonts.family))
    return out


# ----------------------------
# Geoms
# ----------------------------


def _draw_layer(
    pl: PanelLayer,
    box: _PanelBox,
    h_scale: PositionScale,
    v_scale: PositionScale,
    flip: bool,
    fonts: _Fonts,
) -> list[Primitive]:
    t = pl.data
    clip = box.clip

    def pos(x: Any, y: Any) -> tuple[np.ndarray, np.ndarray]:
        if flip:
            return _to_px(box, h_scale, v_scale, y, x)
        return _to_px(box, h_scale, v_scale, x, y)

    stroke = [_color(pl.color[i], pl.alpha[i] if pl.geom not in FILLED_GEOMS else 1.0) for i in range(pl.num_rows)]
    fill = [_color(pl.fill[i], pl.alpha[i]) for i in range(pl.num_rows)]
    linewidth = max(1, int(round(float(pl.params.get("linewidth", 1)))))
    out: list[Primitive] = []
    geom = pl.geom

    if geom == "point":
        px, py = pos(t.values("x"), t.values("y"))
        for i in range(pl.num_rows):
            if stroke[i] is not None:
                out.append(Marker(float(px[i]), float(py[i]), _radius(pl.size[i]), stroke[i], shape=pl.shape[i], clip=clip))
    elif geom == "text":
        px, py = pos(t.values("x"), t.values("y"))
        font_px = pl.params.get("font_px")
        background = pl.params.get("label_background")
        bg = parse_color(background) if background is not None else None
        for i in range(pl.num_rows):
            if stroke[i] is None or not pl.label[i]:
                continue
            size_px = float(font_px) if font_px is not None else float(pl.size[i]) * 3.2
            out.append(Text(float(px[i]), float(py[i]), pl.label[i], stroke[i], size_px, fonts.family, background=bg, clip=clip))
    elif geom in {"line", "path", "smooth"}:
        px, py = pos(t.values("x"), t.values("y"))
        for idx in _groups(pl):
            out.extend(_path(px[idx], py[idx], [stroke[i] for i in idx], linewidth, clip))
    elif geom == "segment":
        px, py = pos(t.values("x"), t.values("y"))
        ex, ey = pos(t.values("xend"), t.values("yend"))
        for i in range(pl.num_rows):
            if stroke[i] is not None:
                out.append(Line(float(px[i]), float(py[i]), float(ex[i]), float(ey[i]), stroke[i], width=linewidth, clip=clip))
    elif geom in {"bar", "col", "histogram"}:
        ax, ay = pos(t.values("xmin"), t.values("ymin"))
        bx, by = pos(t.values("xmax"), t.values("ymax"))
        for i in range(pl.num_rows):
            if fill[i] is None and stroke[i] is None:
                continue
            out.append(_rect(ax[i], ay[i], bx[i], by[i], fill[i], stroke[i], clip))
    elif geom in {"area", "density"}:
        for idx in _groups(pl):
            xs = t.values("x")[idx]
            tx, ty = pos(xs, t.values("ymax")[idx])
            bx, by = pos(xs, t.values("ymin")[idx])
            first = idx[0]
            if fill[first] is not None:
                out.append(Polygon(_tup(np.concatenate([tx, bx[::-1]])), _tup(np.concatenate([ty, by[::-1]])), fill=fill[first], clip=clip))
            if stroke[first] is not None:
                out.append(Polyline(_tup(tx), _tup(ty), stroke[first], width=linewidth, clip=clip))
    elif geom == "polygon":
        px, py = pos(t.values("x"), t.values("y"))
        for idx in _groups(pl):
            first = idx[0]
            if fill[first] is None and stroke[first] is None:
                continue
            out.append(Polygon(_tup(px[idx]), _tup(py[idx]), fill=fill[first], stroke=stroke[first], clip=clip))
    elif geom == "boxplot":
        out.extend(_boxplots(pl, pos, stroke, fill, clip))
    elif geom == "violin":
        for idx in _groups(pl):
            x = t.values("x")[idx]
            half = (t.values("xmax")[idx] - t.values("xmin")[idx]) / 2.0 * t.values("violinwidth")[idx]
            y = t.values("y")[idx]
            rx, ry = pos(x + half, y)
            lx, ly = pos(x - half, y)
            first = idx[0]
            out.append(
                Polygon(
                    _tup(np.concatenate([rx, lx[::-1]])),
                    _tup(np.concatenate([ry, ly[::-1]])),
                    fill=fill[first],
                    stroke=stroke[first],
                    clip=clip,
                )
            )
    elif geom in {"hline", "vline"}:
        channel = "y" if geom == "hline" else "x"
        horizontal = (geom == "hline") != flip
        for i, value in enumerate(t.values(channel).tolist()):
            if stroke[i] is None:
                continue
            if horizontal:
                py = float(box.y0 + box.h - v_scale.rescale(np.asarray([value]))[0] * box.h)
                out.append(Line(box.x0, py, box.x0 + box.w, py, stroke[i], width=linewidth, clip=clip))
            else:
                px = float(box.x0 + h_scale.rescale(np.asarray([value]))[0] * box.w)
                out.append(Line(px, box.y0, px, box.y0 + box.h, stroke[i], width=linewidth, clip=clip))
    else:
        raise ValueError(f"no renderer for geom: {geom}")
    return out


def _boxplots(pl: PanelLayer, pos: Any, stroke: list[RGBA | None], fill: list[RGBA | None], clip: Clip) -> list[Primitive]:
    t = pl.data
    out: list[Primitive] = []
    outlier_size = float(pl.params.get("outlier_size", 1.5))
    for i in range(pl.num_rows):
        x = float(t.values("x")[i])
        xmin = float(t.values("xmin")[i])
        xmax = float(t.values("xmax")[i])
        line = stroke[i] or parse_color(DEFAULT_KEY_COLOR)
        ax, ay = pos(xmin, t.values("lower")[i])
        bx, by = pos(xmax, t.values("upper")[i])
        wx0, wy0 = pos(x, t.values("ymin")[i])
        wx1, wy1 = pos(x, t.values("lower")[i])
        out.append(Line(float(wx0), float(wy0), float(wx1), float(wy1), line, clip=clip))
        wx0, wy0 = pos(x, t.values("upper")[i])
        wx1, wy1 = pos(x, t.values("ymax")[i])
        out.append(Line(float(wx0), float(wy0), float(wx1), float(wy1), line, clip=clip))
        out.append(_rect(ax, ay, bx, by, fill[i], line, clip))
        mx0, my0 = pos(xmin, t.values("middle")[i])
        mx1, my1 = pos(xmax, t.values("middle")[i])
        out.append(Line(float(mx0), float(my0), float(mx1), float(my1), line, width=2, clip=clip))
        outliers = t.values("outliers")[i]
        if outliers:
            ox, oy = pos(np.full(len(outliers), x), np.asarray(outliers, dtype=np.float64))
            for px, py in zip(np.atleast_1d(ox).tolist(), np.atleast_1d(oy).tolist()):
                out.append(Marker(px, py, _radius(outlier_size), line, clip=clip))
    return out


def _path(px: np.ndarray, py: np.ndarray, colors: list[RGBA | None], width: int, clip: Clip) -> list[Primitive]:
    if px.size < 2:
        return []
    if all(c == colors[0] for c in colors):
        if colors[0] is None:
            return []
        return [Polyline(_tup(px), _tup(py), colors[0], width=width, clip=clip)]
    # Colour varies along the path: each segment takes its start colour.
    out: list[Primitive] = []
    for i in range(px.size - 1):
        if colors[i] is not None:
            out.append(Line(float(px[i]), float(py[i]), float(px[i + 1]), float(py[i + 1]), colors[i], width=width, clip=clip))
    return out


def _rect(ax: Any, ay: Any, bx: Any, by: Any, fill: RGBA | None, stroke: RGBA | None, clip: Clip) -> Rect:
    ax, ay, bx, by = float(ax), float(ay), float(bx), float(by)
    return Rect(min(ax, bx), min(ay, by), max(ax, bx), max(ay, by), fill=fill, stroke=stroke, clip=clip)


def _groups(pl: PanelLayer) -> list[np.ndarray]:
    n = pl.num_rows
    if n == 0:
        return []
    if "group" not in pl.data:
        return [np.arange(n)]
    groups: dict[Any, list[int]] = {}
    for i, g in enumerate(pl.data.values("group").tolist()):
        groups.setdefault(g, []).append(i)
    return [np.asarray(v, dtype=np.intp) for v in groups.values()]


def _color(row: np.ndarray, alpha: float) -> RGBA | None:
    if int(row[3]) == 0:
        return None
    color = with_alpha((int(row[0]), int(row[1]), int(row[2]), int(row[3])), float(alpha))
    return color if color[3] > 0 else None


def _radius(size: float) -> float:
    return max(1.0, float(size) * 1.2)


def _tup(values: np.ndarray) -> tuple[float, ...]:
    return tuple(float(v) for v in np.asarray(values, dtype=np.float64).tolist())


# ----------------------------
# Legends
# ----------------------------


def _key_box(fonts: _Fonts) -> int:
    return int(max(14, round(fonts.legend * 1.5)))


def _legend_size(legend: Legend, fonts: _Fonts, position: str) -> tuple[int, int]:
    key = _key_box(fonts)
    title_w, title_h = _size(legend.title, fonts.family, fonts.legend)
    if legend.is_colorbar:
        label_w = max((_size(label, fonts.family, fonts.legend)[0] for _, label in legend.ticks), default=0)
        if position == "bottom":
            return (max(title_w, key * 6), title_h + 4 + key + 4 + _size("0", fonts.family, fonts.legend)[1])
        return (max(title_w, key + 4 + label_w), title_h + 4 + key * 5)
    label_w = [_size(k.label, fonts.family, fonts.legend)[0] for k in legend.keys]
    if position == "bottom":
        return (max(title_w, sum(key + 4 + w + 8 for w in label_w)), title_h + 4 + key)
    return (max(title_w, key + 4 + max(label_w, default=0)), title_h + 4 + key * len(legend.keys))


def _legends(
    legends: Sequence[Legend],
    sizes: Sequence[tuple[int, int]],
    theme: Theme,
    fonts: _Fonts,
    *,
    grid: tuple[float, float, float, float],
    width: int,
    bottom: float,
) -> list[Primitive]:
    if not legends or theme.legend_position == "none":
        return []
    out: list[Primitive] = []
    gap = 10
    gx0, gy0, gx1, gy1 = grid
    if theme.legend_position == "right":
        x = width - theme.plot_margin_px - max(w for w, _ in sizes)
        total_h = sum(h for _, h in sizes) + gap * (len(sizes) - 1)
        y = max(float(theme.plot_margin_px), (gy0 + gy1) / 2.0 - total_h / 2.0)
        for legend, (w, h) in zip(legends, sizes):
            out.extend(_legend(legend, x, y, w, h, theme, fonts, horizontal=False))
            y += h + gap
    else:
        total_w = sum(w for w, _ in sizes) + gap * (len(sizes) - 1)
        x = max(float(theme.plot_margin_px), (gx0 + gx1) / 2.0 - total_w / 2.0)
        y = bottom - max(h for _, h in sizes)
        for legend, (w, h) in zip(legends, sizes):
            out.extend(_legend(legend, x, y, w, h, theme, fonts, horizontal=True))
            x += w + gap
    return out


def _legend(
    legend: Legend,
    x: float,
    y: float,
    w: int,
    h: int,
    theme: Theme,
    fonts: _Fonts,
    *,
    horizontal: bool,
) -> list[Primitive]:
    out: list[Primitive] = []
    key = _key_box(fonts)
    text_color = parse_color(theme.legend_text)
    if theme.legend_background is not None:
        out.append(Rect(x - 4, y - 4, x + w + 4, y + h + 4, fill=parse_color(theme.legend_background)))
    title_w, title_h = _size(legend.title, fonts.family, fonts.legend)
    out.append(Text(x + title_w / 2.0, y + title_h / 2.0, legend.title, text_color, fonts.legend, fonts.family))
    top = y + title_h + 4

    if legend.is_colorbar:
        steps = len(legend.colorbar)
        if horizontal:
            bar_w = max(key * 6, 1)
            for i, color in enumerate(legend.colorbar):
                out.append(Rect(x + bar_w * i / steps, top, x + bar_w * (i + 1) / steps, top + key, fill=color))
            for t, label in legend.ticks:
                lw, lh = _size(label, fonts.family, fonts.legend)
                out.append(Text(x + t * bar_w, top + key + 4 + lh / 2.0, label, text_color, fonts.legend, fonts.family))
        else:
            bar_h = key * 5
            for i, color in enumerate(legend.colorbar):
                # Low values at the bottom.
                y1 = top + bar_h - bar_h * i / steps
                y0 = top + bar_h - bar_h * (i + 1) / steps
                out.append(Rect(x, y0, x + key, y1, fill=color))
            for t, label in legend.ticks:
                lw, _ = _size(label, fonts.family, fonts.legend)
                out.append(Text(x + key + 4 + lw / 2.0, top + bar_h - t * bar_h, label, text_color, fonts.legend, fonts.family))
        return out

    kx = x
    ky = top
    for entry in legend.keys:
        out.extend(_legend_key(entry, legend.glyphs, kx, ky, key, theme))
        lw, _ = _size(entry.label, fonts.family, fonts.legend)
        out.append(Text(kx + key + 4 + lw / 2.0, ky + key / 2.0, entry.label, text_color, fonts.legend, fonts.family))
        if horizontal:
            kx += key + 4 + lw + 8
        else:
            ky += key
    return out


def _legend_key(entry: LegendKey, glyphs: Sequence[str], x: float, y: float, key: int, theme: Theme) -> list[Primitive]:
    out: list[Primitive] = []
    alpha = entry.alpha if entry.alpha is not None else 1.0
    color = _key_color(entry.color, DEFAULT_KEY_COLOR)
    fill = _key_color(entry.fill, entry.color if entry.color is not None else DEFAULT_KEY_FILL)
    if theme.panel_background is not None:
        out.append(Rect(x + 1, y + 1, x + key - 1, y + key - 1, fill=parse_color(theme.panel_background)))
    cx = x + key / 2.0
    cy = y + key / 2.0
    for glyph in glyphs:
        if glyph == "rect":
            out.append(
                Rect(
                    x + 2,
                    y + 2,
                    x + key - 2,
                    y + key - 2,
                    fill=with_alpha(fill, alpha),
                    stroke=color if entry.color is not None else None,
                )
            )
        elif glyph == "path":
            out.append(Line(x + 2, cy, x + key - 2, cy, with_alpha(color, alpha), width=2))
        elif glyph == "text":
            out.append(Text(cx, cy, "a", with_alpha(color, alpha), key * 0.7, theme.font_family))
        else:
            size = entry.size if entry.size is not None else 2.0
            radius = min(_radius(size), key / 2.0 - 1)
            out.append(Marker(cx, cy, radius, with_alpha(color, alpha), shape=entry.shape or "circle"))
    return out


def _key_color(value: Any, default: Any) -> RGBA:
    if value is None:
        return parse_color(default)
    return parse_color(value)
