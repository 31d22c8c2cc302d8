"""Resolution pipeline: Scene -> BuiltPlot.

Every structural error (unknown channel, missing column, wrong column type,
undefined transform, unmapped category) is raised here, before the renderer
allocates anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Mapping, Sequence

import numpy as np

from layerplot.coords import Cartesian, CoordSystem, MapProjection, clip_polygon, clip_segment, inside_window, project
from layerplot.errors import PlotDataError, TypeMismatch
from layerplot.facet import PanelLayout, layout_panels, panel_rows
from layerplot.layers import Layer
from layerplot.legend import Legend, build_legends
from layerplot.mapping import Aes, Literal, check_columns, resolve_mapping
from layerplot.palettes import RGBA, parse_color
from layerplot.positions import adjust_position
from layerplot.scales import (
    ContinuousScale,
    DiscreteScale,
    PositionScale,
    ScaleSpec,
    apply_transform,
    infer_resolution,
    train_continuous,
    train_discrete,
    train_position,
)
from layerplot.scene import Scene
from layerplot.stats import compute_stat
from layerplot.table import ColumnKind, Table, concat, discrete_levels, make_column
from layerplot.theme import Theme

LOGGER = logging.getLogger(__name__)

X_CHANNELS = ("x", "xend", "xmin", "xmax")
Y_CHANNELS = ("y", "yend", "ymin", "ymax")
AESTHETIC_CHANNELS = ("color", "fill", "size", "alpha", "shape")
STAT_Y_TITLES = {"bin": "count", "count": "count", "density": "density", "proportion": "prop"}

NA_COLOR = "#7F7F7F"


@dataclass(frozen=True)
class GeomDefaults:
    color: Any = "#333333"
    fill: Any = None
    size: float = 2.0
    alpha: float = 1.0
    shape: str = "circle"


GEOM_DEFAULTS: dict[str, GeomDefaults] = {
    "point": GeomDefaults(),
    "line": GeomDefaults(),
    "path": GeomDefaults(),
    "segment": GeomDefaults(),
    "text": GeomDefaults(size=3.5),
    "smooth": GeomDefaults(color="#3366FF"),
    "hline": GeomDefaults(color="#4D4D4D"),
    "vline": GeomDefaults(color="#4D4D4D"),
    "bar": GeomDefaults(color=None, fill="#595959"),
    "col": GeomDefaults(color=None, fill="#595959"),
    "histogram": GeomDefaults(color=None, fill="#595959"),
    "area": GeomDefaults(color=None, fill="#595959"),
    "density": GeomDefaults(fill=None),
    "boxplot": GeomDefaults(fill="#FFFFFF"),
    "violin": GeomDefaults(fill="#FFFFFF"),
    "polygon": GeomDefaults(color=None, fill="#333333"),
}


@dataclass(frozen=True)
class PanelLayer:
    """One layer's geometry in one panel, with per-row visual values resolved."""

    layer: int
    geom: str
    panel: int
    data: Table
    color: np.ndarray
    fill: np.ndarray
    size: np.ndarray
    alpha: np.ndarray
    shape: tuple[str, ...]
    label: tuple[str, ...]
    params: Mapping[str, Any] = field(default_factory=dict)

    @property
    def num_rows(self) -> int:
        return self.data.num_rows


@dataclass(frozen=True)
class BuiltPlot:
    layout: PanelLayout
    x_scale: PositionScale
    y_scale: PositionScale
    scales: Mapping[str, DiscreteScale | ContinuousScale]
    layers: tuple[PanelLayer, ...]
    legends: tuple[Legend, ...]
    coord: CoordSystem
    theme: Theme
    title: str | None = None
    subtitle: str | None = None
    caption: str | None = None
    x_title: str | None = None
    y_title: str | None = None

    def panel_layers(self, panel: int) -> list[PanelLayer]:
        return [pl for pl in self.layers if pl.panel == panel]


@dataclass
class _LayerState:
    index: int
    layer: Layer
    mapping: Aes
    source: Table
    aes: Table
    sources: dict[str, str]
    literals: dict[str, Any]
    panels: dict[int, Table] = field(default_factory=dict)

    @property
    def geom(self) -> str:
        return self.layer.geom


def build(scene: Scene) -> BuiltPlot:
    """Resolve mappings, stats, positions and scales for every layer and panel."""
    if not scene.layers:
        raise PlotDataError("plot has no layers")
    specs = scene.resolved_scales()
    states = [_prepare_layer(i, layer, scene, specs) for i, layer in enumerate(scene.layers)]
    layout = layout_panels(scene.facet, [s.source for s in states])
    LOGGER.debug("building %d layers over %d panels", len(states), len(layout.panels))

    x_levels = _position_levels("x", states, specs.get("x"))
    y_levels = _position_levels("y", states, specs.get("y"))

    for state in states:
        for panel in layout.panels:
            rows = panel_rows(layout, panel, state.source)
            sub = state.aes.take(rows)
            if sub.num_rows == 0:
                state.panels[panel.index] = Table()
                continue
            table = compute_stat(state.layer.stat, sub, state.layer.stat_params, sources=state.sources)
            if table.num_rows == 0:
                state.panels[panel.index] = Table()
                continue
            table = _transform_stat_positions(state, table, specs)
            table = _map_discrete_positions(table, x_levels, y_levels)
            table = _setup_geom(state.layer, table)
            table = adjust_position(state.layer.position, table, state.layer.position_params)
            table = _apply_coord(scene.coord, state.geom, table)
            state.panels[panel.index] = _drop_missing(state.geom, table)

    x_scale = _train_axis("x", states, specs.get("x"), x_levels, scene.coord)
    y_scale = _train_axis("y", states, specs.get("y"), y_levels, scene.coord)
    LOGGER.debug("trained x limits=%s y limits=%s", x_scale.limits, y_scale.limits)

    trained = _train_aesthetics(states, specs)
    panel_layers = tuple(
        _resolve_panel_layer(state, panel.index, state.panels[panel.index], trained)
        for state in states
        for panel in layout.panels
        if state.panels[panel.index].num_rows
    )

    labels = scene.labels
    titles = {channel: _channel_title(channel, states, labels.for_channel(channel), specs.get(channel)) for channel in trained}
    legends = build_legends(
        trained,
        titles=titles,
        columns={channel: _mapped_column(channel, states) for channel in trained},
        glyphs=_legend_glyphs(states),
        theme=scene.theme,
    )
    return BuiltPlot(
        layout=layout,
        x_scale=x_scale,
        y_scale=y_scale,
        scales=trained,
        layers=panel_layers,
        legends=tuple(legends),
        coord=scene.coord,
        theme=scene.theme,
        title=labels.title,
        subtitle=labels.subtitle,
        caption=labels.caption,
        x_title=_channel_title("x", states, labels.for_channel("x"), specs.get("x")),
        y_title=_channel_title("y", states, labels.for_channel("y"), specs.get("y")),
    )


# ----------------------------
# Mapping evaluation
# ----------------------------


def _prepare_layer(index: int, layer: Layer, scene: Scene, specs: Mapping[str, ScaleSpec]) -> _LayerState:
    source = layer.data if layer.data is not None else scene.data
    if source is None:
        raise PlotDataError(f"layer {index} ({layer.geom}) has no data")
    mapping = resolve_mapping(scene.mapping, layer.mapping, inherit=layer.inherit_mapping)
    check_columns(mapping, source)
    missing = sorted(layer.required_channels() - mapping.channels())
    if missing:
        raise PlotDataError(f"geom {layer.geom} requires channels: {', '.join(missing)}")

    columns = []
    literals: dict[str, Any] = {}
    sources: dict[str, str] = {}
    for channel, target in mapping.items():
        if isinstance(target, Literal):
            if channel in AESTHETIC_CHANNELS:
                literals[channel] = target.value
            else:
                columns.append(make_column(channel, [target.value] * source.num_rows))
            continue
        sources[channel] = target
        columns.append(source.column(target).renamed(channel))
    aes_table = Table(columns)

    for channel in list(aes_table.names):
        aes_table = _transform_column(aes_table, channel, sources.get(channel), specs)
    aes_table = aes_table.with_column("group", _group_codes(aes_table, source.num_rows), kind=ColumnKind.NUMERIC)
    return _LayerState(
        index=index,
        layer=layer,
        mapping=mapping,
        source=source,
        aes=aes_table,
        sources=sources,
        literals=literals,
    )


def _scale_for(channel: str, specs: Mapping[str, ScaleSpec]) -> ScaleSpec | None:
    if channel in X_CHANNELS:
        return specs.get("x")
    if channel in Y_CHANNELS:
        return specs.get("y")
    return specs.get(channel)


def _transform_column(table: Table, channel: str, column: str | None, specs: Mapping[str, ScaleSpec]) -> Table:
    spec = _scale_for(channel, specs)
    if spec is None:
        return table
    kind = table.kind(channel)
    if kind.is_discrete and (spec.kind == "continuous" or spec.transform != "identity"):
        raise TypeMismatch(channel, column, "numeric", kind.value)
    if spec.transform == "identity" or not kind.is_continuous:
        return table
    values = apply_transform(channel, table.values(channel), spec.transform)
    return table.with_column(channel, values, kind=ColumnKind.NUMERIC)


def _group_codes(table: Table, n: int) -> np.ndarray:
    """Row group ids from the explicit group channel, else from every discrete aesthetic."""
    if "group" in table:
        keys = [table.values("group")]
    else:
        keys = [
            table.values(name)
            for name in ("color", "fill", "shape", "size", "alpha")
            if name in table and table.kind(name).is_discrete
        ]
    codes = np.zeros(n, dtype=np.float64)
    if not keys:
        return codes
    seen: dict[tuple[Any, ...], int] = {}
    for i, key in enumerate(zip(*(k.tolist() for k in keys))):
        codes[i] = seen.setdefault(key, len(seen))
    return codes


def _mapped_column(channel: str, states: Sequence[_LayerState]) -> str | None:
    for state in states:
        if channel in state.sources:
            return state.sources[channel]
    return None


def _channel_title(channel: str, states: Sequence[_LayerState], label: str | None, spec: ScaleSpec | None) -> str | None:
    if label is not None:
        return label
    if spec is not None and spec.name is not None:
        return spec.name
    column = _mapped_column(channel, states)
    if column is not None:
        return column
    if channel == "y":
        for state in states:
            if state.layer.stat in STAT_Y_TITLES:
                return STAT_Y_TITLES[state.layer.stat]
    return None


# ----------------------------
# Positions
# ----------------------------


def _position_levels(axis: str, states: Sequence[_LayerState], spec: ScaleSpec | None) -> list[Any] | None:
    """Category order for a discrete axis, or None when the axis is continuous."""
    channels = X_CHANNELS if axis == "x" else Y_CHANNELS
    forced = spec is not None and spec.kind == "discrete"
    levels: list[Any] = []
    discrete = forced
    for state in states:
        for channel in channels:
            if channel not in state.aes:
                continue
            col = state.aes.column(channel)
            if col.kind.is_discrete or forced:
                discrete = True
                for value in discrete_levels(col):
                    if value not in levels:
                        levels.append(value)
    if not discrete:
        return None
    if spec is not None and spec.limits is not None:
        return list(spec.limits)
    return levels


def _transform_stat_positions(state: _LayerState, table: Table, specs: Mapping[str, ScaleSpec]) -> Table:
    # Stat-computed positions (counts, densities) are transformed after the stat.
    if state.layer.stat == "identity":
        return table
    for source, channels in (("x", X_CHANNELS), ("y", Y_CHANNELS)):
        if source in state.aes:
            continue
        for channel in channels:
            if channel in table:
                table = _transform_column(table, channel, None, specs)
    return table


def _map_discrete_positions(table: Table, x_levels: list[Any] | None, y_levels: list[Any] | None) -> Table:
    for channels, levels in ((X_CHANNELS, x_levels), (Y_CHANNELS, y_levels)):
        if levels is None:
            continue
        index = {value: float(i + 1) for i, value in enumerate(levels)}
        for channel in channels:
            if channel not in table:
                continue
            col = table.column(channel)
            if col.kind.is_continuous and not any(v in index for v in col.values.tolist()):
                continue
            mapped = np.asarray([index.get(v, np.nan) for v in col.values.tolist()], dtype=np.float64)
            table = table.with_column(channel, mapped, kind=ColumnKind.NUMERIC)
    return table


def _resolution(values: np.ndarray) -> float:
    return infer_resolution(np.asarray(values, dtype=np.float64)) or 1.0


def _setup_geom(layer: Layer, table: Table) -> Table:
    geom = layer.geom
    n = table.num_rows
    if geom in {"bar", "col", "histogram"}:
        x = table.values("x")
        if "xmin" not in table or "xmax" not in table:
            width = float(layer.params.get("width", 0.9)) * _resolution(x)
            table = table.with_column("xmin", x - width / 2.0, kind=ColumnKind.NUMERIC)
            table = table.with_column("xmax", x + width / 2.0, kind=ColumnKind.NUMERIC)
        table = table.with_column("ymin", np.zeros(n), kind=ColumnKind.NUMERIC)
        return table.with_column("ymax", table.values("y"), kind=ColumnKind.NUMERIC)
    if geom in {"area", "density"}:
        table = _sorted_by_x(table)
        table = table.with_column("ymin", np.zeros(n), kind=ColumnKind.NUMERIC)
        return table.with_column("ymax", table.values("y"), kind=ColumnKind.NUMERIC)
    if geom in {"line", "smooth"}:
        return _sorted_by_x(table)
    if geom in {"boxplot", "violin"}:
        if "x" not in table:
            table = table.with_column("x", np.zeros(n), kind=ColumnKind.NUMERIC)
        x = table.values("x")
        width = table.values("width") * _resolution(x) if "width" in table else np.full(n, 0.9)
        table = table.with_column("xmin", x - width / 2.0, kind=ColumnKind.NUMERIC)
        return table.with_column("xmax", x + width / 2.0, kind=ColumnKind.NUMERIC)
    return table


def _sorted_by_x(table: Table) -> Table:
    order = np.lexsort((table.values("x"), table.values("group")))
    return table.take(order)


def _apply_coord(coord: CoordSystem, geom: str, table: Table) -> Table:
    if not isinstance(coord, MapProjection):
        return table
    zeros = np.zeros(table.num_rows)
    # Both projections are separable: x depends on longitude only, y on latitude only.
    for channel in X_CHANNELS:
        if channel in table:
            px, _ = project(coord.projection, table.values(channel), zeros)
            table = table.with_column(channel, px, kind=ColumnKind.NUMERIC)
    for channel in Y_CHANNELS:
        if channel in table:
            _, py = project(coord.projection, zeros, table.values(channel))
            table = table.with_column(channel, py, kind=ColumnKind.NUMERIC)
    window = coord.window()
    if window is None or geom in {"hline", "vline"}:
        return table
    if geom == "polygon":
        return _clip_polygons(table, window)
    if geom in {"line", "path", "smooth"}:
        return _clip_paths(table, window)
    if geom == "segment":
        return _clip_segments(table, window)
    return table.filter(inside_window(table.values("x"), table.values("y"), window))


def _group_indices(table: Table) -> list[np.ndarray]:
    groups: dict[Any, list[int]] = {}
    for i, g in enumerate(table.values("group").tolist()):
        groups.setdefault(g, []).append(i)
    return [np.asarray(rows, dtype=np.intp) for rows in groups.values()]


def _clip_polygons(table: Table, window: tuple[float, float, float, float]) -> Table:
    parts = []
    x = table.values("x")
    y = table.values("y")
    for idx in _group_indices(table):
        xs, ys = clip_polygon(x[idx], y[idx], window)
        if xs.size < 3:
            continue
        part = table.take(np.full(xs.size, idx[0], dtype=np.intp))
        part = part.with_column("x", xs, kind=ColumnKind.NUMERIC)
        parts.append(part.with_column("y", ys, kind=ColumnKind.NUMERIC))
    return concat(parts) if parts else table.take(np.zeros(0, dtype=np.intp))


def _clip_paths(table: Table, window: tuple[float, float, float, float]) -> Table:
    """Clip each path to the window; a path leaving and re-entering splits into new groups."""
    x = table.values("x")
    y = table.values("y")
    rows: list[int] = []
    xs: list[float] = []
    ys: list[float] = []
    groups: list[float] = []
    next_group = 0
    for idx in _group_indices(table):
        open_run = False
        for a, b in zip(idx[:-1], idx[1:]):
            clipped = clip_segment((x[a], y[a]), (x[b], y[b]), window)
            if clipped is None:
                open_run = False
                continue
            start, end = clipped
            if not open_run or (xs[-1], ys[-1]) != start:
                next_group += 1
                rows.append(int(a))
                xs.append(start[0])
                ys.append(start[1])
                groups.append(float(next_group))
            rows.append(int(b))
            xs.append(end[0])
            ys.append(end[1])
            groups.append(float(next_group))
            open_run = end == (x[b], y[b])
    out = table.take(np.asarray(rows, dtype=np.intp))
    out = out.with_column("x", np.asarray(xs, dtype=np.float64), kind=ColumnKind.NUMERIC)
    out = out.with_column("y", np.asarray(ys, dtype=np.float64), kind=ColumnKind.NUMERIC)
    return out.with_column("group", np.asarray(groups, dtype=np.float64), kind=ColumnKind.NUMERIC)


def _clip_segments(table: Table, window: tuple[float, float, float, float]) -> Table:
    keep: list[int] = []
    coords: list[tuple[float, float, float, float]] = []
    x, y = table.values("x"), table.values("y")
    xend, yend = table.values("xend"), table.values("yend")
    for i in range(table.num_rows):
        clipped = clip_segment((x[i], y[i]), (xend[i], yend[i]), window)
        if clipped is None:
            continue
        keep.append(i)
        coords.append((clipped[0][0], clipped[0][1], clipped[1][0], clipped[1][1]))
    out = table.take(np.asarray(keep, dtype=np.intp))
    arr = np.asarray(coords, dtype=np.float64).reshape(-1, 4)
    for j, channel in enumerate(("x", "y", "xend", "yend")):
        out = out.with_column(channel, arr[:, j], kind=ColumnKind.NUMERIC)
    return out


def _drop_missing(geom: str, table: Table) -> Table:
    if geom not in {"point", "text", "segment"}:
        return table
    mask = np.ones(table.num_rows, dtype=bool)
    for channel in ("x", "y", "xend", "yend"):
        if channel in table:
            mask &= np.isfinite(table.values(channel))
    dropped = int(mask.size - np.count_nonzero(mask))
    if dropped:
        LOGGER.warning("geom_%s: removed %d rows with missing or out-of-range positions", geom, dropped)
        return table.filter(mask)
    return table


def _train_axis(
    axis: str,
    states: Sequence[_LayerState],
    spec: ScaleSpec | None,
    levels: list[Any] | None,
    coord: CoordSystem,
) -> PositionScale:
    channels = X_CHANNELS if axis == "x" else Y_CHANNELS
    skip = "hline" if axis == "x" else "vline"
    chunks: list[np.ndarray] = []
    for state in states:
        if state.geom == skip:
            continue
        for table in state.panels.values():
            for channel in channels:
                if channel in table:
                    chunks.append(np.asarray(table.values(channel), dtype=np.float64))
            if axis == "y" and "outliers" in table:
                flat = [v for tup in table.values("outliers").tolist() for v in tup]
                if flat:
                    chunks.append(np.asarray(flat, dtype=np.float64))

    zoom = None
    expand = True
    if isinstance(coord, Cartesian):
        zoom = coord.xlim if axis == "x" else coord.ylim
    else:
        window = coord.window()
        if window is not None:
            zoom = (window[0], window[2]) if axis == "x" else (window[1], window[3])
            expand = False
    temporal = any(
        channel in state.aes and state.aes.kind(channel) is ColumnKind.TEMPORAL
        for state in states
        for channel in channels
    )
    return train_position(axis, chunks, spec=spec, levels=levels, temporal=temporal, zoom=zoom, expand=expand)


# ----------------------------
# Non-position aesthetics
# ----------------------------


def _train_aesthetics(
    states: Sequence[_LayerState],
    specs: Mapping[str, ScaleSpec],
) -> dict[str, DiscreteScale | ContinuousScale]:
    trained: dict[str, DiscreteScale | ContinuousScale] = {}
    for channel in AESTHETIC_CHANNELS:
        spec = specs.get(channel)
        mapped = [state for state in states if channel in state.aes]
        if not mapped:
            continue
        columns = [state.aes.column(channel) for state in mapped]
        if spec is not None and spec.kind == "identity" and all(c.kind.is_continuous for c in columns):
            continue
        discrete = any(c.kind.is_discrete for c in columns)
        if spec is not None and spec.kind in {"discrete", "manual", "identity"}:
            discrete = True
        if channel == "shape" and not discrete:
            raise TypeMismatch("shape", mapped[0].sources.get("shape"), "categorical", columns[0].kind.value)
        if discrete:
            levels: list[Any] = []
            for col in columns:
                for value in discrete_levels(col):
                    if value not in levels:
                        levels.append(value)
            trained[channel] = train_discrete(channel, levels, spec=spec)
        else:
            chunks = [
                np.asarray(table.values(channel), dtype=np.float64)
                for state in mapped
                for table in state.panels.values()
                if channel in table and table.kind(channel).is_continuous
            ]
            trained[channel] = train_continuous(channel, chunks, spec=spec)
        LOGGER.debug("trained %s scale: %s", channel, type(trained[channel]).__name__)
    return trained


def _resolve_panel_layer(
    state: _LayerState,
    panel: int,
    table: Table,
    trained: Mapping[str, DiscreteScale | ContinuousScale],
) -> PanelLayer:
    defaults = GEOM_DEFAULTS[state.geom]
    n = table.num_rows

    def resolve(channel: str, default: Any) -> Any:
        if channel in state.layer.params:
            return [state.layer.params[channel]] * n
        if channel in state.literals:
            return [state.literals[channel]] * n
        if channel in table and channel in state.aes:
            values = table.values(channel)
            scale = trained.get(channel)
            if isinstance(scale, DiscreteScale):
                mapped = scale.map(values.tolist())
                missing = NA_COLOR if channel in {"color", "fill"} else default
                return [missing if v is None else v for v in mapped]
            if isinstance(scale, ContinuousScale):
                return scale.map(values)
            return values
        return [default] * n

    label = ()
    if "label" in table:
        label = tuple("" if v is None else _label_text(v) for v in table.values("label").tolist())
    return PanelLayer(
        layer=state.index,
        geom=state.geom,
        panel=panel,
        data=table,
        color=_rgba_array(resolve("color", defaults.color), n),
        fill=_rgba_array(resolve("fill", defaults.fill), n),
        size=np.asarray(resolve("size", defaults.size), dtype=np.float64).reshape(n),
        alpha=np.asarray(resolve("alpha", defaults.alpha), dtype=np.float64).reshape(n),
        shape=tuple(str(s) for s in resolve("shape", defaults.shape)),
        label=label,
        params=state.layer.params,
    )


def _rgba_array(values: Any, n: int) -> np.ndarray:
    if isinstance(values, np.ndarray) and values.ndim == 2:
        return values.astype(np.uint8)
    out = np.zeros((n, 4), dtype=np.uint8)
    cache: dict[Any, RGBA] = {}
    for i, value in enumerate(values):
        if value is None:
            continue
        if isinstance(value, tuple) and len(value) == 4:
            out[i] = value
            continue
        if value not in cache:
            cache[value] = parse_color(value)
        out[i] = cache[value]
    return out


def _label_text(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _legend_glyphs(states: Sequence[_LayerState]) -> dict[str, list[str]]:
    glyphs: dict[str, list[str]] = {}
    for state in states:
        if not state.layer.show_legend:
            continue
        for channel in AESTHETIC_CHANNELS:
            if channel in state.aes:
                key = state.layer.spec.legend_key
                bucket = glyphs.setdefault(channel, [])
                if key not in bucket:
                    bucket.append(key)
    return glyphs
