"""TOML plot files.

A plot file describes one Scene::

    [plot]
    data = "penguins.csv"     # relative to the plot file
    width = 800
    height = 600
    title = "Flipper length vs body mass"

    [mapping]
    x = "flipper_length_mm"
    y = "body_mass_g"
    color = "species"

    [[layers]]
    geom = "point"
    alpha = 0.7

    [[scales]]
    channel = "color"
    palette = "hue"

    [theme]
    preset = "minimal"

Optional tables: ``[schema]`` (column -> kind), ``[coord]`` (``type`` of
``cartesian``, ``flip`` or ``map``), ``[facet]`` (``wrap`` + ``ncol``, or
``rows``/``cols``), ``[labels]`` and ``[network]`` (``edges``, ``source``,
``target`` and optional ``nodes``; layers then use ``data = "@nodes"`` or
``data = "@edges"``). A mapping value written as ``{ literal = ... }`` maps a
constant instead of a column.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import tomllib
from typing import Any, Callable, Mapping

from layerplot.adapters import read_csv
from layerplot.coords import coord_cartesian, coord_flip, coord_map
from layerplot.errors import PlotDataError, PlotError
from layerplot.facet import facet_grid, facet_wrap
from layerplot.layers import (
    geom_area,
    geom_bar,
    geom_boxplot,
    geom_col,
    geom_density,
    geom_histogram,
    geom_hline,
    geom_jitter,
    geom_line,
    geom_lollipop,
    geom_path,
    geom_point,
    geom_polygon,
    geom_segment,
    geom_smooth,
    geom_text,
    geom_violin,
    geom_vline,
)
from layerplot.mapping import Aes, Literal
from layerplot.network import network_tables
from layerplot.scales import scale
from layerplot.scene import Scene, labs, scene
from layerplot.table import ColumnKind, Table
from layerplot.theme import theme

LOGGER = logging.getLogger(__name__)

GEOM_BUILDERS: dict[str, Callable[..., Any]] = {
    "point": geom_point,
    "jitter": geom_jitter,
    "line": geom_line,
    "path": geom_path,
    "bar": geom_bar,
    "col": geom_col,
    "histogram": geom_histogram,
    "density": geom_density,
    "area": geom_area,
    "boxplot": geom_boxplot,
    "violin": geom_violin,
    "segment": geom_segment,
    "text": geom_text,
    "polygon": geom_polygon,
    "smooth": geom_smooth,
    "hline": geom_hline,
    "vline": geom_vline,
    "lollipop": geom_lollipop,
}


@dataclass(frozen=True)
class PlotConfig:
    scene: Scene
    width: int | None = None
    height: int | None = None
    output: str | None = None


def load_plot_config(path: str | Path) -> PlotConfig:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"plot file not found: {config_path}")
    with config_path.open("rb") as f:
        try:
            raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise PlotDataError(f"invalid TOML in {config_path}: {exc}") from exc
    return plot_config_from_mapping(raw, base_dir=config_path.parent)


def plot_config_from_mapping(raw: Mapping[str, Any], *, base_dir: str | Path = ".") -> PlotConfig:
    base = Path(base_dir)
    plot = _table(raw, "plot")
    schema = _schema(_table(raw, "schema"))

    data = None
    if plot.get("data") is not None:
        data = read_csv(base / _str(plot["data"], "plot.data"), schema=schema)
    named = _network_data(_table(raw, "network"), base)

    out = scene(data, _mapping(_table(raw, "mapping"), "mapping"))
    layers = raw.get("layers", [])
    if not isinstance(layers, list) or not layers:
        raise PlotDataError("plot file needs at least one [[layers]] entry")
    for i, entry in enumerate(layers):
        out = out + _layer(entry, i, base, named, schema)

    scales = raw.get("scales", [])
    if not isinstance(scales, list):
        raise PlotDataError("scales must be an array of tables")
    for i, entry in enumerate(scales):
        out = out + _scale(entry, i)

    if "coord" in raw:
        out = out + _coord(_table(raw, "coord"))
    if "facet" in raw:
        out = out + _facet(_table(raw, "facet"))
    if "theme" in raw:
        overrides = dict(_table(raw, "theme"))
        preset = _str(overrides.pop("preset", "default"), "theme.preset")
        out = out + theme(preset, **overrides)

    labels = {k: plot[k] for k in ("title", "subtitle", "caption") if plot.get(k) is not None}
    labels.update(_table(raw, "labels"))
    if labels:
        try:
            out = out + labs(**{k: str(v) for k, v in labels.items()})
        except PlotError as exc:
            raise PlotDataError(f"labels: {exc}") from exc

    LOGGER.debug("loaded plot config: %d layers, %d scales", len(out.layers), len(out.scales))
    return PlotConfig(
        scene=out,
        width=_optional_int(plot.get("width"), "plot.width"),
        height=_optional_int(plot.get("height"), "plot.height"),
        output=_str(plot["output"], "plot.output") if plot.get("output") is not None else None,
    )


def _layer(entry: Any, index: int, base: Path, named: Mapping[str, Table], schema: Mapping[str, str]) -> Any:
    where = f"layers[{index}]"
    if not isinstance(entry, Mapping):
        raise PlotDataError(f"{where} must be a table")
    options = dict(entry)
    geom = _str(options.pop("geom", None), f"{where}.geom")
    builder = GEOM_BUILDERS.get(geom)
    if builder is None:
        raise PlotDataError(f"{where}: unknown geom {geom!r}")
    mapping = _mapping(options.pop("mapping", {}), f"{where}.mapping") if "mapping" in options else None
    if "data" in options:
        ref = _str(options.pop("data"), f"{where}.data")
        if ref.startswith("@"):
            if ref[1:] not in named:
                raise PlotDataError(f"{where}: {ref} needs a [network] table")
            options["data"] = named[ref[1:]]
        else:
            options["data"] = read_csv(base / ref, schema=schema)
    try:
        if geom in {"hline", "vline"}:
            return builder(**options)
        return builder(mapping, **options)
    except TypeError as exc:
        raise PlotDataError(f"{where}: {exc}") from exc
    except PlotError:
        raise
    except ValueError as exc:
        raise PlotDataError(f"{where}: {exc}") from exc


def _scale(entry: Any, index: int) -> Any:
    where = f"scales[{index}]"
    if not isinstance(entry, Mapping):
        raise PlotDataError(f"{where} must be a table")
    options = dict(entry)
    channel = _str(options.pop("channel", None), f"{where}.channel")
    try:
        return scale(channel, **options)
    except PlotError:
        raise
    except (TypeError, ValueError) as exc:
        raise PlotDataError(f"{where}: {exc}") from exc


def _coord(raw: Mapping[str, Any]) -> Any:
    options = dict(raw)
    kind = _str(options.pop("type", "cartesian"), "coord.type")
    builders: dict[str, Callable[..., Any]] = {"cartesian": coord_cartesian, "flip": coord_flip, "map": coord_map}
    if kind not in builders:
        raise PlotDataError(f"coord.type must be one of {sorted(builders)}")
    try:
        return builders[kind](**options)
    except (TypeError, ValueError) as exc:
        raise PlotDataError(f"coord: {exc}") from exc


def _facet(raw: Mapping[str, Any]) -> Any:
    options = dict(raw)
    try:
        if "wrap" in options:
            return facet_wrap(options.pop("wrap"), **options)
        return facet_grid(**options)
    except (TypeError, ValueError) as exc:
        raise PlotDataError(f"facet: {exc}") from exc


def _network_data(raw: Mapping[str, Any], base: Path) -> dict[str, Table]:
    if not raw:
        return {}
    edges = read_csv(base / _str(raw.get("edges"), "network.edges"))
    nodes = read_csv(base / _str(raw["nodes"], "network.nodes")) if raw.get("nodes") is not None else None
    node_table, edge_table = network_tables(
        edges,
        _str(raw.get("source", "source"), "network.source"),
        _str(raw.get("target", "target"), "network.target"),
        nodes,
    )
    return {"nodes": node_table, "edges": edge_table}


def _mapping(raw: Any, where: str) -> Aes:
    if not isinstance(raw, Mapping):
        raise PlotDataError(f"{where} must be a table")
    entries: dict[str, Any] = {}
    for channel, target in raw.items():
        if isinstance(target, Mapping):
            if set(target) != {"literal"}:
                raise PlotDataError(f"{where}.{channel}: inline tables must be {{ literal = ... }}")
            entries[channel] = Literal(target["literal"])
        else:
            entries[channel] = target
    return Aes(entries)


def _schema(raw: Mapping[str, Any]) -> dict[str, str]:
    kinds = {kind.value for kind in ColumnKind}
    out: dict[str, str] = {}
    for name, kind in raw.items():
        if kind not in kinds:
            raise PlotDataError(f"schema.{name} must be one of {sorted(kinds)}")
        out[str(name)] = str(kind)
    return out


def _table(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key, {})
    if not isinstance(value, Mapping):
        raise PlotDataError(f"[{key}] must be a table")
    return value


def _str(value: object, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise PlotDataError(f"{field_name} must be a non-empty string")
    return value


def _optional_int(value: object, field_name: str) -> int | None:
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise PlotDataError(f"{field_name} must be a positive integer")
    return value
