from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Sequence

from layerplot.adapters import to_table
from layerplot.errors import PlotDataError
from layerplot.mapping import Aes
from layerplot.palettes import SHAPES, parse_color
from layerplot.stats import STATS
from layerplot.table import Table


@dataclass(frozen=True)
class GeomSpec:
    name: str
    required: frozenset[str]
    default_stat: str = "identity"
    default_position: str = "identity"
    legend_key: str = "point"


GEOMS: dict[str, GeomSpec] = {
    spec.name: spec
    for spec in (
        GeomSpec("point", frozenset({"x", "y"})),
        GeomSpec("line", frozenset({"x", "y"}), legend_key="path"),
        GeomSpec("path", frozenset({"x", "y"}), legend_key="path"),
        GeomSpec("bar", frozenset({"x"}), default_stat="count", default_position="stack", legend_key="rect"),
        GeomSpec("col", frozenset({"x", "y"}), default_position="stack", legend_key="rect"),
        GeomSpec("histogram", frozenset({"x"}), default_stat="bin", default_position="stack", legend_key="rect"),
        GeomSpec("density", frozenset({"x"}), default_stat="density", legend_key="rect"),
        GeomSpec("area", frozenset({"x", "y"}), default_position="stack", legend_key="rect"),
        GeomSpec("boxplot", frozenset({"y"}), default_stat="boxplot", default_position="dodge", legend_key="rect"),
        GeomSpec("violin", frozenset({"y"}), default_stat="ydensity", default_position="dodge", legend_key="rect"),
        GeomSpec("segment", frozenset({"x", "y", "xend", "yend"}), legend_key="path"),
        GeomSpec("text", frozenset({"x", "y", "label"}), legend_key="text"),
        GeomSpec("polygon", frozenset({"x", "y"}), legend_key="rect"),
        GeomSpec("smooth", frozenset({"x", "y"}), default_stat="smooth", legend_key="path"),
        GeomSpec("hline", frozenset()),
        GeomSpec("vline", frozenset()),
    )
}

# Channels a stat supplies, so they need not be mapped.
STAT_PROVIDES: dict[str, frozenset[str]] = {
    "identity": frozenset(),
    "bin": frozenset({"y"}),
    "density": frozenset({"y"}),
    "count": frozenset({"y"}),
    "proportion": frozenset({"y"}),
    "boxplot": frozenset({"y"}),
    "ydensity": frozenset(),
    "smooth": frozenset(),
}

POSITIONS = frozenset({"identity", "stack", "fill", "dodge", "jitter"})


@dataclass(frozen=True)
class Layer:
    """One drawable unit: geometry, stat, position and per-layer overrides."""

    geom: str
    mapping: Aes | None = None
    data: Table | None = None
    stat: str = "identity"
    stat_params: Mapping[str, Any] = field(default_factory=dict)
    position: str = "identity"
    position_params: Mapping[str, Any] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)
    inherit_mapping: bool = True
    show_legend: bool = True

    def __post_init__(self) -> None:
        if self.geom not in GEOMS:
            raise PlotDataError(f"unknown geom: {self.geom}")
        if self.stat not in STATS:
            raise PlotDataError(f"unknown stat: {self.stat}")
        if self.position not in POSITIONS:
            raise PlotDataError(f"unknown position: {self.position}")
        for name in ("stat_params", "position_params", "params"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        _validate_params(self.params)

    @property
    def spec(self) -> GeomSpec:
        return GEOMS[self.geom]

    def required_channels(self) -> frozenset[str]:
        return self.spec.required - STAT_PROVIDES.get(self.stat, frozenset())


def layer(
    geom: str,
    mapping: Aes | None = None,
    *,
    data: Any = None,
    stat: str | None = None,
    position: str | None = None,
    inherit_mapping: bool = True,
    show_legend: bool = True,
    stat_params: Mapping[str, Any] | None = None,
    position_params: Mapping[str, Any] | None = None,
    **params: Any,
) -> Layer:
    try:
        spec = GEOMS[geom]
    except KeyError:
        raise PlotDataError(f"unknown geom: {geom}") from None
    return Layer(
        geom=geom,
        mapping=mapping,
        data=to_table(data) if data is not None else None,
        stat=stat or spec.default_stat,
        stat_params=dict(stat_params or {}),
        position=position or spec.default_position,
        position_params=dict(position_params or {}),
        params=params,
        inherit_mapping=inherit_mapping,
        show_legend=show_legend,
    )


def geom_point(mapping: Aes | None = None, **kwargs: Any) -> Layer:
    return layer("point", mapping, **kwargs)


def geom_jitter(mapping: Aes | None = None, *, width: float = 0.4, height: float = 0.0, seed: int = 0, **kwargs: Any) -> Layer:
    return layer("point", mapping, position="jitter", position_params={"width": width, "height": height, "seed": seed}, **kwargs)


def geom_line(mapping: Aes | None = None, **kwargs: Any) -> Layer:
    return layer("line", mapping, **kwargs)


def geom_path(mapping: Aes | None = None, **kwargs: Any) -> Layer:
    return layer("path", mapping, **kwargs)


def geom_bar(mapping: Aes | None = None, **kwargs: Any) -> Layer:
    return layer("bar", mapping, **kwargs)


def geom_col(mapping: Aes | None = None, **kwargs: Any) -> Layer:
    return layer("col", mapping, **kwargs)


def geom_histogram(
    mapping: Aes | None = None,
    *,
    bins: int = 30,
    binwidth: float | None = None,
    boundary: float | None = None,
    **kwargs: Any,
) -> Layer:
    return layer("histogram", mapping, stat_params={"bins": bins, "binwidth": binwidth, "boundary": boundary}, **kwargs)


def geom_density(mapping: Aes | None = None, *, adjust: float = 1.0, bw: float | str = "silverman", **kwargs: Any) -> Layer:
    kwargs.setdefault("alpha", 0.6)
    return layer("density", mapping, stat_params={"adjust": adjust, "bw": bw}, **kwargs)


def geom_area(mapping: Aes | None = None, **kwargs: Any) -> Layer:
    return layer("area", mapping, **kwargs)


def geom_boxplot(mapping: Aes | None = None, *, coef: float = 1.5, width: float = 0.75, **kwargs: Any) -> Layer:
    return layer("boxplot", mapping, stat_params={"coef": coef, "width": width}, **kwargs)


def geom_violin(mapping: Aes | None = None, *, adjust: float = 1.0, width: float = 0.9, **kwargs: Any) -> Layer:
    return layer("violin", mapping, stat_params={"adjust": adjust, "width": width}, **kwargs)


def geom_segment(mapping: Aes | None = None, **kwargs: Any) -> Layer:
    return layer("segment", mapping, **kwargs)


def geom_text(mapping: Aes | None = None, **kwargs: Any) -> Layer:
    return layer("text", mapping, **kwargs)


def geom_polygon(mapping: Aes | None = None, **kwargs: Any) -> Layer:
    return layer("polygon", mapping, **kwargs)


def geom_smooth(mapping: Aes | None = None, *, degree: int = 1, **kwargs: Any) -> Layer:
    kwargs.setdefault("color", "#3366FF")
    kwargs.setdefault("linewidth", 2)
    return layer("smooth", mapping, stat_params={"degree": degree}, **kwargs)


def geom_hline(yintercept: float | Sequence[float], **kwargs: Any) -> Layer:
    values = [yintercept] if isinstance(yintercept, (int, float)) else list(yintercept)
    return layer("hline", Aes({"y": "y"}), data={"y": [float(v) for v in values]}, inherit_mapping=False, show_legend=False, **kwargs)


def geom_vline(xintercept: float | Sequence[float], **kwargs: Any) -> Layer:
    values = [xintercept] if isinstance(xintercept, (int, float)) else list(xintercept)
    return layer("vline", Aes({"x": "x"}), data={"x": [float(v) for v in values]}, inherit_mapping=False, show_legend=False, **kwargs)


def geom_lollipop(mapping: Aes | None = None, *, size: float = 4.0, **kwargs: Any) -> tuple[Layer, Layer]:
    """Stem from zero to ``y`` plus a point at the tip, as a pair of layers."""
    stem_params = {k: v for k, v in kwargs.items() if k in {"color", "alpha", "linewidth"}}
    stem = layer("segment", _lollipop_stem(mapping), **stem_params)
    head = layer("point", mapping, size=size, **kwargs)
    return stem, head


def _lollipop_stem(mapping: Aes | None) -> Aes:
    entries: dict[str, Any] = {"yend": 0.0}
    if mapping is not None:
        entries.update(dict(mapping.items()))
    x = entries.get("x")
    if x is not None:
        entries.setdefault("xend", x)
    return Aes(entries)


FIXED_PARAMS = frozenset(
    {
        "color",
        "fill",
        "alpha",
        "size",
        "shape",
        "linewidth",
        "width",
        "outlier_size",
        "font_px",
        "label_background",
        "na_rm",
    }
)


def _validate_params(params: Mapping[str, Any]) -> None:
    for key, value in params.items():
        if key not in FIXED_PARAMS:
            raise PlotDataError(f"unknown layer parameter: {key}")
        if key in {"color", "fill", "label_background"} and value is not None:
            parse_color(value)
        if key == "alpha" and not 0.0 <= float(value) <= 1.0:
            raise ValueError("alpha must be in [0, 1]")
        if key in {"size", "linewidth", "width", "outlier_size", "font_px"} and float(value) <= 0:
            raise ValueError(f"{key} must be > 0")
        if key == "shape" and value not in SHAPES:
            raise PlotDataError(f"unknown shape: {value!r}")
