from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

import numpy as np
from scipy import stats

from layerplot.errors import PlotDataError, TypeMismatch
from layerplot.mapping import POSITION_CHANNELS
from layerplot.table import Column, ColumnKind, Table, make_column

LOGGER = logging.getLogger(__name__)

DEFAULT_BINS = 30
DENSITY_POINTS = 512
DENSITY_CUT = 3.0
SMOOTH_POINTS = 80
# Fuzz applied to bin indices so values sitting on an edge land in the upper bin.
_EDGE_FUZZ = 1e-9


def compute_stat(
    kind: str,
    table: Table,
    params: Mapping[str, Any] | None = None,
    *,
    sources: Mapping[str, str] | None = None,
) -> Table:
    """Apply stat ``kind`` to an aesthetic table (columns named by channel)."""
    try:
        fn = STATS[kind]
    except KeyError:
        raise PlotDataError(f"unknown stat: {kind}") from None
    return fn(table, sources=dict(sources or {}), **dict(params or {}))


def stat_identity(table: Table, *, sources: dict[str, str]) -> Table:
    return table


def stat_bin(
    table: Table,
    *,
    sources: dict[str, str],
    bins: int = DEFAULT_BINS,
    binwidth: float | None = None,
    boundary: float | None = None,
) -> Table:
    x = _numeric(table, "x", sources)
    if bins <= 0:
        raise ValueError("bins must be > 0")
    if binwidth is not None and binwidth <= 0:
        raise ValueError("binwidth must be > 0")
    weight = _weights(table)
    live = np.isfinite(x) & np.isfinite(weight)
    _warn_dropped("bin", live)
    if not np.any(live):
        return _empty(table, ("x", "count", "xmin", "xmax", "width", "density", "y"))

    lo = float(np.min(x[live]))
    hi = float(np.max(x[live]))
    edges = bin_edges(lo, hi, bins=bins, binwidth=binwidth, boundary=boundary)
    width = float(edges[1] - edges[0])
    nbins = edges.size - 1

    out = _Accumulator(table)
    for idx in _groups(table):
        gi = idx[live[idx]]
        if gi.size == 0:
            continue
        slot = assign_bins(x[gi], edges)
        counts = np.bincount(slot, weights=weight[gi], minlength=nbins)
        total = float(counts.sum())
        nonempty = np.flatnonzero(counts > 0)
        left = edges[nonempty]
        right = edges[nonempty + 1]
        count = counts[nonempty]
        out.add(
            table,
            gi,
            {
                "x": (left + right) / 2.0,
                "count": count,
                "xmin": left,
                "xmax": right,
                "width": np.full(nonempty.size, width),
                "density": count / (total * width) if total > 0 else np.zeros(nonempty.size),
                "y": count,
            },
        )
    return out.table()


def bin_edges(
    lo: float,
    hi: float,
    *,
    bins: int = DEFAULT_BINS,
    binwidth: float | None = None,
    boundary: float | None = None,
) -> np.ndarray:
    """Contiguous equal-width edges covering [lo, hi].

    Without an explicit width, ``bins`` bins are centred so the first and last
    bin centres fall on ``lo`` and ``hi``.
    """
    if binwidth is None:
        if hi == lo:
            binwidth = 1.0
        elif bins == 1:
            binwidth = (hi - lo) * (1.0 + 1e-6)
        else:
            binwidth = (hi - lo) / (bins - 1)
    if boundary is None:
        boundary = lo - binwidth / 2.0 if bins > 1 or hi == lo else lo
    start = boundary + np.floor((lo - boundary) / binwidth + _EDGE_FUZZ) * binwidth
    nbins = int(np.floor((hi - start) / binwidth + _EDGE_FUZZ)) + 1
    return start + binwidth * np.arange(nbins + 1, dtype=np.float64)


def assign_bins(values: np.ndarray, edges: np.ndarray) -> np.ndarray:
    """Bin index per value; a value equal to an edge goes to the bin above it."""
    width = edges[1] - edges[0]
    slot = np.floor((values - edges[0]) / width + _EDGE_FUZZ).astype(np.intp)
    return np.clip(slot, 0, edges.size - 2)


def silverman_bandwidth(values: np.ndarray) -> float:
    n = values.size
    if n < 2:
        return 1.0
    sd = float(np.std(values, ddof=1))
    q75, q25 = np.quantile(values, [0.75, 0.25])
    iqr = float(q75 - q25)
    spread = min(sd, iqr / 1.34) if iqr > 0 else sd
    if spread <= 0:
        spread = sd if sd > 0 else (abs(float(values[0])) or 1.0)
    return 0.9 * spread * n ** (-0.2)


def gaussian_kde(
    values: np.ndarray,
    grid: np.ndarray,
    bandwidth: float,
    weights: np.ndarray | None = None,
) -> np.ndarray:
    """Gaussian kernel density at ``grid`` with kernel standard deviation ``bandwidth``."""
    sd = float(np.sqrt(np.cov(values, aweights=weights))) if values.size > 1 else 0.0
    if not sd > 0:
        # Identical samples have a singular covariance: one kernel at that value.
        return stats.norm.pdf(grid, loc=float(values[0]), scale=bandwidth)
    kde = stats.gaussian_kde(values, bw_method=bandwidth / sd, weights=weights)
    return kde(grid)


def stat_density(
    table: Table,
    *,
    sources: dict[str, str],
    bw: float | str = "silverman",
    adjust: float = 1.0,
    n: int = DENSITY_POINTS,
    trim: bool = False,
) -> Table:
    x = _numeric(table, "x", sources)
    if n < 2:
        raise ValueError("n must be >= 2")
    weight = _weights(table)
    live = np.isfinite(x) & np.isfinite(weight)
    _warn_dropped("density", live)

    out = _Accumulator(table)
    for idx in _groups(table):
        gi = idx[live[idx]]
        if gi.size < 2:
            LOGGER.warning("density: group with fewer than two points dropped")
            continue
        values = x[gi]
        bandwidth = _bandwidth(values, bw) * adjust
        if trim:
            grid = np.linspace(values.min(), values.max(), n)
        else:
            grid = np.linspace(values.min() - DENSITY_CUT * bandwidth, values.max() + DENSITY_CUT * bandwidth, n)
        dens = gaussian_kde(values, grid, bandwidth, weight[gi])
        out.add(table, gi, {"x": grid, "density": dens, "count": dens * gi.size, "y": dens})
    return out.table()


def stat_count(table: Table, *, sources: dict[str, str], width: float | None = None) -> Table:
    if "x" not in table:
        raise PlotDataError("stat count requires channel 'x'")
    x_col = table.column("x")
    weight = _weights(table)
    out = _Accumulator(table, like={"x": x_col})
    for idx in _groups(table):
        levels, inverse = _factorize(x_col.values[idx])
        counts = np.bincount(inverse, weights=weight[idx], minlength=len(levels))
        total = float(counts.sum())
        out.add(
            table,
            idx,
            {
                "x": np.asarray(levels, dtype=object if x_col.kind.is_discrete else np.float64),
                "count": counts,
                "prop": counts / total if total > 0 else np.zeros(len(levels)),
                "y": counts,
            },
        )
    return out.table()


def stat_proportion(
    table: Table,
    *,
    sources: dict[str, str],
    by: str = "group",
    category: str = "x",
) -> Table:
    """Share of each ``category`` value within each ``by`` group."""
    if category not in table:
        raise PlotDataError(f"stat proportion requires channel {category!r}")
    cat_col = table.column(category)
    weight = _weights(table)
    if by in table and by != "group":
        by_values = table.values(by)
        group_levels, group_inverse = _factorize(by_values)
    elif by == "group" and "group" in table and "group" in sources:
        group_levels, group_inverse = _factorize(table.values("group"))
    else:
        group_levels, group_inverse = [None], np.zeros(table.num_rows, dtype=np.intp)

    like = {category: cat_col}
    if by in table and by != "group":
        like[by] = table.column(by)
    out = _Accumulator(table, like=like)
    for g in range(len(group_levels)):
        gi = np.flatnonzero(group_inverse == g)
        total = float(weight[gi].sum())
        levels, inverse = _factorize(cat_col.values[gi])
        for c, level in enumerate(levels):
            ci = gi[inverse == c]
            count = float(weight[ci].sum())
            prop = count / total if total > 0 else 0.0
            computed: dict[str, np.ndarray] = {
                category: np.asarray([level], dtype=object if cat_col.kind.is_discrete else np.float64),
                "count": np.asarray([count]),
                "prop": np.asarray([prop]),
                "y": np.asarray([prop]),
            }
            if by in table and by != "group":
                computed[by] = np.asarray([group_levels[g]], dtype=object)
            out.add(table, ci, computed)
    return out.table()


def stat_boxplot(table: Table, *, sources: dict[str, str], coef: float = 1.5, width: float = 0.9) -> Table:
    y = _numeric(table, "y", sources)
    x_col = table.column("x") if "x" in table else None
    live = np.isfinite(y)
    _warn_dropped("boxplot", live)
    like = {"x": x_col} if x_col is not None else None
    out = _Accumulator(table, like=like)
    for idx in _groups(table, by_x=True):
        gi = idx[live[idx]]
        if gi.size == 0:
            continue
        values = y[gi]
        q0, q1, q2, q3, q4 = np.quantile(values, [0.0, 0.25, 0.5, 0.75, 1.0])
        iqr = q3 - q1
        lo_fence = q1 - coef * iqr
        hi_fence = q3 + coef * iqr
        inside = values[(values >= lo_fence) & (values <= hi_fence)]
        outliers = np.empty(1, dtype=object)
        outliers[0] = tuple(float(v) for v in values[(values < lo_fence) | (values > hi_fence)])
        computed: dict[str, np.ndarray] = {
            "ymin": np.asarray([inside.min() if inside.size else q0]),
            "lower": np.asarray([q1]),
            "middle": np.asarray([q2]),
            "upper": np.asarray([q3]),
            "ymax": np.asarray([inside.max() if inside.size else q4]),
            "outliers": outliers,
            "width": np.asarray([width]),
        }
        if x_col is not None:
            computed["x"] = _first(x_col, gi)
        out.add(table, gi, computed)
    return out.table()


def stat_ydensity(
    table: Table,
    *,
    sources: dict[str, str],
    bw: float | str = "silverman",
    adjust: float = 1.0,
    n: int = DENSITY_POINTS,
    width: float = 0.9,
) -> Table:
    y = _numeric(table, "y", sources)
    x_col = table.column("x") if "x" in table else None
    live = np.isfinite(y)
    _warn_dropped("ydensity", live)
    parts: list[tuple[np.ndarray, dict[str, np.ndarray]]] = []
    for idx in _groups(table, by_x=True):
        gi = idx[live[idx]]
        if gi.size < 2:
            LOGGER.warning("ydensity: group with fewer than two points dropped")
            continue
        values = y[gi]
        bandwidth = _bandwidth(values, bw) * adjust
        grid = np.linspace(values.min(), values.max(), n)
        dens = gaussian_kde(values, grid, bandwidth)
        computed: dict[str, np.ndarray] = {"y": grid, "density": dens, "width": np.full(n, width)}
        if x_col is not None:
            computed["x"] = np.repeat(_first(x_col, gi), n)
        parts.append((gi, computed))

    peak = max((float(c["density"].max()) for _, c in parts), default=0.0)
    out = _Accumulator(table, like={"x": x_col} if x_col is not None else None)
    for gi, computed in parts:
        computed["violinwidth"] = computed["density"] / peak if peak > 0 else computed["density"]
        out.add(table, gi, computed)
    return out.table()


def stat_smooth(table: Table, *, sources: dict[str, str], degree: int = 1, n: int = SMOOTH_POINTS) -> Table:
    x = _numeric(table, "x", sources)
    y = _numeric(table, "y", sources)
    if degree < 0:
        raise ValueError("degree must be >= 0")
    live = np.isfinite(x) & np.isfinite(y)
    out = _Accumulator(table)
    for idx in _groups(table):
        gi = idx[live[idx]]
        distinct = np.unique(x[gi]).size
        if distinct < 2:
            continue
        coeffs = np.polyfit(x[gi], y[gi], min(degree, distinct - 1))
        grid = np.linspace(x[gi].min(), x[gi].max(), n)
        out.add(table, gi, {"x": grid, "y": np.polyval(coeffs, grid)})
    return out.table()


STATS: dict[str, Callable[..., Table]] = {
    "identity": stat_identity,
    "bin": stat_bin,
    "density": stat_density,
    "count": stat_count,
    "proportion": stat_proportion,
    "boxplot": stat_boxplot,
    "ydensity": stat_ydensity,
    "smooth": stat_smooth,
}


class _Accumulator:
    """Collects per-group stat output and carries group-constant channels."""

    def __init__(self, source: Table, like: Mapping[str, Column | None] | None = None) -> None:
        self._source = source
        self._like = {k: v for k, v in (like or {}).items() if v is not None}
        self._parts: list[dict[str, np.ndarray]] = []

    def add(self, table: Table, idx: np.ndarray, computed: dict[str, np.ndarray]) -> None:
        n = len(next(iter(computed.values())))
        part = dict(computed)
        for col in table.columns():
            if col.name in part or col.name in POSITION_CHANNELS or col.name == "weight":
                continue
            values = col.values[idx]
            if values.size == 0:
                continue
            first = values[0]
            if all(_same(v, first) for v in values.tolist()):
                part[col.name] = np.repeat(values[:1], n)
        self._parts.append(part)

    def table(self) -> Table:
        if not self._parts:
            return Table()
        names: list[str] = []
        for part in self._parts:
            for name in part:
                if name not in names and all(name in p for p in self._parts):
                    names.append(name)
        columns = []
        for name in names:
            values = np.concatenate([np.asarray(p[name]) for p in self._parts])
            template = self._like.get(name)
            if template is None and name in self._source and name not in POSITION_CHANNELS:
                template = self._source.column(name)
            if template is not None:
                columns.append(Column(name=name, values=_cast_like(values, template), kind=template.kind, levels=template.levels))
            elif values.dtype == object and name != "outliers":
                columns.append(make_column(name, values))
            else:
                kind = ColumnKind.TEXTUAL if values.dtype == object else ColumnKind.NUMERIC
                if kind is ColumnKind.NUMERIC:
                    values = values.astype(np.float64)
                columns.append(Column(name=name, values=values, kind=kind))
        return Table(columns)


def _cast_like(values: np.ndarray, template: Column) -> np.ndarray:
    if template.kind.is_continuous:
        return values.astype(np.float64)
    return values.astype(object)


def _same(a: Any, b: Any) -> bool:
    if isinstance(a, float) and isinstance(b, float) and np.isnan(a) and np.isnan(b):
        return True
    return a == b


def _first(col: Column, idx: np.ndarray) -> np.ndarray:
    return col.values[idx[:1]]


def _empty(table: Table, names: tuple[str, ...]) -> Table:
    return Table(Column(name=n, values=np.zeros(0, dtype=np.float64), kind=ColumnKind.NUMERIC) for n in names)


def _numeric(table: Table, channel: str, sources: Mapping[str, str]) -> np.ndarray:
    if channel not in table:
        raise PlotDataError(f"stat requires channel {channel!r}")
    col = table.column(channel)
    if not col.kind.is_continuous:
        raise TypeMismatch(channel, sources.get(channel), "numeric", col.kind.value)
    return col.values


def _weights(table: Table) -> np.ndarray:
    if "weight" in table:
        col = table.column("weight")
        if not col.kind.is_continuous:
            raise TypeMismatch("weight", None, "numeric", col.kind.value)
        return col.values
    return np.ones(table.num_rows, dtype=np.float64)


def _bandwidth(values: np.ndarray, bw: float | str) -> float:
    if isinstance(bw, str):
        if bw != "silverman":
            raise ValueError(f"unsupported bandwidth rule: {bw}")
        return silverman_bandwidth(values)
    if bw <= 0:
        raise ValueError("bw must be > 0")
    return float(bw)


def _groups(table: Table, *, by_x: bool = False) -> list[np.ndarray]:
    keys: list[np.ndarray] = []
    if "group" in table:
        keys.append(table.values("group"))
    if by_x and "x" in table:
        keys.append(table.values("x"))
    if not keys:
        return [np.arange(table.num_rows)]
    order: dict[tuple[Any, ...], list[int]] = {}
    for i, key in enumerate(zip(*(k.tolist() for k in keys))):
        order.setdefault(key, []).append(i)
    return [np.asarray(rows, dtype=np.intp) for rows in order.values()]


def _factorize(values: np.ndarray) -> tuple[list[Any], np.ndarray]:
    levels: dict[Any, int] = {}
    inverse = np.empty(values.shape[0], dtype=np.intp)
    for i, value in enumerate(values.tolist()):
        inverse[i] = levels.setdefault(value, len(levels))
    return list(levels), inverse


def _warn_dropped(stat: str, live: np.ndarray) -> None:
    dropped = int(live.size - np.count_nonzero(live))
    if dropped:
        LOGGER.warning("%s: removed %d rows containing non-finite values", stat, dropped)
