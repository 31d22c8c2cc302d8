from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Sequence

import numpy as np

from layerplot.errors import DomainError, PlotDataError, UnmappedCategory
from layerplot.mapping import normalize_channel
from layerplot.palettes import (
    SHAPES,
    gradient_colors,
    gradient_stops,
    parse_color,
    qualitative,
)


TRANSFORMS = frozenset({"identity", "log10", "sqrt", "reverse"})
SCALE_KINDS = frozenset({"auto", "continuous", "discrete", "manual", "identity"})
COLOR_CHANNELS = frozenset({"color", "fill"})
DEFAULT_SIZE_RANGE = (1.5, 6.0)
DEFAULT_ALPHA_RANGE = (0.1, 1.0)
CONTINUOUS_EXPAND = 0.05
DISCRETE_EXPAND = 0.6


@dataclass(frozen=True)
class ScaleSpec:
    """A user scale declaration; one per channel, later declarations win."""

    channel: str
    kind: str = "auto"
    transform: str = "identity"
    limits: tuple[Any, ...] | None = None
    values: Mapping[Any, Any] | Sequence[Any] | None = None
    palette: str | None = None
    low: Any = None
    mid: Any = None
    high: Any = None
    range: tuple[float, float] | None = None
    name: str | None = None
    breaks: tuple[Any, ...] | None = None
    labels: tuple[str, ...] | None = None
    expand: float | None = None
    guide: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "channel", normalize_channel(self.channel))
        if self.kind not in SCALE_KINDS:
            raise ValueError(f"unknown scale kind: {self.kind}")
        if self.transform not in TRANSFORMS:
            raise ValueError(f"unknown scale transform: {self.transform}")
        if self.kind == "manual" and self.values is None:
            raise ValueError("manual scales need explicit values")
        if self.breaks is not None and self.labels is not None and len(self.breaks) != len(self.labels):
            raise ValueError("breaks and labels must have equal length")

    @property
    def axis(self) -> str | None:
        if self.channel in {"x", "xend", "xmin", "xmax"}:
            return "x"
        if self.channel in {"y", "yend", "ymin", "ymax"}:
            return "y"
        return None


def scale(channel: str, **options: Any) -> ScaleSpec:
    for key in ("limits", "breaks", "labels", "range"):
        if options.get(key) is not None:
            options[key] = tuple(options[key])
    return ScaleSpec(channel=channel, **options)


def scale_x_continuous(**options: Any) -> ScaleSpec:
    return scale("x", kind="continuous", **options)


def scale_y_continuous(**options: Any) -> ScaleSpec:
    return scale("y", kind="continuous", **options)


def scale_x_log10(**options: Any) -> ScaleSpec:
    return scale("x", kind="continuous", transform="log10", **options)


def scale_y_log10(**options: Any) -> ScaleSpec:
    return scale("y", kind="continuous", transform="log10", **options)


def scale_x_sqrt(**options: Any) -> ScaleSpec:
    return scale("x", kind="continuous", transform="sqrt", **options)


def scale_y_sqrt(**options: Any) -> ScaleSpec:
    return scale("y", kind="continuous", transform="sqrt", **options)


def scale_x_reverse(**options: Any) -> ScaleSpec:
    return scale("x", kind="continuous", transform="reverse", **options)


def scale_y_reverse(**options: Any) -> ScaleSpec:
    return scale("y", kind="continuous", transform="reverse", **options)


def scale_x_discrete(**options: Any) -> ScaleSpec:
    return scale("x", kind="discrete", **options)


def scale_y_discrete(**options: Any) -> ScaleSpec:
    return scale("y", kind="discrete", **options)


def scale_color_manual(values: Mapping[Any, Any] | Sequence[Any], **options: Any) -> ScaleSpec:
    return scale("color", kind="manual", values=values, **options)


def scale_fill_manual(values: Mapping[Any, Any] | Sequence[Any], **options: Any) -> ScaleSpec:
    return scale("fill", kind="manual", values=values, **options)


def scale_color_discrete(palette: str | None = None, **options: Any) -> ScaleSpec:
    return scale("color", kind="discrete", palette=palette, **options)


def scale_fill_discrete(palette: str | None = None, **options: Any) -> ScaleSpec:
    return scale("fill", kind="discrete", palette=palette, **options)


def scale_color_gradient(low: Any = None, high: Any = None, **options: Any) -> ScaleSpec:
    return scale("color", kind="continuous", low=low, high=high, **options)


def scale_fill_gradient(low: Any = None, high: Any = None, **options: Any) -> ScaleSpec:
    return scale("fill", kind="continuous", low=low, high=high, **options)


def scale_color_viridis(**options: Any) -> ScaleSpec:
    return scale("color", kind="continuous", palette="viridis", **options)


def scale_fill_viridis(**options: Any) -> ScaleSpec:
    return scale("fill", kind="continuous", palette="viridis", **options)


def scale_size(range: tuple[float, float] = DEFAULT_SIZE_RANGE, **options: Any) -> ScaleSpec:
    return scale("size", range=range, **options)


def scale_alpha(range: tuple[float, float] = DEFAULT_ALPHA_RANGE, **options: Any) -> ScaleSpec:
    return scale("alpha", range=range, **options)


# ----------------------------
# Transforms
# ----------------------------


def apply_transform(channel: str, values: np.ndarray, transform: str) -> np.ndarray:
    """Forward transform; raises DomainError where the transform is undefined."""
    if transform == "identity":
        return values
    finite = values[np.isfinite(values)]
    if transform == "log10":
        bad = finite[finite <= 0]
        if bad.size:
            raise DomainError(channel, "log10", float(bad[0]))
        return np.log10(values)
    if transform == "sqrt":
        bad = finite[finite < 0]
        if bad.size:
            raise DomainError(channel, "sqrt", float(bad[0]))
        return np.sqrt(values)
    if transform == "reverse":
        return -values
    raise ValueError(f"unknown scale transform: {transform}")


def inverse_transform(values: np.ndarray, transform: str) -> np.ndarray:
    if transform == "log10":
        return np.power(10.0, values)
    if transform == "sqrt":
        return np.square(values)
    if transform == "reverse":
        return -values
    return values


# ----------------------------
# Trained scales
# ----------------------------


@dataclass(frozen=True)
class PositionScale:
    """Shared x or y scale. ``limits`` live in transformed space."""

    axis: str
    limits: tuple[float, float]
    transform: str = "identity"
    levels: tuple[Any, ...] | None = None
    temporal: bool = False
    name: str | None = None
    breaks: tuple[Any, ...] | None = None
    labels: tuple[str, ...] | None = None

    @property
    def is_discrete(self) -> bool:
        return self.levels is not None

    def rescale(self, values: np.ndarray) -> np.ndarray:
        lo, hi = self.limits
        return (np.asarray(values, dtype=np.float64) - lo) / (hi - lo)

    def ticks(self, target: int = 5) -> list[tuple[float, str]]:
        lo, hi = self.limits
        if self.levels is not None:
            positions = np.arange(1, len(self.levels) + 1, dtype=np.float64)
            names = [str(v) for v in self.levels]
            if self.labels is not None:
                names = list(self.labels)
            return [(float(p), n) for p, n in zip(positions.tolist(), names) if lo <= p <= hi]
        if self.breaks is not None:
            raw = np.asarray([float(b) for b in self.breaks], dtype=np.float64)
            values = apply_transform(self.axis, raw, self.transform)
            names = list(self.labels) if self.labels is not None else format_ticks_for_axis(raw)
            return [(float(v), n) for v, n in zip(values.tolist(), names) if _within(v, lo, hi)]
        if self.transform == "log10":
            values = log_ticks(lo, hi)
            names = [format_tick(float(v)) for v in inverse_transform(values, "log10")]
            return list(zip(values.tolist(), names))
        ticks = generate_nice_ticks(min(lo, hi), max(lo, hi), target)
        ticks = ticks[(ticks >= min(lo, hi) - 1e-12) & (ticks <= max(lo, hi) + 1e-12)]
        raw = inverse_transform(ticks, self.transform)
        if self.temporal:
            names = format_temporal_ticks(raw)
        else:
            names = format_ticks_for_axis(raw) if self.transform in {"identity", "reverse"} else [format_tick(float(v)) for v in raw]
        return list(zip(ticks.tolist(), names))


@dataclass(frozen=True)
class DiscreteScale:
    channel: str
    levels: tuple[Any, ...]
    outputs: tuple[Any, ...]
    name: str | None = None
    manual: bool = False
    guide: bool = True
    labels: tuple[str, ...] | None = None

    @property
    def is_discrete(self) -> bool:
        return True

    def map(self, values: Sequence[Any]) -> list[Any]:
        lookup = dict(zip(self.levels, self.outputs))
        out: list[Any] = []
        for value in values:
            if _is_missing(value):
                out.append(None)
            elif value in lookup:
                out.append(lookup[value])
            elif self.manual:
                raise UnmappedCategory(self.channel, value)
            else:
                # Outside declared limits.
                out.append(None)
        return out

    def entries(self) -> list[tuple[str, Any]]:
        names = list(self.labels) if self.labels is not None else [str(v) for v in self.levels]
        return list(zip(names, self.outputs))


@dataclass(frozen=True)
class ContinuousScale:
    channel: str
    domain: tuple[float, float]
    transform: str = "identity"
    stops: tuple[Any, ...] = ()
    range: tuple[float, float] | None = None
    name: str | None = None
    guide: bool = True
    breaks: tuple[Any, ...] | None = None

    @property
    def is_discrete(self) -> bool:
        return False

    def rescale(self, values: np.ndarray) -> np.ndarray:
        lo, hi = self.domain
        if hi == lo:
            return np.full(np.asarray(values).shape, 0.5, dtype=np.float64)
        return (np.asarray(values, dtype=np.float64) - lo) / (hi - lo)

    def map(self, values: np.ndarray) -> np.ndarray:
        t = self.rescale(values)
        if self.channel in COLOR_CHANNELS:
            return gradient_colors(self.stops, np.nan_to_num(t, nan=0.0))
        lo, hi = self.range or (DEFAULT_SIZE_RANGE if self.channel == "size" else DEFAULT_ALPHA_RANGE)
        return lo + np.clip(t, 0.0, 1.0) * (hi - lo)

    def ticks(self, target: int = 5) -> list[tuple[float, str]]:
        lo, hi = self.domain
        if self.breaks is not None:
            raw = np.asarray([float(b) for b in self.breaks], dtype=np.float64)
            values = apply_transform(self.channel, raw, self.transform)
            return [(float(v), format_tick(float(r))) for v, r in zip(values, raw) if _within(v, lo, hi)]
        if self.transform == "log10":
            values = log_ticks(lo, hi)
        else:
            values = generate_nice_ticks(min(lo, hi), max(lo, hi), target)
            values = values[(values >= min(lo, hi) - 1e-12) & (values <= max(lo, hi) + 1e-12)]
        raw = inverse_transform(values, self.transform)
        names = format_ticks_for_axis(raw) if self.transform == "identity" else [format_tick(float(v)) for v in raw]
        return list(zip(values.tolist(), names))


TrainedScale = PositionScale | DiscreteScale | ContinuousScale


def train_position(
    axis: str,
    chunks: Sequence[np.ndarray],
    *,
    spec: ScaleSpec | None = None,
    levels: Sequence[Any] | None = None,
    temporal: bool = False,
    zoom: tuple[float, float] | None = None,
    expand: bool = True,
) -> PositionScale:
    transform = spec.transform if spec is not None else "identity"
    mult = spec.expand if spec is not None and spec.expand is not None else CONTINUOUS_EXPAND
    name = spec.name if spec is not None else None
    breaks = spec.breaks if spec is not None else None
    labels = spec.labels if spec is not None else None

    if levels is not None:
        k = max(len(levels), 1)
        finite = _finite_concat(chunks)
        lo = min(1.0, float(finite.min())) if finite.size else 1.0
        hi = max(float(k), float(finite.max())) if finite.size else float(k)
        pad = DISCRETE_EXPAND if expand else 0.0
        return PositionScale(
            axis=axis,
            limits=(lo - pad, hi + pad),
            levels=tuple(levels),
            name=name,
            labels=labels,
        )

    if zoom is not None:
        lo, hi = (float(v) for v in apply_transform(axis, np.asarray(zoom, dtype=np.float64), transform))
    elif spec is not None and spec.limits is not None:
        lo, hi = (float(v) for v in apply_transform(axis, np.asarray(spec.limits, dtype=np.float64), transform))
    else:
        finite = _finite_concat(chunks)
        if finite.size == 0:
            lo, hi = 0.0, 1.0
        else:
            lo, hi = float(finite.min()), float(finite.max())
    lo, hi = min(lo, hi), max(lo, hi)
    if lo == hi:
        delta = max(1.0, abs(lo) * 0.05) if transform != "log10" else 0.5
        lo -= delta
        hi += delta
    elif expand and zoom is None:
        span = hi - lo
        lo -= span * mult
        hi += span * mult
    return PositionScale(
        axis=axis,
        limits=(lo, hi),
        transform=transform,
        temporal=temporal,
        name=name,
        breaks=breaks,
        labels=labels,
    )


def train_discrete(channel: str, levels: Sequence[Any], *, spec: ScaleSpec | None = None) -> DiscreteScale:
    """Assign each level a visual value in first-encountered order, or from a manual table."""
    if spec is not None and spec.limits is not None:
        levels = list(spec.limits)
    levels = tuple(levels)
    name = spec.name if spec is not None else None
    guide = spec.guide if spec is not None else True
    labels = spec.labels if spec is not None else None

    if spec is not None and spec.kind == "manual":
        values = spec.values
        if isinstance(values, Mapping):
            outputs = []
            for level in levels:
                if level not in values:
                    raise UnmappedCategory(channel, level)
                outputs.append(_coerce_output(channel, values[level]))
        else:
            seq = list(values or ())
            if len(seq) < len(levels):
                raise UnmappedCategory(channel, levels[len(seq)])
            outputs = [_coerce_output(channel, v) for v in seq[: len(levels)]]
        return DiscreteScale(channel=channel, levels=levels, outputs=tuple(outputs), name=name, manual=True, guide=guide, labels=labels)

    if spec is not None and spec.kind == "identity":
        outputs = [_coerce_output(channel, v) for v in levels]
        return DiscreteScale(channel=channel, levels=levels, outputs=tuple(outputs), name=name, guide=False)

    n = len(levels)
    palette = spec.palette if spec is not None else None
    if channel in COLOR_CHANNELS:
        outputs = qualitative(n, palette)
    elif channel == "shape":
        if n > len(SHAPES):
            raise PlotDataError(f"shape scale supports at most {len(SHAPES)} categories, got {n}")
        outputs = list(SHAPES[:n])
    elif channel in {"size", "alpha"}:
        default = DEFAULT_SIZE_RANGE if channel == "size" else DEFAULT_ALPHA_RANGE
        lo, hi = spec.range if spec is not None and spec.range is not None else default
        outputs = np.linspace(lo, hi, n).tolist() if n > 1 else [hi]
    else:
        outputs = list(levels)
    return DiscreteScale(channel=channel, levels=levels, outputs=tuple(outputs), name=name, guide=guide, labels=labels)


def train_continuous(channel: str, chunks: Sequence[np.ndarray], *, spec: ScaleSpec | None = None) -> ContinuousScale:
    transform = spec.transform if spec is not None else "identity"
    if spec is not None and spec.limits is not None:
        lo, hi = (float(v) for v in apply_transform(channel, np.asarray(spec.limits, dtype=np.float64), transform))
    else:
        finite = _finite_concat(chunks)
        lo, hi = (float(finite.min()), float(finite.max())) if finite.size else (0.0, 1.0)
    stops: tuple[Any, ...] = ()
    if channel in COLOR_CHANNELS:
        if spec is not None:
            stops = gradient_stops(spec.palette, spec.low, spec.high, spec.mid)
        else:
            stops = gradient_stops()
    return ContinuousScale(
        channel=channel,
        domain=(lo, hi),
        transform=transform,
        stops=stops,
        range=spec.range if spec is not None else None,
        name=spec.name if spec is not None else None,
        guide=spec.guide if spec is not None else True,
        breaks=spec.breaks if spec is not None else None,
    )


def _coerce_output(channel: str, value: Any) -> Any:
    if channel in COLOR_CHANNELS:
        return parse_color(value)
    if channel == "shape":
        if value not in SHAPES:
            raise PlotDataError(f"unknown shape: {value!r}")
        return value
    if channel in {"size", "alpha"}:
        return float(value)
    return value


def _finite_concat(chunks: Sequence[np.ndarray]) -> np.ndarray:
    parts = [np.asarray(c, dtype=np.float64).ravel() for c in chunks if np.asarray(c).size]
    if not parts:
        return np.zeros(0, dtype=np.float64)
    values = np.concatenate(parts)
    return values[np.isfinite(values)]


def _within(value: float, lo: float, hi: float) -> bool:
    return min(lo, hi) - 1e-9 <= value <= max(lo, hi) + 1e-9


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and value != value)


# ----------------------------
# Ticks and labels
# ----------------------------


def generate_nice_ticks(vmin: float, vmax: float, target: int) -> np.ndarray:
    if target <= 0:
        raise ValueError("target must be > 0")
    if vmin == vmax:
        return np.asarray([vmin], dtype=np.float64)

    span = _nice_number(vmax - vmin, round_result=False)
    step = _nice_number(span / max(target - 1, 1), round_result=True)
    tick_min = np.floor(vmin / step) * step
    tick_max = np.ceil(vmax / step) * step

    ticks = np.arange(tick_min, tick_max + 0.5 * step, step, dtype=np.float64)
    # Normalize floating-point drift so values like -4.44e-16 become 0.
    ticks = np.rint(ticks / step) * step
    ticks[np.isclose(ticks, 0.0, rtol=0.0, atol=step * 1e-9)] = 0.0
    return ticks


def log_ticks(lo: float, hi: float) -> np.ndarray:
    """Decade ticks in log10 space; falls back to nice ticks inside a single decade."""
    first = int(np.ceil(min(lo, hi) - 1e-9))
    last = int(np.floor(max(lo, hi) + 1e-9))
    if last - first >= 1:
        stride = max(1, (last - first + 1) // 8)
        return np.arange(first, last + 1, stride, dtype=np.float64)
    raw = generate_nice_ticks(10.0 ** lo, 10.0 ** hi, 4)
    raw = raw[raw > 0]
    values = np.log10(raw)
    return values[(values >= lo - 1e-9) & (values <= hi + 1e-9)]


def format_tick(value: float, *, step: float | None = None) -> str:
    if not np.isfinite(value):
        return str(value)
    if step is not None and np.isfinite(step) and step > 0 and abs(value) <= step * 1e-9:
        value = 0.0
    abs_v = abs(value)
    decimals = _decimals_from_step(step) if step is not None else 6
    if abs_v != 0 and (abs_v >= 1e6 or (step is not None and abs(step) < 1e-4) or abs_v < 1e-6):
        return f"{value:.4e}"

    d = Decimal(str(value))
    quant = Decimal("1").scaleb(-decimals)
    try:
        q = d.quantize(quant)
    except InvalidOperation:
        q = d
    out = format(q, "f")
    # Only trim trailing zeros for fractional values (preserve integer zeros like 30, 40).
    if "." in out:
        out = out.rstrip("0").rstrip(".")
    if out == "-0":
        out = "0"
    return out


def format_ticks_for_axis(ticks: np.ndarray) -> list[str]:
    if ticks.size == 0:
        return []
    if ticks.size == 1:
        return [format_tick(float(ticks[0]))]
    step = float(abs(ticks[1] - ticks[0]))
    return [format_tick(float(v), step=step) for v in ticks]


def format_temporal_ticks(seconds: np.ndarray) -> list[str]:
    if seconds.size == 0:
        return []
    span = float(seconds.max() - seconds.min()) if seconds.size > 1 else 0.0
    if span >= 2 * 365 * 86400:
        fmt = "%Y"
    elif span >= 60 * 86400:
        fmt = "%Y-%m"
    elif span >= 2 * 86400:
        fmt = "%Y-%m-%d"
    else:
        fmt = "%H:%M"
    return [datetime.fromtimestamp(float(v), tz=timezone.utc).strftime(fmt) for v in seconds]


def infer_resolution(values: np.ndarray) -> float | None:
    if values.size < 2:
        return None
    finite = values[np.isfinite(values)]
    if finite.size < 2:
        return None
    uniq = np.unique(finite)
    if uniq.size < 2:
        return None
    diffs = np.diff(uniq)
    positive = diffs[diffs > 0]
    if positive.size == 0:
        return None
    span = float(uniq[-1] - uniq[0])
    eps = max(1e-12, span * 1e-9)
    significant = positive[positive > eps]
    if significant.size == 0:
        return None
    return float(np.min(significant))


def _nice_number(value: float, *, round_result: bool) -> float:
    exp = np.floor(np.log10(value))
    frac = value / (10**exp)

    if round_result:
        if frac < 1.5:
            nice_frac = 1.0
        elif frac < 3.0:
            nice_frac = 2.0
        elif frac < 7.0:
            nice_frac = 5.0
        else:
            nice_frac = 10.0
    else:
        if frac <= 1.0:
            nice_frac = 1.0
        elif frac <= 2.0:
            nice_frac = 2.0
        elif frac <= 5.0:
            nice_frac = 5.0
        else:
            nice_frac = 10.0

    return float(nice_frac * (10**exp))


def _decimals_from_step(step: float) -> int:
    if step <= 0 or not np.isfinite(step):
        return 6
    d = Decimal(str(step)).normalize()
    exp = d.as_tuple().exponent
    decimals = max(0, -int(exp))
    return min(12, decimals)
