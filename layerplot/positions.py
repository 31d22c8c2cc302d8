from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

import numpy as np

from layerplot.errors import PlotDataError
from layerplot.scales import infer_resolution
from layerplot.table import ColumnKind, Table

LOGGER = logging.getLogger(__name__)


def adjust_position(kind: str, table: Table, params: Mapping[str, Any] | None = None) -> Table:
    """Apply position adjustment ``kind`` to a panel's geom-ready table."""
    try:
        fn = POSITIONS[kind]
    except KeyError:
        raise PlotDataError(f"unknown position: {kind}") from None
    if table.num_rows == 0:
        return table
    return fn(table, **dict(params or {}))


def position_identity(table: Table) -> Table:
    return table


def position_stack(table: Table, *, reverse: bool = False) -> Table:
    """Stack heights per x; groups stack in first-encountered order, negatives downward."""
    if "y" not in table:
        return table
    x = _floats(table, "x")
    base, height = _base_and_height(table)
    ymin = np.zeros(table.num_rows, dtype=np.float64)
    ymax = np.zeros(table.num_rows, dtype=np.float64)
    pos: dict[float, float] = {}
    neg: dict[float, float] = {}
    for i in _stack_order(table, reverse=reverse):
        key = _key(x[i])
        h = height[i]
        if not np.isfinite(h):
            ymin[i] = ymax[i] = np.nan
            continue
        if h >= 0:
            start = pos.get(key, base[i])
            pos[key] = start + h
        else:
            start = neg.get(key, base[i])
            neg[key] = start + h
        ymin[i] = start
        ymax[i] = start + h
    return _with_y(table, ymin, ymax)


def position_fill(table: Table, *, reverse: bool = False) -> Table:
    """Stack, then normalise each x so its positive stack reaches 1."""
    stacked = position_stack(table, reverse=reverse)
    if "y" not in stacked:
        return stacked
    x = _floats(stacked, "x")
    ymin = _floats(stacked, "ymin").copy()
    ymax = _floats(stacked, "ymax").copy()
    totals: dict[float, float] = {}
    for i in range(stacked.num_rows):
        if np.isfinite(ymax[i]):
            key = _key(x[i])
            totals[key] = max(totals.get(key, 0.0), abs(ymax[i]), abs(ymin[i]))
    for i in range(stacked.num_rows):
        total = totals.get(_key(x[i]), 0.0)
        if total > 0:
            ymin[i] /= total
            ymax[i] /= total
    return _with_y(stacked, ymin, ymax)


def position_dodge(table: Table, *, width: float | None = None) -> Table:
    """Place groups sharing an x side by side inside the element's band."""
    if "group" not in table:
        return table
    x = _floats(table, "x")
    groups = table.values("group").tolist()
    if "xmin" in table and "xmax" in table:
        xmin = _floats(table, "xmin")
        xmax = _floats(table, "xmax")
    else:
        w = width if width is not None else 0.9 * (infer_resolution(x) or 1.0)
        xmin = x - w / 2.0
        xmax = x + w / 2.0
    if width is not None:
        centre = (xmin + xmax) / 2.0
        xmin = centre - width / 2.0
        xmax = centre + width / 2.0

    slots: dict[float, list[Any]] = {}
    for i in range(table.num_rows):
        present = slots.setdefault(_key(x[i]), [])
        if groups[i] not in present:
            present.append(groups[i])
    new_min = np.empty(table.num_rows, dtype=np.float64)
    new_max = np.empty(table.num_rows, dtype=np.float64)
    for i in range(table.num_rows):
        present = slots[_key(x[i])]
        n = len(present)
        slot = present.index(groups[i])
        step = (xmax[i] - xmin[i]) / n
        new_min[i] = xmin[i] + slot * step
        new_max[i] = new_min[i] + step
    out = _set(table, "xmin", new_min)
    out = _set(out, "xmax", new_max)
    shift = (new_min + new_max) / 2.0 - (xmin + xmax) / 2.0
    return _set(out, "x", x + shift)


def position_jitter(table: Table, *, width: float = 0.4, height: float = 0.0, seed: int | None = 0) -> Table:
    """Uniform noise of +/- ``width`` (``height``) data resolutions; seeded so renders repeat."""
    if seed is None:
        LOGGER.warning("jitter without a seed makes renders non-deterministic")
    rng = np.random.default_rng(seed)
    out = table
    for channel, amount in (("x", width), ("y", height)):
        if amount <= 0 or channel not in out:
            continue
        values = _floats(out, channel)
        res = infer_resolution(values) or 1.0
        out = _set(out, channel, values + rng.uniform(-amount, amount, size=values.size) * res)
    return out


POSITIONS: dict[str, Callable[..., Table]] = {
    "identity": position_identity,
    "stack": position_stack,
    "fill": position_fill,
    "dodge": position_dodge,
    "jitter": position_jitter,
}


def _floats(table: Table, name: str) -> np.ndarray:
    return np.asarray(table.values(name), dtype=np.float64)


def _base_and_height(table: Table) -> tuple[np.ndarray, np.ndarray]:
    y = _floats(table, "y")
    if "ymin" in table and "ymax" in table:
        ymin = _floats(table, "ymin")
        return np.zeros_like(y), _floats(table, "ymax") - ymin
    return np.zeros_like(y), y


def _stack_order(table: Table, *, reverse: bool) -> list[int]:
    if "group" not in table:
        order = list(range(table.num_rows))
    else:
        groups = table.values("group").tolist()
        rank: dict[Any, int] = {}
        for g in groups:
            rank.setdefault(g, len(rank))
        order = sorted(range(table.num_rows), key=lambda i: rank[groups[i]])
    return order[::-1] if reverse else order


def _with_y(table: Table, ymin: np.ndarray, ymax: np.ndarray) -> Table:
    out = _set(table, "ymin", ymin)
    out = _set(out, "ymax", ymax)
    return _set(out, "y", ymax)


def _set(table: Table, name: str, values: np.ndarray) -> Table:
    return table.with_column(name, np.asarray(values, dtype=np.float64), kind=ColumnKind.NUMERIC)


def _key(value: float) -> float:
    # Stat grids recompute x; round so equal positions share a stack.
    return round(float(value), 9)
