from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any, Sequence

import numpy as np

from layerplot.errors import PlotDataError
from layerplot.table import ColumnKind, Table


@dataclass(frozen=True)
class FacetNull:
    @property
    def columns(self) -> tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class FacetWrap:
    facets: tuple[str, ...]
    ncol: int | None = None

    def __post_init__(self) -> None:
        if not self.facets:
            raise ValueError("facet_wrap needs at least one column")
        if self.ncol is not None and self.ncol <= 0:
            raise ValueError("ncol must be > 0")

    @property
    def columns(self) -> tuple[str, ...]:
        return self.facets


@dataclass(frozen=True)
class FacetGrid:
    rows: tuple[str, ...] = ()
    cols: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.rows and not self.cols:
            raise ValueError("facet_grid needs row or column facets")

    @property
    def columns(self) -> tuple[str, ...]:
        return self.rows + self.cols


Facet = FacetNull | FacetWrap | FacetGrid


def facet_wrap(facets: str | Sequence[str], ncol: int | None = None) -> FacetWrap:
    return FacetWrap(facets=_as_tuple(facets), ncol=ncol)


def facet_grid(rows: str | Sequence[str] | None = None, cols: str | Sequence[str] | None = None) -> FacetGrid:
    return FacetGrid(rows=_as_tuple(rows), cols=_as_tuple(cols))


@dataclass(frozen=True)
class PanelSpec:
    index: int
    row: int
    col: int
    key: tuple[Any, ...]
    label: str
    row_label: str = ""


@dataclass(frozen=True)
class PanelLayout:
    panels: tuple[PanelSpec, ...]
    nrow: int
    ncol: int
    columns: tuple[str, ...]
    grid: bool = False

    def occupied(self, row: int, col: int) -> bool:
        return any(p.row == row and p.col == col for p in self.panels)


def partition(table: Table, columns: Sequence[str]) -> list[tuple[tuple[Any, ...], Table]]:
    """Group rows by the distinct combination of ``columns``.

    Keys appear in first-encountered order (ordinal columns in level order);
    every row lands in exactly one partition.
    """
    for name in columns:
        if name not in table:
            raise PlotDataError(f"facet column not found: {name}")
    if not columns:
        return [((), table)]
    groups: dict[tuple[Any, ...], list[int]] = {}
    arrays = [table.values(name).tolist() for name in columns]
    for i, key in enumerate(zip(*arrays)):
        groups.setdefault(tuple(_facet_value(v) for v in key), []).append(i)
    order = _ordered_keys(list(groups), [table.column(name) for name in columns])
    return [(key, table.take(np.asarray(groups[key], dtype=np.intp))) for key in order]


def layout_panels(facet: Facet, tables: Sequence[Table]) -> PanelLayout:
    if isinstance(facet, FacetNull):
        return PanelLayout(panels=(PanelSpec(index=0, row=0, col=0, key=(), label=""),), nrow=1, ncol=1, columns=())

    if isinstance(facet, FacetWrap):
        keys = _collect_keys(tables, facet.facets)
        if not keys:
            raise PlotDataError("facet produced no panels")
        ncol = facet.ncol or int(math.ceil(math.sqrt(len(keys))))
        ncol = min(ncol, len(keys))
        nrow = int(math.ceil(len(keys) / ncol))
        panels = tuple(
            PanelSpec(index=i, row=i // ncol, col=i % ncol, key=key, label=_label(key))
            for i, key in enumerate(keys)
        )
        return PanelLayout(panels=panels, nrow=nrow, ncol=ncol, columns=facet.facets)

    row_keys = _collect_keys(tables, facet.rows) if facet.rows else [()]
    col_keys = _collect_keys(tables, facet.cols) if facet.cols else [()]
    if not row_keys or not col_keys:
        raise PlotDataError("facet produced no panels")
    panels_list: list[PanelSpec] = []
    for r, rkey in enumerate(row_keys):
        for c, ckey in enumerate(col_keys):
            panels_list.append(
                PanelSpec(
                    index=len(panels_list),
                    row=r,
                    col=c,
                    key=rkey + ckey,
                    label=_label(ckey),
                    row_label=_label(rkey),
                )
            )
    return PanelLayout(panels=tuple(panels_list), nrow=len(row_keys), ncol=len(col_keys), columns=facet.rows + facet.cols, grid=True)


def panel_rows(layout: PanelLayout, panel: PanelSpec, table: Table) -> np.ndarray:
    """Row indices of ``table`` that belong to ``panel``.

    A table lacking any facet column is repeated in every panel.
    """
    if not layout.columns or not all(name in table for name in layout.columns):
        return np.arange(table.num_rows, dtype=np.intp)
    mask = np.ones(table.num_rows, dtype=bool)
    for name, value in zip(layout.columns, panel.key):
        values = table.values(name)
        mask &= np.asarray([_facet_value(v) == value for v in values.tolist()], dtype=bool)
    return np.flatnonzero(mask)


def _collect_keys(tables: Sequence[Table], columns: Sequence[str]) -> list[tuple[Any, ...]]:
    keys: list[tuple[Any, ...]] = []
    template = None
    for table in tables:
        if not all(name in table for name in columns):
            continue
        if template is None:
            template = [table.column(name) for name in columns]
        for key, _ in partition(table, columns):
            if key not in keys:
                keys.append(key)
    if template is None:
        raise PlotDataError(f"no layer has facet columns: {', '.join(columns)}")
    return _ordered_keys(keys, template)


def _ordered_keys(keys: list[tuple[Any, ...]], columns: Sequence[Any]) -> list[tuple[Any, ...]]:
    def rank(key: tuple[Any, ...]) -> tuple[int, ...]:
        out = []
        for value, col in zip(key, columns):
            if col.kind is ColumnKind.ORDINAL and col.levels is not None and value in col.levels:
                out.append(col.levels.index(value))
            else:
                out.append(0)
        return tuple(out)

    # sorted() is stable, so non-ordinal columns keep first-encountered order.
    return sorted(keys, key=rank)


def _facet_value(value: Any) -> Any:
    # Missing values (None or NaN) share one key.
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    return value


def _label(key: tuple[Any, ...]) -> str:
    return ", ".join("NA" if v is None else str(v) for v in key)


def _as_tuple(value: str | Sequence[str] | None) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)

