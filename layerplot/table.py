from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

import numpy as np

from layerplot.errors import PlotDataError


class ColumnKind(str, Enum):
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    ORDINAL = "ordinal"
    TEXTUAL = "textual"
    TEMPORAL = "temporal"

    @property
    def is_continuous(self) -> bool:
        return self in (ColumnKind.NUMERIC, ColumnKind.TEMPORAL)

    @property
    def is_discrete(self) -> bool:
        return not self.is_continuous


@dataclass(frozen=True)
class Column:
    name: str
    values: np.ndarray
    kind: ColumnKind
    levels: tuple[Any, ...] | None = None

    def __len__(self) -> int:
        return int(self.values.shape[0])

    def take(self, indices: np.ndarray) -> "Column":
        return Column(name=self.name, values=self.values[indices], kind=self.kind, levels=self.levels)

    def renamed(self, name: str) -> "Column":
        return Column(name=name, values=self.values, kind=self.kind, levels=self.levels)


class Table:
    """Ordered set of equal-length named columns with a tagged schema."""

    def __init__(self, columns: Iterable[Column] = ()) -> None:
        cols = list(columns)
        seen: set[str] = set()
        length: int | None = None
        for col in cols:
            if col.name in seen:
                raise PlotDataError(f"duplicate column: {col.name}")
            seen.add(col.name)
            if col.values.ndim != 1:
                raise PlotDataError(f"column {col.name} must be 1-D")
            if length is None:
                length = len(col)
            elif len(col) != length:
                raise PlotDataError(f"column length mismatch: {col.name} has {len(col)} rows, expected {length}")
        self._columns: dict[str, Column] = {col.name: col for col in cols}
        self._num_rows = length or 0

    @classmethod
    def from_columns(
        cls,
        data: Mapping[str, Any],
        *,
        schema: Mapping[str, ColumnKind | str] | None = None,
        levels: Mapping[str, Sequence[Any]] | None = None,
    ) -> "Table":
        schema = schema or {}
        levels = levels or {}
        return cls(
            make_column(name, values, kind=schema.get(name), levels=levels.get(name))
            for name, values in data.items()
        )

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Mapping[str, Any]],
        *,
        schema: Mapping[str, ColumnKind | str] | None = None,
    ) -> "Table":
        names: list[str] = []
        for row in rows:
            for key in row:
                if key not in names:
                    names.append(key)
        data = {name: [row.get(name) for row in rows] for name in names}
        return cls.from_columns(data, schema=schema)

    @property
    def num_rows(self) -> int:
        return self._num_rows

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._columns)

    def __len__(self) -> int:
        return self._num_rows

    def __contains__(self, name: object) -> bool:
        return name in self._columns

    def __repr__(self) -> str:
        schema = ", ".join(f"{c.name}:{c.kind.value}" for c in self._columns.values())
        return f"Table({self._num_rows} rows; {schema})"

    def column(self, name: str) -> Column:
        try:
            return self._columns[name]
        except KeyError:
            raise PlotDataError(f"column not found: {name}") from None

    def values(self, name: str) -> np.ndarray:
        return self.column(name).values

    def kind(self, name: str) -> ColumnKind:
        return self.column(name).kind

    def columns(self) -> tuple[Column, ...]:
        return tuple(self._columns.values())

    def take(self, indices: Sequence[int] | np.ndarray) -> "Table":
        idx = np.asarray(indices, dtype=np.intp)
        out = Table(col.take(idx) for col in self._columns.values())
        if not self._columns:
            out._num_rows = int(idx.size)
        return out

    def filter(self, mask: np.ndarray) -> "Table":
        return self.take(np.flatnonzero(np.asarray(mask, dtype=bool)))

    def select(self, names: Sequence[str]) -> "Table":
        return Table(self.column(name) for name in names)

    def with_column(
        self,
        name: str,
        values: Any,
        *,
        kind: ColumnKind | str | None = None,
        levels: Sequence[Any] | None = None,
    ) -> "Table":
        if isinstance(values, Column):
            new_col = values.renamed(name)
        else:
            new_col = make_column(name, values, kind=kind, levels=levels)
        cols = [col for col in self._columns.values() if col.name != name]
        if name in self._columns:
            cols.insert(list(self._columns).index(name), new_col)
        else:
            cols.append(new_col)
        return Table(cols)

    def rows(self) -> list[dict[str, Any]]:
        names = list(self._columns)
        arrays = [self._columns[n].values.tolist() for n in names]
        return [dict(zip(names, row)) for row in zip(*arrays)]


def concat(tables: Sequence[Table]) -> Table:
    """Stack tables that share the first table's column names."""
    parts = [t for t in tables if t.num_rows]
    if not parts:
        return tables[0] if tables else Table()
    first = parts[0]
    columns = []
    for col in first.columns():
        values = np.concatenate([t.values(col.name) for t in parts])
        columns.append(Column(name=col.name, values=values, kind=col.kind, levels=col.levels))
    return Table(columns)


def unique_in_order(values: Iterable[Any]) -> list[Any]:
    """Distinct values, first occurrence wins."""
    seen: set[Any] = set()
    out: list[Any] = []
    for value in values:
        if value is None:
            continue
        if isinstance(value, float) and np.isnan(value):
            continue
        if value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


def discrete_levels(column: Column) -> list[Any]:
    if column.kind is ColumnKind.ORDINAL and column.levels is not None:
        present = set(unique_in_order(column.values.tolist()))
        return [lvl for lvl in column.levels if lvl in present]
    return unique_in_order(column.values.tolist())


def make_column(
    name: str,
    values: Any,
    *,
    kind: ColumnKind | str | None = None,
    levels: Sequence[Any] | None = None,
) -> Column:
    if isinstance(values, Column):
        return values.renamed(name)
    arr = values if isinstance(values, np.ndarray) else np.asarray(list(values), dtype=object)
    if arr.ndim != 1:
        raise PlotDataError(f"column {name} must be 1-D")

    wanted = ColumnKind(kind) if kind is not None else _infer_kind(arr)
    if levels is not None and kind is None:
        wanted = ColumnKind.ORDINAL

    if wanted is ColumnKind.NUMERIC:
        return Column(name=name, values=_coerce_numeric(arr, name), kind=wanted)
    if wanted is ColumnKind.TEMPORAL:
        return Column(name=name, values=_coerce_temporal(arr, name), kind=wanted)

    obj = _coerce_objects(arr)
    if wanted is ColumnKind.ORDINAL:
        lvls = tuple(levels) if levels is not None else tuple(sorted(unique_in_order(obj.tolist()), key=_sort_key))
        missing = [v for v in unique_in_order(obj.tolist()) if v not in lvls]
        if missing:
            raise PlotDataError(f"column {name} has values outside its levels: {missing[:5]!r}")
        return Column(name=name, values=obj, kind=wanted, levels=lvls)
    return Column(name=name, values=obj, kind=wanted)


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    return (1, str(value))


def _infer_kind(arr: np.ndarray) -> ColumnKind:
    if arr.dtype.kind in {"i", "u", "f", "b"}:
        return ColumnKind.NUMERIC
    if arr.dtype.kind == "M":
        return ColumnKind.TEMPORAL
    if arr.dtype.kind in {"U", "S"}:
        return ColumnKind.CATEGORICAL
    saw_number = False
    saw_time = False
    for raw in arr.tolist():
        if raw is None:
            continue
        if isinstance(raw, float) and np.isnan(raw):
            continue
        if isinstance(raw, (datetime, date, np.datetime64)):
            saw_time = True
            continue
        if isinstance(raw, (bool, int, float, Decimal, np.integer, np.floating)):
            saw_number = True
            continue
        return ColumnKind.CATEGORICAL
    if saw_time and not saw_number:
        return ColumnKind.TEMPORAL
    return ColumnKind.NUMERIC


def _coerce_numeric(arr: np.ndarray, name: str) -> np.ndarray:
    if arr.dtype.kind in {"i", "u", "f", "b"}:
        return arr.astype(np.float64, copy=False)
    out = np.empty(arr.shape[0], dtype=np.float64)
    for i, raw in enumerate(arr.tolist()):
        if raw is None:
            out[i] = np.nan
            continue
        if isinstance(raw, Decimal):
            out[i] = float(raw)
            continue
        try:
            out[i] = float(raw)
        except (TypeError, ValueError) as exc:
            raise PlotDataError(f"{name} contains non-numeric value at index {i}: {raw!r}") from exc
    return out


def _coerce_temporal(arr: np.ndarray, name: str) -> np.ndarray:
    if arr.dtype.kind == "M":
        return arr.astype("datetime64[ns]").astype(np.int64).astype(np.float64) / 1e9
    if arr.dtype.kind in {"i", "u", "f"}:
        return arr.astype(np.float64, copy=False)
    out = np.empty(arr.shape[0], dtype=np.float64)
    for i, raw in enumerate(arr.tolist()):
        out[i] = _to_epoch_seconds(raw, name, i)
    return out


def _to_epoch_seconds(raw: Any, name: str, index: int) -> float:
    if raw is None:
        return float("nan")
    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            raw = raw.replace(tzinfo=timezone.utc)
        return raw.timestamp()
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day, tzinfo=timezone.utc).timestamp()
    if isinstance(raw, np.datetime64):
        return float(raw.astype("datetime64[ns]").astype(np.int64)) / 1e9
    if isinstance(raw, str):
        try:
            return _to_epoch_seconds(datetime.fromisoformat(raw), name, index)
        except ValueError as exc:
            raise PlotDataError(f"{name} contains non-temporal value at index {index}: {raw!r}") from exc
    if isinstance(raw, (int, float, Decimal)):
        return float(raw)
    raise PlotDataError(f"{name} contains non-temporal value at index {index}: {raw!r}")


def _coerce_objects(arr: np.ndarray) -> np.ndarray:
    out = np.empty(arr.shape[0], dtype=object)
    for i, raw in enumerate(arr.tolist()):
        if isinstance(raw, float) and np.isnan(raw):
            raw = None
        out[i] = raw
    return out
