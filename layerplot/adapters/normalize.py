from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import numpy as np
import torch

from layerplot.errors import PlotDataError
from layerplot.table import ColumnKind, Table, make_column


try:
    import pandas as pd
except Exception:  # pragma: no cover - optional dependency
    pd = None  # type: ignore[assignment]


SchemaLike = Mapping[str, ColumnKind | str]


def to_table(data: Any, *, schema: SchemaLike | None = None) -> Table:
    """Coerce tabular input into a Table.

    Accepted inputs: an existing Table, a mapping of column name to values
    (lists, numpy arrays, torch tensors or pandas Series), a sequence of row
    mappings, a numpy structured array, or a pandas DataFrame.
    """
    if isinstance(data, Table):
        if not schema:
            return data
        return Table(
            make_column(col.name, col.values, kind=schema.get(col.name, col.kind), levels=col.levels)
            for col in data.columns()
        )
    if pd is not None and isinstance(data, pd.DataFrame):
        return _from_columns({str(name): data[name] for name in data.columns}, schema=schema)
    if isinstance(data, np.ndarray):
        if data.dtype.names is None:
            raise PlotDataError("numpy input must be a structured array with named fields")
        return _from_columns({name: data[name] for name in data.dtype.names}, schema=schema)
    if isinstance(data, Mapping):
        return _from_columns(data, schema=schema)
    if isinstance(data, Sequence) and not isinstance(data, (str, bytes, bytearray)):
        if not all(isinstance(row, Mapping) for row in data):
            raise PlotDataError("row input must be a sequence of mappings")
        return Table.from_rows(data, schema=schema)
    raise PlotDataError(f"unsupported table input type: {type(data)!r}")


def _from_columns(data: Mapping[str, Any], *, schema: SchemaLike | None) -> Table:
    schema = schema or {}
    columns = []
    for name, raw in data.items():
        values, levels = _coerce_1d(raw, label=str(name))
        kind = schema.get(name)
        if kind is None and levels is not None:
            kind = ColumnKind.ORDINAL
        columns.append(make_column(str(name), values, kind=kind, levels=levels))
    return Table(columns)


def _coerce_1d(value: Any, *, label: str) -> tuple[Any, tuple[Any, ...] | None]:
    if isinstance(value, torch.Tensor):
        tensor = value.detach()
        if tensor.ndim != 1:
            raise PlotDataError(f"{label} must be 1-D")
        if tensor.is_cuda:
            tensor = tensor.cpu()
        return tensor.to(torch.float64).numpy(), None

    if pd is not None and isinstance(value, pd.Series):
        if isinstance(value.dtype, pd.CategoricalDtype) and value.cat.ordered:
            levels = tuple(value.cat.categories.tolist())
            return np.asarray(value.astype(object).where(value.notna(), None).tolist(), dtype=object), levels
        if pd.api.types.is_datetime64_any_dtype(value):
            return value.to_numpy(dtype="datetime64[ns]"), None
        return value.to_numpy(), None

    if isinstance(value, np.ndarray):
        if value.ndim != 1:
            raise PlotDataError(f"{label} must be 1-D")
        return value, None

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return np.asarray(list(value), dtype=object), None

    raise PlotDataError(f"unsupported {label} input type: {type(value)!r}")


def read_csv(path: str | Path, *, schema: SchemaLike | None = None) -> Table:
    """Read a local CSV file through pandas.

    Columns named in ``schema`` are read as text and tagged with the given
    kind; the rest keep the dtype pandas infers. Empty cells become missing.
    """
    if pd is None:
        raise PlotDataError("reading CSV files needs pandas (pip install 'layerplot[pandas]')")
    schema = dict(schema or {})
    try:
        frame = pd.read_csv(Path(path), dtype={name: str for name in schema} or None)
    except pd.errors.EmptyDataError as exc:
        raise PlotDataError(f"csv file has no header: {path}") from exc
    return to_table(frame, schema=schema)
