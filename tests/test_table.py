from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

import numpy as np
import pandas as pd
import torch

from layerplot.adapters import read_csv, to_table
from layerplot.errors import InvalidChannel, PlotDataError, UnresolvedColumn
from layerplot.mapping import Literal, aes, check_columns, resolve_mapping
from layerplot.table import ColumnKind, Table, concat, discrete_levels, make_column, unique_in_order


class TableTests(unittest.TestCase):
    def test_kinds_are_inferred_from_values(self) -> None:
        table = Table.from_columns({"x": [1, 2, 3], "g": ["a", "b", "a"]})
        self.assertIs(table.kind("x"), ColumnKind.NUMERIC)
        self.assertIs(table.kind("g"), ColumnKind.CATEGORICAL)
        self.assertEqual(table.values("x").dtype, np.float64)
        self.assertEqual(table.num_rows, 3)

    def test_length_mismatch_is_rejected(self) -> None:
        with self.assertRaises(PlotDataError):
            Table.from_columns({"x": [1, 2, 3], "y": [1, 2]})

    def test_missing_column_lookup_raises(self) -> None:
        table = Table.from_columns({"x": [1.0]})
        with self.assertRaises(PlotDataError):
            table.column("nope")

    def test_with_column_replaces_in_place(self) -> None:
        table = Table.from_columns({"a": [1, 2], "b": [3, 4], "c": [5, 6]})
        out = table.with_column("b", ["p", "q"])
        self.assertEqual(out.names, ("a", "b", "c"))
        self.assertIs(out.kind("b"), ColumnKind.CATEGORICAL)
        # Original is untouched.
        self.assertIs(table.kind("b"), ColumnKind.NUMERIC)

    def test_ordinal_levels_must_cover_values(self) -> None:
        with self.assertRaises(PlotDataError):
            make_column("size", ["S", "XL"], kind="ordinal", levels=("S", "M", "L"))
        col = make_column("size", ["L", "S"], levels=("S", "M", "L"))
        self.assertIs(col.kind, ColumnKind.ORDINAL)
        self.assertEqual(discrete_levels(col), ["S", "L"])

    def test_temporal_strings_become_epoch_seconds(self) -> None:
        col = make_column("t", ["2024-01-01", None], kind="temporal")
        self.assertEqual(col.values[0], 1704067200.0)
        self.assertTrue(np.isnan(col.values[1]))

    def test_non_numeric_value_in_numeric_column(self) -> None:
        with self.assertRaises(PlotDataError):
            make_column("x", ["1", "two"], kind="numeric")

    def test_unique_in_order_skips_missing(self) -> None:
        self.assertEqual(unique_in_order(["b", None, "a", "b", float("nan"), "c"]), ["b", "a", "c"])

    def test_concat_and_filter(self) -> None:
        a = Table.from_columns({"x": [1.0, 2.0]})
        b = Table.from_columns({"x": [3.0]})
        both = concat([a, b])
        self.assertEqual(both.values("x").tolist(), [1.0, 2.0, 3.0])
        kept = both.filter(both.values("x") > 1.5)
        self.assertEqual(kept.values("x").tolist(), [2.0, 3.0])

    def test_select_and_rows(self) -> None:
        table = Table.from_columns({"x": [1.0, 2.0], "g": ["a", "b"], "w": [5.0, 6.0]})
        picked = table.select(["g", "x"])
        self.assertEqual(picked.names, ("g", "x"))
        self.assertEqual(picked.rows(), [{"g": "a", "x": 1.0}, {"g": "b", "x": 2.0}])
        self.assertEqual(Table.from_rows(table.rows()).values("w").tolist(), [5.0, 6.0])
        with self.assertRaises(PlotDataError):
            table.select(["missing"])


class AdapterTests(unittest.TestCase):
    def test_rows_and_columns_agree(self) -> None:
        by_rows = to_table([{"x": 1, "g": "a"}, {"x": 2, "g": "b"}])
        by_cols = to_table({"x": [1, 2], "g": ["a", "b"]})
        self.assertEqual(by_rows.names, by_cols.names)
        self.assertEqual(by_rows.values("x").tolist(), by_cols.values("x").tolist())

    def test_pandas_ordered_categorical_keeps_levels(self) -> None:
        frame = pd.DataFrame(
            {
                "cut": pd.Categorical(["Good", "Ideal", "Fair"], categories=["Fair", "Good", "Ideal"], ordered=True),
                "price": [1.0, 2.0, 3.0],
            }
        )
        table = to_table(frame)
        self.assertIs(table.kind("cut"), ColumnKind.ORDINAL)
        self.assertEqual(table.column("cut").levels, ("Fair", "Good", "Ideal"))
        self.assertIs(table.kind("price"), ColumnKind.NUMERIC)

    def test_torch_tensor_column(self) -> None:
        table = to_table({"y": torch.tensor([1, 2, 3])})
        self.assertEqual(table.values("y").dtype, np.float64)
        self.assertEqual(table.values("y").tolist(), [1.0, 2.0, 3.0])

    def test_schema_overrides_inference(self) -> None:
        table = to_table({"year": [2020, 2021]}, schema={"year": "categorical"})
        self.assertIs(table.kind("year"), ColumnKind.CATEGORICAL)

    def test_unsupported_input(self) -> None:
        with self.assertRaises(PlotDataError):
            to_table(42)
        with self.assertRaises(PlotDataError):
            to_table(np.zeros(3))

    def test_read_csv_infers_numeric_columns(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "data.csv"
            path.write_text("x,name\n1,a\n2.5,\n", encoding="utf-8")
            table = read_csv(path)
        self.assertIs(table.kind("x"), ColumnKind.NUMERIC)
        self.assertEqual(table.values("x").tolist(), [1.0, 2.5])
        self.assertEqual(table.values("name").tolist(), ["a", None])

    def test_read_csv_keeps_schema_columns_as_text(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "codes.csv"
            path.write_text("code,n\n01,3\n02,4\n", encoding="utf-8")
            table = read_csv(path, schema={"code": "categorical"})
        self.assertIs(table.kind("code"), ColumnKind.CATEGORICAL)
        self.assertEqual(table.values("code").tolist(), ["01", "02"])
        self.assertIs(table.kind("n"), ColumnKind.NUMERIC)

    def test_read_csv_of_an_empty_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "empty.csv"
            path.write_text("", encoding="utf-8")
            with self.assertRaises(PlotDataError):
                read_csv(path)


class MappingTests(unittest.TestCase):
    def test_aliases_and_literals(self) -> None:
        mapping = aes(x="a", colour="g", size=3)
        self.assertEqual(mapping.column("color"), "g")
        self.assertEqual(mapping["size"], Literal(3))
        self.assertIsNone(mapping.column("size"))

    def test_unknown_channel(self) -> None:
        with self.assertRaises(InvalidChannel) as ctx:
            aes(wobble="x")
        self.assertEqual(ctx.exception.channel, "wobble")

    def test_layer_mapping_wins(self) -> None:
        merged = resolve_mapping(aes(x="a", y="b"), aes(y="c"))
        self.assertEqual(merged.column("x"), "a")
        self.assertEqual(merged.column("y"), "c")
        self.assertEqual(set(merged), {"x", "y"})
        union = resolve_mapping(aes(x="a", color="g"), aes(y="c", size="s"))
        self.assertEqual(set(union), {"x", "y", "color", "size"})
        alone = resolve_mapping(aes(x="a"), aes(y="c"), inherit=False)
        self.assertNotIn("x", alone)

    def test_unresolved_column(self) -> None:
        table = Table.from_columns({"a": [1.0]})
        with self.assertRaises(UnresolvedColumn) as ctx:
            check_columns(aes(x="a", y="missing"), table)
        self.assertEqual(ctx.exception.column, "missing")


if __name__ == "__main__":
    unittest.main()
