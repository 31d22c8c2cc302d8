from __future__ import annotations

import unittest

import numpy as np

from layerplot.errors import PlotDataError, TypeMismatch
from layerplot.positions import adjust_position
from layerplot.stats import assign_bins, bin_edges, compute_stat
from layerplot.table import Table


class StatTests(unittest.TestCase):
    def test_histogram_counts_cover_every_finite_row(self) -> None:
        x = np.asarray([0.3, 1.2, 1.9, 2.2, 5.0, 7.7, 8.1, 9.9, np.nan], dtype=np.float64)
        out = compute_stat("bin", Table.from_columns({"x": x}), {"bins": 5})
        self.assertEqual(float(out.values("count").sum()), 8.0)

    def test_value_on_edge_goes_to_upper_bin(self) -> None:
        edges = bin_edges(0.0, 10.0, binwidth=5.0, boundary=0.0)
        self.assertEqual(edges.tolist(), [0.0, 5.0, 10.0, 15.0])
        self.assertEqual(assign_bins(np.asarray([0.0, 4.999, 5.0, 10.0]), edges).tolist(), [0, 0, 1, 2])

    def test_bin_output_columns(self) -> None:
        table = Table.from_columns({"x": [1.0, 2.0, 5.0, 6.0, 7.0]})
        out = compute_stat("bin", table, {"binwidth": 5.0, "boundary": 0.0})
        self.assertEqual(out.values("x").tolist(), [2.5, 7.5])
        self.assertEqual(out.values("count").tolist(), [2.0, 3.0])
        self.assertEqual(out.values("xmin").tolist(), [0.0, 5.0])
        np.testing.assert_allclose(out.values("density"), [0.08, 0.12])

    def test_density_integrates_to_one(self) -> None:
        rng = np.random.default_rng(7)
        table = Table.from_columns({"x": rng.normal(size=200)})
        out = compute_stat("density", table)
        x = out.values("x")
        y = out.values("density")
        area = float(np.sum((y[1:] + y[:-1]) / 2.0 * np.diff(x)))
        self.assertAlmostEqual(area, 1.0, delta=0.01)

    def test_density_of_identical_values(self) -> None:
        out = compute_stat("density", Table.from_columns({"x": [2.0, 2.0, 2.0]}))
        x = out.values("x")
        y = out.values("density")
        self.assertTrue(np.all(np.isfinite(y)))
        self.assertLess(abs(float(x[int(np.argmax(y))]) - 2.0), 0.1)

    def test_proportion_sums_to_one_within_each_group(self) -> None:
        table = Table.from_columns(
            {
                "x": ["a", "b", "a", "c", "b", "a"],
                "group": ["g1", "g1", "g1", "g2", "g2", "g2"],
            }
        )
        out = compute_stat("proportion", table, sources={"x": "answer", "group": "team"})
        self.assertEqual(out.values("x").tolist(), ["a", "b", "c", "b", "a"])
        props = out.values("prop")
        np.testing.assert_allclose(props, [2 / 3, 1 / 3, 1 / 3, 1 / 3, 1 / 3])
        self.assertAlmostEqual(float(props[:2].sum()), 1.0)
        self.assertAlmostEqual(float(props[2:].sum()), 1.0)

    def test_proportion_without_groups_uses_the_whole_table(self) -> None:
        out = compute_stat("proportion", Table.from_columns({"x": ["a", "b", "a", "a"]}))
        self.assertEqual(out.values("x").tolist(), ["a", "b"])
        np.testing.assert_allclose(out.values("prop"), [0.75, 0.25])
        np.testing.assert_allclose(out.values("y"), out.values("prop"))

    def test_ydensity_scales_violins_to_the_widest(self) -> None:
        table = Table.from_columns(
            {
                "x": ["p"] * 4 + ["q"] * 6,
                "y": [1.0, 2.0, 2.5, 4.0, 0.0, 5.0, 10.0, 12.0, 20.0, 30.0],
            }
        )
        out = compute_stat("ydensity", table, {"n": 32})
        widths = out.values("violinwidth")
        self.assertEqual(out.num_rows, 64)
        self.assertAlmostEqual(float(widths.max()), 1.0)
        self.assertTrue(np.all(widths >= 0.0))
        narrow = widths[np.asarray(out.values("x").tolist()) == "q"]
        self.assertLess(float(narrow.max()), 1.0)

    def test_count_keeps_first_encountered_order(self) -> None:
        table = Table.from_columns({"x": ["b", "a", "b", "c"]})
        out = compute_stat("count", table)
        self.assertEqual(out.values("x").tolist(), ["b", "a", "c"])
        self.assertEqual(out.values("count").tolist(), [2.0, 1.0, 1.0])
        np.testing.assert_allclose(out.values("prop"), [0.5, 0.25, 0.25])

    def test_boxplot_summary_and_outliers(self) -> None:
        table = Table.from_columns({"y": [1.0, 2.0, 3.0, 4.0, 100.0]})
        out = compute_stat("boxplot", table)
        self.assertEqual(out.values("lower").tolist(), [2.0])
        self.assertEqual(out.values("middle").tolist(), [3.0])
        self.assertEqual(out.values("upper").tolist(), [4.0])
        self.assertEqual(out.values("ymax").tolist(), [4.0])
        self.assertEqual(out.values("outliers")[0], (100.0,))

    def test_smooth_recovers_a_line(self) -> None:
        x = np.arange(10, dtype=np.float64)
        out = compute_stat("smooth", Table.from_columns({"x": x, "y": 2.0 * x + 1.0}))
        np.testing.assert_allclose(out.values("y"), 2.0 * out.values("x") + 1.0, atol=1e-9)

    def test_bin_rejects_discrete_x(self) -> None:
        with self.assertRaises(TypeMismatch):
            compute_stat("bin", Table.from_columns({"x": ["a", "b"]}), sources={"x": "name"})

    def test_unknown_stat(self) -> None:
        with self.assertRaises(PlotDataError):
            compute_stat("median", Table.from_columns({"x": [1.0]}))


class PositionTests(unittest.TestCase):
    def test_stack_accumulates_by_group_order(self) -> None:
        table = Table.from_columns({"x": [1.0, 1.0, 2.0], "y": [2.0, 3.0, 4.0], "group": [0.0, 1.0, 0.0]})
        out = adjust_position("stack", table)
        self.assertEqual(out.values("ymin").tolist(), [0.0, 2.0, 0.0])
        self.assertEqual(out.values("ymax").tolist(), [2.0, 5.0, 4.0])

    def test_negative_values_stack_downward(self) -> None:
        table = Table.from_columns({"x": [1.0, 1.0], "y": [-1.0, -2.0], "group": [0.0, 1.0]})
        out = adjust_position("stack", table)
        self.assertEqual(out.values("ymax").tolist(), [-1.0, -3.0])

    def test_fill_normalises_each_x(self) -> None:
        table = Table.from_columns({"x": [1.0, 1.0], "y": [1.0, 3.0], "group": [0.0, 1.0]})
        out = adjust_position("fill", table)
        self.assertEqual(out.values("ymax").tolist(), [0.25, 1.0])

    def test_dodge_splits_the_band(self) -> None:
        table = Table.from_columns(
            {"x": [1.0, 1.0], "xmin": [0.5, 0.5], "xmax": [1.5, 1.5], "y": [1.0, 2.0], "group": [0.0, 1.0]}
        )
        out = adjust_position("dodge", table)
        self.assertEqual(out.values("xmin").tolist(), [0.5, 1.0])
        self.assertEqual(out.values("x").tolist(), [0.75, 1.25])

    def test_seeded_jitter_repeats(self) -> None:
        table = Table.from_columns({"x": [1.0, 2.0, 3.0], "y": [1.0, 1.0, 1.0]})
        a = adjust_position("jitter", table, {"width": 0.3, "seed": 4})
        b = adjust_position("jitter", table, {"width": 0.3, "seed": 4})
        self.assertTrue(np.array_equal(a.values("x"), b.values("x")))
        self.assertTrue(np.all(np.abs(a.values("x") - table.values("x")) <= 0.3))

    def test_unknown_position(self) -> None:
        with self.assertRaises(PlotDataError):
            adjust_position("scatter", Table.from_columns({"x": [1.0]}))


if __name__ == "__main__":
    unittest.main()
