from __future__ import annotations

import unittest

import numpy as np

from layerplot.coords import clip_polygon, clip_segment, coord_cartesian, coord_flip, coord_map, project
from layerplot.errors import DomainError, PlotDataError, UnmappedCategory
from layerplot.facet import FacetGrid, facet_grid, facet_wrap, layout_panels, panel_rows, partition
from layerplot.layers import geom_hline, geom_lollipop, geom_point, layer
from layerplot.mapping import aes
from layerplot.palettes import parse_color, qualitative, with_alpha
from layerplot.scales import (
    ContinuousScale,
    PositionScale,
    ScaleSpec,
    apply_transform,
    format_ticks_for_axis,
    scale,
    train_discrete,
    train_position,
)
from layerplot.scene import labs, scene
from layerplot.table import Table
from layerplot.theme import PRESETS, theme, theme_update


class ScaleTests(unittest.TestCase):
    def test_log_transform_rejects_non_positive(self) -> None:
        with self.assertRaises(DomainError) as ctx:
            apply_transform("x", np.asarray([10.0, 0.0]), "log10")
        self.assertEqual(ctx.exception.value, 0.0)

    def test_log_transform_preserves_rank_order(self) -> None:
        values = np.asarray([5.0, 0.1, 1000.0, 2.0])
        out = apply_transform("y", values, "log10")
        self.assertEqual(np.argsort(out).tolist(), np.argsort(values).tolist())

    def test_repeated_categories_keep_first_slot(self) -> None:
        self.assertEqual(train_discrete("fill", ["b", "a", "c", "a", "b"]).levels, ("b", "a", "c"))

    def test_discrete_levels_keep_first_encountered_order(self) -> None:
        trained = train_discrete("color", ["b", "a"])
        self.assertEqual(trained.levels, ("b", "a"))
        self.assertEqual(trained.outputs, tuple(qualitative(2)))
        self.assertEqual(trained.map(["a", "b", None]), [qualitative(2)[1], qualitative(2)[0], None])

    def test_missing_values_map_to_nothing(self) -> None:
        trained = train_discrete("color", [1.0, 2.0])
        self.assertEqual(trained.map([2.0, float("nan"), None]), [qualitative(2)[1], None, None])
        limited = train_discrete("color", ["a", "b"], spec=scale("color", limits=["a"]))
        self.assertEqual(limited.map(["a", "b"]), [qualitative(1)[0], None])

    def test_manual_scale_needs_every_category(self) -> None:
        spec = scale("color", kind="manual", values={"a": "red"})
        with self.assertRaises(UnmappedCategory) as ctx:
            train_discrete("color", ["a", "b"], spec=spec)
        self.assertEqual(ctx.exception.category, "b")

    def test_manual_scale_accepts_sequences(self) -> None:
        spec = scale("fill", kind="manual", values=["red", "blue"])
        trained = train_discrete("fill", ["x", "y"], spec=spec)
        self.assertEqual(trained.outputs, (parse_color("red"), parse_color("blue")))

    def test_spec_validation(self) -> None:
        with self.assertRaises(ValueError):
            ScaleSpec(channel="x", kind="fancy")
        with self.assertRaises(ValueError):
            ScaleSpec(channel="color", kind="manual")
        with self.assertRaises(ValueError):
            scale("x", breaks=[1, 2], labels=["one"])

    def test_position_training_expands_continuous_range(self) -> None:
        trained = train_position("x", [np.asarray([0.0, 10.0])])
        self.assertEqual(trained.limits, (-0.5, 10.5))
        discrete = train_position("x", [np.asarray([1.0, 3.0])], levels=["a", "b", "c"])
        np.testing.assert_allclose(discrete.limits, (0.4, 3.6))

    def test_declared_limits_win_over_data(self) -> None:
        spec = scale("y", limits=[0, 100], expand=0.0)
        trained = train_position("y", [np.asarray([20.0, 30.0])], spec=spec)
        self.assertEqual(trained.limits, (0.0, 100.0))

    def test_ticks_lie_inside_the_limits(self) -> None:
        ticks = PositionScale(axis="x", limits=(-0.3, 7.2)).ticks()
        self.assertGreaterEqual(len(ticks), 3)
        for value, label in ticks:
            self.assertTrue(-0.3 <= value <= 7.2)
            self.assertEqual(float(label), value)

    def test_log_ticks_are_labelled_in_data_units(self) -> None:
        ticks = PositionScale(axis="y", limits=(0.0, 3.0), transform="log10").ticks()
        self.assertEqual([label for _, label in ticks], ["1", "10", "100", "1000"])

    def test_discrete_axis_ticks_use_levels(self) -> None:
        ticks = PositionScale(axis="x", limits=(0.4, 2.6), levels=("lo", "hi")).ticks()
        self.assertEqual(ticks, [(1.0, "lo"), (2.0, "hi")])

    def test_tick_formatting(self) -> None:
        self.assertEqual(format_ticks_for_axis(np.asarray([1.5, 2.0, 2.5, 3.0])), ["1.5", "2", "2.5", "3"])
        self.assertEqual(format_ticks_for_axis(np.asarray([20.0, 30.0, 40.0])), ["20", "30", "40"])

    def test_continuous_size_mapping(self) -> None:
        trained = ContinuousScale(channel="size", domain=(0.0, 10.0), range=(1.0, 3.0))
        np.testing.assert_allclose(trained.map(np.asarray([0.0, 5.0, 10.0])), [1.0, 2.0, 3.0])

    def test_alpha_scales_the_existing_alpha(self) -> None:
        self.assertEqual(with_alpha((10, 20, 30, 200), 0.5), (10, 20, 30, 100))


class ColorTests(unittest.TestCase):
    def test_css_and_grey_level_names(self) -> None:
        self.assertEqual(parse_color("darkslateblue"), (72, 61, 139, 255))
        self.assertEqual(parse_color("salmon"), (250, 128, 114, 255))
        self.assertEqual(parse_color("CornflowerBlue"), (100, 149, 237, 255))
        self.assertEqual(parse_color("grey30"), (77, 77, 77, 255))
        self.assertEqual(parse_color("gray92"), (235, 235, 235, 255))
        self.assertEqual(parse_color("transparent")[3], 0)

    def test_hex_and_tuples(self) -> None:
        self.assertEqual(parse_color("#FF000080"), (255, 0, 0, 128))
        self.assertEqual(parse_color((1, 2, 3)), (1, 2, 3, 255))

    def test_rejects_unknown_colours(self) -> None:
        for bad in ("grey101", "#12", "not-a-colour", (0, 0, 300)):
            with self.subTest(value=bad):
                with self.assertRaises(PlotDataError):
                    parse_color(bad)


class CoordTests(unittest.TestCase):
    def test_segment_clipping(self) -> None:
        clipped = clip_segment((-5.0, 5.0), (15.0, 5.0), (0.0, 0.0, 10.0, 10.0))
        self.assertEqual(clipped, ((0.0, 5.0), (10.0, 5.0)))
        self.assertIsNone(clip_segment((-5.0, -5.0), (-1.0, 20.0), (0.0, 0.0, 10.0, 10.0)))

    def test_polygon_clipping(self) -> None:
        xs, ys = clip_polygon(np.asarray([-5.0, 5.0, 5.0, -5.0]), np.asarray([0.0, 0.0, 5.0, 5.0]), (0.0, 0.0, 10.0, 10.0))
        self.assertEqual(float(xs.min()), 0.0)
        self.assertEqual(float(xs.max()), 5.0)
        empty_x, _ = clip_polygon(np.asarray([20.0, 30.0, 25.0]), np.asarray([20.0, 20.0, 30.0]), (0.0, 0.0, 10.0, 10.0))
        self.assertEqual(empty_x.size, 0)

    def test_mercator_projection(self) -> None:
        x, y = project("mercator", np.asarray([10.0, 10.0]), np.asarray([0.0, 90.0]))
        self.assertEqual(x.tolist(), [10.0, 10.0])
        self.assertAlmostEqual(float(y[0]), 0.0)
        self.assertTrue(np.isfinite(y[1]))

    def test_map_window_validation(self) -> None:
        with self.assertRaises(ValueError):
            coord_map(xlim=(10, 0))
        with self.assertRaises(ValueError):
            coord_map("orthographic")

    def test_flip_and_limits(self) -> None:
        self.assertTrue(coord_flip().flip)
        self.assertEqual(coord_cartesian(xlim=[0, 5]).xlim, (0, 5))


class FacetTests(unittest.TestCase):
    def test_wrap_layout_fills_rows_first(self) -> None:
        table = Table.from_columns({"g": ["a", "b", "c", "d", "e"]})
        layout = layout_panels(facet_wrap("g"), [table])
        self.assertEqual((layout.nrow, layout.ncol), (2, 3))
        self.assertEqual([p.label for p in layout.panels], ["a", "b", "c", "d", "e"])
        self.assertEqual((layout.panels[3].row, layout.panels[3].col), (1, 0))
        self.assertFalse(layout.grid)

    def test_grid_layout_is_full_cross_product(self) -> None:
        table = Table.from_columns({"r": ["a", "b", "a"], "c": ["x", "y", "z"]})
        layout = layout_panels(facet_grid(rows="r", cols="c"), [table])
        self.assertEqual((layout.nrow, layout.ncol), (2, 3))
        self.assertEqual(len(layout.panels), 6)
        self.assertTrue(layout.grid)
        self.assertEqual(layout.panels[4].row_label, "b")
        self.assertEqual(layout.panels[4].label, "y")

    def test_tables_without_facet_columns_repeat_in_every_panel(self) -> None:
        data = Table.from_columns({"g": ["a", "b"], "v": [1.0, 2.0]})
        overlay = Table.from_columns({"v": [5.0]})
        layout = layout_panels(facet_wrap("g"), [data, overlay])
        for panel in layout.panels:
            self.assertEqual(panel_rows(layout, panel, overlay).tolist(), [0])
        self.assertEqual(panel_rows(layout, layout.panels[1], data).tolist(), [1])

    def test_partition_places_every_row_once(self) -> None:
        table = Table.from_columns({"region": ["east", "east", "west"], "v": [1.0, 2.0, 3.0]})
        parts = partition(table, ["region"])
        self.assertEqual([(key, sub.num_rows) for key, sub in parts], [(("east",), 2), (("west",), 1)])
        seen = sorted(v for _, sub in parts for v in sub.values("v").tolist())
        self.assertEqual(seen, [1.0, 2.0, 3.0])

    def test_missing_facet_values_share_one_panel(self) -> None:
        table = Table.from_columns({"k": [1.0, np.nan, np.nan, 2.0]})
        parts = partition(table, ["k"])
        self.assertEqual([(key, sub.num_rows) for key, sub in parts], [((1.0,), 1), ((None,), 2), ((2.0,), 1)])
        layout = layout_panels(facet_wrap("k"), [table])
        self.assertEqual([p.label for p in layout.panels], ["1.0", "NA", "2.0"])
        self.assertEqual(panel_rows(layout, layout.panels[1], table).tolist(), [1, 2])

    def test_partition_orders_ordinal_levels(self) -> None:
        table = Table.from_columns({"size": ["L", "S", "L"]}, levels={"size": ["S", "M", "L"]})
        keys = [key for key, _ in partition(table, ["size"])]
        self.assertEqual(keys, [("S",), ("L",)])

    def test_missing_facet_column(self) -> None:
        with self.assertRaises(PlotDataError):
            layout_panels(facet_wrap("nope"), [Table.from_columns({"g": ["a"]})])

    def test_grid_needs_a_dimension(self) -> None:
        with self.assertRaises(ValueError):
            FacetGrid()


class ThemeTests(unittest.TestCase):
    def test_unknown_keys_are_ignored_with_a_warning(self) -> None:
        with self.assertLogs("layerplot.theme", level="WARNING"):
            value = theme("minimal", sparkle=True)
        self.assertEqual(value, PRESETS["minimal"])

    def test_later_overrides_win(self) -> None:
        value = theme("default", base_font_px=10.0).merged({"base_font_px": 14.0})
        self.assertEqual(value.base_font_px, 14.0)

    def test_invalid_values(self) -> None:
        with self.assertRaises(PlotDataError):
            theme("neon")
        with self.assertRaises(PlotDataError):
            theme(grid_major="not-a-colour")
        with self.assertRaises(PlotDataError):
            theme(legend_position="left")


class SceneTests(unittest.TestCase):
    def test_adding_components_returns_a_new_scene(self) -> None:
        base = scene({"x": [1, 2], "y": [3, 4]}, aes(x="x", y="y"))
        grown = base + geom_point() + coord_flip() + theme_update(base_font_px=9.0) + labs(title="T", x="X")
        self.assertEqual(base.layers, ())
        self.assertEqual(len(grown.layers), 1)
        self.assertTrue(grown.coord.flip)
        self.assertEqual(grown.theme.base_font_px, 9.0)
        self.assertEqual(grown.labels.title, "T")
        self.assertEqual(grown.labels.for_channel("x"), "X")

    def test_later_scale_replaces_earlier(self) -> None:
        s = scene() + scale("x", name="first") + scale("x", name="second")
        self.assertEqual(s.resolved_scales()["x"].name, "second")

    def test_lollipop_adds_two_layers(self) -> None:
        s = scene({"x": ["a"], "y": [2.0]}, aes(x="x", y="y")) + geom_lollipop()
        self.assertEqual([lyr.geom for lyr in s.layers], ["segment", "point"])

    def test_layer_parameter_validation(self) -> None:
        with self.assertRaises(PlotDataError):
            layer("scatter")
        with self.assertRaises(PlotDataError):
            geom_point(glow=True)
        with self.assertRaises(ValueError):
            geom_point(alpha=2.0)
        with self.assertRaises(PlotDataError):
            geom_point(color="not-a-colour")

    def test_reference_line_carries_its_own_data(self) -> None:
        ref = geom_hline([1, 2])
        self.assertEqual(ref.data.values("y").tolist(), [1.0, 2.0])
        self.assertFalse(ref.inherit_mapping)
        self.assertFalse(ref.show_legend)


if __name__ == "__main__":
    unittest.main()
