from __future__ import annotations

import unittest

import numpy as np

from layerplot.build import build
from layerplot.coords import coord_map
from layerplot.errors import DomainError, PlotDataError, TypeMismatch, UnresolvedColumn
from layerplot.facet import facet_wrap
from layerplot.layers import geom_bar, geom_hline, geom_point, geom_segment
from layerplot.mapping import aes
from layerplot.scales import scale_color_discrete, scale_x_log10
from layerplot.scene import labs, scene
from layerplot.theme import theme_update


PENGUINS = {
    "mass": [3.7, 3.8, 4.6, 5.0, 3.4, 5.2],
    "flipper": [181.0, 186.0, 210.0, 217.0, 192.0, 221.0],
    "species": ["Adelie", "Adelie", "Gentoo", "Gentoo", "Chinstrap", "Gentoo"],
    "island": ["Torgersen", "Biscoe", "Biscoe", "Biscoe", "Dream", "Biscoe"],
}


class BuildErrorTests(unittest.TestCase):
    def test_scene_without_layers(self) -> None:
        with self.assertRaises(PlotDataError):
            build(scene(PENGUINS, aes(x="mass", y="flipper")))

    def test_mapping_to_missing_column(self) -> None:
        with self.assertRaises(UnresolvedColumn) as ctx:
            build(scene(PENGUINS, aes(x="mass", y="beak")) + geom_point())
        self.assertEqual(ctx.exception.column, "beak")

    def test_missing_required_channel(self) -> None:
        with self.assertRaises(PlotDataError):
            build(scene(PENGUINS, aes(x="mass")) + geom_point())

    def test_log_scale_with_zero(self) -> None:
        data = {"x": [0.0, 1.0, 10.0], "y": [1.0, 2.0, 3.0]}
        with self.assertRaises(DomainError):
            build(scene(data, aes(x="x", y="y")) + geom_point() + scale_x_log10())

    def test_continuous_shape(self) -> None:
        with self.assertRaises(TypeMismatch):
            build(scene(PENGUINS, aes(x="mass", y="flipper", shape="mass")) + geom_point())


class LegendTests(unittest.TestCase):
    def test_channels_on_one_column_share_a_legend(self) -> None:
        s = scene(PENGUINS, aes(x="mass", y="flipper", color="species", shape="species")) + geom_point()
        built = build(s)
        self.assertEqual(len(built.legends), 1)
        legend = built.legends[0]
        self.assertEqual(legend.title, "species")
        self.assertEqual(legend.channels, ("color", "shape"))
        self.assertEqual([key.label for key in legend.keys], ["Adelie", "Gentoo", "Chinstrap"])
        self.assertTrue(all(key.color is not None and key.shape is not None for key in legend.keys))

    def test_channels_on_different_columns_get_separate_legends(self) -> None:
        s = scene(PENGUINS, aes(x="mass", y="flipper", color="species", shape="island")) + geom_point()
        titles = [legend.title for legend in build(s).legends]
        self.assertEqual(titles, ["species", "island"])

    def test_hidden_legend_position(self) -> None:
        s = (
            scene(PENGUINS, aes(x="mass", y="flipper", color="species"))
            + geom_point()
            + theme_update(legend_position="none")
        )
        self.assertEqual(build(s).legends, ())

    def test_continuous_colour_gives_a_colorbar(self) -> None:
        s = scene(PENGUINS, aes(x="mass", y="flipper", color="mass")) + geom_point()
        legends = build(s).legends
        self.assertEqual(len(legends), 1)
        self.assertTrue(legends[0].is_colorbar)

    def test_reference_lines_stay_out_of_legends(self) -> None:
        s = scene(PENGUINS, aes(x="mass", y="flipper", color="species")) + geom_point() + geom_hline(200.0)
        built = build(s)
        self.assertEqual(len(built.legends), 1)
        self.assertEqual(built.legends[0].glyphs, ("point",))


class BuildTests(unittest.TestCase):
    def test_bar_counts_categories(self) -> None:
        built = build(scene({"g": ["b", "a", "b"]}, aes(x="g")) + geom_bar())
        self.assertEqual(built.x_scale.levels, ("b", "a"))
        self.assertEqual(built.y_title, "count")
        self.assertEqual(len(built.layers), 1)
        table = built.layers[0].data
        self.assertEqual(table.values("x").tolist(), [1.0, 2.0])
        self.assertEqual(table.values("ymax").tolist(), [2.0, 1.0])
        self.assertEqual(table.values("ymin").tolist(), [0.0, 0.0])

    def test_facets_split_rows_between_panels(self) -> None:
        s = scene(PENGUINS, aes(x="mass", y="flipper")) + geom_point() + facet_wrap("species")
        built = build(s)
        self.assertEqual(len(built.layout.panels), 3)
        rows = {layer.panel: layer.data.num_rows for layer in built.layers}
        self.assertEqual(rows, {0: 2, 1: 3, 2: 1})

    def test_rows_with_missing_facet_values_are_drawn(self) -> None:
        data = {"x": [1.0, 2.0, 3.0, 4.0], "y": [1.0, 2.0, 3.0, 4.0], "k": [1.0, np.nan, np.nan, 2.0]}
        built = build(scene(data, aes(x="x", y="y")) + geom_point() + facet_wrap("k"))
        self.assertEqual(len(built.layout.panels), 3)
        self.assertEqual(sum(layer.data.num_rows for layer in built.layers), 4)

    def test_missing_category_uses_the_na_colour(self) -> None:
        data = {"x": [1.0, 2.0, 3.0], "y": [1.0, 2.0, 3.0], "g": ["a", None, "b"]}
        built = build(scene(data, aes(x="x", y="y", color="g")) + geom_point())
        colors = built.layers[0].color
        self.assertEqual(tuple(int(c) for c in colors[1]), (127, 127, 127, 255))
        self.assertNotEqual(tuple(int(c) for c in colors[0]), (127, 127, 127, 255))

    def test_missing_numeric_value_on_a_discrete_colour_scale(self) -> None:
        data = {"x": [1.0, 2.0, 3.0], "y": [1.0, 2.0, 3.0], "c": [1.0, np.nan, 2.0]}
        built = build(scene(data, aes(x="x", y="y", color="c")) + geom_point() + scale_color_discrete())
        self.assertEqual(tuple(int(v) for v in built.layers[0].color[1]), (127, 127, 127, 255))
        self.assertEqual([key.label for key in built.legends[0].keys], ["1.0", "2.0"])

    def test_literal_colour_overrides_the_default(self) -> None:
        built = build(scene(PENGUINS, aes(x="mass", y="flipper")) + geom_point(color="red"))
        self.assertTrue(np.all(built.layers[0].color == np.asarray([255, 0, 0, 255], dtype=np.uint8)))

    def test_css_colour_names_as_literals(self) -> None:
        built = build(scene(PENGUINS, aes(x="mass", y="flipper")) + geom_point(color="salmon"))
        self.assertTrue(np.all(built.layers[0].color == np.asarray([250, 128, 114, 255], dtype=np.uint8)))

    def test_map_window_zooms_without_expansion(self) -> None:
        data = {"lon": [2.0, 5.0, 20.0], "lat": [10.0, 20.0, 30.0]}
        s = scene(data, aes(x="lon", y="lat")) + geom_point() + coord_map("equirectangular", xlim=(0, 10))
        built = build(s)
        self.assertEqual(built.x_scale.limits, (0.0, 10.0))
        self.assertEqual(built.layers[0].data.values("x").tolist(), [2.0, 5.0])

    def test_segments_keep_their_end_points(self) -> None:
        data = {"a": [0.0], "b": [0.0], "c": [3.0], "d": [4.0]}
        built = build(scene(data, aes(x="a", y="b", xend="c", yend="d")) + geom_segment())
        table = built.layers[0].data
        self.assertEqual(table.values("xend").tolist(), [3.0])
        self.assertGreater(built.x_scale.limits[1], 3.0)

    def test_user_labels_win_over_column_names(self) -> None:
        s = scene(PENGUINS, aes(x="mass", y="flipper")) + geom_point() + labs(x="Body mass (kg)", title="Penguins")
        built = build(s)
        self.assertEqual(built.x_title, "Body mass (kg)")
        self.assertEqual(built.y_title, "flipper")
        self.assertEqual(built.title, "Penguins")


if __name__ == "__main__":
    unittest.main()
