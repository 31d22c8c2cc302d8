from __future__ import annotations

import contextlib
import io
import json
from pathlib import Path
import tempfile
import unittest

from layerplot.coords import MapProjection
from layerplot.config import load_plot_config, plot_config_from_mapping
from layerplot.errors import PlotDataError
from layerplot.mapping import Literal
from layerplot.table import ColumnKind

import main as cli


CSV = "mass,flipper,species,year\n3.7,181,Adelie,2007\n4.6,210,Gentoo,2008\n3.4,192,Chinstrap,2009\n"

PLOT = """
[plot]
data = "penguins.csv"
width = 320
height = 240
title = "Penguins"

[schema]
year = "categorical"

[mapping]
x = "flipper"
y = "mass"
color = "species"

[[layers]]
geom = "point"
alpha = 0.7

[[layers]]
geom = "hline"
yintercept = 4.0

[[layers]]
geom = "text"
mapping = { label = "species", size = { literal = 9 } }

[[scales]]
channel = "y"
name = "Body mass (kg)"

[facet]
wrap = "year"
ncol = 3

[theme]
preset = "minimal"
base_font_px = 11.0
"""


class _PlotDir:
    def __init__(self, plot: str) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        (self.root / "penguins.csv").write_text(CSV, encoding="utf-8")
        self.plot_file = self.root / "plot.toml"
        self.plot_file.write_text(plot, encoding="utf-8")

    def __enter__(self) -> "_PlotDir":
        return self

    def __exit__(self, *exc: object) -> None:
        self._tmp.cleanup()


class PlotConfigTests(unittest.TestCase):
    def test_plot_file_builds_a_scene(self) -> None:
        with _PlotDir(PLOT) as d:
            config = load_plot_config(d.plot_file)
        self.assertEqual((config.width, config.height), (320, 240))
        s = config.scene
        self.assertEqual([lyr.geom for lyr in s.layers], ["point", "hline", "text"])
        self.assertEqual(s.layers[0].params["alpha"], 0.7)
        self.assertEqual(s.layers[2].mapping["size"], Literal(9))
        self.assertEqual(s.data.kind("year"), ColumnKind.CATEGORICAL)
        self.assertEqual(s.labels.title, "Penguins")
        self.assertEqual(s.resolved_scales()["y"].name, "Body mass (kg)")
        self.assertEqual(s.theme.base_font_px, 11.0)

    def test_map_coordinates(self) -> None:
        raw = {
            "layers": [{"geom": "point", "data": "penguins.csv", "mapping": {"x": "flipper", "y": "mass"}}],
            "coord": {"type": "map", "projection": "equirectangular", "xlim": [0, 10]},
        }
        with _PlotDir(PLOT) as d:
            config = plot_config_from_mapping(raw, base_dir=d.root)
        self.assertIsInstance(config.scene.coord, MapProjection)
        self.assertEqual(config.scene.coord.xlim, (0, 10))

    def test_network_references(self) -> None:
        raw = {
            "network": {"edges": "edges.csv", "source": "a", "target": "b"},
            "layers": [
                {"geom": "segment", "data": "@edges", "mapping": {"x": "x", "y": "y", "xend": "xend", "yend": "yend"}},
                {"geom": "point", "data": "@nodes", "mapping": {"x": "x", "y": "y"}},
            ],
        }
        with _PlotDir(PLOT) as d:
            (d.root / "edges.csv").write_text("a,b\np,q\nq,r\n", encoding="utf-8")
            config = plot_config_from_mapping(raw, base_dir=d.root)
        self.assertEqual(config.scene.layers[1].data.values("id").tolist(), ["p", "q", "r"])

    def test_invalid_entries(self) -> None:
        cases = [
            {"layers": [{"geom": "scatter"}]},
            {"layers": []},
            {"layers": [{"geom": "point"}], "plot": {"width": -1}},
            {"layers": [{"geom": "point", "glow": 1}]},
            {"layers": [{"geom": "point", "data": "@nodes"}]},
            {"layers": [{"geom": "point"}], "coord": {"type": "polar"}},
            {"layers": [{"geom": "point"}], "schema": {"x": "fuzzy"}},
            {"layers": [{"geom": "point", "mapping": {"size": {"value": 3}}}]},
        ]
        for raw in cases:
            with self.subTest(raw=raw):
                with self.assertRaises(PlotDataError):
                    plot_config_from_mapping(raw)

    def test_missing_and_malformed_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(FileNotFoundError):
                load_plot_config(Path(tmp) / "absent.toml")
            broken = Path(tmp) / "broken.toml"
            broken.write_text("[plot\n", encoding="utf-8")
            with self.assertRaises(PlotDataError):
                load_plot_config(broken)


class CommandLineTests(unittest.TestCase):
    def test_render_writes_png_next_to_the_plot_file(self) -> None:
        with _PlotDir(PLOT) as d:
            with contextlib.redirect_stdout(io.StringIO()):
                code = cli.main(["render", str(d.plot_file)])
            self.assertEqual(code, 0)
            self.assertTrue((d.root / "plot.png").read_bytes().startswith(b"\x89PNG"))

    def test_render_to_svg_with_size_override(self) -> None:
        with _PlotDir(PLOT) as d:
            out = d.root / "figure.svg"
            with contextlib.redirect_stdout(io.StringIO()):
                code = cli.main(["render", str(d.plot_file), "-o", str(out), "--width", "200"])
            self.assertEqual(code, 0)
            self.assertIn('width="200"', out.read_text(encoding="utf-8"))

    def test_inspect_prints_a_summary(self) -> None:
        with _PlotDir(PLOT) as d:
            buffer = io.StringIO()
            with contextlib.redirect_stdout(buffer):
                code = cli.main(["inspect", str(d.plot_file)])
        self.assertEqual(code, 0)
        summary = json.loads(buffer.getvalue())
        self.assertEqual(summary["layout"], {"ncol": 3, "nrow": 1})
        self.assertEqual(summary["layers"], ["point", "hline", "text"])
        self.assertEqual([legend["title"] for legend in summary["legends"]], ["species"])

    def test_presets_and_failures(self) -> None:
        buffer = io.StringIO()
        with contextlib.redirect_stdout(buffer):
            self.assertEqual(cli.main(["presets"]), 0)
        self.assertIn("minimal", buffer.getvalue().split())
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertLogs("layerplot.cli", level="ERROR"):
                self.assertEqual(cli.main(["render", str(Path(tmp) / "absent.toml")]), 2)


if __name__ == "__main__":
    unittest.main()
