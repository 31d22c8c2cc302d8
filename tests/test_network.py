from __future__ import annotations

import unittest

from layerplot.api import render_display_list
from layerplot.errors import PlotDataError
from layerplot.layers import geom_point, geom_segment, geom_text
from layerplot.mapping import aes
from layerplot.network import circular_layout, network_tables
from layerplot.render import Marker
from layerplot.scene import scene


EDGES = {"from": ["a", "b", "c"], "to": ["b", "c", "a"]}


class CircularLayoutTests(unittest.TestCase):
    def test_first_node_at_top_then_clockwise(self) -> None:
        positions = circular_layout(["n0", "n1", "n2", "n3"])
        self.assertEqual(positions["n0"], (0.0, 1.0))
        self.assertEqual(positions["n1"], (1.0, 0.0))
        self.assertEqual(positions["n2"], (0.0, -1.0))
        self.assertEqual(positions["n3"], (-1.0, 0.0))

    def test_duplicates_collapse_and_radius_scales(self) -> None:
        positions = circular_layout(["a", "a", "b"], radius=2.0)
        self.assertEqual(list(positions), ["a", "b"])
        self.assertEqual(positions["a"], (0.0, 2.0))
        with self.assertRaises(ValueError):
            circular_layout(["a"], radius=0.0)


class NetworkTableTests(unittest.TestCase):
    def test_nodes_follow_edge_order_with_degrees(self) -> None:
        nodes, edges = network_tables({"from": ["a", "b"], "to": ["b", "c"]}, "from", "to")
        self.assertEqual(nodes.values("id").tolist(), ["a", "b", "c"])
        self.assertEqual(nodes.values("degree").tolist(), [1.0, 2.0, 1.0])
        self.assertEqual(edges.num_rows, 2)

    def test_repeated_edges_count_towards_degree(self) -> None:
        nodes, edges = network_tables({"from": ["a", "a", "b"], "to": ["b", "b", "b"]}, "from", "to")
        self.assertEqual(nodes.values("degree").tolist(), [2.0, 4.0])
        self.assertEqual(edges.num_rows, 3)
        self.assertEqual(circular_layout(["solo"]), {"solo": (0.0, 1.0)})

    def test_edges_point_at_their_node_positions(self) -> None:
        nodes, edges = network_tables(EDGES, "from", "to")
        where = dict(zip(nodes.values("id").tolist(), zip(nodes.values("x").tolist(), nodes.values("y").tolist())))
        for i, (s, t) in enumerate(zip(EDGES["from"], EDGES["to"])):
            self.assertEqual((edges.values("x")[i], edges.values("y")[i]), where[s])
            self.assertEqual((edges.values("xend")[i], edges.values("yend")[i]), where[t])

    def test_node_attributes_are_joined(self) -> None:
        attrs = {"id": ["c", "a", "z"], "team": ["red", "blue", "green"]}
        nodes, _ = network_tables(EDGES, "from", "to", attrs)
        self.assertEqual(nodes.values("id").tolist(), ["a", "b", "c", "z"])
        self.assertEqual(nodes.values("team").tolist(), ["blue", None, "red", "green"])
        self.assertEqual(nodes.values("degree").tolist(), [2.0, 2.0, 2.0, 0.0])

    def test_invalid_inputs(self) -> None:
        with self.assertRaises(PlotDataError):
            network_tables(EDGES, "src", "to")
        with self.assertRaises(PlotDataError):
            network_tables({"from": ["a", None], "to": ["b", "a"]}, "from", "to")
        with self.assertRaises(PlotDataError):
            network_tables(EDGES, "from", "to", {"name": ["a"]})
        with self.assertRaises(PlotDataError):
            network_tables(EDGES, "from", "to", {"id": ["a", "a"], "w": [1.0, 2.0]})

    def test_graph_renders_with_point_segment_and_text_layers(self) -> None:
        nodes, edges = network_tables(EDGES, "from", "to")
        s = (
            scene()
            + geom_segment(aes(x="x", y="y", xend="xend", yend="yend"), data=edges)
            + geom_point(aes(x="x", y="y"), data=nodes, size=5.0)
            + geom_text(aes(x="x", y="y", label="id"), data=nodes)
        )
        markers = [item for item in render_display_list(s, 300, 300).items if isinstance(item, Marker)]
        self.assertEqual(len(markers), 3)


if __name__ == "__main__":
    unittest.main()
