"""Node/edge tables for drawing a graph with segment, point and text layers."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import networkx as nx
import numpy as np

from layerplot.adapters import to_table
from layerplot.errors import PlotDataError
from layerplot.table import ColumnKind, Table, unique_in_order

LOGGER = logging.getLogger(__name__)

# networkx layouts are float32; keep enough places to hide that.
_PLACES = 6


def circular_layout(nodes: Sequence[Any], *, radius: float = 1.0) -> dict[Any, tuple[float, float]]:
    """Place distinct node ids on a circle, first id at the top, going clockwise."""
    if radius <= 0:
        raise ValueError("radius must be > 0")
    graph = nx.MultiGraph()
    graph.add_nodes_from(unique_in_order(nodes))
    return _positions(graph, radius)


def _positions(graph: nx.MultiGraph, radius: float) -> dict[Any, tuple[float, float]]:
    if graph.number_of_nodes() == 1:
        (only,) = graph.nodes
        return {only: (0.0, float(radius))}
    # networkx starts at 3 o'clock and runs counter-clockwise; swapping the
    # axes puts the first node at 12 o'clock and runs clockwise.
    raw = nx.circular_layout(graph, scale=radius)
    return {
        node: (round(float(pos[1]), _PLACES) + 0.0, round(float(pos[0]), _PLACES) + 0.0)
        for node, pos in raw.items()
    }


def network_tables(
    edges: Any,
    source: str,
    target: str,
    node_attrs: Any = None,
    *,
    node_id: str = "id",
) -> tuple[Table, Table]:
    """Lay out a graph and return ``(nodes, edges)`` tables.

    Nodes are ordered by first appearance in the edge list (source before
    target), followed by any nodes that appear only in ``node_attrs``. The
    node table carries ``id``, ``x``, ``y``, ``degree`` and every attribute
    column; the edge table gains ``x``, ``y``, ``xend`` and ``yend``.
    """
    edge_table = to_table(edges)
    for name in (source, target):
        if name not in edge_table:
            raise PlotDataError(f"edge column not found: {name}")
    sources = edge_table.values(source).tolist()
    targets = edge_table.values(target).tolist()
    if any(v is None for v in sources + targets):
        raise PlotDataError("edge endpoints must not be missing")

    attrs = to_table(node_attrs) if node_attrs is not None else None
    if attrs is not None and node_id not in attrs:
        raise PlotDataError(f"node attribute table needs an {node_id!r} column")

    ordered: list[Any] = []
    for s, t in zip(sources, targets):
        ordered.extend((s, t))
    if attrs is not None:
        ordered.extend(attrs.values(node_id).tolist())
    ids = unique_in_order(ordered)
    # A multigraph so repeated edges still count towards degree.
    graph = nx.MultiGraph()
    graph.add_nodes_from(ids)
    graph.add_edges_from(zip(sources, targets))
    positions = _positions(graph, 1.0)
    degree = dict(graph.degree)
    LOGGER.debug("network layout: %d nodes, %d edges", graph.number_of_nodes(), graph.number_of_edges())

    nodes = Table.from_columns(
        {
            "id": np.asarray(ids, dtype=object),
            "x": np.asarray([positions[n][0] for n in ids], dtype=np.float64),
            "y": np.asarray([positions[n][1] for n in ids], dtype=np.float64),
            "degree": np.asarray([degree[n] for n in ids], dtype=np.float64),
        },
        schema={"id": ColumnKind.CATEGORICAL},
    )
    if attrs is not None:
        nodes = _join_attributes(nodes, attrs, ids, node_id)

    out = edge_table
    out = out.with_column("x", np.asarray([positions[s][0] for s in sources], dtype=np.float64), kind=ColumnKind.NUMERIC)
    out = out.with_column("y", np.asarray([positions[s][1] for s in sources], dtype=np.float64), kind=ColumnKind.NUMERIC)
    out = out.with_column("xend", np.asarray([positions[t][0] for t in targets], dtype=np.float64), kind=ColumnKind.NUMERIC)
    out = out.with_column("yend", np.asarray([positions[t][1] for t in targets], dtype=np.float64), kind=ColumnKind.NUMERIC)
    return nodes, out


def _join_attributes(nodes: Table, attrs: Table, ids: list[Any], node_id: str) -> Table:
    index: dict[Any, int] = {}
    for i, key in enumerate(attrs.values(node_id).tolist()):
        if key in index:
            raise PlotDataError(f"duplicate node id in attributes: {key!r}")
        index[key] = i
    for col in attrs.columns():
        if col.name == node_id or col.name in nodes:
            continue
        rows = [index.get(node) for node in ids]
        if col.kind.is_continuous:
            values = np.asarray([col.values[r] if r is not None else np.nan for r in rows], dtype=np.float64)
        else:
            values = np.empty(len(rows), dtype=object)
            values[:] = [col.values[r] if r is not None else None for r in rows]
        nodes = nodes.with_column(col.name, values, kind=col.kind, levels=col.levels)
    return nodes
