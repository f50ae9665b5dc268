"""Hierarchical dataflow graph model.

This module contains:
- Graph, Node, Region, Port, Edge: the immutable arena-based graph model
- structurally_equal: index-independent graph comparison

The record-to-graph builder lives in `hugr_jeff._graph._builder`; it is not
re-exported here because it depends on the jeff record definitions, which in
turn depend on this model.
"""

from ._compare import graph_structure, structurally_equal
from ._model import AttrValue, Direction, Edge, Graph, Node, OwnerKind, Port, Region

__all__ = [
    "AttrValue",
    "Direction",
    "Edge",
    "Graph",
    "Node",
    "OwnerKind",
    "Port",
    "Region",
    "graph_structure",
    "structurally_equal",
]
