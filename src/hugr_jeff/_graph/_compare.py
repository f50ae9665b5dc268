"""Index-independent comparison of graphs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeAlias

from ._model import OwnerKind

if TYPE_CHECKING:
    from ._model import Graph, Port

Path: TypeAlias = tuple[int, ...]


def _region_paths(graph: Graph) -> tuple[dict[int, Path], dict[int, Path]]:
    """Assign every reachable region and node a positional path.

    A path lists child positions from the top-level regions downwards, so it
    stays the same when two graphs differ only in indices or keys.
    """
    region_paths: dict[int, Path] = {}
    node_paths: dict[int, Path] = {}
    stack: list[tuple[int, Path]] = [(root, (pos,)) for pos, root in enumerate(graph.roots())]
    while stack:
        region_id, path = stack.pop()
        if region_id in region_paths:
            continue
        region_paths[region_id] = path
        for child_pos, node_id in enumerate(graph.region(region_id).children):
            node_path = (*path, child_pos)
            node_paths[node_id] = node_path
            for region_pos, sub_region in enumerate(graph.node(node_id).regions):
                stack.append((sub_region, (*node_path, region_pos)))
    return region_paths, node_paths


def _port_shape(port: Port) -> tuple[str, bool | None]:
    return (port.type, port.linear)


def graph_structure(graph: Graph) -> tuple[Any, ...]:
    """Describe a graph as a nested tuple that ignores indices and keys.

    Two graphs with equal structure have the same nodes (operation, name,
    attributes, metadata and typed ports), the same region nesting and the
    same edges between positionally equivalent ports. Only the part of the
    graph reachable from its top-level regions is described.
    """
    region_paths, node_paths = _region_paths(graph)

    def describe_region(region_id: int) -> tuple[Any, ...]:
        region = graph.region(region_id)
        return (
            tuple(_port_shape(graph.port(p)) for p in region.inputs),
            tuple(_port_shape(graph.port(p)) for p in region.outputs),
            tuple(describe_node(node_id) for node_id in region.children),
        )

    def describe_node(node_id: int) -> tuple[Any, ...]:
        node = graph.node(node_id)
        return (
            node.op,
            node.name,
            tuple(sorted(node.attrs.items())),
            tuple(sorted(node.metadata.items())),
            tuple(_port_shape(graph.port(p)) for p in node.inputs),
            tuple(_port_shape(graph.port(p)) for p in node.outputs),
            tuple(describe_region(r) for r in node.regions),
        )

    def port_address(port_id: int) -> tuple[Any, ...]:
        port = graph.port(port_id)
        if port.owner_kind == OwnerKind.NODE:
            owner_path = node_paths.get(port.owner)
        else:
            owner_path = region_paths.get(port.owner)
        return (port.owner_kind.value, owner_path, port.direction.value, port.index)

    edges = tuple(
        (region_paths.get(edge.region), port_address(edge.source), port_address(edge.target))
        for edge in graph.edges
    )
    entrypoint = node_paths.get(graph.entrypoint) if graph.entrypoint is not None else None

    return (
        graph.name,
        tuple(describe_region(root) for root in graph.roots()),
        edges,
        entrypoint,
    )


def structurally_equal(left: Graph, right: Graph) -> bool:
    """Check whether two graphs have the same topology and types.

    Indices and keys may differ.
    """
    return graph_structure(left) == graph_structure(right)
