"""Hierarchical dataflow graph model.

The graph is an arena: nodes, regions, ports and edges live in tuples owned by
the `Graph`, and every cross reference is an integer index into one of them.
Parent links (node -> region, region -> owner node) are plain indices, so the
structure holds no reference cycles and is immutable once built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, TypeAlias

from hugr_jeff._types import is_linear_type

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

AttrValue: TypeAlias = int | float | str | bool | tuple[int, ...]


class Direction(StrEnum):
    """Direction of a port relative to its owner."""

    INPUT = "in"
    OUTPUT = "out"


class OwnerKind(StrEnum):
    """What a port is attached to."""

    NODE = "node"
    REGION = "region"  # Boundary port of a region


@dataclass(frozen=True, slots=True)
class Port:
    """A typed connection point on a node or on a region boundary.

    Attributes:
        id: Index of this port in `Graph.ports`.
        key: Key of the port in the source file.
        owner_kind: Whether the port belongs to a node or a region boundary.
        owner: Index of the owning node or region.
        direction: Input or output, relative to the owner.
        index: Position among the owner's ports of the same direction.
        type: Type descriptor, copied verbatim from the source.
        linear: Declared linearity flag, or None when the source left it out.

    """

    id: int
    key: str
    owner_kind: OwnerKind
    owner: int
    direction: Direction
    index: int
    type: str
    linear: bool | None = None

    @property
    def is_source(self) -> bool:
        """Whether edges may start at this port.

        Node outputs feed edges. So do region inputs, which carry values into
        the region body.
        """
        if self.owner_kind == OwnerKind.NODE:
            return self.direction == Direction.OUTPUT
        return self.direction == Direction.INPUT

    @property
    def is_linear(self) -> bool:
        """Effective linearity: the declared flag, else inferred from the type."""
        if self.linear is not None:
            return self.linear
        return is_linear_type(self.type)


@dataclass(frozen=True, slots=True)
class Node:
    """A unit of computation or structure.

    Attributes:
        id: Index of this node in `Graph.nodes`.
        key: Stable identifier from the source file, unique within the graph.
        op: Operation kind tag (e.g. ``qubit.gate``, ``func.define``).
        parent: Index of the region containing this node.
        inputs: Input port indices, in position order.
        outputs: Output port indices, in position order.
        regions: Indices of the nested regions owned by this node, in order.
        name: Optional human-readable name (function name, gate name, ...).
        attrs: Operation parameters, read-only.
        metadata: Free-form metadata, copied through to the target. Read-only.

    """

    id: int
    key: str
    op: str
    parent: int
    inputs: tuple[int, ...] = ()
    outputs: tuple[int, ...] = ()
    regions: tuple[int, ...] = ()
    name: str = ""
    attrs: Mapping[str, AttrValue] = field(default_factory=dict, hash=False)
    metadata: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attrs", MappingProxyType(dict(self.attrs)))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def label(self) -> str:
        """Display name: the explicit name if any, else the key."""
        return self.name or self.key


@dataclass(frozen=True, slots=True)
class Region:
    """A nested scope holding an ordered sequence of nodes.

    Attributes:
        id: Index of this region in `Graph.regions`.
        key: Key of the region in the source file.
        owner: Index of the node owning this region, or None for a top-level region.
        children: Indices of the nodes in this region, in order.
        inputs: Boundary input port indices (values entering the region).
        outputs: Boundary output port indices (values leaving the region).

    """

    id: int
    key: str
    owner: int | None = None
    children: tuple[int, ...] = ()
    inputs: tuple[int, ...] = ()
    outputs: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class Edge:
    """A directed dataflow connection.

    Attributes:
        id: Index of this edge in `Graph.edges`.
        region: The region the edge is declared in (its scope).
        source: Port index the value flows from.
        target: Port index the value flows to.

    """

    id: int
    region: int
    source: int
    target: int


@dataclass(frozen=True, slots=True)
class Graph:
    """A complete program: nodes, ports, edges and the region tree.

    Attributes:
        nodes: All nodes, indexed by `Node.id`.
        regions: All regions, indexed by `Region.id`.
        ports: All ports, indexed by `Port.id`.
        edges: All edges, indexed by `Edge.id`.
        name: Module name.
        version: Source format version as ``(major, minor)``.
        entrypoint: Index of the entrypoint node, if declared.

    """

    nodes: tuple[Node, ...] = ()
    regions: tuple[Region, ...] = ()
    ports: tuple[Port, ...] = ()
    edges: tuple[Edge, ...] = ()
    name: str = "module"
    version: tuple[int, int] = (0, 1)
    entrypoint: int | None = None

    def node(self, node_id: int) -> Node:
        """Get a node by index.

        Raises:
            KeyError: If no node has this index.

        """
        if not 0 <= node_id < len(self.nodes):
            msg = f"No node with index {node_id}"
            raise KeyError(msg)
        return self.nodes[node_id]

    def region(self, region_id: int) -> Region:
        """Get a region by index.

        Raises:
            KeyError: If no region has this index.

        """
        if not 0 <= region_id < len(self.regions):
            msg = f"No region with index {region_id}"
            raise KeyError(msg)
        return self.regions[region_id]

    def port(self, port_id: int) -> Port:
        """Get a port by index.

        Raises:
            KeyError: If no port has this index.

        """
        if not 0 <= port_id < len(self.ports):
            msg = f"No port with index {port_id}"
            raise KeyError(msg)
        return self.ports[port_id]

    def has_node(self, node_id: int) -> bool:
        return 0 <= node_id < len(self.nodes)

    def has_region(self, region_id: int) -> bool:
        return 0 <= region_id < len(self.regions)

    def has_port(self, port_id: int) -> bool:
        return 0 <= port_id < len(self.ports)

    def node_by_key(self, key: str) -> Node:
        """Look up a node by its source key.

        Raises:
            KeyError: If no node has this key.

        """
        for node in self.nodes:
            if node.key == key:
                return node
        msg = f"No node with key '{key}'"
        raise KeyError(msg)

    def roots(self) -> tuple[int, ...]:
        """Indices of all regions without an owner."""
        return tuple(region.id for region in self.regions if region.owner is None)

    @property
    def root(self) -> Region:
        """The single top-level region.

        Raises:
            ValueError: If the graph does not have exactly one top-level region.

        """
        roots = self.roots()
        if len(roots) != 1:
            msg = f"Expected exactly one top-level region, found {len(roots)}"
            raise ValueError(msg)
        return self.regions[roots[0]]

    def parent_region(self, region_id: int) -> int | None:
        """Index of the region enclosing a region, or None for a top-level region."""
        owner = self.region(region_id).owner
        if owner is None:
            return None
        return self.node(owner).parent

    def enclosing_regions(self, region_id: int) -> Iterator[int]:
        """Yield a region and then each enclosing region outwards.

        Stops early if the region tree contains a cycle or a dangling reference.
        """
        seen: set[int] = set()
        current: int | None = region_id
        while current is not None and current not in seen and self.has_region(current):
            seen.add(current)
            yield current
            owner = self.regions[current].owner
            if owner is None or not self.has_node(owner):
                return
            current = self.nodes[owner].parent

    def port_region(self, port: Port) -> int:
        """Index of the region in which a port is visible to edges.

        Node ports live in the node's parent region. Boundary ports live inside
        their own region.
        """
        if port.owner_kind == OwnerKind.NODE:
            return self.node(port.owner).parent
        return port.owner

    def types(self, port_ids: Sequence[int]) -> tuple[str, ...]:
        """Type descriptors of a sequence of ports."""
        return tuple(self.port(port_id).type for port_id in port_ids)

    def signature(self, node_id: int) -> tuple[tuple[str, ...], tuple[str, ...]]:
        """Input and output type sequences of a node."""
        node = self.node(node_id)
        return self.types(node.inputs), self.types(node.outputs)

    def region_signature(self, region_id: int) -> tuple[tuple[str, ...], tuple[str, ...]]:
        """Boundary input and output type sequences of a region."""
        region = self.region(region_id)
        return self.types(region.inputs), self.types(region.outputs)

    def incoming(self, port_id: int) -> list[Edge]:
        """Edges targeting a port."""
        return [edge for edge in self.edges if edge.target == port_id]

    def outgoing(self, port_id: int) -> list[Edge]:
        """Edges leaving a port."""
        return [edge for edge in self.edges if edge.source == port_id]

    def __len__(self) -> int:
        """Return the number of nodes in the graph."""
        return len(self.nodes)
