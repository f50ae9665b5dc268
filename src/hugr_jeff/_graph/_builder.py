"""Assemble a `Graph` from decoded jeff records.

Building takes two passes. The first pass gives every node, region and port an
index and records the key-to-index mapping. The second pass resolves every cross
reference through that mapping. The mapping is discarded once the graph is
built.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from hugr_jeff._errors import DanglingReference, DuplicateKey
from hugr_jeff._jeff._records import (
    AttrRecord,
    EdgeRecord,
    HeaderRecord,
    MetaRecord,
    NodeRecord,
    PortRecord,
    RegionRecord,
)

from ._model import AttrValue, Direction, Edge, Graph, Node, OwnerKind, Port, Region

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable, Sequence

    from hugr_jeff._jeff._records import Record

logger = logging.getLogger(__name__)

CALL_OP = "func.call"
CALLEE_ATTR = "callee"


@dataclass(slots=True)
class _Index:
    """Key-to-index tables filled by the first pass."""

    header: HeaderRecord | None = None
    nodes: dict[str, int] = field(default_factory=dict)
    regions: dict[str, int] = field(default_factory=dict)
    ports: dict[str, int] = field(default_factory=dict)
    node_records: list[NodeRecord] = field(default_factory=list)
    region_records: list[RegionRecord] = field(default_factory=list)
    port_records: list[PortRecord] = field(default_factory=list)
    edge_records: list[EdgeRecord] = field(default_factory=list)
    attr_records: list[AttrRecord] = field(default_factory=list)
    meta_records: list[MetaRecord] = field(default_factory=list)


def _declare(table: dict[str, int], kind: str, key: str) -> int:
    if key in table:
        raise DuplicateKey(kind, key)
    table[key] = len(table)
    return table[key]


def _index_records(records: Iterable[Record]) -> _Index:
    """First pass: assign indices and reject duplicate keys."""
    index = _Index()
    for record in records:
        match record:
            case HeaderRecord():
                if index.header is not None:
                    raise DuplicateKey("header", record.name)
                index.header = record
            case NodeRecord():
                _declare(index.nodes, "node", record.key)
                index.node_records.append(record)
            case RegionRecord():
                _declare(index.regions, "region", record.key)
                index.region_records.append(record)
            case PortRecord():
                _declare(index.ports, "port", record.key)
                index.port_records.append(record)
            case EdgeRecord():
                index.edge_records.append(record)
            case AttrRecord():
                index.attr_records.append(record)
            case MetaRecord():
                index.meta_records.append(record)
    return index


def _resolve(table: dict[str, int], kind: str, key: str, referrer: str) -> int:
    try:
        return table[key]
    except KeyError:
        raise DanglingReference(kind, key, referrer) from None


def order_by_position(
    items: Sequence[tuple[int, int | None]],
    kind: str,
    owner: str,
) -> list[int]:
    """Order items by explicit position, then unpositioned items in first-seen order.

    Args:
        items: ``(item, position)`` pairs in declaration order.
        kind: What is being ordered, used in error messages.
        owner: Key of the owner, used in error messages.

    Returns:
        The items in their final order.

    Raises:
        DuplicateKey: If two items claim the same explicit position.

    """
    positioned: dict[int, int] = {}
    unpositioned: list[int] = []
    for item, position in items:
        if position is None:
            unpositioned.append(item)
        elif position in positioned:
            raise DuplicateKey(f"{kind} position", f"{owner}#{position}")
        else:
            positioned[position] = item
    return [positioned[p] for p in sorted(positioned)] + unpositioned


def build_graph(records: Iterable[Record]) -> Graph:  # noqa: C901, PLR0912, PLR0915
    """Build the graph described by a record sequence.

    Args:
        records: Records as produced by `decode_records`.

    Returns:
        The assembled, immutable graph.

    Raises:
        DanglingReference: If a record refers to a key no record declares.
        DuplicateKey: If a key, an attribute name or an explicit position is
            declared twice.

    """
    index = _index_records(records)
    header = index.header or HeaderRecord()

    # Pass 2: resolve every reference
    node_parent: list[int] = []
    children: defaultdict[int, list[int]] = defaultdict(list)
    for node_id, rec in enumerate(index.node_records):
        parent = _resolve(index.regions, "region", rec.region, f"node '{rec.key}'")
        node_parent.append(parent)
        children[parent].append(node_id)

    region_owner: list[int | None] = []
    owned_regions: defaultdict[int, list[tuple[int, int | None]]] = defaultdict(list)
    for region_id, rec in enumerate(index.region_records):
        if not rec.owner:
            region_owner.append(None)
            continue
        owner = _resolve(index.nodes, "node", rec.owner, f"region '{rec.key}'")
        region_owner.append(owner)
        owned_regions[owner].append((region_id, rec.position))

    port_owner: list[int] = []
    port_groups: defaultdict[Hashable, list[tuple[int, int | None]]] = defaultdict(list)
    for port_id, rec in enumerate(index.port_records):
        if rec.owner_kind == OwnerKind.NODE:
            owner = _resolve(index.nodes, "node", rec.owner, f"port '{rec.key}'")
        else:
            owner = _resolve(index.regions, "region", rec.owner, f"port '{rec.key}'")
        port_owner.append(owner)
        port_groups[rec.owner_kind, owner, rec.direction].append((port_id, rec.position))

    port_index: dict[int, int] = {}
    ordered_ports: dict[Hashable, list[int]] = {}
    for group, items in port_groups.items():
        owner_kind, owner, direction = group
        owner_key = (index.node_records if owner_kind == OwnerKind.NODE else index.region_records)[owner].key
        ordered = order_by_position(items, f"{direction} port", owner_key)
        ordered_ports[group] = ordered
        for position, port_id in enumerate(ordered):
            port_index[port_id] = position

    edges: list[Edge] = []
    for edge_id, rec in enumerate(index.edge_records):
        referrer = f"edge {rec.source} -> {rec.target}"
        edges.append(
            Edge(
                id=edge_id,
                region=_resolve(index.regions, "region", rec.region, referrer),
                source=_resolve(index.ports, "port", rec.source, referrer),
                target=_resolve(index.ports, "port", rec.target, referrer),
            ),
        )

    attrs: defaultdict[int, dict[str, AttrValue]] = defaultdict(dict)
    for rec in index.attr_records:
        node_id = _resolve(index.nodes, "node", rec.node, f"attribute '{rec.name}'")
        if rec.name in attrs[node_id]:
            raise DuplicateKey("attribute", f"{rec.node}.{rec.name}")
        attrs[node_id][rec.name] = rec.value

    metadata: defaultdict[int, dict[str, str]] = defaultdict(dict)
    for rec in index.meta_records:
        node_id = _resolve(index.nodes, "node", rec.node, f"metadata '{rec.name}'")
        if rec.name in metadata[node_id]:
            raise DuplicateKey("metadata", f"{rec.node}.{rec.name}")
        metadata[node_id][rec.name] = rec.value

    for node_id, rec in enumerate(index.node_records):
        if rec.op != CALL_OP:
            continue
        callee = attrs[node_id].get(CALLEE_ATTR)
        if isinstance(callee, str):
            _resolve(index.nodes, "callee", callee, f"node '{rec.key}'")

    entrypoint = None
    if header.entrypoint:
        entrypoint = _resolve(index.nodes, "node", header.entrypoint, "header entrypoint")

    ports = tuple(
        Port(
            id=port_id,
            key=rec.key,
            owner_kind=rec.owner_kind,
            owner=port_owner[port_id],
            direction=rec.direction,
            index=port_index[port_id],
            type=rec.type,
            linear=rec.linear,
        )
        for port_id, rec in enumerate(index.port_records)
    )

    nodes = tuple(
        Node(
            id=node_id,
            key=rec.key,
            op=rec.op,
            parent=node_parent[node_id],
            inputs=tuple(ordered_ports.get((OwnerKind.NODE, node_id, Direction.INPUT), ())),
            outputs=tuple(ordered_ports.get((OwnerKind.NODE, node_id, Direction.OUTPUT), ())),
            regions=tuple(order_by_position(owned_regions[node_id], "region", rec.key)),
            name=rec.name,
            attrs=attrs[node_id],
            metadata=metadata[node_id],
        )
        for node_id, rec in enumerate(index.node_records)
    )

    regions = tuple(
        Region(
            id=region_id,
            key=rec.key,
            owner=region_owner[region_id],
            children=tuple(children[region_id]),
            inputs=tuple(ordered_ports.get((OwnerKind.REGION, region_id, Direction.INPUT), ())),
            outputs=tuple(ordered_ports.get((OwnerKind.REGION, region_id, Direction.OUTPUT), ())),
        )
        for region_id, rec in enumerate(index.region_records)
    )

    logger.debug(
        "Built graph '%s': %d nodes, %d regions, %d ports, %d edges",
        header.name,
        len(nodes),
        len(regions),
        len(ports),
        len(edges),
    )
    return Graph(
        nodes=nodes,
        regions=regions,
        ports=ports,
        edges=tuple(edges),
        name=header.name,
        version=header.version,
        entrypoint=entrypoint,
    )
