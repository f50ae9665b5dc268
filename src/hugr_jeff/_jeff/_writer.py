"""Encoder for the jeff wire format.

`RecordBuilder` assembles records programmatically, `encode_records` frames
them into bytes that `decode_records` accepts, and `graph_to_records` turns a
built graph back into its source form.
"""

from __future__ import annotations

import logging
import struct
from typing import TYPE_CHECKING

from hugr_jeff._graph._model import Direction, OwnerKind

from ._records import (
    DIRECTION_CODES,
    LINEARITY_CODES,
    MAGIC,
    NO_POSITION,
    OWNER_CODES,
    WORD_SIZE,
    AttrKind,
    AttrRecord,
    EdgeRecord,
    HeaderRecord,
    MetaRecord,
    NodeRecord,
    PortRecord,
    Record,
    RecordTag,
    RegionRecord,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from hugr_jeff._graph._model import AttrValue, Graph

logger = logging.getLogger(__name__)

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1


def _str(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


def _pos(value: int | None) -> bytes:
    return struct.pack("<I", NO_POSITION if value is None else value)


def _i64(value: int) -> int:
    if not INT64_MIN <= value <= INT64_MAX:
        msg = f"Attribute integer {value} does not fit in a signed 64-bit word"
        raise ValueError(msg)
    return value


def _attr_value(value: AttrValue) -> bytes:
    # bool before int: bool is a subclass of int
    if isinstance(value, bool):
        return struct.pack("<BB", AttrKind.BOOL, int(value))
    if isinstance(value, int):
        return struct.pack("<Bq", AttrKind.INT, _i64(value))
    if isinstance(value, float):
        return struct.pack("<Bd", AttrKind.FLOAT, value)
    if isinstance(value, str):
        return struct.pack("<B", AttrKind.STR) + _str(value)
    items = tuple(_i64(item) for item in value)
    return struct.pack(f"<BI{len(items)}q", AttrKind.INT_LIST, len(items), *items)


def _record_body(record: Record) -> tuple[RecordTag, bytes]:
    match record:
        case HeaderRecord(name=name, version=(major, minor), entrypoint=entrypoint):
            body = MAGIC + struct.pack("<BB", major, minor) + _str(name) + _str(entrypoint)
            return RecordTag.HEADER, body
        case NodeRecord(key=key, region=region, op=op, name=name):
            return RecordTag.NODE, _str(key) + _str(region) + _str(op) + _str(name)
        case RegionRecord(key=key, owner=owner, position=position):
            return RecordTag.REGION, _str(key) + _str(owner) + _pos(position)
        case PortRecord():
            body = (
                _str(record.key)
                + struct.pack("<B", OWNER_CODES[record.owner_kind])
                + _str(record.owner)
                + struct.pack("<B", DIRECTION_CODES[record.direction])
                + _pos(record.position)
                + struct.pack("<B", LINEARITY_CODES[record.linear])
                + _str(record.type)
            )
            return RecordTag.PORT, body
        case EdgeRecord(region=region, source=source, target=target):
            return RecordTag.EDGE, _str(region) + _str(source) + _str(target)
        case AttrRecord(node=node, name=name, value=value):
            return RecordTag.ATTR, _str(node) + _str(name) + _attr_value(value)
        case MetaRecord(node=node, name=name, value=value):
            return RecordTag.META, _str(node) + _str(name) + _str(value)
    msg = f"Not a jeff record: {record!r}"
    raise TypeError(msg)


def encode_records(records: Iterable[Record]) -> bytes:
    """Frame records into a single-segment jeff buffer.

    A `HeaderRecord` is prepended when the sequence does not start with one.

    Args:
        records: The records to write, in order.

    Returns:
        The framed bytes.

    Raises:
        TypeError: If an item is not a jeff record.
        ValueError: If an attribute integer does not fit in 64 bits.

    """
    records = list(records)
    if not records or not isinstance(records[0], HeaderRecord):
        records.insert(0, HeaderRecord())

    payload = bytearray()
    for record in records:
        tag, body = _record_body(record)
        payload += struct.pack("<HI", tag, len(body))
        payload += body
    payload += bytes(-len(payload) % WORD_SIZE)

    # One segment: count - 1 == 0, then its size; odd count so no framing pad
    framing = struct.pack("<II", 0, len(payload) // WORD_SIZE)
    logger.debug("Encoded %d records into %d bytes", len(records), len(framing) + len(payload))
    return framing + bytes(payload)


class RecordBuilder:
    """Assemble jeff records with sequential default keys.

    Example:
        >>> builder = RecordBuilder()
        >>> root = builder.region()
        >>> a = builder.node(root, "int.const")
        >>> out = builder.port(a, Direction.OUTPUT, "int")

    """

    def __init__(self, name: str = "module", entrypoint: str = "") -> None:
        self.header = HeaderRecord(name=name, entrypoint=entrypoint)
        self._records: list[Record] = []
        self._counter = 0

    def _key(self, prefix: str, key: str | None) -> str:
        if key is not None:
            return key
        self._counter += 1
        return f"{prefix}{self._counter}"

    def region(self, owner: str = "", key: str | None = None, position: int | None = None) -> str:
        """Declare a region and return its key."""
        key = self._key("r", key)
        self._records.append(RegionRecord(key=key, owner=owner, position=position))
        return key

    def node(self, region: str, op: str, key: str | None = None, name: str = "") -> str:
        """Declare a node in a region and return its key."""
        key = self._key("n", key)
        self._records.append(NodeRecord(key=key, region=region, op=op, name=name))
        return key

    def port(  # noqa: PLR0913
        self,
        owner: str,
        direction: Direction,
        type_: str,
        *,
        key: str | None = None,
        owner_kind: OwnerKind = OwnerKind.NODE,
        position: int | None = None,
        linear: bool | None = None,
    ) -> str:
        """Declare a port and return its key."""
        key = self._key("p", key)
        self._records.append(
            PortRecord(
                key=key,
                owner=owner,
                direction=direction,
                type=type_,
                owner_kind=owner_kind,
                position=position,
                linear=linear,
            ),
        )
        return key

    def inputs(self, owner: str, types: Sequence[str], owner_kind: OwnerKind = OwnerKind.NODE) -> list[str]:
        """Declare one input port per type."""
        return [self.port(owner, Direction.INPUT, t, owner_kind=owner_kind) for t in types]

    def outputs(self, owner: str, types: Sequence[str], owner_kind: OwnerKind = OwnerKind.NODE) -> list[str]:
        """Declare one output port per type."""
        return [self.port(owner, Direction.OUTPUT, t, owner_kind=owner_kind) for t in types]

    def edge(self, region: str, source: str, target: str) -> None:
        self._records.append(EdgeRecord(region=region, source=source, target=target))

    def attr(self, node: str, name: str, value: AttrValue) -> None:
        self._records.append(AttrRecord(node=node, name=name, value=value))

    def meta(self, node: str, name: str, value: str) -> None:
        self._records.append(MetaRecord(node=node, name=name, value=value))

    def records(self) -> tuple[Record, ...]:
        """All records, header first."""
        return (self.header, *self._records)

    def to_bytes(self) -> bytes:
        return encode_records(self.records())


def graph_to_records(graph: Graph) -> tuple[Record, ...]:
    """Express a graph as jeff records.

    Regions and ports are written with explicit positions, so building the
    records again yields a structurally equal graph.
    """
    entrypoint = graph.node(graph.entrypoint).key if graph.entrypoint is not None else ""
    records: list[Record] = [HeaderRecord(name=graph.name, version=graph.version, entrypoint=entrypoint)]

    for region in graph.regions:
        if region.owner is None:
            records.append(RegionRecord(key=region.key))
        else:
            owner = graph.node(region.owner)
            records.append(
                RegionRecord(key=region.key, owner=owner.key, position=owner.regions.index(region.id)),
            )

    for node in graph.nodes:
        records.append(NodeRecord(key=node.key, region=graph.region(node.parent).key, op=node.op, name=node.name))

    for port in graph.ports:
        owner = graph.node(port.owner) if port.owner_kind == OwnerKind.NODE else graph.region(port.owner)
        records.append(
            PortRecord(
                key=port.key,
                owner=owner.key,
                direction=port.direction,
                type=port.type,
                owner_kind=port.owner_kind,
                position=port.index,
                linear=port.linear,
            ),
        )

    for edge in graph.edges:
        records.append(
            EdgeRecord(
                region=graph.region(edge.region).key,
                source=graph.port(edge.source).key,
                target=graph.port(edge.target).key,
            ),
        )

    for node in graph.nodes:
        records.extend(AttrRecord(node=node.key, name=name, value=value) for name, value in node.attrs.items())
        records.extend(MetaRecord(node=node.key, name=name, value=value) for name, value in node.metadata.items())

    return tuple(records)
