"""Decoder for the jeff wire format.

The decoder validates the segment framing first, then walks each segment's
records. It never interprets hierarchy or resolves keys. Every malformed input
is reported as a `DecodeError` carrying the byte offset of the problem.
"""

import logging
import struct
from typing import TypeVar

from hugr_jeff._errors import DecodeError
from hugr_jeff._graph._model import AttrValue, Direction, OwnerKind

from ._records import (
    DIRECTION_CODES,
    FORMAT_VERSION,
    LINEARITY_CODES,
    MAGIC,
    MAX_SEGMENTS,
    NO_POSITION,
    OWNER_CODES,
    RECORD_HEADER_SIZE,
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

logger = logging.getLogger(__name__)

T = TypeVar("T")

_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_I64 = struct.Struct("<q")
_F64 = struct.Struct("<d")

_OWNER_BY_CODE = {code: kind for kind, code in OWNER_CODES.items()}
_DIRECTION_BY_CODE = {code: direction for direction, code in DIRECTION_CODES.items()}
_LINEARITY_BY_CODE = {code: flag for flag, code in LINEARITY_CODES.items()}


class _Reader:
    """Bounds-checked little-endian reader over a window of the input buffer."""

    def __init__(self, data: memoryview, start: int, end: int) -> None:
        self.data = data
        self.pos = start
        self.end = end

    @property
    def remaining(self) -> int:
        return self.end - self.pos

    def take(self, size: int, what: str) -> memoryview:
        if size > self.remaining:
            raise DecodeError(self.pos, f"{size} byte(s) for {what}", f"{self.remaining} byte(s)")
        chunk = self.data[self.pos : self.pos + size]
        self.pos += size
        return chunk

    def unpack(self, fmt: struct.Struct, what: str) -> int | float:
        return fmt.unpack(self.take(fmt.size, what))[0]

    def u8(self, what: str) -> int:
        return int(self.unpack(_U8, what))

    def u16(self, what: str) -> int:
        return int(self.unpack(_U16, what))

    def u32(self, what: str) -> int:
        return int(self.unpack(_U32, what))

    def i64(self, what: str) -> int:
        return int(self.unpack(_I64, what))

    def f64(self, what: str) -> float:
        return float(self.unpack(_F64, what))

    def string(self, what: str) -> str:
        length = self.u32(f"length of {what}")
        offset = self.pos
        raw = self.take(length, what)
        try:
            return bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(offset + e.start, f"UTF-8 text for {what}", "invalid byte sequence") from e

    def key(self, what: str) -> str:
        """Read a required, non-empty key."""
        offset = self.pos
        value = self.string(what)
        if not value:
            raise DecodeError(offset, f"non-empty {what}", "empty string")
        return value

    def position(self, what: str) -> int | None:
        value = self.u32(what)
        return None if value == NO_POSITION else value

    def code(self, table: dict[int, T], what: str) -> T:
        offset = self.pos
        value = self.u8(what)
        if value not in table:
            expected = " or ".join(str(code) for code in sorted(table))
            raise DecodeError(offset, f"{what} code {expected}", str(value))
        return table[value]


def read_segments(data: bytes | bytearray | memoryview) -> list[tuple[int, int]]:
    """Validate the segment framing and return segment boundaries.

    Args:
        data: The complete input buffer.

    Returns:
        List of ``(start, end)`` byte offsets, one per segment.

    Raises:
        DecodeError: If the framing header is truncated or inconsistent with
            the buffer length.

    """
    view = memoryview(data)
    reader = _Reader(view, 0, len(view))
    count = reader.u32("segment count") + 1
    if count > MAX_SEGMENTS:
        raise DecodeError(0, f"at most {MAX_SEGMENTS} segments", f"{count} segments")

    sizes = [reader.u32(f"size of segment {i}") for i in range(count)]
    if count % 2 == 0:
        offset = reader.pos
        if reader.u32("framing padding") != 0:
            raise DecodeError(offset, "zero framing padding", "non-zero bytes")

    segments: list[tuple[int, int]] = []
    start = reader.pos
    for index, words in enumerate(sizes):
        end = start + words * WORD_SIZE
        if end > len(view):
            raise DecodeError(
                start,
                f"{words * WORD_SIZE} byte(s) for segment {index}",
                f"{len(view) - start} byte(s)",
            )
        segments.append((start, end))
        start = end

    if start != len(view):
        raise DecodeError(start, "end of buffer after last segment", f"{len(view) - start} trailing byte(s)")
    return segments


def _read_attr_value(reader: _Reader) -> AttrValue:
    kind = reader.code({k.value: k for k in AttrKind}, "attribute kind")
    match kind:
        case AttrKind.INT:
            return reader.i64("integer attribute")
        case AttrKind.FLOAT:
            return reader.f64("float attribute")
        case AttrKind.STR:
            return reader.string("string attribute")
        case AttrKind.BOOL:
            return reader.code({0: False, 1: True}, "boolean attribute")
        case AttrKind.INT_LIST:
            count = reader.u32("integer list length")
            return tuple(reader.i64(f"integer list item {i}") for i in range(count))


def _read_body(tag: RecordTag, reader: _Reader) -> Record:  # noqa: PLR0911
    match tag:
        case RecordTag.HEADER:
            offset = reader.pos
            magic = bytes(reader.take(len(MAGIC), "magic number"))
            if magic != MAGIC:
                raise DecodeError(offset, f"magic {MAGIC!r}", repr(magic))
            offset = reader.pos
            major = reader.u8("major version")
            minor = reader.u8("minor version")
            if major != FORMAT_VERSION[0]:
                raise DecodeError(offset, f"major version {FORMAT_VERSION[0]}", str(major))
            name = reader.string("module name")
            entrypoint = reader.string("entrypoint key")
            return HeaderRecord(name=name, version=(major, minor), entrypoint=entrypoint)
        case RecordTag.NODE:
            return NodeRecord(
                key=reader.key("node key"),
                region=reader.key("parent region key"),
                op=reader.key("operation kind"),
                name=reader.string("node name"),
            )
        case RecordTag.REGION:
            return RegionRecord(
                key=reader.key("region key"),
                owner=reader.string("region owner key"),
                position=reader.position("region position"),
            )
        case RecordTag.PORT:
            key = reader.key("port key")
            owner_kind: OwnerKind = reader.code(_OWNER_BY_CODE, "port owner kind")
            owner = reader.key("port owner key")
            direction: Direction = reader.code(_DIRECTION_BY_CODE, "port direction")
            position = reader.position("port position")
            linear = reader.code(_LINEARITY_BY_CODE, "port linearity")
            port_type = reader.key("port type")
            return PortRecord(
                key=key,
                owner=owner,
                direction=direction,
                type=port_type,
                owner_kind=owner_kind,
                position=position,
                linear=linear,
            )
        case RecordTag.EDGE:
            return EdgeRecord(
                region=reader.key("edge region key"),
                source=reader.key("edge source port key"),
                target=reader.key("edge target port key"),
            )
        case RecordTag.ATTR:
            return AttrRecord(
                node=reader.key("attribute node key"),
                name=reader.key("attribute name"),
                value=_read_attr_value(reader),
            )
        case RecordTag.META:
            return MetaRecord(
                node=reader.key("metadata node key"),
                name=reader.key("metadata name"),
                value=reader.string("metadata value"),
            )
    msg = f"Unhandled record tag {tag!r}"
    raise AssertionError(msg)


def _check_padding(view: memoryview, start: int, end: int) -> None:
    for offset in range(start, end):
        if view[offset] != 0:
            raise DecodeError(offset, "zero segment padding", f"byte 0x{view[offset]:02x}")


def decode_records(data: bytes | bytearray | memoryview) -> tuple[Record, ...]:
    """Decode a jeff buffer into its flat record sequence.

    Args:
        data: The raw input buffer.

    Returns:
        The records in file order. The first is always a `HeaderRecord`.

    Raises:
        DecodeError: On any framing or layout violation.

    """
    view = memoryview(data)
    segments = read_segments(view)
    known_tags = {tag.value: tag for tag in RecordTag}

    records: list[Record] = []
    for seg_index, (start, end) in enumerate(segments):
        reader = _Reader(view, start, end)
        while reader.remaining:
            if reader.remaining < RECORD_HEADER_SIZE or view[reader.pos] == view[reader.pos + 1] == 0:
                _check_padding(view, reader.pos, end)
                break

            record_offset = reader.pos
            raw_tag = reader.u16("record tag")
            if raw_tag not in known_tags or raw_tag == RecordTag.PAD:
                raise DecodeError(record_offset, "known record tag", f"0x{raw_tag:04x}")
            tag = known_tags[raw_tag]
            length = reader.u32("record length")
            if length > reader.remaining:
                raise DecodeError(
                    reader.pos,
                    f"record body of {length} byte(s) within segment {seg_index}",
                    f"{reader.remaining} byte(s)",
                )

            body = _Reader(view, reader.pos, reader.pos + length)
            record = _read_body(tag, body)
            if body.remaining:
                raise DecodeError(body.pos, f"end of {tag.name.lower()} record", f"{body.remaining} unread byte(s)")
            reader.pos = body.end

            if isinstance(record, HeaderRecord):
                if records:
                    raise DecodeError(record_offset, "a single header record", "a second header")
            elif not records:
                raise DecodeError(record_offset, "header record first", f"{tag.name.lower()} record")
            records.append(record)

    if not records:
        raise DecodeError(len(view), "header record", "no records")

    logger.debug("Decoded %d records from %d segment(s)", len(records), len(segments))
    return tuple(records)
