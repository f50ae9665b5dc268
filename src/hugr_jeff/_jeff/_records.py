"""Flat records of the jeff wire format.

Records mirror the wire layout one to one. Cross references are left as raw
string keys; resolving them is the graph builder's job.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import TypeAlias

from hugr_jeff._graph._model import AttrValue, Direction, OwnerKind

MAGIC = b"JEFF"
FORMAT_VERSION = (0, 1)

NO_POSITION = 0xFFFF_FFFF
MAX_SEGMENTS = 512
WORD_SIZE = 8
RECORD_HEADER_SIZE = 6  # u16 tag + u32 body length


class RecordTag(IntEnum):
    """Tag identifying the layout of a record body."""

    PAD = 0x00
    HEADER = 0x01
    NODE = 0x10
    REGION = 0x11
    PORT = 0x12
    EDGE = 0x13
    ATTR = 0x14
    META = 0x15


class AttrKind(IntEnum):
    """Encoding of an attribute value."""

    INT = 0
    FLOAT = 1
    STR = 2
    BOOL = 3
    INT_LIST = 4


# Wire codes for enumerations stored as single bytes
OWNER_CODES: dict[OwnerKind, int] = {OwnerKind.NODE: 0, OwnerKind.REGION: 1}
DIRECTION_CODES: dict[Direction, int] = {Direction.INPUT: 0, Direction.OUTPUT: 1}
LINEARITY_CODES: dict[bool | None, int] = {None: 0, True: 1, False: 2}


@dataclass(frozen=True, slots=True)
class HeaderRecord:
    """Module header. Always the first record of the first segment."""

    name: str = "module"
    version: tuple[int, int] = FORMAT_VERSION
    entrypoint: str = ""  # Key of the entrypoint node, empty for none


@dataclass(frozen=True, slots=True)
class NodeRecord:
    key: str
    region: str
    op: str
    name: str = ""


@dataclass(frozen=True, slots=True)
class RegionRecord:
    key: str
    owner: str = ""  # Empty for a top-level region
    position: int | None = None


@dataclass(frozen=True, slots=True)
class PortRecord:
    key: str
    owner: str
    direction: Direction
    type: str
    owner_kind: OwnerKind = OwnerKind.NODE
    position: int | None = None
    linear: bool | None = None


@dataclass(frozen=True, slots=True)
class EdgeRecord:
    region: str
    source: str
    target: str


@dataclass(frozen=True, slots=True)
class AttrRecord:
    node: str
    name: str
    value: AttrValue


@dataclass(frozen=True, slots=True)
class MetaRecord:
    node: str
    name: str
    value: str


Record: TypeAlias = HeaderRecord | NodeRecord | RegionRecord | PortRecord | EdgeRecord | AttrRecord | MetaRecord
