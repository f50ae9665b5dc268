"""Reading and writing the jeff exchange format.

This module contains:
- decode_records: bytes to flat records
- encode_records, RecordBuilder, graph_to_records: the inverse direction
- The record types themselves
"""

from ._decoder import decode_records, read_segments
from ._records import (
    FORMAT_VERSION,
    MAGIC,
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
from ._writer import RecordBuilder, encode_records, graph_to_records

__all__ = [
    "FORMAT_VERSION",
    "MAGIC",
    "AttrKind",
    "AttrRecord",
    "EdgeRecord",
    "HeaderRecord",
    "MetaRecord",
    "NodeRecord",
    "PortRecord",
    "Record",
    "RecordBuilder",
    "RecordTag",
    "RegionRecord",
    "decode_records",
    "encode_records",
    "graph_to_records",
    "read_segments",
]
