"""HUGR target encoding.

This module contains:
- encode_hugr, build_package: graph to HUGR envelope bytes / package model
- read_envelope, write_envelope: envelope framing
- jeff_type_to_hugr, hugr_type_to_jeff: type mapping
"""

from ._encoder import EncoderOptions, build_package, encode_hugr
from ._envelope import read_envelope, write_envelope
from ._serial import Package, SerialHugr
from ._types import hugr_type_to_jeff, jeff_type_to_hugr

__all__ = [
    "EncoderOptions",
    "Package",
    "SerialHugr",
    "build_package",
    "encode_hugr",
    "hugr_type_to_jeff",
    "jeff_type_to_hugr",
    "read_envelope",
    "write_envelope",
]
