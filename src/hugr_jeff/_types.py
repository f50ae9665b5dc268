"""Jeff type descriptors.

Ports carry their type as an opaque descriptor string copied verbatim from the
source file. This module gives the descriptors structure where a later stage
needs it (linearity inference, target type mapping) without ever rewriting the
string stored on the port.

Recognized descriptors:

- ``qubit``, ``qureg``
- ``int<N>`` with ``1 <= N <= 64``; ``int`` is ``int64`` and ``bool`` is ``int1``
- ``float``, ``float32``, ``float64``; ``float`` is ``float64``
- ``int<N>[]``, ``float32[]``, ``float64[]`` (arrays)
"""

import re
from dataclasses import dataclass
from enum import StrEnum, auto

MAX_INT_BITS = 64

_INT_RE = re.compile(r"^int(\d*)(\[\])?$")
_FLOAT_RE = re.compile(r"^float(32|64)?(\[\])?$")


class TypeKind(StrEnum):
    """Kind of a jeff value type."""

    QUBIT = auto()
    INT = auto()
    FLOAT = auto()
    QUREG = auto()
    INT_ARRAY = auto()
    FLOAT_ARRAY = auto()


@dataclass(frozen=True, slots=True)
class JeffType:
    """A parsed jeff type.

    Attributes:
        kind: The type kind.
        bits: Integer width for ``INT``/``INT_ARRAY``, precision for
            ``FLOAT``/``FLOAT_ARRAY``, zero otherwise.

    """

    kind: TypeKind
    bits: int = 0

    @property
    def is_linear(self) -> bool:
        """Quantum values cannot be copied or discarded."""
        return self.kind in (TypeKind.QUBIT, TypeKind.QUREG)

    def __str__(self) -> str:
        match self.kind:
            case TypeKind.QUBIT:
                return "qubit"
            case TypeKind.QUREG:
                return "qureg"
            case TypeKind.INT:
                return f"int{self.bits}"
            case TypeKind.FLOAT:
                return f"float{self.bits}"
            case TypeKind.INT_ARRAY:
                return f"int{self.bits}[]"
            case TypeKind.FLOAT_ARRAY:
                return f"float{self.bits}[]"


QUBIT = JeffType(TypeKind.QUBIT)
QUREG = JeffType(TypeKind.QUREG)
BIT = JeffType(TypeKind.INT, 1)


def parse_type(descriptor: str) -> JeffType | None:
    """Parse a type descriptor.

    Args:
        descriptor: The descriptor string as found on a port.

    Returns:
        The parsed type, or None if the descriptor is not a known jeff type.

    Example:
        >>> parse_type("int8")
        JeffType(kind=<TypeKind.INT: 'int'>, bits=8)
        >>> parse_type("tensor") is None
        True

    """
    text = descriptor.strip()
    if text == "qubit":
        return QUBIT
    if text == "qureg":
        return QUREG
    if text == "bool":
        return BIT

    if match := _INT_RE.match(text):
        width, array = match.groups()
        bits = int(width) if width else MAX_INT_BITS
        if not 1 <= bits <= MAX_INT_BITS:
            return None
        return JeffType(TypeKind.INT_ARRAY if array else TypeKind.INT, bits)

    if match := _FLOAT_RE.match(text):
        precision, array = match.groups()
        bits = int(precision) if precision else 64
        return JeffType(TypeKind.FLOAT_ARRAY if array else TypeKind.FLOAT, bits)

    return None


def is_linear_type(descriptor: str) -> bool:
    """Check whether values of a descriptor's type are linear.

    Unknown descriptors are treated as copyable.
    """
    parsed = parse_type(descriptor)
    return parsed is not None and parsed.is_linear


def is_bit_type(descriptor: str) -> bool:
    """Check whether a descriptor denotes a single bit (``int1``/``bool``)."""
    return parse_type(descriptor) == BIT
