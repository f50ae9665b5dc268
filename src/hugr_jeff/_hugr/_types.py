"""Translation between jeff type descriptors and HUGR types.

Integer widths are extended to the next power of two, since HUGR integers are
parameterized by a log width. Every float becomes a 64-bit float. Qubit
registers and the array types come from the ``jeff`` extension.
"""

from hugr_jeff._errors import UnsupportedTypeError
from hugr_jeff._types import BIT, JeffType, TypeKind, parse_type

from ._serial import BoundedNatArg, Opaque, Type, TypeBound, UnitSum

PRELUDE_EXTENSION = "prelude"
INT_TYPES_EXTENSION = "arithmetic.int.types"
FLOAT_TYPES_EXTENSION = "arithmetic.float.types"
ROTATION_EXTENSION = "tket.rotation"
JEFF_EXTENSION = "jeff"

QUBIT_TYPE_ID = "qubit"
INT_TYPE_ID = "int"
FLOAT_TYPE_ID = "float64"
ROTATION_TYPE_ID = "rotation"
QUREG_TYPE_ID = "qureg"
INT_ARRAY_TYPE_ID = "intArray"
FLOAT_ARRAY_TYPE_ID = "floatArray"

MAX_LOG_WIDTH = 6


def bool_type() -> UnitSum:
    return UnitSum(size=2)


def qubit_type() -> Opaque:
    return Opaque(extension=PRELUDE_EXTENSION, id=QUBIT_TYPE_ID, bound=TypeBound.ANY)


def int_type(log_width: int) -> Opaque:
    return Opaque(extension=INT_TYPES_EXTENSION, id=INT_TYPE_ID, args=[BoundedNatArg(n=log_width)])


def float64_type() -> Opaque:
    return Opaque(extension=FLOAT_TYPES_EXTENSION, id=FLOAT_TYPE_ID)


def rotation_type() -> Opaque:
    return Opaque(extension=ROTATION_EXTENSION, id=ROTATION_TYPE_ID)


def log_width(bits: int) -> int:
    """HUGR log width of a jeff integer width.

    Example:
        >>> log_width(8)
        3
        >>> log_width(5)
        3

    """
    return (bits - 1).bit_length()


def jeff_type_to_hugr(descriptor: str) -> Type:
    """Translate a jeff type descriptor to a HUGR type.

    Args:
        descriptor: A port type descriptor.

    Returns:
        The equivalent HUGR type.

    Raises:
        UnsupportedTypeError: If the descriptor is not a known jeff type.

    """
    parsed = parse_type(descriptor)
    if parsed is None:
        raise UnsupportedTypeError(descriptor)

    match parsed.kind:
        case TypeKind.QUBIT:
            return qubit_type()
        case TypeKind.INT if parsed == BIT:
            return bool_type()
        case TypeKind.INT:
            return int_type(log_width(parsed.bits))
        case TypeKind.FLOAT:
            return float64_type()
        case TypeKind.QUREG:
            return Opaque(extension=JEFF_EXTENSION, id=QUREG_TYPE_ID, bound=TypeBound.ANY)
        case TypeKind.INT_ARRAY:
            return Opaque(extension=JEFF_EXTENSION, id=INT_ARRAY_TYPE_ID, args=[BoundedNatArg(n=parsed.bits)])
        case TypeKind.FLOAT_ARRAY:
            return Opaque(extension=JEFF_EXTENSION, id=FLOAT_ARRAY_TYPE_ID, args=[BoundedNatArg(n=parsed.bits)])
    raise UnsupportedTypeError(descriptor)


def jeff_row_to_hugr(descriptors: tuple[str, ...] | list[str]) -> list[Type]:
    return [jeff_type_to_hugr(descriptor) for descriptor in descriptors]


def _nat_arg(hugr_type: Opaque, name: str) -> int:
    if len(hugr_type.args) != 1 or not isinstance(hugr_type.args[0], BoundedNatArg):
        raise UnsupportedTypeError(name)
    return hugr_type.args[0].n


def hugr_type_to_jeff(hugr_type: Type) -> str:  # noqa: PLR0911
    """Translate a HUGR type back to a canonical jeff descriptor.

    The round trip is lossy: integer widths come back as powers of two and
    scalar floats as ``float64``.

    Raises:
        UnsupportedTypeError: If jeff has no equivalent type.

    """
    if isinstance(hugr_type, UnitSum):
        if hugr_type.size == 2:
            return str(BIT)
        msg = f"Sum[{hugr_type.size}]"
        raise UnsupportedTypeError(msg)
    if not isinstance(hugr_type, Opaque):
        raise UnsupportedTypeError(hugr_type.t)

    name = f"{hugr_type.extension}.{hugr_type.id}"
    key = (hugr_type.extension, hugr_type.id)
    if key == (PRELUDE_EXTENSION, QUBIT_TYPE_ID):
        return str(JeffType(TypeKind.QUBIT))
    if key == (INT_TYPES_EXTENSION, INT_TYPE_ID):
        width = _nat_arg(hugr_type, name)
        if not 0 <= width <= MAX_LOG_WIDTH:
            raise UnsupportedTypeError(f"{name}[{width}]")
        return str(JeffType(TypeKind.INT, 1 << width))
    if key == (FLOAT_TYPES_EXTENSION, FLOAT_TYPE_ID):
        return str(JeffType(TypeKind.FLOAT, 64))
    if key == (JEFF_EXTENSION, QUREG_TYPE_ID):
        return str(JeffType(TypeKind.QUREG))
    if key == (JEFF_EXTENSION, INT_ARRAY_TYPE_ID):
        bits = _nat_arg(hugr_type, name)
        if parse_type(f"int{bits}[]") is None:
            raise UnsupportedTypeError(f"{name}[{bits}]")
        return str(JeffType(TypeKind.INT_ARRAY, bits))
    if key == (JEFF_EXTENSION, FLOAT_ARRAY_TYPE_ID):
        precision = _nat_arg(hugr_type, name)
        if precision not in (32, 64):
            raise UnsupportedTypeError(f"{name}[{precision}]")
        return str(JeffType(TypeKind.FLOAT_ARRAY, precision))
    raise UnsupportedTypeError(name)
