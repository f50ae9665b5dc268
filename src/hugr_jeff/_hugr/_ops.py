"""Operation tables for the jeff to HUGR translation.

Simple jeff operations translate one to one into a HUGR extension operation.
This module holds those tables and the parsing of ``qubit.gate`` attributes.
The structural operations (functions, control flow, constants) are handled by
the encoder itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from hugr_jeff._errors import UnsupportedOperationError
from hugr_jeff._types import TypeKind, parse_type

from ._serial import BoundedNatArg, StringArg, TypeArg
from ._types import JEFF_EXTENSION, log_width

if TYPE_CHECKING:
    from hugr_jeff._graph._model import Graph, Node

QUANTUM_EXTENSION = "tket.quantum"
INT_OPS_EXTENSION = "arithmetic.int"
FLOAT_OPS_EXTENSION = "arithmetic.float"

FROM_HALFTURNS = "from_halfturns_unchecked"
QGATE = "QGate"
SWAP_GATE = ("swap", 2, 0)

QUBIT_OPS: dict[str, str] = {
    "qubit.alloc": "QAlloc",
    "qubit.free": "QFree",
    "qubit.free_zero": "QFree",
    "qubit.measure": "MeasureFree",
    "qubit.measure_nd": "Measure",
    "qubit.reset": "Reset",
}

# (lowercase gate name, qubits, parameters) -> tket.quantum op
NAMED_GATES: dict[tuple[str, int, int], str] = {
    ("h", 1, 0): "H",
    ("hadamard", 1, 0): "H",
    ("x", 1, 0): "X",
    ("y", 1, 0): "Y",
    ("z", 1, 0): "Z",
    ("s", 1, 0): "S",
    ("sdg", 1, 0): "Sdg",
    ("t", 1, 0): "T",
    ("tdg", 1, 0): "Tdg",
    ("cx", 2, 0): "CX",
    ("cnot", 2, 0): "CX",
    ("cy", 2, 0): "CY",
    ("cz", 2, 0): "CZ",
    ("toffoli", 3, 0): "Toffoli",
    ("rx", 1, 1): "Rx",
    ("ry", 1, 1): "Ry",
    ("rz", 1, 1): "Rz",
    ("crz", 2, 1): "CRz",
}

QUREG_OPS: dict[str, str] = {
    "qureg.alloc": "QuregAlloc",
    "qureg.free": "QuregFree",
    "qureg.extract_index": "QuregExtractIndex",
    "qureg.insert_index": "QuregInsertIndex",
    "qureg.extract_slice": "QuregExtractSlice",
    "qureg.insert_slice": "QuregInsertSlice",
    "qureg.length": "QuregLength",
    "qureg.split": "QuregSplit",
    "qureg.join": "QuregJoin",
    "qureg.create": "QuregCreate",
}

FLOAT_OPS: dict[str, str] = {
    "float.add": "fadd",
    "float.sub": "fsub",
    "float.mul": "fmul",
    "float.pow": "fpow",
    "float.eq": "feq",
    "float.lt": "flt",
    "float.lte": "fle",
    "float.abs": "fabs",
    "float.ceil": "fceil",
    "float.floor": "ffloor",
    "float.max": "fmax",
    "float.min": "fmin",
}

INT_OPS: dict[str, str] = {
    "int.add": "iadd",
    "int.sub": "isub",
    "int.mul": "imul",
    "int.eq": "ieq",
    "int.lt_s": "ilt_s",
    "int.lt_u": "ilt_u",
}

INT_ARRAY_OPS: dict[str, str] = {
    "intArray.create": "IntArrayCreate",
    "intArray.length": "IntArrayLength",
    "intArray.get": "IntArrayGet",
    "intArray.set": "IntArraySet",
    "intArray.zero": "IntArrayZero",
}


@dataclass(frozen=True, slots=True)
class ExtensionOpSpec:
    """Which extension operation a jeff node becomes."""

    extension: str
    name: str
    args: tuple[TypeArg, ...] = ()


@dataclass(frozen=True, slots=True)
class GateSpec:
    """Parameters of a ``qubit.gate`` node.

    Attributes:
        name: Gate name, from the ``name`` attribute or the node name.
        qubits: Number of leading qubit inputs.
        params: Number of trailing float inputs.
        control: Number of control qubits.
        adjoint: Whether the adjoint of the gate is applied.
        power: How many times the gate is applied in a row.

    """

    name: str
    qubits: int
    params: int
    control: int = 0
    adjoint: bool = False
    power: int = 1

    @property
    def plain(self) -> bool:
        return not (self.control or self.adjoint or self.power != 1)

    @property
    def named_op(self) -> str | None:
        """The ``tket.quantum`` op for a plain named gate, if there is one."""
        if not self.plain:
            return None
        return NAMED_GATES.get((self.name.lower(), self.qubits, self.params))

    @property
    def is_swap(self) -> bool:
        """A plain swap only exchanges wires and has no HUGR node."""
        return self.plain and (self.name.lower(), self.qubits, self.params) == SWAP_GATE

    def qgate_args(self) -> tuple[TypeArg, ...]:
        return (
            StringArg(arg=self.name),
            BoundedNatArg(n=self.qubits),
            BoundedNatArg(n=self.params),
            BoundedNatArg(n=self.control),
            BoundedNatArg(n=int(self.adjoint)),
            BoundedNatArg(n=self.power),
        )


def _int_attr(node: Node, name: str, default: int) -> int:
    value = node.attrs.get(name, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise UnsupportedOperationError(node.op, f"attribute '{name}' of '{node.key}' must be an integer")
    return value


def gate_spec(graph: Graph, node: Node) -> GateSpec:
    """Read the gate parameters of a ``qubit.gate`` node.

    Raises:
        UnsupportedOperationError: If the attributes or the port layout do not
            describe a gate.

    """
    name = node.attrs.get("name", node.name)
    if not isinstance(name, str) or not name:
        raise UnsupportedOperationError(node.op, f"gate '{node.key}' has no name")

    inputs, _ = graph.signature(node.id)
    qubits = 0
    while qubits < len(inputs) and inputs[qubits] == "qubit":
        qubits += 1
    for descriptor in inputs[qubits:]:
        parsed = parse_type(descriptor)
        if parsed is None or parsed.kind != TypeKind.FLOAT:
            raise UnsupportedOperationError(
                node.op,
                f"gate '{node.key}' has a '{descriptor}' parameter, expected a float",
            )

    adjoint = node.attrs.get("adjoint", False)
    if not isinstance(adjoint, bool):
        raise UnsupportedOperationError(node.op, f"attribute 'adjoint' of '{node.key}' must be a boolean")

    return GateSpec(
        name=name,
        qubits=qubits,
        params=len(inputs) - qubits,
        control=_int_attr(node, "control", 0),
        adjoint=adjoint,
        power=_int_attr(node, "power", 1),
    )


def _first_of_kind(graph: Graph, node: Node, kind: TypeKind) -> int:
    """Bit width of the first port of the given kind on a node."""
    for port_id in (*node.inputs, *node.outputs):
        parsed = parse_type(graph.port(port_id).type)
        if parsed is not None and parsed.kind == kind:
            return parsed.bits
    raise UnsupportedOperationError(node.op, f"'{node.key}' has no {kind} port")


def extension_op(graph: Graph, node: Node) -> ExtensionOpSpec | None:
    """Look up the extension operation for a simple jeff operation.

    Returns:
        The extension operation, or None if the node is not a simple operation.

    Raises:
        UnsupportedOperationError: If the node's ports do not carry the types
            its operation needs.

    """
    op = node.op
    if op in QUBIT_OPS:
        return ExtensionOpSpec(QUANTUM_EXTENSION, QUBIT_OPS[op])
    if op in QUREG_OPS:
        args: tuple[TypeArg, ...] = ()
        if op == "qureg.create":
            args = (BoundedNatArg(n=len(node.inputs)),)
        return ExtensionOpSpec(JEFF_EXTENSION, QUREG_OPS[op], args)
    if op in FLOAT_OPS:
        return ExtensionOpSpec(FLOAT_OPS_EXTENSION, FLOAT_OPS[op])
    if op in INT_OPS:
        bits = _first_of_kind(graph, node, TypeKind.INT)
        return ExtensionOpSpec(INT_OPS_EXTENSION, INT_OPS[op], (BoundedNatArg(n=log_width(bits)),))
    if op in INT_ARRAY_OPS:
        bits = _first_of_kind(graph, node, TypeKind.INT_ARRAY)
        args = (BoundedNatArg(n=bits),)
        if op == "intArray.create":
            args = (*args, BoundedNatArg(n=len(node.inputs)))
        return ExtensionOpSpec(JEFF_EXTENSION, INT_ARRAY_OPS[op], args)
    return None
