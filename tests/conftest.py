"""Shared jeff programs for the test suite."""

import pytest

from hugr_jeff import Direction, OwnerKind, RecordBuilder


@pytest.fixture
def a_to_b() -> RecordBuilder:
    """Two nodes in one flat region: A's int output feeds B's int input."""
    builder = RecordBuilder(name="a_to_b")
    root = builder.region(key="root")
    a = builder.node(root, "int.const", key="A")
    builder.attr(a, "value", 1)
    (a_out,) = builder.outputs(a, ["int"])
    b = builder.node(root, "int.sink", key="B")
    (b_in,) = builder.inputs(b, ["int"])
    builder.edge(root, a_out, b_in)
    return builder


@pytest.fixture
def a_to_b_bytes(a_to_b: RecordBuilder) -> bytes:
    return a_to_b.to_bytes()


@pytest.fixture
def dangling_port_bytes() -> bytes:
    """An edge whose target names a port no node declares."""
    builder = RecordBuilder()
    root = builder.region(key="root")
    a = builder.node(root, "int.const", key="A")
    builder.attr(a, "value", 1)
    (a_out,) = builder.outputs(a, ["int"])
    builder.edge(root, a_out, "missing")
    return builder.to_bytes()


@pytest.fixture
def arity_mismatch() -> RecordBuilder:
    """A dfg node with one input whose body region declares two."""
    builder = RecordBuilder()
    root = builder.region(key="root")
    node = builder.node(root, "dfg", key="D")
    builder.inputs(node, ["int"])
    body = builder.region(owner=node, key="body")
    builder.inputs(body, ["int", "int"], owner_kind=OwnerKind.REGION)
    return builder


@pytest.fixture
def arity_mismatch_bytes(arity_mismatch: RecordBuilder) -> bytes:
    return arity_mismatch.to_bytes()


@pytest.fixture
def circuit() -> RecordBuilder:
    """Allocate a qubit, apply a Hadamard gate and measure it."""
    builder = RecordBuilder(name="circuit")
    root = builder.region(key="root")
    alloc = builder.node(root, "qubit.alloc", key="alloc")
    (q0,) = builder.outputs(alloc, ["qubit"])
    gate = builder.node(root, "qubit.gate", key="h", name="h")
    (g_in,) = builder.inputs(gate, ["qubit"])
    (g_out,) = builder.outputs(gate, ["qubit"])
    measure = builder.node(root, "qubit.measure", key="measure")
    (m_in,) = builder.inputs(measure, ["qubit"])
    builder.port(measure, Direction.OUTPUT, "int1")
    builder.edge(root, q0, g_in)
    builder.edge(root, g_out, m_in)
    return builder


@pytest.fixture
def circuit_bytes(circuit: RecordBuilder) -> bytes:
    return circuit.to_bytes()
