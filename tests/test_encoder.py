"""Tests for the HUGR encoder."""

import pytest

from hugr_jeff import (
    EncodeError,
    EncoderOptions,
    Graph,
    OwnerKind,
    RecordBuilder,
    UnsupportedOperationError,
    UnsupportedTypeError,
    build_graph,
    build_package,
    decode_records,
    encode_hugr,
    read_envelope,
    validate_graph,
)
from hugr_jeff._hugr._serial import (
    BoundedNatArg,
    CustomConst,
    ExtensionValue,
    Module,
    SerialHugr,
    StringArg,
    SumValue,
    UnitSum,
)
from hugr_jeff._hugr._types import bool_type, float64_type, int_type, qubit_type, rotation_type


def _encode(builder: RecordBuilder, options: EncoderOptions | None = None) -> SerialHugr:
    graph = build_graph(builder.records())
    assert validate_graph(graph) == []
    return build_package(graph, options).modules[0]


def _ops(hugr: SerialHugr) -> list[str]:
    return [node.op for node in hugr.nodes]


def _children(hugr: SerialHugr, parent: int) -> list[str]:
    return [node.op for index, node in enumerate(hugr.nodes) if index and node.parent == parent]


def _const(descriptor: str, value: int | float) -> RecordBuilder:
    builder = RecordBuilder()
    root = builder.region(key="root")
    op = "float.const" if descriptor.startswith("float") else "int.const"
    node = builder.node(root, op, key="C")
    builder.attr(node, "value", value)
    builder.outputs(node, [descriptor])
    return builder


def _identity_function(entrypoint: str = "") -> RecordBuilder:
    """Root with a function ``inc`` and top-level code that calls it on a constant."""
    builder = RecordBuilder(entrypoint=entrypoint)
    root = builder.region(key="root")
    func = builder.node(root, "func.define", key="f", name="inc")
    builder.inputs(func, ["int"])
    builder.outputs(func, ["int"])
    body = builder.region(owner=func, key="body")
    (b_in,) = builder.inputs(body, ["int"], owner_kind=OwnerKind.REGION)
    (b_out,) = builder.outputs(body, ["int"], owner_kind=OwnerKind.REGION)
    builder.edge(body, b_in, b_out)

    const = builder.node(root, "int.const", key="five")
    builder.attr(const, "value", 5)
    (c_out,) = builder.outputs(const, ["int"])
    call = builder.node(root, "func.call", key="call")
    builder.attr(call, "callee", "f")
    (call_in,) = builder.inputs(call, ["int"])
    builder.outputs(call, ["int"])
    builder.edge(root, c_out, call_in)
    return builder


class TestModuleLayout:
    """Tests for the overall shape of the encoded module."""

    def test_empty_root(self) -> None:
        builder = RecordBuilder()
        builder.region(key="root")
        hugr = _encode(builder)
        assert hugr.nodes == [Module()]
        assert hugr.edges == []
        assert hugr.entrypoint == 0

    def test_circuit(self, circuit: RecordBuilder) -> None:
        hugr = _encode(circuit)

        assert _ops(hugr) == ["Module", "FuncDefn", "Input", "Output", "Extension", "Extension", "Extension"]
        assert [node.name for node in hugr.nodes[4:]] == ["QAlloc", "H", "MeasureFree"]
        assert [node.parent for node in hugr.nodes] == [0, 0, 1, 1, 1, 1, 1]
        assert hugr.nodes[1].name == "main"
        assert hugr.nodes[6].signature.input == [qubit_type()]
        assert hugr.nodes[6].signature.output == [bool_type()]
        assert hugr.edges == [((4, 0), (5, 0)), ((5, 0), (6, 0))]
        assert hugr.entrypoint == 1
        assert hugr.encoder == "hugr-jeff"

    def test_parents_precede_children(self) -> None:
        hugr = _encode(_identity_function())
        assert all(node.parent < index for index, node in enumerate(hugr.nodes) if index)

    def test_wrapper_name(self, circuit: RecordBuilder) -> None:
        hugr = _encode(circuit, EncoderOptions(wrapper_name="entry"))
        assert hugr.nodes[1].name == "entry"

    def test_root_boundary_opens_wrapper(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        (r_in,) = builder.inputs(root, ["int"], owner_kind=OwnerKind.REGION)
        (r_out,) = builder.outputs(root, ["int"], owner_kind=OwnerKind.REGION)
        builder.edge(root, r_in, r_out)
        hugr = _encode(builder)

        assert _ops(hugr) == ["Module", "FuncDefn", "Input", "Output"]
        assert hugr.nodes[1].signature.body.input == [int_type(6)]
        assert hugr.nodes[2].types == [int_type(6)]
        assert hugr.edges == [((2, 0), (3, 0))]

    def test_metadata(self, circuit: RecordBuilder) -> None:
        circuit.meta("alloc", "line", "3")
        hugr = _encode(circuit)
        assert hugr.metadata is not None
        assert hugr.metadata[4] == {"line": "3"}
        assert hugr.metadata[5] is None


class TestDeterminism:
    """Identical graphs produce identical bytes."""

    def test_repeated_encoding(self, circuit: RecordBuilder) -> None:
        graph = build_graph(circuit.records())
        assert encode_hugr(graph) == encode_hugr(graph)

    def test_independently_built_graphs(self, circuit: RecordBuilder) -> None:
        data = circuit.to_bytes()
        first = build_graph(decode_records(data))
        second = build_graph(decode_records(data))
        assert encode_hugr(first) == encode_hugr(second)

    def test_envelope_reads_back(self, circuit: RecordBuilder) -> None:
        graph = build_graph(circuit.records())
        assert read_envelope(encode_hugr(graph)) == build_package(graph)


class TestFunctions:
    """Tests for function definitions and calls."""

    def test_definition_and_call(self) -> None:
        hugr = _encode(_identity_function())

        assert _ops(hugr) == [
            "Module",
            "FuncDefn",
            "FuncDefn",
            "Input",
            "Output",
            "Input",
            "Output",
            "Const",
            "LoadConstant",
            "Call",
        ]
        assert [hugr.nodes[1].name, hugr.nodes[2].name] == ["inc", "main"]
        assert hugr.nodes[9].func_sig.body.input == [int_type(6)]
        assert hugr.edges == [
            ((7, 0), (8, 0)),
            ((3, 0), (4, 0)),
            ((8, 0), (9, 0)),
            ((1, 0), (9, 1)),
        ]
        assert hugr.entrypoint == 2

    def test_graph_entrypoint(self) -> None:
        hugr = _encode(_identity_function(entrypoint="f"))
        assert hugr.entrypoint == 1

    def test_declaration(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        decl = builder.node(root, "func.declare", key="ext", name="external")
        builder.inputs(decl, ["qubit"])
        builder.outputs(decl, ["qubit"])
        hugr = _encode(builder)
        assert _ops(hugr) == ["Module", "FuncDecl"]
        assert hugr.nodes[1].signature.body.input == [qubit_type()]
        assert hugr.entrypoint == 0


class TestConstants:
    """Tests for constant translation."""

    def test_int(self) -> None:
        hugr = _encode(_const("int", 5))
        assert _ops(hugr)[4:] == ["Const", "LoadConstant"]
        assert hugr.nodes[4].v == ExtensionValue(
            typ=int_type(6),
            value=CustomConst(c="ConstInt", v={"log_width": 6, "value": 5}),
        )
        assert hugr.nodes[5].datatype == int_type(6)

    def test_negative_int_is_masked(self) -> None:
        hugr = _encode(_const("int8", -1))
        assert hugr.nodes[4].v.value.v == {"log_width": 3, "value": 255}

    def test_bit(self) -> None:
        hugr = _encode(_const("int1", 1))
        assert hugr.nodes[4].v == SumValue(tag=1, typ=UnitSum(size=2))

    def test_float(self) -> None:
        hugr = _encode(_const("float32", 0.5))
        assert hugr.nodes[4].v == ExtensionValue(
            typ=float64_type(),
            value=CustomConst(c="ConstF64", v={"value": 0.5}),
        )

    def test_missing_value(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        node = builder.node(root, "int.const", key="C")
        builder.outputs(node, ["int"])
        with pytest.raises(UnsupportedOperationError, match="value"):
            build_package(build_graph(builder.records()))


class TestIntArrays:
    """Tests for intArray operations."""

    def test_length(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        node = builder.node(root, "intArray.length", key="L")
        builder.inputs(node, ["int16[]"])
        builder.outputs(node, ["int32"])
        hugr = _encode(builder)

        length = hugr.nodes[4]
        assert (length.extension, length.name) == ("jeff", "IntArrayLength")
        assert length.args == [BoundedNatArg(n=16)]
        assert length.signature.output == [int_type(5)]


class TestGates:
    """Tests for qubit.gate translation."""

    def _gate(self, name: str, inputs: list[str], **attrs: int | bool) -> RecordBuilder:
        builder = RecordBuilder()
        root = builder.region(key="root")
        gate = builder.node(root, "qubit.gate", key="g", name=name)
        for attr, value in attrs.items():
            builder.attr(gate, attr, value)
        builder.inputs(gate, inputs)
        builder.outputs(gate, [t for t in inputs if t == "qubit"])
        return builder

    def test_rotation_parameter(self) -> None:
        hugr = _encode(self._gate("rz", ["qubit", "float64"]))

        rotation, gate = hugr.nodes[4], hugr.nodes[5]
        assert rotation.name == "from_halfturns_unchecked"
        assert rotation.signature.input == [float64_type()]
        assert gate.name == "Rz"
        assert gate.extension == "tket.quantum"
        assert gate.signature.input == [qubit_type(), rotation_type()]
        assert hugr.edges == [((4, 0), (5, 1))]

    def test_two_qubit_gate(self) -> None:
        hugr = _encode(self._gate("CNOT", ["qubit", "qubit"]))
        assert hugr.nodes[4].name == "CX"

    def test_modified_gate_is_generic(self) -> None:
        hugr = _encode(self._gate("x", ["qubit"], adjoint=True))
        gate = hugr.nodes[4]
        assert (gate.extension, gate.name) == ("jeff", "QGate")
        assert gate.args == [
            StringArg(arg="x"),
            BoundedNatArg(n=1),
            BoundedNatArg(n=0),
            BoundedNatArg(n=0),
            BoundedNatArg(n=1),
            BoundedNatArg(n=1),
        ]

    def test_unknown_gate_is_generic(self) -> None:
        hugr = _encode(self._gate("sqrt_iswap", ["qubit", "qubit"]))
        assert hugr.nodes[4].name == "QGate"

    def test_swap_crosses_wires(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        allocated = []
        for key in ("a", "b"):
            alloc = builder.node(root, "qubit.alloc", key=key)
            allocated.extend(builder.outputs(alloc, ["qubit"]))
        swap = builder.node(root, "qubit.gate", key="s", name="swap")
        swap_in = builder.inputs(swap, ["qubit", "qubit"])
        swap_out = builder.outputs(swap, ["qubit", "qubit"])
        for source, target in zip(allocated, swap_in, strict=True):
            builder.edge(root, source, target)
        for key, source in zip(("m0", "m1"), swap_out, strict=True):
            measure = builder.node(root, "qubit.measure", key=key)
            (m_in,) = builder.inputs(measure, ["qubit"])
            builder.outputs(measure, ["int1"])
            builder.edge(root, source, m_in)
        hugr = _encode(builder)

        assert [node.name for node in hugr.nodes[4:]] == ["QAlloc", "QAlloc", "MeasureFree", "MeasureFree"]
        assert hugr.edges == [((5, 0), (6, 0)), ((4, 0), (7, 0))]

    def test_controlled_swap_is_generic(self) -> None:
        hugr = _encode(self._gate("swap", ["qubit", "qubit", "qubit"], control=1))
        assert hugr.nodes[4].name == "QGate"

    def test_non_float_parameter(self) -> None:
        builder = self._gate("rz", ["qubit", "int"])
        with pytest.raises(UnsupportedOperationError, match="expected a float"):
            build_package(build_graph(builder.records()))


class TestControlFlow:
    """Tests for structured control flow."""

    def _switch(self, branches: int) -> RecordBuilder:
        builder = RecordBuilder()
        root = builder.region(key="root")
        node = builder.node(root, "scf.switch", key="S")
        builder.inputs(node, ["int1", "qubit"])
        builder.outputs(node, ["qubit"])
        for index in range(branches):
            branch = builder.region(owner=node, key=f"branch{index}")
            (b_in,) = builder.inputs(branch, ["qubit"], owner_kind=OwnerKind.REGION)
            (b_out,) = builder.outputs(branch, ["qubit"], owner_kind=OwnerKind.REGION)
            builder.edge(branch, b_in, b_out)
        return builder

    def test_switch(self) -> None:
        hugr = _encode(self._switch(2))

        conditional = hugr.nodes[4]
        assert conditional.op == "Conditional"
        assert conditional.sum_rows == [[], []]
        assert conditional.other_inputs == [qubit_type()]
        assert conditional.outputs == [qubit_type()]
        assert _children(hugr, 4) == ["Case", "Case"]
        assert _children(hugr, 5) == ["Input", "Output"]
        assert sorted(hugr.edges) == [((7, 0), (8, 0)), ((9, 0), (10, 0))]

    def test_single_branch_switch_gets_passthrough_case(self) -> None:
        hugr = _encode(self._switch(1))
        assert _children(hugr, 4) == ["Case", "Case"]
        assert sorted(hugr.edges) == [((7, 0), (8, 0)), ((9, 0), (10, 0))]

    def test_switch_needs_bit_selector(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        node = builder.node(root, "scf.switch", key="S")
        builder.inputs(node, ["int8"])
        builder.region(owner=node, key="only")
        with pytest.raises(UnsupportedOperationError, match="int1"):
            build_package(build_graph(builder.records()))

    def _loop(self, op: str) -> RecordBuilder:
        """A loop over one int whose condition compares the value with itself."""
        builder = RecordBuilder()
        root = builder.region(key="root")
        node = builder.node(root, op, key="L")
        builder.inputs(node, ["int"])
        builder.outputs(node, ["int"])
        order = ("cond", "body") if op == "scf.while" else ("body", "cond")
        regions = {key: builder.region(owner=node, key=key) for key in order}

        body = regions["body"]
        (b_in,) = builder.inputs(body, ["int"], owner_kind=OwnerKind.REGION)
        (b_out,) = builder.outputs(body, ["int"], owner_kind=OwnerKind.REGION)
        builder.edge(body, b_in, b_out)

        cond = regions["cond"]
        (c_in,) = builder.inputs(cond, ["int"], owner_kind=OwnerKind.REGION)
        (c_out,) = builder.outputs(cond, ["int1"], owner_kind=OwnerKind.REGION)
        eq = builder.node(cond, "int.eq", key="eq")
        lhs, rhs = builder.inputs(eq, ["int", "int"])
        (eq_out,) = builder.outputs(eq, ["int1"])
        builder.edge(cond, c_in, lhs)
        builder.edge(cond, c_in, rhs)
        builder.edge(cond, eq_out, c_out)
        return builder

    def test_do_while(self) -> None:
        hugr = _encode(self._loop("scf.do_while"))

        loop = hugr.nodes[4]
        assert loop.op == "TailLoop"
        assert loop.rest == [int_type(6)]
        assert _children(hugr, 4) == ["Input", "Output", "DFG", "DFG"]
        assert hugr.nodes[6].types == [bool_type(), int_type(6)]

    def test_while(self) -> None:
        hugr = _encode(self._loop("scf.while"))
        assert _children(hugr, 4) == ["Input", "Output", "DFG", "Conditional"]
        compare = next(node for node in hugr.nodes if node.op == "Extension")
        assert compare.name == "ieq"
        assert compare.args == [BoundedNatArg(n=6)]

    def test_loop_state_must_match(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        node = builder.node(root, "scf.do_while", key="L")
        builder.inputs(node, ["int"])
        builder.outputs(node, ["qubit"])
        builder.region(owner=node, key="body")
        builder.region(owner=node, key="cond")
        with pytest.raises(UnsupportedOperationError, match="same types"):
            build_package(build_graph(builder.records()))

    def test_for(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        node = builder.node(root, "scf.for", key="F")
        builder.inputs(node, ["int32", "int32", "int32", "qubit"])
        builder.outputs(node, ["qubit"])
        body = builder.region(owner=node, key="body")
        builder.inputs(body, ["int32"], owner_kind=OwnerKind.REGION)
        (b_in,) = builder.inputs(body, ["qubit"], owner_kind=OwnerKind.REGION)
        (b_out,) = builder.outputs(body, ["qubit"], owner_kind=OwnerKind.REGION)
        builder.edge(body, b_in, b_out)
        hugr = _encode(builder)

        loop = hugr.nodes[4]
        assert loop.op == "TailLoop"
        assert loop.just_inputs == [int_type(5)] * 3
        assert loop.rest == [qubit_type()]
        assert _children(hugr, 4) == ["Input", "Output", "Extension", "Conditional"]
        names = {node.name for node in hugr.nodes if node.op == "Extension"}
        assert names == {"ilt_s", "iadd"}
        assert sorted(node.tag for node in hugr.nodes if node.op == "Tag") == [0, 1]


class TestEdges:
    """Tests for edge wiring."""

    def test_non_local_edge_adds_order_edge(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        const = builder.node(root, "int.const", key="A")
        builder.attr(const, "value", 2)
        (a_out,) = builder.outputs(const, ["int"])
        dfg = builder.node(root, "dfg", key="D")
        body = builder.region(owner=dfg, key="body")
        add = builder.node(body, "int.add", key="C")
        lhs, rhs = builder.inputs(add, ["int", "int"])
        builder.outputs(add, ["int"])
        builder.edge(body, a_out, lhs)
        builder.edge(body, a_out, rhs)
        hugr = _encode(builder)

        assert _ops(hugr)[4:] == ["Const", "LoadConstant", "DFG", "Input", "Output", "Extension"]
        assert hugr.edges == [
            ((4, 0), (5, 0)),
            ((5, 0), (9, 0)),
            ((5, None), (6, None)),
            ((5, 0), (9, 1)),
        ]

    def test_linear_value_cannot_cross_region_boundary(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        alloc = builder.node(root, "qubit.alloc", key="A")
        (q,) = builder.outputs(alloc, ["qubit"])
        dfg = builder.node(root, "dfg", key="D")
        body = builder.region(owner=dfg, key="body")
        measure = builder.node(body, "qubit.measure", key="M")
        (m_in,) = builder.inputs(measure, ["qubit"])
        builder.outputs(measure, ["int1"])
        builder.edge(body, q, m_in)
        with pytest.raises(EncodeError, match="linear value"):
            build_package(build_graph(builder.records()))

    def test_fan_in_is_rejected(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        add = builder.node(root, "int.add", key="add")
        (target, _) = builder.inputs(add, ["int", "int"])
        builder.outputs(add, ["int"])
        for key in ("a", "b"):
            const = builder.node(root, "int.const", key=key)
            builder.attr(const, "value", 1)
            (out,) = builder.outputs(const, ["int"])
            builder.edge(root, out, target)
        with pytest.raises(EncodeError, match="2 incoming edges"):
            build_package(build_graph(builder.records()))


class TestUnsupported:
    """Tests for constructs without a HUGR equivalent."""

    def test_unknown_operation(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        builder.node(root, "foo.bar", key="N")
        with pytest.raises(UnsupportedOperationError) as exc_info:
            build_package(build_graph(builder.records()))
        assert exc_info.value.op == "foo.bar"

    def test_unknown_type(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        node = builder.node(root, "qubit.alloc", key="N")
        builder.outputs(node, ["tensor"])
        with pytest.raises(UnsupportedTypeError, match="tensor"):
            build_package(build_graph(builder.records()))

    def test_multiple_roots(self) -> None:
        graph = build_graph(RecordBuilder().records())
        assert isinstance(graph, Graph)
        with pytest.raises(EncodeError, match="top-level region"):
            build_package(graph)

    def test_float_exp(self) -> None:
        builder = RecordBuilder()
        root = builder.region(key="root")
        node = builder.node(root, "float.exp", key="N")
        builder.inputs(node, ["float64"])
        builder.outputs(node, ["float64"])
        with pytest.raises(UnsupportedOperationError):
            build_package(build_graph(builder.records()))
