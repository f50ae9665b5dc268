"""Encode a graph as a HUGR package.

The encoder first builds a tree of HUGR nodes that mirrors the graph's region
nesting, recording where every graph port ended up. It then wires the graph's
edges through that port map, and finally flattens the tree breadth-first into
the serial node list. The output is a pure function of the graph.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias

from hugr_jeff._errors import EncodeError, UnsupportedOperationError
from hugr_jeff._types import BIT, TypeKind, is_bit_type, parse_type

from ._envelope import write_envelope
from ._ops import FROM_HALFTURNS, INT_OPS_EXTENSION, QGATE, QUANTUM_EXTENSION, extension_op, gate_spec
from ._serial import (
    DFG,
    BoundedNatArg,
    Call,
    Case,
    Conditional,
    Const,
    CustomConst,
    ExtensionOp,
    ExtensionValue,
    FuncDecl,
    FuncDefn,
    FunctionType,
    GeneralSum,
    Input,
    LoadConstant,
    Module,
    Output,
    Package,
    PolyFuncType,
    SerialHugr,
    SumValue,
    Tag,
    TailLoop,
)
from ._types import (
    JEFF_EXTENSION,
    ROTATION_EXTENSION,
    bool_type,
    float64_type,
    jeff_row_to_hugr,
    jeff_type_to_hugr,
    log_width,
    rotation_type,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from hugr_jeff._graph._model import Graph, Node

    from ._serial import OpType, Type, Value

logger = logging.getLogger(__name__)

ENCODER_NAME = "hugr-jeff"

FUNCTION_OPS = frozenset({"func.define", "func.declare"})


@dataclass(frozen=True, slots=True)
class EncoderOptions:
    """Options for HUGR encoding.

    Attributes:
        wrapper_name: Name of the function wrapping root-level nodes that are
            not functions themselves.

    """

    wrapper_name: str = "main"


@dataclass(eq=False, slots=True)
class _HNode:
    """A HUGR node under construction."""

    op: OpType
    parent: _HNode | None = None
    children: list[_HNode] = field(default_factory=list)
    metadata: dict[str, Any] | None = None
    index: int = -1


_End: TypeAlias = tuple[_HNode, int]


class _Encoder:
    def __init__(self, graph: Graph, options: EncoderOptions) -> None:
        self.graph = graph
        self.options = options
        self.module = _HNode(Module())
        # Graph port index -> HUGR (node, port) it became
        self.sources: dict[int, _End] = {}
        self.targets: dict[int, _End] = {}
        self.edges: list[tuple[_HNode, int | None, _HNode, int | None]] = []
        self.functions: dict[int, _HNode] = {}
        self.anchors: dict[int, _HNode] = {}
        self.calls: list[tuple[_HNode, int, Node]] = []
        # Swap output port -> the input port whose value it carries
        self.aliases: dict[int, int] = {}
        self.wrapper: _HNode | None = None

    # ------------------------------------------------------------------ #
    # Tree construction helpers
    # ------------------------------------------------------------------ #

    def add(self, parent: _HNode, op: OpType) -> _HNode:
        node = _HNode(op, parent)
        parent.children.append(node)
        return node

    def connect(self, source: _HNode, out_port: int, target: _HNode, in_port: int) -> None:
        self.edges.append((source, out_port, target, in_port))

    def row(self, port_ids: Sequence[int]) -> list[Type]:
        return jeff_row_to_hugr(self.graph.types(port_ids))

    def signature(self, node: Node) -> FunctionType:
        return FunctionType(input=self.row(node.inputs), output=self.row(node.outputs))

    def io(self, container: _HNode, inputs: list[Type], outputs: list[Type]) -> tuple[_HNode, _HNode]:
        """Add the Input and Output children that open every dataflow container."""
        return self.add(container, Input(types=inputs)), self.add(container, Output(types=outputs))

    def bind(self, node: Node, hnode: _HNode) -> None:
        """Map a graph node's ports one to one onto a HUGR node's ports."""
        for offset, port_id in enumerate(node.inputs):
            self.targets[port_id] = (hnode, offset)
        for offset, port_id in enumerate(node.outputs):
            self.sources[port_id] = (hnode, offset)

    def passthrough(self, inp: _HNode, out: _HNode, count: int, in_offset: int = 0, out_offset: int = 0) -> None:
        for offset in range(count):
            self.connect(inp, in_offset + offset, out, out_offset + offset)

    def single_region(self, node: Node) -> int:
        if len(node.regions) != 1:
            raise UnsupportedOperationError(node.op, f"'{node.key}' must own exactly one region")
        return node.regions[0]

    # ------------------------------------------------------------------ #
    # Regions
    # ------------------------------------------------------------------ #

    def fill_region(self, container: _HNode, region_id: int) -> None:
        """Translate a region into a dataflow container, including its Input and Output."""
        region = self.graph.region(region_id)
        inp, out = self.io(container, self.row(region.inputs), self.row(region.outputs))
        for offset, port_id in enumerate(region.inputs):
            self.sources[port_id] = (inp, offset)
        for offset, port_id in enumerate(region.outputs):
            self.targets[port_id] = (out, offset)
        for node_id in region.children:
            self.translate(container, self.graph.node(node_id))

    def dfg(self, parent: _HNode, region_id: int, inputs: list[Type], outputs: list[Type]) -> _HNode:
        dfg = self.add(parent, DFG(signature=FunctionType(input=inputs, output=outputs)))
        self.fill_region(dfg, region_id)
        return dfg

    def encode_root(self) -> None:
        try:
            root = self.graph.root
        except ValueError as e:
            raise EncodeError(str(e)) from e

        for node_id in root.children:
            node = self.graph.node(node_id)
            if node.op in FUNCTION_OPS:
                self.translate(self.module, node)
                continue
            wrapper = self.wrapper or self.open_wrapper(root.id)
            self.translate(wrapper, node)

        if self.wrapper is None and (root.inputs or root.outputs):
            self.open_wrapper(root.id)

    def open_wrapper(self, root_id: int) -> _HNode:
        inputs, outputs = self.graph.region_signature(root_id)
        body = FunctionType(input=jeff_row_to_hugr(inputs), output=jeff_row_to_hugr(outputs))
        self.wrapper = self.add(
            self.module,
            FuncDefn(name=self.options.wrapper_name, signature=PolyFuncType(body=body)),
        )
        region = self.graph.region(root_id)
        inp, out = self.io(self.wrapper, body.input, body.output)
        for offset, port_id in enumerate(region.inputs):
            self.sources[port_id] = (inp, offset)
        for offset, port_id in enumerate(region.outputs):
            self.targets[port_id] = (out, offset)
        return self.wrapper

    # ------------------------------------------------------------------ #
    # Nodes
    # ------------------------------------------------------------------ #

    def translate(self, parent: _HNode, node: Node) -> None:  # noqa: C901, PLR0912
        match node.op:
            case "func.define":
                hnode = self.add(parent, FuncDefn(name=node.label, signature=PolyFuncType(body=self.signature(node))))
                self.functions[node.id] = hnode
                self.fill_region(hnode, self.single_region(node))
            case "func.declare":
                hnode = self.add(parent, FuncDecl(name=node.label, signature=PolyFuncType(body=self.signature(node))))
                self.functions[node.id] = hnode
            case "func.call":
                hnode = self.call(parent, node)
            case "dfg":
                signature = self.signature(node)
                hnode = self.dfg(parent, self.single_region(node), signature.input, signature.output)
                self.bind(node, hnode)
            case "scf.switch":
                hnode = self.switch(parent, node)
            case "scf.do_while":
                hnode = self.do_while(parent, node)
            case "scf.while":
                hnode = self.while_loop(parent, node)
            case "scf.for":
                hnode = self.for_loop(parent, node)
            case "int.const" | "float.const" | "intArray.const":
                hnode = self.constant(parent, node)
            case "qubit.gate":
                gate = self.gate(parent, node)
                if gate is None:
                    return
                hnode = gate
            case _:
                spec = extension_op(self.graph, node)
                if spec is None:
                    raise UnsupportedOperationError(node.op)
                hnode = self.add(
                    parent,
                    ExtensionOp(
                        extension=spec.extension,
                        name=spec.name,
                        signature=self.signature(node),
                        args=list(spec.args),
                    ),
                )
                self.bind(node, hnode)

        if node.metadata:
            hnode.metadata = dict(node.metadata)
        self.anchors[node.id] = hnode

    def call(self, parent: _HNode, node: Node) -> _HNode:
        callee_key = node.attrs.get("callee")
        if not isinstance(callee_key, str):
            raise UnsupportedOperationError(node.op, f"'{node.key}' has no callee")
        try:
            callee = self.graph.node_by_key(callee_key)
        except KeyError as e:
            raise UnsupportedOperationError(node.op, f"callee '{callee_key}' does not exist") from e
        func_sig = PolyFuncType(body=self.signature(callee))
        hnode = self.add(parent, Call(func_sig=func_sig, instantiation=self.signature(node)))
        self.bind(node, hnode)
        # Static input follows the value inputs
        self.calls.append((hnode, len(node.inputs), callee))
        return hnode

    def switch(self, parent: _HNode, node: Node) -> _HNode:
        inputs, outputs = self.graph.signature(node.id)
        if not inputs or not is_bit_type(inputs[0]):
            raise UnsupportedOperationError(node.op, "only int1 selectors are supported")
        if not 1 <= len(node.regions) <= 2:
            raise UnsupportedOperationError(node.op, f"expected one or two branches, found {len(node.regions)}")
        if len(node.regions) == 1 and inputs[1:] != outputs:
            raise UnsupportedOperationError(node.op, "a single branch needs matching inputs and outputs")

        other = jeff_row_to_hugr(inputs[1:])
        outs = jeff_row_to_hugr(outputs)
        hnode = self.add(parent, Conditional(sum_rows=[[], []], other_inputs=other, outputs=outs))
        self.bind(node, hnode)
        for branch in range(2):
            case = self.add(hnode, Case(signature=FunctionType(input=other, output=outs)))
            if branch < len(node.regions):
                self.fill_region(case, node.regions[branch])
            else:
                inp, out = self.io(case, other, outs)
                self.passthrough(inp, out, len(other))
        return hnode

    def _loop_state(self, node: Node) -> list[Type]:
        inputs, outputs = self.graph.signature(node.id)
        if inputs != outputs:
            raise UnsupportedOperationError(node.op, "loop inputs and outputs must have the same types")
        return jeff_row_to_hugr(inputs)

    def do_while(self, parent: _HNode, node: Node) -> _HNode:
        if len(node.regions) != 2:
            raise UnsupportedOperationError(node.op, "expected a body and a condition region")
        state = self._loop_state(node)
        loop = self.add(parent, TailLoop(rest=state))
        self.bind(node, loop)
        inp, out = self.io(loop, state, [bool_type(), *state])

        body = self.dfg(loop, node.regions[0], state, state)
        self.passthrough(inp, body, len(state))
        condition = self.dfg(loop, node.regions[1], state, [bool_type()])
        self.passthrough(body, condition, len(state))

        self.connect(condition, 0, out, 0)
        self.passthrough(body, out, len(state), out_offset=1)
        return loop

    def while_loop(self, parent: _HNode, node: Node) -> _HNode:
        if len(node.regions) != 2:
            raise UnsupportedOperationError(node.op, "expected a condition and a body region")
        state = self._loop_state(node)
        loop = self.add(parent, TailLoop(rest=state))
        self.bind(node, loop)
        inp, out = self.io(loop, state, [bool_type(), *state])

        condition = self.dfg(loop, node.regions[0], state, [bool_type()])
        self.passthrough(inp, condition, len(state))

        branch = self.add(loop, Conditional(sum_rows=[[], []], other_inputs=state, outputs=state))
        self.connect(condition, 0, branch, 0)
        self.passthrough(inp, branch, len(state), out_offset=1)

        skip = self.add(branch, Case(signature=FunctionType(input=state, output=state)))
        skip_in, skip_out = self.io(skip, state, state)
        self.passthrough(skip_in, skip_out, len(state))
        run = self.add(branch, Case(signature=FunctionType(input=state, output=state)))
        self.fill_region(run, node.regions[1])

        self.connect(condition, 0, out, 0)
        self.passthrough(branch, out, len(state), out_offset=1)
        return loop

    def for_loop(self, parent: _HNode, node: Node) -> _HNode:
        inputs, outputs = self.graph.signature(node.id)
        counter = parse_type(inputs[0]) if inputs else None
        if counter is None or counter.kind != TypeKind.INT or counter == BIT:
            raise UnsupportedOperationError(node.op, "the loop counter must be an integer")
        if len(inputs) < 3 or len(set(inputs[:3])) != 1:
            raise UnsupportedOperationError(node.op, "start, stop and step must share one integer type")
        if inputs[3:] != outputs:
            raise UnsupportedOperationError(node.op, "loop state inputs and outputs must have the same types")
        region_id = self.single_region(node)

        int_t = jeff_type_to_hugr(inputs[0])
        width = [BoundedNatArg(n=log_width(counter.bits))]
        counters = [int_t, int_t, int_t]
        state = jeff_row_to_hugr(outputs)
        control_rows = [counters, []]
        control = GeneralSum(rows=control_rows)
        n_state = len(state)

        loop = self.add(parent, TailLoop(just_inputs=counters, rest=state))
        self.bind(node, loop)
        inp, out = self.io(loop, [*counters, *state], [control, *state])

        less = self.add(
            loop,
            ExtensionOp(
                extension=INT_OPS_EXTENSION,
                name="ilt_s",
                signature=FunctionType(input=[int_t, int_t], output=[bool_type()]),
                args=width,
            ),
        )
        self.passthrough(inp, less, 2)

        branch = self.add(
            loop,
            Conditional(sum_rows=[[], []], other_inputs=[*counters, *state], outputs=[control, *state]),
        )
        self.connect(less, 0, branch, 0)
        self.passthrough(inp, branch, 3 + n_state, out_offset=1)
        case_sig = FunctionType(input=[*counters, *state], output=[control, *state])

        # Counter reached stop: break with the state unchanged
        done = self.add(branch, Case(signature=case_sig))
        done_in, done_out = self.io(done, case_sig.input, case_sig.output)
        stop = self.add(done, Tag(tag=1, variants=control_rows))
        self.connect(stop, 0, done_out, 0)
        self.passthrough(done_in, done_out, n_state, in_offset=3, out_offset=1)

        # Run the body, advance the counter and continue
        step = self.add(branch, Case(signature=case_sig))
        step_in, step_out = self.io(step, case_sig.input, case_sig.output)
        body = self.dfg(step, region_id, [int_t, *state], state)
        self.connect(step_in, 0, body, 0)
        self.passthrough(step_in, body, n_state, in_offset=3, out_offset=1)
        advance = self.add(
            step,
            ExtensionOp(
                extension=INT_OPS_EXTENSION,
                name="iadd",
                signature=FunctionType(input=[int_t, int_t], output=[int_t]),
                args=width,
            ),
        )
        self.connect(step_in, 0, advance, 0)
        self.connect(step_in, 2, advance, 1)
        again = self.add(step, Tag(tag=0, variants=control_rows))
        self.connect(advance, 0, again, 0)
        self.connect(step_in, 1, again, 1)
        self.connect(step_in, 2, again, 2)
        self.connect(again, 0, step_out, 0)
        self.passthrough(body, step_out, n_state, out_offset=1)

        self.passthrough(branch, out, 1 + n_state)
        return loop

    def constant(self, parent: _HNode, node: Node) -> _HNode:
        _, outputs = self.graph.signature(node.id)
        if len(outputs) != 1:
            raise UnsupportedOperationError(node.op, f"'{node.key}' must have exactly one output")
        datatype = jeff_type_to_hugr(outputs[0])
        value = self.constant_value(node, outputs[0], datatype)
        const = self.add(parent, Const(v=value))
        load = self.add(parent, LoadConstant(datatype=datatype))
        self.connect(const, 0, load, 0)
        self.sources[node.outputs[0]] = (load, 0)
        return load

    def constant_value(self, node: Node, descriptor: str, datatype: Type) -> Value:
        parsed = parse_type(descriptor)
        match node.op:
            case "int.const":
                value = node.attrs.get("value")
                if isinstance(value, bool):
                    value = int(value)
                if not isinstance(value, int) or parsed is None or parsed.kind != TypeKind.INT:
                    raise UnsupportedOperationError(node.op, f"'{node.key}' needs an integer 'value' and output")
                if parsed == BIT:
                    return SumValue(tag=value & 1, typ=bool_type())
                width = log_width(parsed.bits)
                masked = value & ((1 << (1 << width)) - 1)
                return ExtensionValue(
                    typ=datatype,
                    value=CustomConst(c="ConstInt", v={"log_width": width, "value": masked}),
                )
            case "float.const":
                value = node.attrs.get("value")
                if isinstance(value, bool) or not isinstance(value, int | float):
                    raise UnsupportedOperationError(node.op, f"'{node.key}' needs a float 'value'")
                return ExtensionValue(typ=float64_type(), value=CustomConst(c="ConstF64", v={"value": float(value)}))
        values = node.attrs.get("values", ())
        if not isinstance(values, tuple) or parsed is None or parsed.kind != TypeKind.INT_ARRAY:
            raise UnsupportedOperationError(node.op, f"'{node.key}' needs integer 'values' and an array output")
        mask = (1 << parsed.bits) - 1
        return ExtensionValue(
            typ=datatype,
            value=CustomConst(c="ConstIntReg", v={"bits": parsed.bits, "values": [v & mask for v in values]}),
        )

    def swap(self, node: Node) -> None:
        """Cross the two wires of a swap instead of emitting a node."""
        if len(node.inputs) != 2 or len(node.outputs) != 2:
            raise UnsupportedOperationError(node.op, f"swap '{node.key}' must have two inputs and two outputs")
        first, second = node.inputs
        self.aliases[node.outputs[0]] = second
        self.aliases[node.outputs[1]] = first

    def gate(self, parent: _HNode, node: Node) -> _HNode | None:
        spec = gate_spec(self.graph, node)
        if spec.is_swap:
            self.swap(node)
            return None
        named = spec.named_op
        if named is None:
            qgate = ExtensionOp(
                extension=JEFF_EXTENSION,
                name=QGATE,
                signature=self.signature(node),
                args=list(spec.qgate_args()),
            )
            hnode = self.add(parent, qgate)
            self.bind(node, hnode)
            return hnode

        qubit_row = self.row(node.inputs[: spec.qubits])
        rotations = [
            self.add(
                parent,
                ExtensionOp(
                    extension=ROTATION_EXTENSION,
                    name=FROM_HALFTURNS,
                    signature=FunctionType(input=[float64_type()], output=[rotation_type()]),
                ),
            )
            for _ in range(spec.params)
        ]
        signature = FunctionType(
            input=[*qubit_row, *(rotation_type() for _ in rotations)],
            output=self.row(node.outputs),
        )
        hnode = self.add(parent, ExtensionOp(extension=QUANTUM_EXTENSION, name=named, signature=signature))
        for offset, port_id in enumerate(node.inputs[: spec.qubits]):
            self.targets[port_id] = (hnode, offset)
        for offset, (port_id, rotation) in enumerate(zip(node.inputs[spec.qubits :], rotations, strict=True)):
            self.targets[port_id] = (rotation, 0)
            self.connect(rotation, 0, hnode, spec.qubits + offset)
        for offset, port_id in enumerate(node.outputs):
            self.sources[port_id] = (hnode, offset)
        return hnode

    # ------------------------------------------------------------------ #
    # Edges
    # ------------------------------------------------------------------ #

    def resolve_source(self, port_id: int) -> int:
        """Follow swap outputs back to the port that produces the value."""
        seen: set[int] = set()
        while port_id in self.aliases:
            if port_id in seen:
                msg = f"Swapped wires through port '{self.graph.port(port_id).key}' form a cycle"
                raise EncodeError(msg)
            seen.add(port_id)
            swap_input = self.aliases[port_id]
            incoming = self.graph.incoming(swap_input)
            if not incoming:
                msg = f"Swap input '{self.graph.port(swap_input).key}' is not connected"
                raise EncodeError(msg)
            port_id = incoming[0].source
        return port_id

    def wire(self) -> None:
        fan_in = Counter(edge.target for edge in self.graph.edges)
        swap_inputs = set(self.aliases.values())
        order_edges: set[tuple[int, int]] = set()
        for edge in self.graph.edges:
            target_port = self.graph.port(edge.target)
            if fan_in[edge.target] > 1:
                msg = f"Input port '{target_port.key}' has {fan_in[edge.target]} incoming edges"
                raise EncodeError(msg)
            if edge.target in swap_inputs:
                continue
            source_id = self.resolve_source(edge.source)
            source_port = self.graph.port(source_id)
            if source_id not in self.sources or edge.target not in self.targets:
                msg = f"Edge {source_port.key} -> {target_port.key} connects a port with no HUGR counterpart"
                raise EncodeError(msg)

            source, out_port = self.sources[source_id]
            target, in_port = self.targets[edge.target]
            self.connect(source, out_port, target, in_port)

            if self.graph.port_region(source_port) != edge.region:
                if source_port.is_linear:
                    msg = (
                        f"Edge {source_port.key} -> {target_port.key} carries a linear value "
                        "across a region boundary"
                    )
                    raise EncodeError(msg)
                ancestor = self.sibling_ancestor(source, target)
                if ancestor is None:
                    msg = f"Edge {source_port.key} -> {target_port.key} leaves the source's scope"
                    raise EncodeError(msg)
                if ancestor is not source and (id(source), id(ancestor)) not in order_edges:
                    order_edges.add((id(source), id(ancestor)))
                    self.edges.append((source, None, ancestor, None))

        for hnode, static_port, callee in self.calls:
            function = self.functions.get(callee.id)
            if function is None:
                msg = f"callee '{callee.key}' is not a function"
                raise UnsupportedOperationError("func.call", msg)
            self.connect(function, 0, hnode, static_port)

    @staticmethod
    def sibling_ancestor(source: _HNode, target: _HNode) -> _HNode | None:
        """The ancestor of ``target`` that shares a parent with ``source``."""
        current: _HNode | None = target
        while current is not None and current.parent is not source.parent:
            current = current.parent
        return current

    # ------------------------------------------------------------------ #
    # Output
    # ------------------------------------------------------------------ #

    def flatten(self) -> SerialHugr:
        order: list[_HNode] = []
        queue = deque([self.module])
        while queue:
            hnode = queue.popleft()
            hnode.index = len(order)
            order.append(hnode)
            queue.extend(hnode.children)

        nodes = [
            hnode.op.model_copy(update={"parent": hnode.parent.index if hnode.parent is not None else 0})
            for hnode in order
        ]
        edges = [
            ((source.index, out_port), (target.index, in_port)) for source, out_port, target, in_port in self.edges
        ]

        if self.graph.entrypoint is not None:
            if self.graph.entrypoint not in self.anchors:
                msg = f"Entrypoint '{self.graph.node(self.graph.entrypoint).key}' has no HUGR counterpart"
                raise EncodeError(msg)
            entry = self.anchors[self.graph.entrypoint]
        elif self.wrapper is not None:
            entry = self.wrapper
        else:
            entry = self.module

        return SerialHugr(
            nodes=nodes,
            edges=edges,
            metadata=[hnode.metadata for hnode in order],
            encoder=ENCODER_NAME,
            entrypoint=entry.index,
        )

    def encode(self) -> SerialHugr:
        self.encode_root()
        self.wire()
        return self.flatten()


def build_package(graph: Graph, options: EncoderOptions | None = None) -> Package:
    """Translate a graph into a HUGR package.

    Args:
        graph: A validated graph.
        options: Encoder options. Defaults to `EncoderOptions()`.

    Returns:
        A package holding a single HUGR module.

    Raises:
        UnsupportedTypeError: If a port type has no HUGR equivalent.
        UnsupportedOperationError: If an operation cannot be translated.
        EncodeError: If the wiring cannot be expressed in HUGR.

    """
    hugr = _Encoder(graph, options or EncoderOptions()).encode()
    logger.debug("Encoded graph '%s' into %d HUGR nodes, %d edges", graph.name, len(hugr.nodes), len(hugr.edges))
    return Package(modules=[hugr])


def encode_hugr(graph: Graph, options: EncoderOptions | None = None) -> bytes:
    """Encode a graph as HUGR envelope bytes.

    Identical graphs always produce byte-identical output.
    """
    return write_envelope(build_package(graph, options))
