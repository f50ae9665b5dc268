"""Structural validation of a built graph.

`validate_graph` runs every check and returns all violations at once. The
checks are independent, and each one tolerates the damage the others report, so
a malformed graph assembled by hand never makes validation crash.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, TypeAlias

from ._graph._model import OwnerKind

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from ._graph._model import Edge, Graph, Node, Port

logger = logging.getLogger(__name__)

Signature: TypeAlias = tuple[tuple[str, ...], tuple[str, ...]]

BIT_TYPE = "int1"

# Operations whose region count is fixed
FIXED_REGION_COUNTS: dict[str, int] = {
    "scf.for": 1,
    "scf.while": 2,
    "scf.do_while": 2,
}


class ValidationErrorKind(StrEnum):
    """Category of a structural violation."""

    ROOT_COUNT = "root_count"
    REGION_CYCLE = "region_cycle"
    REGION_MEMBERSHIP = "region_membership"
    DANGLING_REFERENCE = "dangling_reference"
    DIRECTION_MISMATCH = "direction_mismatch"
    SCOPE_VIOLATION = "scope_violation"
    BOUNDARY_ARITY = "boundary_arity"
    BOUNDARY_TYPE = "boundary_type"
    REGION_COUNT = "region_count"
    LINEARITY = "linearity"
    EDGE_TYPE_MISMATCH = "edge_type_mismatch"


@dataclass(frozen=True, slots=True)
class ValidationError:
    """A single structural violation.

    Attributes:
        kind: The violated invariant.
        message: Human-readable description.
        subject: Key of the offending node, region, port or edge.

    """

    kind: ValidationErrorKind
    message: str
    subject: str = ""


def _types(graph: Graph, port_ids: Sequence[int]) -> tuple[str, ...]:
    return tuple(graph.ports[p].type if graph.has_port(p) else "?" for p in port_ids)


def expected_region_signatures(graph: Graph, node: Node) -> tuple[Signature, ...]:
    """Boundary signatures a node's operation expects of its regions.

    Returns one signature per region position. For operations with a fixed
    region count the result has exactly that many entries, otherwise one per
    region the node owns.
    """
    inputs = _types(graph, node.inputs)
    outputs = _types(graph, node.outputs)
    match node.op:
        case "scf.switch":
            return ((inputs[1:], outputs),) * len(node.regions)
        case "scf.for":
            return ((inputs[0:1] + inputs[3:], outputs),)
        case "scf.while":
            return ((inputs, (BIT_TYPE,)), (inputs, outputs))
        case "scf.do_while":
            return ((inputs, outputs), (outputs, (BIT_TYPE,)))
    return ((inputs, outputs),) * len(node.regions)


def _edge_name(graph: Graph, edge: Edge) -> str:
    source = graph.ports[edge.source].key if graph.has_port(edge.source) else f"#{edge.source}"
    target = graph.ports[edge.target].key if graph.has_port(edge.target) else f"#{edge.target}"
    return f"{source}->{target}"


def _port_region(graph: Graph, port: Port) -> int | None:
    """Region a port is visible in, or None if its owner is missing."""
    if port.owner_kind == OwnerKind.NODE:
        return graph.nodes[port.owner].parent if graph.has_node(port.owner) else None
    return port.owner if graph.has_region(port.owner) else None


def _check_region_tree(graph: Graph) -> Iterator[ValidationError]:  # noqa: C901, PLR0912
    roots = graph.roots()
    if len(roots) != 1:
        keys = ", ".join(graph.regions[r].key for r in roots) or "none"
        yield ValidationError(
            ValidationErrorKind.ROOT_COUNT,
            f"Expected exactly one top-level region, found {len(roots)} ({keys})",
        )

    reported: set[frozenset[int]] = set()
    for region in graph.regions:
        chain = list(graph.enclosing_regions(region.id))
        last = graph.regions[chain[-1]]
        if last.owner is None or not graph.has_node(last.owner):
            continue
        parent = graph.nodes[last.owner].parent
        if parent in chain:
            cycle = frozenset(chain[chain.index(parent) :])
            if cycle not in reported:
                reported.add(cycle)
                keys = " -> ".join(graph.regions[r].key for r in chain[chain.index(parent) :])
                yield ValidationError(
                    ValidationErrorKind.REGION_CYCLE,
                    f"Region nesting forms a cycle: {keys}",
                    region.key,
                )

    for node in graph.nodes:
        if not graph.has_region(node.parent):
            yield ValidationError(
                ValidationErrorKind.DANGLING_REFERENCE,
                f"Node '{node.key}' belongs to missing region #{node.parent}",
                node.key,
            )
        elif graph.regions[node.parent].children.count(node.id) != 1:
            yield ValidationError(
                ValidationErrorKind.REGION_MEMBERSHIP,
                f"Node '{node.key}' is not listed exactly once by its region '{graph.regions[node.parent].key}'",
                node.key,
            )
        for region_id in node.regions:
            if not graph.has_region(region_id):
                yield ValidationError(
                    ValidationErrorKind.DANGLING_REFERENCE,
                    f"Node '{node.key}' owns missing region #{region_id}",
                    node.key,
                )
            elif graph.regions[region_id].owner != node.id:
                yield ValidationError(
                    ValidationErrorKind.REGION_MEMBERSHIP,
                    f"Region '{graph.regions[region_id].key}' does not name '{node.key}' as its owner",
                    node.key,
                )
        for port_id in (*node.inputs, *node.outputs):
            if not graph.has_port(port_id):
                yield ValidationError(
                    ValidationErrorKind.DANGLING_REFERENCE,
                    f"Node '{node.key}' lists missing port #{port_id}",
                    node.key,
                )

    for region in graph.regions:
        for node_id in region.children:
            if not graph.has_node(node_id):
                yield ValidationError(
                    ValidationErrorKind.DANGLING_REFERENCE,
                    f"Region '{region.key}' lists missing node #{node_id}",
                    region.key,
                )
            elif graph.nodes[node_id].parent != region.id:
                yield ValidationError(
                    ValidationErrorKind.REGION_MEMBERSHIP,
                    f"Node '{graph.nodes[node_id].key}' is listed by region '{region.key}' but belongs elsewhere",
                    region.key,
                )
        if region.owner is not None:
            if not graph.has_node(region.owner):
                yield ValidationError(
                    ValidationErrorKind.DANGLING_REFERENCE,
                    f"Region '{region.key}' is owned by missing node #{region.owner}",
                    region.key,
                )
            elif region.id not in graph.nodes[region.owner].regions:
                yield ValidationError(
                    ValidationErrorKind.REGION_MEMBERSHIP,
                    f"Region '{region.key}' is not listed by its owner '{graph.nodes[region.owner].key}'",
                    region.key,
                )


def _check_edges(graph: Graph) -> Iterator[ValidationError]:
    for edge in graph.edges:
        name = _edge_name(graph, edge)
        missing = [
            what
            for what, present in (
                ("scope region", graph.has_region(edge.region)),
                ("source port", graph.has_port(edge.source)),
                ("target port", graph.has_port(edge.target)),
            )
            if not present
        ]
        if missing:
            yield ValidationError(
                ValidationErrorKind.DANGLING_REFERENCE,
                f"Edge {name} references a missing {' and '.join(missing)}",
                name,
            )
        source = graph.ports[edge.source] if graph.has_port(edge.source) else None
        target = graph.ports[edge.target] if graph.has_port(edge.target) else None

        if source is not None and not source.is_source:
            yield ValidationError(
                ValidationErrorKind.DIRECTION_MISMATCH,
                f"Edge {name} starts at '{source.key}', which cannot feed an edge",
                name,
            )
        if target is not None and target.is_source:
            yield ValidationError(
                ValidationErrorKind.DIRECTION_MISMATCH,
                f"Edge {name} ends at '{target.key}', which cannot receive an edge",
                name,
            )

        if graph.has_region(edge.region):
            scope = graph.regions[edge.region].key
            if source is not None:
                region = _port_region(graph, source)
                if region is None:
                    yield ValidationError(
                        ValidationErrorKind.DANGLING_REFERENCE,
                        f"Source port '{source.key}' has a missing owner",
                        name,
                    )
                elif region not in graph.enclosing_regions(edge.region):
                    yield ValidationError(
                        ValidationErrorKind.SCOPE_VIOLATION,
                        f"Edge {name}: source '{source.key}' is not visible from region '{scope}'",
                        name,
                    )
                elif region != edge.region and source.is_linear:
                    yield ValidationError(
                        ValidationErrorKind.SCOPE_VIOLATION,
                        f"Edge {name}: linear source '{source.key}' can only enter region '{scope}' "
                        "through its boundary ports",
                        name,
                    )
            if target is not None:
                region = _port_region(graph, target)
                if region is None:
                    yield ValidationError(
                        ValidationErrorKind.DANGLING_REFERENCE,
                        f"Target port '{target.key}' has a missing owner",
                        name,
                    )
                elif region != edge.region:
                    yield ValidationError(
                        ValidationErrorKind.SCOPE_VIOLATION,
                        f"Edge {name}: target '{target.key}' does not lie in region '{scope}'",
                        name,
                    )


def _check_boundaries(graph: Graph) -> Iterator[ValidationError]:
    for node in graph.nodes:
        fixed = FIXED_REGION_COUNTS.get(node.op)
        if fixed is not None and len(node.regions) != fixed:
            yield ValidationError(
                ValidationErrorKind.REGION_COUNT,
                f"Node '{node.key}' ({node.op}) must own {fixed} region(s), found {len(node.regions)}",
                node.key,
            )
        expected = expected_region_signatures(graph, node)
        for region_id, (want_in, want_out) in zip(node.regions, expected, strict=False):
            if not graph.has_region(region_id):
                continue
            region = graph.regions[region_id]
            for side, want, ports in (("input", want_in, region.inputs), ("output", want_out, region.outputs)):
                have = _types(graph, ports)
                if len(have) != len(want):
                    yield ValidationError(
                        ValidationErrorKind.BOUNDARY_ARITY,
                        f"Region '{region.key}' has {len(have)} {side} port(s), "
                        f"but '{node.key}' declares {len(want)}",
                        region.key,
                    )
                elif have != want:
                    yield ValidationError(
                        ValidationErrorKind.BOUNDARY_TYPE,
                        f"Region '{region.key}' {side} types ({', '.join(have)}) do not match "
                        f"'{node.key}' ({', '.join(want)})",
                        region.key,
                    )


def _check_linearity(graph: Graph) -> Iterator[ValidationError]:
    incoming = Counter(edge.target for edge in graph.edges)
    outgoing = Counter(edge.source for edge in graph.edges)
    for port in graph.ports:
        if not port.is_linear:
            continue
        if incoming[port.id] > 1:
            yield ValidationError(
                ValidationErrorKind.LINEARITY,
                f"Linear port '{port.key}' ({port.type}) is the target of {incoming[port.id]} edges",
                port.key,
            )
        if outgoing[port.id] > 1:
            yield ValidationError(
                ValidationErrorKind.LINEARITY,
                f"Linear port '{port.key}' ({port.type}) is the source of {outgoing[port.id]} edges",
                port.key,
            )


def _check_edge_types(graph: Graph) -> Iterator[ValidationError]:
    for edge in graph.edges:
        if not (graph.has_port(edge.source) and graph.has_port(edge.target)):
            continue
        source, target = graph.ports[edge.source], graph.ports[edge.target]
        if source.type != target.type:
            name = _edge_name(graph, edge)
            yield ValidationError(
                ValidationErrorKind.EDGE_TYPE_MISMATCH,
                f"Edge {name} connects {source.type} to {target.type}",
                name,
            )


def validate_graph(graph: Graph) -> list[ValidationError]:
    """Check a graph against every structural invariant.

    Args:
        graph: The graph to check.

    Returns:
        All violations found, grouped by check. Empty if the graph is valid.

    """
    errors: list[ValidationError] = []
    for check in (_check_region_tree, _check_edges, _check_boundaries, _check_linearity, _check_edge_types):
        errors.extend(check(graph))
    logger.debug("Validated graph '%s': %d error(s)", graph.name, len(errors))
    return errors
