"""Render a graph as a Mermaid flowchart.

Every region becomes a ``subgraph`` block, every node a declaration line inside
the block of its region, and every edge an arrow between node identifiers.
Region boundary ports are drawn as ``<region>_in`` / ``<region>_out``
pseudo-nodes inside their region's block.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ._graph._model import OwnerKind

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ._graph._model import Graph

logger = logging.getLogger(__name__)

# Mermaid node/subgraph IDs must be alphanumeric/underscore and must not start
# with a digit.
MERMAID_ID_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_INVALID_ID_CHARS = re.compile(r"[^A-Za-z0-9_]")

# Keywords that break the flowchart parser when used as bare identifiers
RESERVED_WORDS = frozenset(
    {"end", "graph", "flowchart", "subgraph", "direction", "style", "classdef", "class", "click", "linkstyle"},
)

DIRECTIONS = ("LR", "RL", "TB", "TD", "BT")

INDENT = "    "


@dataclass(frozen=True, slots=True)
class DiagramOptions:
    """Options for Mermaid rendering.

    Attributes:
        direction: Flowchart direction (``LR``, ``RL``, ``TB``, ``TD`` or ``BT``).
        edge_labels: Label edges with their port positions and value type.

    """

    direction: str = "LR"
    edge_labels: bool = False

    def __post_init__(self) -> None:
        if self.direction not in DIRECTIONS:
            msg = f"Invalid diagram direction '{self.direction}', expected one of {', '.join(DIRECTIONS)}"
            raise ValueError(msg)


def mm_text(text: str) -> str:
    """Escape text for Mermaid labels.

    Mermaid renders labels as HTML, so characters with a meaning in the
    flowchart syntax or in HTML are replaced by Mermaid entity codes.
    Whitespace runs collapse to a single space.

    Example:
        >>> mm_text('a<b> | "c"')
        'a#lt;b#gt; #124; #quot;c#quot;'

    """
    normalized = re.sub(r"\s+", " ", str(text)).strip()
    return (
        normalized.replace("&", "#amp;")
        .replace("<", "#lt;")
        .replace(">", "#gt;")
        .replace('"', "#quot;")
        .replace("|", "#124;")
    )


def sanitize_id(key: str) -> str:
    """Turn an arbitrary key into a valid Mermaid identifier.

    Example:
        >>> sanitize_id("my node")
        'my_node'
        >>> sanitize_id("1st")
        '_1st'
        >>> sanitize_id("end")
        'end_'

    """
    ident = _INVALID_ID_CHARS.sub("_", key) or "_"
    if not MERMAID_ID_RE.match(ident):
        ident = f"_{ident}"
    if ident.lower() in RESERVED_WORDS:
        ident = f"{ident}_"
    return ident


class _IdAllocator:
    """Hand out unique identifiers, suffixing ``_1``, ``_2``, ... on collisions."""

    def __init__(self) -> None:
        self._used: set[str] = set()

    def allocate(self, key: str) -> str:
        base = sanitize_id(key)
        candidate = base
        suffix = 1
        while candidate in self._used:
            candidate = f"{base}_{suffix}"
            suffix += 1
        self._used.add(candidate)
        return candidate


@dataclass(frozen=True, slots=True)
class _Ids:
    nodes: dict[int, str]
    regions: dict[int, str]
    region_inputs: dict[int, str]
    region_outputs: dict[int, str]


def _allocate_ids(graph: Graph) -> _Ids:
    allocator = _IdAllocator()
    nodes = {node.id: allocator.allocate(node.key) for node in graph.nodes}
    regions = {region.id: allocator.allocate(region.key) for region in graph.regions}
    region_inputs: dict[int, str] = {}
    region_outputs: dict[int, str] = {}
    for region in graph.regions:
        if region.inputs:
            region_inputs[region.id] = allocator.allocate(f"{regions[region.id]}_in")
        if region.outputs:
            region_outputs[region.id] = allocator.allocate(f"{regions[region.id]}_out")
    return _Ids(nodes, regions, region_inputs, region_outputs)


class MermaidDiagram:
    """A lazily rendered Mermaid flowchart.

    Iterating yields the diagram one line at a time. Every iteration renders
    from scratch, so the diagram can be iterated any number of times and always
    yields the same lines.
    """

    def __init__(self, graph: Graph, options: DiagramOptions | None = None) -> None:
        self.graph = graph
        self.options = options or DiagramOptions()

    def __iter__(self) -> Iterator[str]:
        ids = _allocate_ids(self.graph)
        yield f"graph {self.options.direction}"
        visited: set[int] = set()
        for root in self.graph.roots():
            yield from self._region(root, ids, 1, visited)
        for edge in self.graph.edges:
            yield self._edge(edge.source, edge.target, ids)

    def __str__(self) -> str:
        return "\n".join(self) + "\n"

    def _region(self, region_id: int, ids: _Ids, depth: int, visited: set[int]) -> Iterator[str]:
        if region_id in visited:
            return
        visited.add(region_id)
        graph = self.graph
        region = graph.region(region_id)
        outer = INDENT * depth
        inner = INDENT * (depth + 1)

        yield f'{outer}subgraph {ids.regions[region_id]}["{mm_text(region.key)}"]'
        if region_id in ids.region_inputs:
            types = ", ".join(graph.types(region.inputs))
            yield f'{inner}{ids.region_inputs[region_id]}[/"in: {mm_text(types)}"/]'
        for node_id in region.children:
            node = graph.node(node_id)
            yield f'{inner}{ids.nodes[node_id]}["{mm_text(f"{node.key}: {node.op}")}"]'
            for child_region in node.regions:
                yield from self._region(child_region, ids, depth + 1, visited)
        if region_id in ids.region_outputs:
            types = ", ".join(graph.types(region.outputs))
            yield f'{inner}{ids.region_outputs[region_id]}[\\"out: {mm_text(types)}"\\]'
        yield f"{outer}end"

    def _endpoint(self, port_id: int, ids: _Ids) -> str:
        port = self.graph.port(port_id)
        if port.owner_kind == OwnerKind.NODE:
            return ids.nodes[port.owner]
        if port.is_source:
            return ids.region_inputs[port.owner]
        return ids.region_outputs[port.owner]

    def _edge(self, source_id: int, target_id: int, ids: _Ids) -> str:
        source = self._endpoint(source_id, ids)
        target = self._endpoint(target_id, ids)
        if not self.options.edge_labels:
            return f"{source} --> {target}"
        src_port = self.graph.port(source_id)
        tgt_port = self.graph.port(target_id)
        label = mm_text(f"{src_port.index}:{tgt_port.index} {src_port.type}")
        return f'{source} -->|"{label}"| {target}'


def render_mermaid(graph: Graph, options: DiagramOptions | None = None) -> MermaidDiagram:
    """Render a validated graph as a Mermaid flowchart.

    Args:
        graph: The graph to render.
        options: Rendering options. Defaults to `DiagramOptions()`.

    Returns:
        A restartable iterable of diagram lines.

    """
    logger.debug("Rendering graph '%s' as Mermaid (%d nodes)", graph.name, len(graph))
    return MermaidDiagram(graph, options)
