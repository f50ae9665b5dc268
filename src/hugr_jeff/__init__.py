"""Convert jeff quantum programs into HUGR packages and Mermaid diagrams."""

__all__ = [
    "BuildError",
    "ConversionCancelled",
    "ConversionError",
    "ConversionOptions",
    "DanglingReference",
    "DecodeError",
    "DiagramOptions",
    "Direction",
    "DuplicateKey",
    "Edge",
    "EncodeError",
    "EncoderOptions",
    "Graph",
    "MermaidDiagram",
    "Node",
    "OutputMode",
    "OwnerKind",
    "Port",
    "RecordBuilder",
    "Region",
    "UnsupportedOperationError",
    "UnsupportedTypeError",
    "ValidationError",
    "ValidationErrorKind",
    "ValidationFailed",
    "__version__",
    "build_graph",
    "build_package",
    "convert",
    "decode_records",
    "encode_hugr",
    "encode_records",
    "graph_to_records",
    "load_graph",
    "read_envelope",
    "render_mermaid",
    "structurally_equal",
    "validate_graph",
]

from ._convert import ConversionOptions, OutputMode, convert, load_graph
from ._errors import (
    BuildError,
    ConversionCancelled,
    ConversionError,
    DanglingReference,
    DecodeError,
    DuplicateKey,
    EncodeError,
    UnsupportedOperationError,
    UnsupportedTypeError,
    ValidationFailed,
)
from ._graph import Direction, Edge, Graph, Node, OwnerKind, Port, Region, structurally_equal
from ._graph._builder import build_graph
from ._hugr import EncoderOptions, build_package, encode_hugr, read_envelope
from ._jeff import RecordBuilder, decode_records, encode_records, graph_to_records
from ._mermaid import DiagramOptions, MermaidDiagram, render_mermaid
from ._validate import ValidationError, ValidationErrorKind, validate_graph

__version__ = "0.1.0"
