"""Conversion driver: decode, build, validate, then encode or render."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Literal, overload

from ._errors import ConversionCancelled, ValidationFailed
from ._graph._builder import build_graph
from ._hugr import EncoderOptions, encode_hugr
from ._jeff import decode_records
from ._mermaid import DiagramOptions, MermaidDiagram, render_mermaid
from ._validate import validate_graph

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._graph._model import Graph

logger = logging.getLogger(__name__)


class OutputMode(StrEnum):
    """What `convert` produces."""

    HUGR = "hugr"
    MERMAID = "mermaid"


@dataclass(frozen=True, slots=True)
class ConversionOptions:
    """Options for the encoding and rendering stages."""

    encoder: EncoderOptions = field(default_factory=EncoderOptions)
    diagram: DiagramOptions = field(default_factory=DiagramOptions)


def _checkpoint(should_cancel: Callable[[], bool] | None, stage: str) -> None:
    if should_cancel is not None and should_cancel():
        logger.debug("Conversion cancelled before %s", stage)
        raise ConversionCancelled(stage)


def load_graph(data: bytes, should_cancel: Callable[[], bool] | None = None) -> Graph:
    """Decode, build and validate a jeff buffer.

    Args:
        data: Raw jeff bytes.
        should_cancel: Polled between stages. Returning True aborts the
            conversion with `ConversionCancelled`.

    Returns:
        The validated graph.

    Raises:
        DecodeError: If the bytes are malformed.
        BuildError: If the records reference missing or duplicate keys.
        ValidationFailed: If the graph violates any structural invariant. The
            exception carries every violation found.
        ConversionCancelled: If ``should_cancel`` returned True.

    """
    _checkpoint(should_cancel, "decoding")
    records = decode_records(data)
    _checkpoint(should_cancel, "building")
    graph = build_graph(records)
    _checkpoint(should_cancel, "validation")
    errors = validate_graph(graph)
    if errors:
        raise ValidationFailed(errors)
    return graph


@overload
def convert(
    data: bytes,
    mode: Literal[OutputMode.HUGR],
    options: ConversionOptions | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> bytes: ...


@overload
def convert(
    data: bytes,
    mode: Literal[OutputMode.MERMAID],
    options: ConversionOptions | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> MermaidDiagram: ...


def convert(
    data: bytes,
    mode: OutputMode,
    options: ConversionOptions | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> bytes | MermaidDiagram:
    """Convert a jeff buffer into HUGR envelope bytes or a Mermaid diagram.

    The pipeline stops at the first failing stage and raises that stage's
    error unchanged.

    Args:
        data: Raw jeff bytes.
        mode: Requested output.
        options: Encoder and diagram options.
        should_cancel: Polled between stages; see `load_graph`.

    Returns:
        HUGR envelope bytes for `OutputMode.HUGR`, a `MermaidDiagram` for
        `OutputMode.MERMAID`.

    """
    options = options or ConversionOptions()
    graph = load_graph(data, should_cancel)
    match mode:
        case OutputMode.HUGR:
            _checkpoint(should_cancel, "encoding")
            return encode_hugr(graph, options.encoder)
        case OutputMode.MERMAID:
            _checkpoint(should_cancel, "rendering")
            return render_mermaid(graph, options.diagram)
    msg = f"Unknown output mode: {mode!r}"
    raise ValueError(msg)
