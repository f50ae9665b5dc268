"""Rich rendering utilities for the check and convert commands."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rich.console import Console

    from hugr_jeff._graph import Graph
    from hugr_jeff._validate import ValidationError


def render_graph_summary(graph: Graph, console: Console) -> None:
    """Render element counts and the operation histogram of a graph.

    Args:
        graph: The graph to summarize.
        console: Rich Console to output to.

    """
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Element", style="bold")
    table.add_column("Count", justify="right", style="yellow")

    table.add_row("Nodes", str(len(graph.nodes)))
    table.add_row("Regions", str(len(graph.regions)))
    table.add_row("Ports", str(len(graph.ports)))
    table.add_row("Edges", str(len(graph.edges)))
    console.print(table)

    if not graph.nodes:
        return

    ops = Counter(node.op for node in graph.nodes)
    op_table = Table(show_header=True, header_style="bold cyan")
    op_table.add_column("Operation", style="dim")
    op_table.add_column("Count", justify="right")
    for op, count in sorted(ops.items(), key=lambda item: (-item[1], item[0])):
        op_table.add_row(escape(op), str(count))
    console.print(op_table)


def render_validation_errors(errors: Sequence[ValidationError], console: Console) -> None:
    """Render validation errors as a Rich table.

    Args:
        errors: The violations to render, in report order.
        console: Rich Console to output to.

    """
    table = Table(show_header=True, header_style="bold red")
    table.add_column("Kind")
    table.add_column("Subject", style="dim")
    table.add_column("Message")

    for error in errors:
        table.add_row(str(error.kind), escape(error.subject), escape(error.message))

    console.print(table)
