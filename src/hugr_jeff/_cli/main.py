import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from hugr_jeff._convert import ConversionOptions, OutputMode, convert, load_graph
from hugr_jeff._errors import ConversionError, ValidationFailed
from hugr_jeff._hugr import EncoderOptions
from hugr_jeff._mermaid import DIRECTIONS, DiagramOptions

from .config import ConfigError, HugrJeffConfig, get_config
from .render import render_graph_summary, render_validation_errors

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """hugr-jeff CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Configure rich logging handler to output to stderr
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
    )


def _load_config() -> HugrJeffConfig:
    try:
        return get_config()
    except ConfigError as e:
        err_console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


def _read_input(file: Path) -> bytes:
    if not file.is_file():
        err_console.print(f"[red]Error: Input file not found: {escape(str(file))}[/red]")
        raise typer.Exit(code=1)
    return file.read_bytes()


def _report_failure(error: ConversionError) -> None:
    err_console.print(f"[red]✗ {type(error).__name__}: {escape(str(error))}[/red]")
    if isinstance(error, ValidationFailed):
        err_console.print()
        render_validation_errors(error.errors, err_console)


@app.command(name="convert")
def convert_command(  # noqa: PLR0913
    file: Annotated[
        Path,
        typer.Argument(help="Path to the jeff input file"),
    ],
    *,
    output: Annotated[
        Path | None,
        typer.Option("-o", "--output", help="Path to the output file"),
    ] = None,
    mermaid: Annotated[
        bool,
        typer.Option("--mermaid", help="Print a Mermaid diagram to stdout"),
    ] = False,
    edge_labels: Annotated[
        bool,
        typer.Option("--edge-labels", help="Label diagram edges with port positions and types"),
    ] = False,
    direction: Annotated[
        str | None,
        typer.Option("--direction", help=f"Diagram direction ({', '.join(DIRECTIONS)})"),
    ] = None,
    wrapper: Annotated[
        str | None,
        typer.Option("--wrapper", help="Name of the function wrapping top-level code"),
    ] = None,
) -> None:
    """Convert a jeff file to a HUGR envelope and/or a Mermaid diagram.

    The HUGR envelope is written whenever an output path is set. The Mermaid
    diagram is printed to stdout with --mermaid or when no output path is set.
    """
    config = _load_config()

    # CLI flags take precedence over [tool.hugr-jeff]
    configured_mode = config.mode if output is None and not mermaid else None
    effective_output = output if output is not None else config.output
    write_hugr = effective_output is not None and configured_mode != OutputMode.MERMAID
    print_diagram = mermaid or not write_hugr

    if configured_mode == OutputMode.HUGR and effective_output is None:
        err_console.print(
            "[red]Error: HUGR output requires a path. Use -o/--output or configure [tool.hugr-jeff].output[/red]",
        )
        raise typer.Exit(code=1)

    defaults = ConversionOptions()
    effective_direction = direction or config.mermaid.direction or defaults.diagram.direction
    if effective_direction not in DIRECTIONS:
        err_console.print(f"[red]Error: Invalid direction '{escape(effective_direction)}'[/red]")
        raise typer.Exit(code=1)
    labels = edge_labels or bool(config.mermaid.edge_labels)
    options = ConversionOptions(
        encoder=EncoderOptions(wrapper_name=wrapper or config.wrapper_name or defaults.encoder.wrapper_name),
        diagram=DiagramOptions(direction=effective_direction, edge_labels=labels),
    )

    data = _read_input(file)
    logger.debug("Read %d bytes from %s", len(data), file)

    try:
        envelope = convert(data, OutputMode.HUGR, options) if write_hugr else None
        diagram = str(convert(data, OutputMode.MERMAID, options)) if print_diagram else None
    except ConversionError as e:
        _report_failure(e)
        raise typer.Exit(code=1) from e

    if envelope is not None and effective_output is not None:
        effective_output.parent.mkdir(parents=True, exist_ok=True)
        effective_output.write_bytes(envelope)
        err_console.print(f"[green]✓ Wrote hugr output to:[/green] {escape(str(effective_output))}")
    if diagram is not None:
        typer.echo(diagram, nl=False)


@app.command()
def check(
    file: Annotated[
        Path,
        typer.Argument(help="Path to the jeff input file"),
    ],
) -> None:
    """Decode and validate a jeff file without converting it."""
    err_console.print()
    err_console.print(f"[cyan]Checking:[/cyan] {escape(str(file))}")
    data = _read_input(file)

    try:
        graph = load_graph(data)
    except ConversionError as e:
        _report_failure(e)
        raise typer.Exit(code=1) from e

    err_console.print(f"[cyan]Module:[/cyan] [bold]{escape(graph.name)}[/bold]")
    err_console.print()
    render_graph_summary(graph, err_console)
    err_console.print()
    err_console.print("[green]✓ Graph is valid[/green]")
    err_console.print()


def main() -> None:
    app()
