"""Main Typer application — entry point for the ``charsplit`` CLI."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.table import Table

from charsplit import __version__
from charsplit._internal.errors import CharSplitError, InvalidInputError
from charsplit._internal.logging import setup_logging
from charsplit._internal.types import BACKEND_NAMES
from charsplit.engine.runner import CountRunner

if TYPE_CHECKING:
    from charsplit.engine.runner import RunResult

USAGE = "Usage: charsplit FILE_TO_PROCESS NUMBER_OF_PROCESSES CHARACTER_TO_COUNT"

console = Console(stderr=True)

app = typer.Typer(
    name="charsplit",
    help="Count a character in a file with one worker process per block.",
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"charsplit {__version__}")
        raise typer.Exit


def _fail(message: str, *, show_usage: bool = False) -> typer.Exit:
    """Report an error on stderr and build the exit to raise."""
    console.print(f"[red]Error:[/red] {message}", highlight=False)
    if show_usage:
        console.print(USAGE, highlight=False)
    return typer.Exit(code=1)


def parse_process_count(value: str) -> int:
    """Parse NUMBER_OF_PROCESSES as a positive decimal integer.

    Raises:
        InvalidInputError: If the value is not a positive integer.
    """
    text = value.strip()
    if not (text.isascii() and text.isdigit()):
        msg = f"Invalid argument value for number_of_processes: {value!r}"
        raise InvalidInputError(msg)
    count = int(text)
    if count < 1:
        msg = f"Invalid argument value for number_of_processes: {value!r}"
        raise InvalidInputError(msg)
    return count


def _print_blocks(result: RunResult) -> None:
    """Print a per-block breakdown table.

    Args:
        result: Completed run result.
    """
    table = Table(
        title=f"Blocks ({result.backend} backend, {result.duration_seconds:.3f}s)",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Worker", justify="right")
    table.add_column("Offset", justify="right")
    table.add_column("Length", justify="right")
    table.add_column("Count", justify="right")

    for r in result.block_results:
        table.add_row(str(r.worker_id), str(r.block.offset), str(r.block.length), str(r.count))

    console.print(table)


@app.command(context_settings={"allow_extra_args": True})
def count(
    ctx: typer.Context,
    file_to_process: str | None = typer.Argument(
        None,
        help="Path of the file to scan.",
        show_default=False,
    ),
    number_of_processes: str | None = typer.Argument(
        None,
        help="Number of worker processes (positive integer).",
        show_default=False,
    ),
    character_to_count: str | None = typer.Argument(
        None,
        help="The single character to count.",
        show_default=False,
    ),
    backend: str | None = typer.Option(
        None,
        "--backend",
        "-b",
        help=f"Worker backend: {', '.join(BACKEND_NAMES)} (default: $CHARSPLIT_BACKEND or auto).",
    ),
    show_blocks: bool = typer.Option(
        False,
        "--show-blocks",
        help="Print per-block offsets, lengths and counts to stderr.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit structured JSON logs (also enabled by $CHARSPLIT_LOG_JSON).",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Count CHARACTER_TO_COUNT in FILE_TO_PROCESS using NUMBER_OF_PROCESSES workers."""
    if (
        file_to_process is None
        or number_of_processes is None
        or character_to_count is None
        or ctx.args
    ):
        raise _fail("Invalid number of arguments.", show_usage=True)

    if backend is not None and backend not in BACKEND_NAMES:
        raise _fail(f"Unknown backend: {backend}. Choose from: {', '.join(BACKEND_NAMES)}")

    log_level = logging.DEBUG if verbose else logging.ERROR
    setup_logging(level=log_level, json_format=json_logs)

    try:
        runner = CountRunner(
            file_to_process,
            parse_process_count(number_of_processes),
            character_to_count,
            backend=backend,
            log_level=log_level,
            json_logs=json_logs or None,
        )
        plan = runner.plan()
    except InvalidInputError as exc:
        raise _fail(str(exc), show_usage=True) from exc
    except CharSplitError as exc:
        raise _fail(str(exc)) from exc

    if plan.clamped:
        console.print(f"[yellow]Warning:[/yellow] {plan.describe_clamp()}", highlight=False)

    try:
        result = runner.run()
    except CharSplitError as exc:
        raise _fail(str(exc)) from exc

    if show_blocks:
        _print_blocks(result)

    typer.echo(f"Result for given file is: {result.total}")
