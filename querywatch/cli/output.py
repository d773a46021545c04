"""Console output and shared state for the QueryWatch CLI."""

import json
import traceback
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from querywatch.config import Settings
from querywatch.exceptions import QueryWatchError
from querywatch.querylog.formatting import iter_csv, to_json_value

console = Console()
console_err = Console(stderr=True)

OUTPUT_FORMATS = ("table", "json", "csv")


@dataclass
class CLIState:
    """Options set by the root callback and read by subcommands."""

    output_format: str = "table"
    verbose: bool = False
    settings: Optional[Settings] = None


state = CLIState()


def resolve_format(output_format: Optional[str]) -> str:
    """Per-command ``--output`` wins over the global one."""
    return output_format or state.output_format


def print_table(
    data: list[dict[str, Any]],
    title: str | None = None,
    columns: list[str] | None = None,
    max_width: int = 80,
) -> None:
    """Print rows as a Rich table.

    Arrays are joined with ", " and cells longer than ``max_width`` are
    truncated with "...".
    """
    if not data:
        console.print("[yellow]No rows match[/yellow]")
        return

    columns = columns or list(data[0].keys())
    table = Table(title=title, header_style="bold cyan")
    for column in columns:
        table.add_column(column, overflow="fold")

    for row in data:
        cells = []
        for column in columns:
            value = to_json_value(row.get(column, ""))
            cell = ", ".join(map(str, value)) if isinstance(value, list) else str(value)
            if len(cell) > max_width:
                cell = cell[: max_width - 3] + "..."
            cells.append(cell)
        table.add_row(*cells)

    console.print(table)


def print_json(data: Any, indent: int = 2) -> None:
    console.print_json(json.dumps(data, indent=indent, default=str))


def print_csv(data: Iterable[Mapping[str, Any]], columns: list[str]) -> None:
    """Write rows as CSV, with the same value rendering as the HTTP export."""
    for chunk in iter_csv(columns, data):
        console.out(chunk, end="", highlight=False)


def print_rows(
    data: list[dict[str, Any]],
    columns: list[str],
    output_format: str,
    title: str | None = None,
) -> None:
    """Print projected rows in the requested output format."""
    if output_format == "json":
        print_json(
            [{column: to_json_value(row[column]) for column in columns} for row in data]
        )
    elif output_format == "csv":
        print_csv(data, columns)
    else:
        print_table(data, title=title, columns=columns)


def print_dict(data: dict[str, Any], title: str | None = None) -> None:
    """Print a mapping as a two-column key/value table."""
    table = Table(title=title, show_header=False)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", overflow="fold")

    for key, value in data.items():
        if isinstance(value, list):
            value = ", ".join(map(str, value))
        table.add_row(key, str(value))

    console.print(table)


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_info(message: str) -> None:
    console.print(f"[blue]ℹ[/blue] {message}")


def report_error(error: QueryWatchError | str, verbose: bool = False) -> None:
    """Print an error to stderr; with ``verbose``, add its context and traceback."""
    if isinstance(error, str):
        console_err.print(f"[red]✗[/red] {error}")
        return

    console_err.print(f"[red]✗[/red] {error.message}")
    if verbose:
        for key, value in error.context.items():
            console_err.print(f"  [yellow]{key}[/yellow]: {value}")
        console_err.print(
            "".join(traceback.format_exception(type(error), error, error.__traceback__))
        )


def exit_with_error(error: QueryWatchError | str, verbose: bool = False) -> NoReturn:
    """Report an error and exit the command with status 1."""
    report_error(error, verbose)
    raise typer.Exit(1)
