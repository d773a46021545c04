"""Main CLI entry point for QueryWatch."""

import sys
from pathlib import Path
from typing import Optional

import typer

from querywatch import __version__
from querywatch.cli import api, logs, store
from querywatch.cli.output import (
    OUTPUT_FORMATS,
    console,
    exit_with_error,
    report_error,
    state,
)
from querywatch.config import get_settings
from querywatch.exceptions import QueryWatchError
from querywatch.logging_config import setup_logging

app = typer.Typer(
    name="querywatch",
    help="QueryWatch - query log monitoring for columnar analytical databases",
    rich_markup_mode="rich",
)

app.add_typer(logs.app, name="logs")
app.add_typer(store.app, name="store")
app.add_typer(api.app, name="api")
app.command("databases")(logs.databases)


def _show_version(value: bool) -> None:
    if not value:
        return
    console.print(f"QueryWatch {__version__} (Python {sys.version.split()[0]})")
    raise typer.Exit(0)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_show_version,
        is_eager=True,
        help="Show version and exit",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        help="YAML configuration file (default: ~/.querywatch/config.yaml)",
    ),
    output: str = typer.Option(
        "table", "--output", "-o", help="Default output format: table, json, csv"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """
    Browse, aggregate and export a database query log.

    Settings come from the environment (STORE_PATH, QUERY_LOG_TABLE, ...),
    the YAML config file, or a .env file, in that order.
    """
    if output not in OUTPUT_FORMATS:
        exit_with_error(
            f"Invalid output format: {output} (valid: {', '.join(OUTPUT_FORMATS)})"
        )

    settings = get_settings(config_path=config, reload=True)
    setup_logging(settings, level="DEBUG" if verbose else None)

    state.output_format = output
    state.verbose = verbose
    state.settings = settings
    ctx.obj = state


def main_cli() -> None:
    """Console script entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)
    except QueryWatchError as e:
        report_error(e, verbose=state.verbose)
        sys.exit(1)


if __name__ == "__main__":
    main_cli()
