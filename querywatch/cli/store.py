"""Log store management commands for QueryWatch."""

import asyncio
from pathlib import Path

import typer

from querywatch.cli.output import (
    exit_with_error,
    print_dict,
    print_info,
    print_success,
    state,
)
from querywatch.config import get_settings
from querywatch.exceptions import QueryWatchError
from querywatch.logging_config import get_logger
from querywatch.store.duckdb_store import DuckDBLogStore

app = typer.Typer(help="Log store management")
logger = get_logger(__name__)


@app.command("init")
def init() -> None:
    """
    Create the query log table in the configured DuckDB database.

    Example:
        STORE_PATH=./query_log.duckdb querywatch store init
    """
    settings = get_settings()

    if settings.store_read_only:
        exit_with_error("Log store is configured read-only; cannot create the table")

    async def _init():
        store = DuckDBLogStore.from_settings(settings)
        try:
            await store.initialize(create_schema=True)
        finally:
            await store.close()

    try:
        asyncio.run(_init())
    except QueryWatchError as e:
        exit_with_error(e, state.verbose)

    print_success(
        f"Query log table '{settings.query_log_table}' ready in {settings.store_path}"
    )


@app.command("load")
def load(
    files: list[Path] = typer.Argument(
        ...,
        help="Query log exports (Parquet, CSV/TSV, JSON/NDJSON)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """
    Append query log exports to the log table.

    Columns missing from an export take the table defaults; extra columns
    are ignored.

    Examples:
        querywatch store load query_log.parquet

        querywatch store load day1.csv day2.csv
    """
    settings = get_settings()

    async def _load():
        store = DuckDBLogStore.from_settings(settings)
        loaded = {}
        try:
            await store.initialize(create_schema=True)
            for path in files:
                print_info(f"Loading {path}")
                loaded[str(path)] = await store.load(path)
        finally:
            await store.close()
        return loaded

    try:
        loaded = asyncio.run(_load())
    except QueryWatchError as e:
        exit_with_error(e, state.verbose)

    logger.info("query_log_loaded", files=len(loaded), rows=sum(loaded.values()))
    print_dict({path: f"{rows:,} rows" for path, rows in loaded.items()}, title="Loaded")
    print_success(f"Loaded {sum(loaded.values()):,} rows into '{settings.query_log_table}'")
