"""Query log commands for QueryWatch."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import typer

from querywatch.cli.output import (
    exit_with_error,
    print_dict,
    print_info,
    print_json,
    print_rows,
    print_success,
    resolve_format,
    state,
)
from querywatch.config import get_settings
from querywatch.exceptions import MissingColumnsError, QueryWatchError
from querywatch.logging_config import get_logger
from querywatch.querylog.builder import METRIC_COLUMNS, QueryLogQueryBuilder
from querywatch.querylog.columns import ALL_COLUMNS
from querywatch.querylog.filters import EXPORT_LIMITS, LISTING_LIMITS, parse_filter
from querywatch.querylog.formatting import iter_csv
from querywatch.querylog.service import QueryLogService
from querywatch.store.duckdb_store import DuckDBLogStore

app = typer.Typer(help="Browse, aggregate and export the query log")
logger = get_logger(__name__)

# Narrow default for terminal tables; json/csv get every column.
TABLE_COLUMNS = [
    "event_time",
    "query_id",
    "user",
    "type",
    "query_duration_ms",
    "memory_usage",
    "read_rows",
    "exception_code",
    "query",
]


@asynccontextmanager
async def open_service() -> AsyncIterator[QueryLogService]:
    """Open the configured log store and yield a service over it."""
    settings = get_settings()
    store = DuckDBLogStore.from_settings(settings)
    await store.initialize()
    try:
        yield QueryLogService(store, QueryLogQueryBuilder(settings.query_log_table))
    finally:
        await store.close()


def run(operation):
    """Run ``operation(service)`` on a freshly opened store.

    Domain errors end the command with exit status 1.
    """

    async def _run():
        async with open_service() as service:
            return await operation(service)

    try:
        return asyncio.run(_run())
    except QueryWatchError as e:
        exit_with_error(e, state.verbose)


DB_OPTION = typer.Option(None, "--db", "-d", help="Only queries touching this database")
QUERY_ID_OPTION = typer.Option(None, "--query-id", help="Exact query id")
FAILED_OPTION = typer.Option(False, "--failed", help="Only failed queries")
SUCCESS_OPTION = typer.Option(False, "--success", help="Only successful queries")
MIN_DURATION_OPTION = typer.Option(
    0, "--min-duration", help="Only queries slower than this many milliseconds"
)
USER_OPTION = typer.Option(None, "--user", "-u", help="Executing user")
CONTAINS_OPTION = typer.Option(
    None, "--contains", help="Case-insensitive substring of the query text"
)
KIND_OPTION = typer.Option(None, "--kind", help="Query kind (Select, Insert, ...)")
START_OPTION = typer.Option(None, "--start", help="Start time (RFC3339)")
END_OPTION = typer.Option(None, "--end", help="End time (RFC3339)")
SORT_BY_OPTION = typer.Option(None, "--sort-by", help="Sort column")
SORT_ORDER_OPTION = typer.Option("desc", "--sort-order", help="asc or desc")
OUTPUT_OPTION = typer.Option(
    None, "--output", "-o", help="Output format: table, json, csv"
)


def filter_params(**options: Any) -> dict[str, Any]:
    """Map CLI option names onto filter parameter names."""
    renames = {
        "db": "db_name",
        "failed": "only_failed",
        "success": "only_success",
        "min_duration": "min_duration_ms",
        "contains": "query_contains",
        "kind": "query_kind",
        "start": "start_time",
        "end": "end_time",
    }
    return {renames.get(name, name): value for name, value in options.items()}


def build_filter(params: dict[str, Any], limits=LISTING_LIMITS):
    try:
        return parse_filter(params, limits)
    except QueryWatchError as e:
        exit_with_error(e, state.verbose)


@app.command("list")
def list_logs(
    db: Optional[str] = DB_OPTION,
    query_id: Optional[str] = QUERY_ID_OPTION,
    failed: bool = FAILED_OPTION,
    success: bool = SUCCESS_OPTION,
    min_duration: int = MIN_DURATION_OPTION,
    user: Optional[str] = USER_OPTION,
    contains: Optional[str] = CONTAINS_OPTION,
    kind: Optional[str] = KIND_OPTION,
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    limit: int = typer.Option(0, "--limit", "-l", help="Row limit (default 100, max 1000)"),
    offset: int = typer.Option(0, "--offset", help="Rows to skip"),
    columns: Optional[str] = typer.Option(
        None, "--columns", help="Comma-separated columns to return"
    ),
    sort_by: Optional[str] = SORT_BY_OPTION,
    sort_order: str = SORT_ORDER_OPTION,
    output_format: Optional[str] = OUTPUT_OPTION,
) -> None:
    """
    List query log events.

    Examples:
        querywatch logs list --failed --limit 20

        querywatch logs list --min-duration 1000 --sort-by query_duration_ms

        querywatch logs list --columns query_id,query,user --output csv
    """
    fmt = resolve_format(output_format)
    filter_ = build_filter(
        filter_params(
            db=db, query_id=query_id, failed=failed, success=success,
            min_duration=min_duration, user=user, contains=contains, kind=kind,
            start=start, end=end, limit=limit, offset=offset, columns=columns,
            sort_by=sort_by, sort_order=sort_order,
        )
    )

    if filter_.columns:
        rows, cols, count = run(
            lambda service: service.list_logs_projected(filter_, filter_.columns)
        )
    else:
        records, count = run(lambda service: service.list_logs(filter_))
        rows = [record.model_dump() for record in records]
        cols = TABLE_COLUMNS if fmt == "table" else list(ALL_COLUMNS)

    print_rows(rows, cols, fmt, title="Query log")
    if fmt == "table":
        print_info(f"Rows: {count:,} (limit {filter_.limit}, offset {filter_.offset})")


@app.command("show")
def show(
    query_id: str = typer.Argument(..., help="Query id"),
    output_format: Optional[str] = OUTPUT_OPTION,
) -> None:
    """
    Show the most recent event for a query id.

    Example:
        querywatch logs show 5f2c9a1e-0b7d-4d4e-9c51-2a1f0e6b3c77
    """
    record = run(lambda service: service.get_by_id(query_id))

    data = record.model_dump(mode="json")
    if resolve_format(output_format) == "table":
        print_dict(data, title=f"Query {query_id}")
    else:
        print_json(data)


@app.command("metrics")
def metrics(
    db: Optional[str] = DB_OPTION,
    query_id: Optional[str] = QUERY_ID_OPTION,
    failed: bool = FAILED_OPTION,
    success: bool = SUCCESS_OPTION,
    min_duration: int = MIN_DURATION_OPTION,
    user: Optional[str] = USER_OPTION,
    contains: Optional[str] = CONTAINS_OPTION,
    kind: Optional[str] = KIND_OPTION,
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    output_format: Optional[str] = OUTPUT_OPTION,
) -> None:
    """
    Aggregate the query log into time buckets.

    The bucket width follows the --start/--end range (1 minute without one).

    Example:
        querywatch logs metrics --start 2024-01-01T00:00:00Z --end 2024-01-02T00:00:00Z
    """
    fmt = resolve_format(output_format)
    filter_ = build_filter(
        filter_params(
            db=db, query_id=query_id, failed=failed, success=success,
            min_duration=min_duration, user=user, contains=contains, kind=kind,
            start=start, end=end,
        )
    )

    buckets, bucket = run(lambda service: service.aggregate_metrics(filter_))

    if fmt == "json":
        print_json(
            {
                "data": [b.model_dump(mode="json") for b in buckets],
                "bucket_size": bucket.label,
                "bucket_label": bucket.interval,
            }
        )
        return

    print_rows(
        [b.model_dump() for b in buckets],
        list(METRIC_COLUMNS),
        fmt,
        title=f"Query metrics ({bucket.label} buckets)",
    )


@app.command("export")
def export(
    columns: str = typer.Option(
        "", "--columns", help="Comma-separated columns to export (required)"
    ),
    file: Optional[Path] = typer.Option(
        None, "--file", "-f", help="Write CSV to this file or directory instead of stdout"
    ),
    db: Optional[str] = DB_OPTION,
    query_id: Optional[str] = QUERY_ID_OPTION,
    failed: bool = FAILED_OPTION,
    success: bool = SUCCESS_OPTION,
    min_duration: int = MIN_DURATION_OPTION,
    user: Optional[str] = USER_OPTION,
    contains: Optional[str] = CONTAINS_OPTION,
    kind: Optional[str] = KIND_OPTION,
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    limit: int = typer.Option(
        0, "--limit", "-l", help="Row limit (default 1000, max 100000)"
    ),
    sort_by: Optional[str] = SORT_BY_OPTION,
    sort_order: str = SORT_ORDER_OPTION,
) -> None:
    """
    Export query log events as CSV.

    Examples:
        querywatch logs export --columns query_id,query,event_time --failed

        querywatch logs export --columns query_id,databases --file failed.csv
    """
    if not columns.strip():
        exit_with_error(MissingColumnsError("--columns is required for CSV export"))

    filter_ = build_filter(
        filter_params(
            db=db, query_id=query_id, failed=failed, success=success,
            min_duration=min_duration, user=user, contains=contains, kind=kind,
            start=start, end=end, limit=limit, columns=columns,
            sort_by=sort_by, sort_order=sort_order,
        ),
        EXPORT_LIMITS,
    )

    rows, cols, count = run(
        lambda service: service.list_logs_projected(
            filter_,
            filter_.columns,
            limits=EXPORT_LIMITS,
            operation="query_logs_for_export",
        )
    )

    if file is None:
        print_rows(rows, cols, "csv")
        return

    if file.is_dir():
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        file = file / f"query_logs_{stamp}.csv"

    with open(file, "w", newline="") as f:
        f.writelines(iter_csv(cols, rows))

    logger.info("query_log_exported", rows=count, columns=len(cols))
    print_success(f"Exported {count:,} rows to {file}")


def databases(output_format: Optional[str] = OUTPUT_OPTION) -> None:
    """
    List databases referenced by the query log.

    Example:
        querywatch databases
    """
    names = run(lambda service: service.list_databases())

    fmt = resolve_format(output_format)
    if fmt == "json":
        print_json({"databases": names})
    else:
        print_rows([{"database": name} for name in names], ["database"], fmt)
