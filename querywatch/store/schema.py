"""Query log table schema and export loading."""

import logging
from pathlib import Path

import duckdb

from querywatch.exceptions import ConfigurationError, UnsupportedFormatError
from querywatch.config import IDENTIFIER_PATTERN
from querywatch.querylog.columns import ALL_COLUMNS, quote_column

logger = logging.getLogger(__name__)

# Column set of the analytical database's system.query_log that the service
# reads, plus query_kind (filter only).
QUERY_LOG_COLUMNS_DDL: tuple[tuple[str, str], ...] = (
    ("query_id", "VARCHAR NOT NULL DEFAULT ''"),
    ("query", "VARCHAR NOT NULL DEFAULT ''"),
    ("event_time", "TIMESTAMP NOT NULL"),
    ("event_date", "DATE NOT NULL"),
    ("type", "VARCHAR NOT NULL"),
    ("query_duration_ms", "UBIGINT NOT NULL DEFAULT 0"),
    ("memory_usage", "BIGINT NOT NULL DEFAULT 0"),
    ("read_rows", "UBIGINT NOT NULL DEFAULT 0"),
    ("read_bytes", "UBIGINT NOT NULL DEFAULT 0"),
    ("written_rows", "UBIGINT NOT NULL DEFAULT 0"),
    ("written_bytes", "UBIGINT NOT NULL DEFAULT 0"),
    ("result_rows", "UBIGINT NOT NULL DEFAULT 0"),
    ("result_bytes", "UBIGINT NOT NULL DEFAULT 0"),
    ("databases", "VARCHAR[] NOT NULL DEFAULT []"),
    ("tables", "VARCHAR[] NOT NULL DEFAULT []"),
    ("exception_code", "INTEGER NOT NULL DEFAULT 0"),
    ("exception", "VARCHAR NOT NULL DEFAULT ''"),
    ("user", "VARCHAR NOT NULL DEFAULT ''"),
    ("client_hostname", "VARCHAR NOT NULL DEFAULT ''"),
    ("http_user_agent", "VARCHAR NOT NULL DEFAULT ''"),
    ("initial_user", "VARCHAR NOT NULL DEFAULT ''"),
    ("initial_query_id", "VARCHAR NOT NULL DEFAULT ''"),
    ("is_initial_query", "UTINYINT NOT NULL DEFAULT 1"),
    ("query_kind", "VARCHAR NOT NULL DEFAULT ''"),
)

LOADERS = {
    ".parquet": "read_parquet",
    ".csv": "read_csv_auto",
    ".tsv": "read_csv_auto",
    ".json": "read_json_auto",
    ".ndjson": "read_json_auto",
    ".jsonl": "read_json_auto",
}


def _check_table(table: str) -> None:
    if not IDENTIFIER_PATTERN.match(table):
        raise ConfigurationError(f"Invalid table name: {table!r}", table=table)


def _render_column(name: str) -> str:
    return quote_column(name) if name in ALL_COLUMNS else name


def create_table_sql(table: str) -> str:
    """DDL for the query log table."""
    _check_table(table)
    columns = ",\n    ".join(
        f"{_render_column(name)} {definition}" for name, definition in QUERY_LOG_COLUMNS_DDL
    )
    return f"CREATE TABLE IF NOT EXISTS {table} (\n    {columns}\n)"


def create_query_log_table(conn: duckdb.DuckDBPyConnection, table: str = "query_log") -> None:
    """Create the query log table if it does not exist."""
    conn.execute(create_table_sql(table))
    logger.info("Query log table ready", extra={"table": table})


def load_query_log(
    conn: duckdb.DuckDBPyConnection,
    path: Path,
    table: str = "query_log",
) -> int:
    """
    Append a query log export to the table.

    Only columns of the query log schema are copied; columns missing from the
    export fall back to the table defaults. ``QueryStart`` events are kept:
    they are excluded at read time.

    Args:
        conn: DuckDB connection
        path: Parquet, CSV/TSV or JSON export
        table: Target table

    Returns:
        Number of rows inserted

    Raises:
        UnsupportedFormatError: If the file extension is not supported
    """
    _check_table(table)
    reader = LOADERS.get(path.suffix.lower())
    if reader is None:
        raise UnsupportedFormatError(path.suffix or path.name)

    probe = conn.execute(f"SELECT * FROM {reader}(?) LIMIT 0", [str(path)])
    source_columns = {column[0] for column in probe.description}
    columns = [
        _render_column(name)
        for name, _ in QUERY_LOG_COLUMNS_DDL
        if name in source_columns
    ]
    column_list = ", ".join(columns)

    before = conn.execute(f"SELECT count(*) FROM {table}").fetchone()[0]
    conn.execute(
        f"INSERT INTO {table} ({column_list}) SELECT {column_list} FROM {reader}(?)",
        [str(path)],
    )
    after = conn.execute(f"SELECT count(*) FROM {table}").fetchone()[0]

    inserted = after - before
    logger.info(
        "Loaded query log export",
        extra={"table": table, "path": str(path), "rows": inserted},
    )
    return inserted
