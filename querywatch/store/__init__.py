"""Query log storage on DuckDB."""

from querywatch.store.duckdb_store import DuckDBLogStore
from querywatch.store.pool import DuckDBConnectionPool
from querywatch.store.schema import create_query_log_table, load_query_log

__all__ = [
    "DuckDBConnectionPool",
    "DuckDBLogStore",
    "create_query_log_table",
    "load_query_log",
]
