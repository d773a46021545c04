"""Shared fixtures: query log rows and an in-memory log store."""

from datetime import datetime, timedelta
from typing import Any

import pytest

from querywatch.querylog.columns import ALL_COLUMNS, quote_column
from querywatch.store.duckdb_store import DuckDBLogStore

BASE_TIME = datetime(2024, 1, 1, 0, 0, 0)


def make_row(**overrides: Any) -> dict[str, Any]:
    """One query log event with every column set; override any field."""
    event_time = overrides.get("event_time", BASE_TIME)
    row = {
        "query_id": "q-default",
        "query": "SELECT 1",
        "event_time": event_time,
        "event_date": event_time.date(),
        "type": "QueryFinish",
        "query_duration_ms": 10,
        "memory_usage": 4096,
        "read_rows": 1,
        "read_bytes": 8,
        "written_rows": 0,
        "written_bytes": 0,
        "result_rows": 1,
        "result_bytes": 8,
        "databases": ["default"],
        "tables": [],
        "exception_code": 0,
        "exception": "",
        "user": "default",
        "client_hostname": "worker-1",
        "http_user_agent": "",
        "initial_user": "default",
        "initial_query_id": "q-default",
        "is_initial_query": 1,
        "query_kind": "Select",
    }
    row.update(overrides)
    return row


def as_tuple(row: dict[str, Any]) -> tuple[Any, ...]:
    """Row values in registry column order, as the store returns them."""
    return tuple(row[column] for column in ALL_COLUMNS)


def insert_rows(conn, rows: list[dict[str, Any]], table: str = "query_log") -> None:
    columns = list(rows[0].keys())
    column_list = ", ".join(
        quote_column(c) if c in ALL_COLUMNS else c for c in columns
    )
    placeholders = ", ".join("?" for _ in columns)
    conn.executemany(
        f"INSERT INTO {table} ({column_list}) VALUES ({placeholders})",
        [[row[c] for c in columns] for row in rows],
    )


@pytest.fixture
def log_rows() -> list[dict[str, Any]]:
    """Six events covering every lifecycle phase."""
    return [
        make_row(
            query_id="q1",
            query="SELECT count() FROM analytics.events",
            event_time=BASE_TIME + timedelta(seconds=10),
            query_duration_ms=50,
            user="alice",
            databases=["analytics"],
            tables=["analytics.events"],
            initial_user="alice",
            initial_query_id="q1",
        ),
        make_row(
            query_id="q2",
            query="SELECT * FROM default.missing",
            event_time=BASE_TIME + timedelta(minutes=1),
            type="ExceptionWhileProcessing",
            query_duration_ms=1500,
            memory_usage=1_048_576,
            exception_code=60,
            exception="Table default.missing does not exist",
            user="bob",
            initial_user="bob",
            initial_query_id="q2",
        ),
        make_row(
            query_id="q3",
            query="SELEC 1",
            event_time=BASE_TIME + timedelta(minutes=2),
            type="ExceptionBeforeStart",
            query_duration_ms=0,
            exception_code=62,
            exception="Syntax error",
            user="alice",
            databases=[],
            query_kind="",
        ),
        make_row(
            query_id="q4",
            query="INSERT INTO analytics.events SELECT * FROM default.raw",
            event_time=BASE_TIME + timedelta(minutes=3),
            type="QueryStart",
            query_duration_ms=0,
            user="alice",
            databases=["analytics", "default"],
            query_kind="Insert",
        ),
        make_row(
            query_id="q4",
            query="INSERT INTO analytics.events SELECT * FROM default.raw",
            event_time=BASE_TIME + timedelta(minutes=3, seconds=5),
            query_duration_ms=2500,
            memory_usage=8_388_608,
            written_rows=1000,
            written_bytes=64_000,
            user="alice",
            databases=["analytics", "default"],
            tables=["analytics.events", "default.raw"],
            query_kind="Insert",
        ),
        make_row(
            query_id="q5",
            query="SELECT name FROM system.tables WHERE database = 'it''s'",
            event_time=BASE_TIME + timedelta(minutes=4),
            query_duration_ms=120,
            user="carol",
            databases=["system"],
            http_user_agent="curl/8.4.0",
        ),
    ]


@pytest.fixture
async def store(log_rows):
    """In-memory DuckDB log store seeded with ``log_rows``."""
    log_store = DuckDBLogStore(
        ":memory:",
        pool_size=4,
        memory_limit="256MB",
        threads=1,
        query_timeout_seconds=10.0,
        pool_timeout=1.0,
    )
    await log_store.initialize()
    insert_rows(log_store.pool.root, log_rows)

    yield log_store

    await log_store.close()


@pytest.fixture
def row_factory():
    """Build a query log event dict; see ``make_row``."""
    return make_row


@pytest.fixture
def row_tuple():
    """Convert an event dict to a registry-ordered tuple."""
    return as_tuple


@pytest.fixture
def seed_rows():
    """Insert event dicts into a query log table; see ``insert_rows``."""
    return insert_rows
