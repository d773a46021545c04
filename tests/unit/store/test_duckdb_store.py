"""Tests for DuckDBLogStore execution, deadlines and loading."""

import asyncio

import pytest

from querywatch.config import Settings
from querywatch.exceptions import (
    ConnectionPoolExhaustedError,
    StoreError,
    StoreTimeoutError,
    UnsupportedFormatError,
    get_http_status,
)
from querywatch.querylog.builder import SQLQuery
from querywatch.store.duckdb_store import DuckDBLogStore, hash_query

SLOW_QUERY = SQLQuery(
    "SELECT sum(a.range * b.range) FROM range(100000000) a, range(100000) b"
)


async def test_fetch_all_binds_parameters(store):
    rows = await store.fetch_all(
        SQLQuery("SELECT query_id FROM query_log WHERE \"user\" = ? ORDER BY query_id", ("bob",)),
        operation="query_logs",
    )
    assert rows == [("q2",)]


async def test_statement_error_wrapped(store):
    with pytest.raises(StoreError) as exc_info:
        await store.fetch_all(SQLQuery("SELECT * FROM no_such_table"), operation="databases")

    error = exc_info.value
    assert error.operation == "databases"
    assert error.public_message == "Failed to retrieve databases"
    assert "no_such_table" in error.message


async def test_ping(store):
    await store.ping()


async def test_ping_after_close_fails(store):
    await store.close()
    with pytest.raises(StoreError):
        await store.ping()


async def test_timeout_interrupts_query(store):
    store.query_timeout_seconds = 0.1

    with pytest.raises(StoreTimeoutError) as exc_info:
        await store.fetch_all(SLOW_QUERY, operation="query_logs")

    assert exc_info.value.context["timeout_seconds"] == 0.1
    assert exc_info.value.public_message == "Failed to retrieve query logs"

    store.query_timeout_seconds = 10.0
    assert await store.fetch_all(SQLQuery("SELECT 1"), operation="health_check") == [(1,)]


async def test_cancellation_interrupts_query(store):
    task = asyncio.create_task(store.fetch_all(SLOW_QUERY, operation="query_logs"))
    await asyncio.sleep(0.1)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert await store.fetch_all(SQLQuery("SELECT 2"), operation="health_check") == [(2,)]


async def test_concurrent_queries(store):
    queries = [
        store.fetch_all(SQLQuery("SELECT ?", (i,)), operation="query_logs")
        for i in range(8)
    ]
    results = await asyncio.gather(*queries)
    assert [rows[0][0] for rows in results] == list(range(8))


async def test_load_export(store, tmp_path):
    path = tmp_path / "more.csv"
    path.write_text(
        "query_id,query,event_time,event_date,type\n"
        "n1,SELECT 1,2024-02-01 00:00:00,2024-02-01,QueryFinish\n"
    )

    assert await store.load(path) == 1
    rows = await store.fetch_all(
        SQLQuery("SELECT count(*) FROM query_log WHERE query_id = ?", ("n1",)),
        operation="query_logs",
    )
    assert rows == [(1,)]


async def test_load_unsupported(store, tmp_path):
    with pytest.raises(UnsupportedFormatError):
        await store.load(tmp_path / "export.txt")


async def test_load_bad_file(store, tmp_path):
    path = tmp_path / "broken.parquet"
    path.write_bytes(b"not parquet")

    with pytest.raises(StoreError) as exc_info:
        await store.load(path)
    assert exc_info.value.operation == "load_query_log"


async def test_file_database_created(tmp_path):
    path = tmp_path / "nested" / "log.duckdb"
    store = DuckDBLogStore(str(path), pool_size=1, threads=1)
    await store.initialize()
    try:
        rows = await store.fetch_all(
            SQLQuery("SELECT count(*) FROM query_log"), operation="query_logs"
        )
    finally:
        await store.close()

    assert rows == [(0,)]
    assert path.exists()


async def test_pool_exhaustion_names_operation():
    store = DuckDBLogStore(":memory:", pool_size=1, threads=1, pool_timeout=0.1)
    await store.initialize()
    try:
        async with store.pool.acquire():
            with pytest.raises(ConnectionPoolExhaustedError) as exc_info:
                await store.fetch_all(SQLQuery("SELECT 1"), operation="query_logs")
    finally:
        await store.close()

    error = exc_info.value
    assert error.operation == "query_logs"
    assert error.public_message == "Failed to retrieve query logs"
    assert get_http_status(error) == 500


async def test_read_only_missing_file(tmp_path):
    store = DuckDBLogStore(str(tmp_path / "missing.duckdb"), read_only=True)
    with pytest.raises(StoreError) as exc_info:
        await store.initialize()
    assert exc_info.value.operation == "open_store"


def test_from_settings():
    settings = Settings(
        store_path=":memory:",
        query_log_table="events",
        store_pool_size=3,
        store_query_timeout_seconds=5,
    )
    store = DuckDBLogStore.from_settings(settings)

    assert store.table == "events"
    assert store.pool.max_connections == 3
    assert store.query_timeout_seconds == 5


def test_hash_query_normalizes_whitespace():
    assert hash_query("SELECT  1") == hash_query("select 1")
    assert len(hash_query("SELECT 1")) == 16
