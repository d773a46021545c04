"""Pytest fixtures for CLI tests."""

import duckdb
import pytest

import querywatch.config
from querywatch.store.schema import create_query_log_table


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    """Point the CLI at a temporary DuckDB file through the environment."""
    path = tmp_path / "query_log.duckdb"
    monkeypatch.setenv("STORE_PATH", str(path))
    monkeypatch.setenv("LOG_FORMAT", "text")
    monkeypatch.setenv("STORE_THREADS", "1")

    querywatch.config.reset_settings()
    yield path
    querywatch.config.reset_settings()


@pytest.fixture
def seeded_store(store_path, log_rows, seed_rows):
    """Temporary DuckDB file holding ``log_rows``."""
    conn = duckdb.connect(str(store_path))
    try:
        create_query_log_table(conn)
        seed_rows(conn, log_rows)
    finally:
        conn.close()
    return store_path
