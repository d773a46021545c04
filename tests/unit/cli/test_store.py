"""Tests for log store CLI commands."""

import duckdb
from typer.testing import CliRunner

from querywatch.cli.main import app

runner = CliRunner()


def count_rows(path):
    conn = duckdb.connect(str(path), read_only=True)
    try:
        return conn.execute("SELECT count(*) FROM query_log").fetchone()[0]
    finally:
        conn.close()


class TestStoreInit:
    """Tests for store init command."""

    def test_init_creates_table(self, store_path):
        result = runner.invoke(app, ["store", "init"])

        assert result.exit_code == 0, result.output
        assert "ready" in result.output
        assert count_rows(store_path) == 0

    def test_init_is_idempotent(self, store_path):
        runner.invoke(app, ["store", "init"])
        result = runner.invoke(app, ["store", "init"])

        assert result.exit_code == 0, result.output

    def test_init_read_only(self, store_path, monkeypatch):
        monkeypatch.setenv("STORE_READ_ONLY", "true")

        result = runner.invoke(app, ["store", "init"])

        assert result.exit_code == 1
        assert "read-only" in result.output


class TestStoreLoad:
    """Tests for store load command."""

    def test_load_files(self, store_path, tmp_path):
        first = tmp_path / "day1.csv"
        first.write_text(
            "query_id,query,event_time,event_date,type\n"
            "a,SELECT 1,2024-01-01 00:00:00,2024-01-01,QueryFinish\n"
            "b,SELECT 2,2024-01-01 00:00:01,2024-01-01,QueryFinish\n"
        )
        second = tmp_path / "day2.ndjson"
        second.write_text(
            '{"query_id": "c", "query": "SELECT 3", "event_time": "2024-01-02 00:00:00",'
            ' "event_date": "2024-01-02", "type": "QueryFinish"}\n'
        )

        result = runner.invoke(app, ["store", "load", str(first), str(second)])

        assert result.exit_code == 0, result.output
        assert "Loaded 3 rows" in result.output
        assert count_rows(store_path) == 3

    def test_load_unsupported(self, store_path, tmp_path):
        path = tmp_path / "export.xml"
        path.write_text("<log/>")

        result = runner.invoke(app, ["store", "load", str(path)])

        assert result.exit_code == 1
        assert "Unsupported format" in result.output

    def test_load_missing_file(self, store_path, tmp_path):
        result = runner.invoke(app, ["store", "load", str(tmp_path / "none.csv")])

        assert result.exit_code != 0
