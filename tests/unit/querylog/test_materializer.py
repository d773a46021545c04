"""Tests for decoding store rows."""

from datetime import date, datetime

import pytest

from querywatch.exceptions import SchemaDriftError
from querywatch.querylog.columns import ALL_COLUMNS
from querywatch.querylog.materializer import (
    decode_value,
    materialize_bucket,
    materialize_projection,
    materialize_record,
)
from querywatch.querylog.models import LogRecord


class TestDecodeValue:
    """Per-column decoding."""

    def test_valid_values(self):
        assert decode_value("query_id", "abc") == "abc"
        assert decode_value("event_time", datetime(2024, 1, 1)) == datetime(2024, 1, 1)
        assert decode_value("event_date", date(2024, 1, 1)) == date(2024, 1, 1)
        assert decode_value("event_date", datetime(2024, 1, 1, 5)) == date(2024, 1, 1)
        assert decode_value("read_rows", 0) == 0
        assert decode_value("memory_usage", -512) == -512
        assert decode_value("is_initial_query", 1) == 1
        assert decode_value("databases", ("a", "b")) == ["a", "b"]

    @pytest.mark.parametrize(
        "column,value",
        [
            ("query_id", 42),
            ("event_time", "2024-01-01"),
            ("event_date", "2024-01-01"),
            ("read_rows", -1),
            ("read_rows", "10"),
            ("read_rows", True),
            ("memory_usage", 1.5),
            ("is_initial_query", 256),
            ("databases", "analytics"),
            ("databases", ["a", 1]),
            ("query", None),
        ],
    )
    def test_drift(self, column, value):
        with pytest.raises(SchemaDriftError) as exc_info:
            decode_value(column, value)
        assert exc_info.value.context["column"] == column

    def test_unknown_column(self):
        with pytest.raises(KeyError):
            decode_value("password", "x")


class TestMaterialize:
    """Whole-row decoding."""

    def test_record(self, row_factory, row_tuple):
        row = row_factory(query_id="q9", databases=["analytics"], user="alice")
        record = materialize_record(row_tuple(row))

        assert isinstance(record, LogRecord)
        assert record.query_id == "q9"
        assert record.user == "alice"
        assert record.databases == ["analytics"]
        assert record.event_date == row["event_date"]

    def test_record_wrong_width(self, row_factory, row_tuple):
        with pytest.raises(SchemaDriftError):
            materialize_record(row_tuple(row_factory())[:-1])

    def test_projection_round_trip(self, row_factory, row_tuple):
        row = row_factory(query_id="q7", memory_usage=77, tables=["t"])
        columns = ["tables", "query_id", "memory_usage"]
        projected = materialize_projection(
            tuple(row[c] for c in columns), columns
        )

        assert list(projected) == columns
        assert projected == {"tables": ["t"], "query_id": "q7", "memory_usage": 77}

    def test_projection_full_matches_record(self, row_factory, row_tuple):
        row = row_factory()
        projected = materialize_projection(row_tuple(row), ALL_COLUMNS)
        record = materialize_record(row_tuple(row))
        assert projected == {column: getattr(record, column) for column in ALL_COLUMNS}

    def test_projection_drift(self):
        with pytest.raises(SchemaDriftError):
            materialize_projection((1,), ["query_id"])


class TestMaterializeBucket:
    """Aggregation row decoding."""

    def test_bucket(self):
        row = (datetime(2024, 1, 1), 3, 1350.0, 2500, 1024.5, 8192, 100, 64000, 1)
        bucket = materialize_bucket(row)
        assert bucket.total_queries == 3
        assert bucket.avg_duration_ms == 1350.0
        assert isinstance(bucket.total_read_bytes, int)
        assert bucket.failed_queries == 1

    def test_bucket_decimal_sums(self):
        from decimal import Decimal

        row = (datetime(2024, 1, 1), 1, 5, 5, 10, 10, Decimal("100"), Decimal("0"), 0)
        bucket = materialize_bucket(row)
        assert bucket.total_read_bytes == 100
        assert bucket.avg_duration_ms == 5.0

    def test_bucket_bad_time(self):
        with pytest.raises(SchemaDriftError):
            materialize_bucket(("2024", 1, 1.0, 1, 1.0, 1, 1, 1, 0))

    def test_bucket_null_metric(self):
        with pytest.raises(SchemaDriftError):
            materialize_bucket((datetime(2024, 1, 1), 1, None, 1, 1.0, 1, 1, 1, 0))

    def test_bucket_wrong_width(self):
        with pytest.raises(SchemaDriftError):
            materialize_bucket((datetime(2024, 1, 1), 1))
