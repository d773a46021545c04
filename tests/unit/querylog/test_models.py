"""Tests for record models, failure classification and value formatting."""

from datetime import date, datetime, timedelta, timezone

import pytest

from querywatch.querylog.formatting import (
    format_timestamp,
    iter_csv,
    to_csv_value,
    to_json_value,
)
from querywatch.querylog.models import LogRecord, QueryPhase, is_failed, is_successful


@pytest.mark.parametrize(
    "code,phase,failed,succeeded",
    [
        (0, "QueryFinish", False, True),
        (60, "ExceptionWhileProcessing", True, False),
        (0, "ExceptionBeforeStart", True, False),
        (62, "ExceptionBeforeStart", True, False),
        (0, "QueryStart", False, False),
        (0, "ExceptionWhileProcessing", False, False),
        (1, "QueryFinish", True, False),
    ],
)
def test_classification(code, phase, failed, succeeded):
    assert is_failed(code, phase) is failed
    assert is_successful(code, phase) is succeeded


def test_record_properties(row_factory):
    record = LogRecord(**row_factory(type="ExceptionBeforeStart", exception_code=0))
    assert record.failed
    assert not record.succeeded
    assert record.type == QueryPhase.EXCEPTION_BEFORE_START.value


def test_record_json_dump(row_factory):
    record = LogRecord(**row_factory(event_time=datetime(2024, 1, 1, 12, 30, 0)))
    data = record.model_dump(mode="json")
    assert data["event_time"] == "2024-01-01T12:30:00Z"
    assert data["event_date"] == "2024-01-01"
    assert data["databases"] == ["default"]


def test_record_is_frozen(row_factory):
    record = LogRecord(**row_factory())
    with pytest.raises(Exception):
        record.query = "changed"  # type: ignore[misc]


class TestFormatting:
    """JSON and CSV value rendering."""

    def test_format_timestamp(self):
        assert format_timestamp(datetime(2024, 1, 1)) == "2024-01-01T00:00:00Z"
        aware = datetime(2024, 1, 1, 2, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(aware) == "2024-01-01T00:00:00Z"
        assert (
            format_timestamp(datetime(2024, 1, 1, 0, 0, 0, 123000))
            == "2024-01-01T00:00:00.123000Z"
        )

    def test_to_json_value(self):
        assert to_json_value(date(2024, 1, 2)) == "2024-01-02"
        assert to_json_value(datetime(2024, 1, 2)) == "2024-01-02T00:00:00Z"
        assert to_json_value(["a"]) == ["a"]
        assert to_json_value(5) == 5

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, ""),
            ("text", "text"),
            (datetime(2024, 1, 1), "2024-01-01T00:00:00Z"),
            (date(2024, 1, 1), "2024-01-01"),
            (["a", "b"], "a;b"),
            ([], ""),
            (12, "12"),
            (1.5, "1.5"),
        ],
    )
    def test_to_csv_value(self, value, expected):
        assert to_csv_value(value) == expected

    def test_iter_csv(self):
        rows = [
            {"query_id": "q1", "query": "SELECT 'a, b'", "databases": ["x", "y"]},
            {"query_id": "q2", "query": 'say "hi"\nthere', "databases": []},
        ]
        chunks = list(iter_csv(["query_id", "query", "databases"], rows))

        assert chunks[0] == "query_id,query,databases\r\n"
        assert chunks[1] == "q1,\"SELECT 'a, b'\",x;y\r\n"
        assert chunks[2] == 'q2,"say ""hi""\nthere",\r\n'
        assert len(chunks) == 3

    def test_iter_csv_header_only(self):
        assert list(iter_csv(["query_id"], [])) == ["query_id\r\n"]
