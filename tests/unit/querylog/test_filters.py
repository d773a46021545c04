"""Tests for filter parsing, limit clamping and sort resolution."""

from datetime import datetime

import pytest

from querywatch.exceptions import FilterValidationError, InvalidColumnError
from querywatch.querylog.filters import (
    EXPORT_LIMITS,
    LISTING_LIMITS,
    MAX_BIGINT,
    LimitPolicy,
    QueryLogFilter,
    SortOrder,
    parse_columns,
    parse_filter,
)


class TestLimitPolicy:
    """Limit clamping."""

    @pytest.mark.parametrize("requested", [None, 0, -1, -1000])
    def test_non_positive_uses_default(self, requested):
        assert LISTING_LIMITS.clamp(requested) == 100
        assert EXPORT_LIMITS.clamp(requested) == 1000

    @pytest.mark.parametrize("requested", [1001, 5000, 10**9])
    def test_listing_clamped_to_max(self, requested):
        assert LISTING_LIMITS.clamp(requested) == 1000

    def test_export_clamped_to_max(self):
        assert EXPORT_LIMITS.clamp(250_000) == 100_000

    @pytest.mark.parametrize("requested", [1, 20, 999, 1000])
    def test_in_range_kept(self, requested):
        assert LISTING_LIMITS.clamp(requested) == requested

    def test_clamp_is_idempotent(self):
        policy = LimitPolicy(default=10, maximum=50)
        for requested in (-5, 0, 7, 50, 51, 500):
            once = policy.clamp(requested)
            assert policy.clamp(once) == once


class TestParseColumns:
    """Column projection parsing."""

    def test_trims_and_skips_empty(self):
        assert parse_columns(" query_id , ,query,") == ("query_id", "query")

    def test_keeps_request_order(self):
        assert parse_columns("user,event_time,query_id") == (
            "user",
            "event_time",
            "query_id",
        )

    def test_unknown_column_named(self):
        with pytest.raises(InvalidColumnError) as exc_info:
            parse_columns("query_id,password")
        assert exc_info.value.column == "password"
        assert "password" in exc_info.value.message

    def test_repeated_names_dropped(self):
        assert parse_columns("query_id,query,query_id, query") == ("query_id", "query")

    def test_all_empty(self):
        with pytest.raises(FilterValidationError, match="at least one valid column"):
            parse_columns(" , ,")


class TestParseFilter:
    """Building filters from raw request parameters."""

    def test_defaults(self):
        filter_ = parse_filter({})
        assert filter_.limit == 100
        assert filter_.offset == 0
        assert filter_.sort_order == SortOrder.DESC
        assert filter_.columns is None
        assert filter_.resolved_sort_column == "event_time"

    def test_string_values_coerced(self):
        filter_ = parse_filter(
            {
                "db_name": "analytics",
                "only_failed": "true",
                "only_success": "0",
                "min_duration_ms": "1000",
                "limit": "20",
                "offset": "40",
                "sort_by": "query_duration_ms",
                "sort_order": "ASC",
            }
        )
        assert filter_.db_name == "analytics"
        assert filter_.only_failed is True
        assert filter_.only_success is False
        assert filter_.min_duration_ms == 1000
        assert filter_.limit == 20
        assert filter_.offset == 40
        assert filter_.sort_order == SortOrder.ASC
        assert filter_.resolved_sort_column == "query_duration_ms"

    def test_empty_strings_are_absent(self):
        filter_ = parse_filter(
            {"db_name": "", "user": "", "query_contains": "", "start_time": "", "columns": ""}
        )
        assert filter_.db_name is None
        assert filter_.user is None
        assert filter_.query_contains is None
        assert filter_.start_time is None
        assert filter_.columns is None

    def test_unknown_parameters_ignored(self):
        filter_ = parse_filter({"foo": "bar", "user": "alice"})
        assert filter_.user == "alice"

    @pytest.mark.parametrize(
        "params",
        [
            {"limit": "ten"},
            {"offset": "1.5"},
            {"min_duration_ms": "fast"},
            {"only_failed": "maybe"},
            {"sort_order": "sideways"},
            {"start_time": "yesterday"},
            {"min_duration_ms": "-1"},
            {"offset": str(10**30)},
            {"min_duration_ms": str(2**63)},
        ],
    )
    def test_invalid_values(self, params):
        with pytest.raises(FilterValidationError):
            parse_filter(params)

    def test_invalid_column_rejects_request(self):
        with pytest.raises(InvalidColumnError):
            parse_filter({"columns": "query_id,nope"})

    def test_limit_clamped_per_path(self):
        assert parse_filter({"limit": "5000"}).limit == 1000
        assert parse_filter({"limit": "5000"}, EXPORT_LIMITS).limit == 5000
        assert parse_filter({}, EXPORT_LIMITS).limit == 1000

    def test_negative_offset_treated_as_zero(self):
        assert parse_filter({"offset": "-10"}).offset == 0

    def test_largest_bigint_accepted(self):
        filter_ = parse_filter({"offset": str(MAX_BIGINT), "min_duration_ms": str(MAX_BIGINT)})
        assert filter_.offset == MAX_BIGINT
        assert filter_.min_duration_ms == MAX_BIGINT

    def test_out_of_range_offset_names_parameter(self):
        with pytest.raises(FilterValidationError) as exc_info:
            parse_filter({"offset": str(10**30)})
        assert exc_info.value.context == {"parameter": "offset"}

    def test_blank_values_ignored(self):
        filter_ = parse_filter({"limit": "  ", "only_failed": "", "sort_order": ""})
        assert filter_.limit == 100
        assert filter_.only_failed is False
        assert filter_.sort_order == SortOrder.DESC

    def test_timestamps_normalized_to_naive_utc(self):
        filter_ = parse_filter(
            {
                "start_time": "2024-01-01T00:00:00Z",
                "end_time": "2024-01-01T02:00:00+02:00",
            }
        )
        assert filter_.start_time == datetime(2024, 1, 1, 0, 0, 0)
        assert filter_.end_time == datetime(2024, 1, 1, 0, 0, 0)
        assert filter_.start_time.tzinfo is None

    def test_typed_values_accepted(self):
        filter_ = parse_filter(
            {"only_failed": True, "limit": 5, "columns": "query_id", "sort_order": "asc"}
        )
        assert filter_.only_failed is True
        assert filter_.limit == 5
        assert filter_.columns == ("query_id",)

    def test_failed_and_success_together_accepted(self):
        filter_ = parse_filter({"only_failed": "true", "only_success": "true"})
        assert filter_.only_failed and filter_.only_success


class TestSortFallback:
    """Non-sortable sort columns fall back to event_time."""

    @pytest.mark.parametrize(
        "sort_by", ["query", "databases", "password", "event_time; DROP TABLE x", "1"]
    )
    def test_fallback(self, sort_by):
        filter_ = QueryLogFilter(sort_by=sort_by)
        assert filter_.resolved_sort_column == "event_time"

    def test_filter_is_frozen(self):
        filter_ = QueryLogFilter()
        with pytest.raises(Exception):
            filter_.limit = 5  # type: ignore[misc]
