"""Query log filtering, SQL construction, bucketing and retrieval."""

from querywatch.querylog.buckets import BucketInterval, BucketSpec, determine_bucket_size
from querywatch.querylog.builder import QueryLogQueryBuilder, SQLQuery
from querywatch.querylog.columns import ALL_COLUMNS, COLUMN_REGISTRY, ColumnKind
from querywatch.querylog.filters import (
    EXPORT_LIMITS,
    LISTING_LIMITS,
    LimitPolicy,
    QueryLogFilter,
    SortOrder,
    parse_columns,
    parse_filter,
)
from querywatch.querylog.models import LogRecord, MetricBucket, QueryPhase
from querywatch.querylog.service import LogStore, QueryLogService

__all__ = [
    "ALL_COLUMNS",
    "BucketInterval",
    "BucketSpec",
    "COLUMN_REGISTRY",
    "ColumnKind",
    "EXPORT_LIMITS",
    "LISTING_LIMITS",
    "LimitPolicy",
    "LogRecord",
    "LogStore",
    "MetricBucket",
    "QueryLogFilter",
    "QueryLogService",
    "QueryLogQueryBuilder",
    "QueryPhase",
    "SQLQuery",
    "SortOrder",
    "determine_bucket_size",
    "parse_columns",
    "parse_filter",
]
