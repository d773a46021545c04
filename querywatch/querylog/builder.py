"""Parameterized SQL construction for the query log.

Every user-supplied value becomes a ``?`` placeholder with a matching entry
in the parameter tuple. Identifiers written into the SQL text come only from
the column registry, the validated table name, or the bucket interval enum.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable

from querywatch.config import IDENTIFIER_PATTERN
from querywatch.exceptions import ConfigurationError, InvalidColumnError
from querywatch.querylog.buckets import BucketInterval, BucketSpec
from querywatch.querylog.columns import ALL_COLUMNS, is_valid_column, quote_column
from querywatch.querylog.filters import LISTING_LIMITS, LimitPolicy, QueryLogFilter, SortOrder
from querywatch.querylog.models import QueryPhase

EXCLUDE_START_PHASE = f"type != '{QueryPhase.QUERY_START.value}'"
FAILED_PREDICATE = (
    f"(exception_code != 0 OR type = '{QueryPhase.EXCEPTION_BEFORE_START.value}')"
)
SUCCESS_PREDICATE = (
    f"(type = '{QueryPhase.QUERY_FINISH.value}' AND exception_code = 0)"
)

METRIC_COLUMNS = (
    "time_bucket",
    "total_queries",
    "avg_duration_ms",
    "max_duration_ms",
    "avg_memory_usage",
    "max_memory_usage",
    "total_read_bytes",
    "total_written_bytes",
    "failed_queries",
)


@dataclass(frozen=True)
class SQLQuery:
    """SQL text plus positional parameters, in placeholder order."""

    sql: str
    params: tuple[Any, ...] = field(default_factory=tuple)


class QueryLogQueryBuilder:
    """
    Build listing, lookup and aggregation queries over the query log table.

    The builder is stateless apart from the table name and safe to share
    across concurrent requests.

    Usage:
        builder = QueryLogQueryBuilder("query_log")
        query = builder.listing(filter_, columns=("query_id", "query"))
        rows = conn.execute(query.sql, list(query.params)).fetchall()
    """

    def __init__(self, table: str = "query_log") -> None:
        if not IDENTIFIER_PATTERN.match(table):
            raise ConfigurationError(f"Invalid table name: {table!r}", table=table)
        self.table = table

    def conditions(self, filter_: QueryLogFilter) -> tuple[list[str], list[Any]]:
        """
        Collect WHERE predicates and their arguments.

        Start-phase events carry no completed metrics and are always excluded.
        The remaining predicates follow a fixed order so the argument list
        lines up with the placeholders.
        """
        conditions = [EXCLUDE_START_PHASE]
        args: list[Any] = []

        if filter_.db_name:
            conditions.append("list_contains(databases, ?)")
            args.append(filter_.db_name)

        if filter_.query_id:
            conditions.append("query_id = ?")
            args.append(filter_.query_id)

        if filter_.only_failed:
            conditions.append(FAILED_PREDICATE)

        if filter_.only_success:
            conditions.append(SUCCESS_PREDICATE)

        if filter_.min_duration_ms > 0:
            conditions.append("query_duration_ms > ?")
            args.append(filter_.min_duration_ms)

        if filter_.user:
            conditions.append('"user" = ?')
            args.append(filter_.user)

        if filter_.query_contains:
            conditions.append("strpos(lower(query), lower(?)) > 0")
            args.append(filter_.query_contains)

        if filter_.query_kind:
            conditions.append("query_kind = ?")
            args.append(filter_.query_kind)

        if filter_.start_time is not None:
            conditions.append("event_time >= ?")
            args.append(filter_.start_time)

        if filter_.end_time is not None:
            conditions.append("event_time <= ?")
            args.append(filter_.end_time)

        return conditions, args

    def _select_list(self, columns: Iterable[str]) -> str:
        rendered = []
        for column in columns:
            if not is_valid_column(column):
                raise InvalidColumnError(column)
            rendered.append(quote_column(column))
        return ", ".join(rendered)

    @staticmethod
    def _where(conditions: list[str]) -> str:
        if not conditions:
            return ""
        return " WHERE " + " AND ".join(conditions)

    def listing(
        self,
        filter_: QueryLogFilter,
        columns: Iterable[str] | None = None,
        limits: LimitPolicy = LISTING_LIMITS,
    ) -> SQLQuery:
        """
        Build a row listing query.

        Args:
            filter_: Validated filter
            columns: Projection; defaults to every registry column
            limits: Limit policy used to clamp ``filter_.limit``

        Returns:
            SQLQuery with ``LIMIT ?`` and, for a positive offset, ``OFFSET ?``

        Raises:
            InvalidColumnError: If a projected column is not registered
        """
        select_list = self._select_list(columns if columns is not None else ALL_COLUMNS)
        conditions, args = self.conditions(filter_)

        direction = "ASC" if filter_.sort_order == SortOrder.ASC else "DESC"
        sort_column = quote_column(filter_.resolved_sort_column)

        sql = (
            f"SELECT {select_list} FROM {self.table}"
            f"{self._where(conditions)}"
            f" ORDER BY {sort_column} {direction}"
            " LIMIT ?"
        )
        args.append(limits.clamp(filter_.limit))

        if filter_.offset > 0:
            sql += " OFFSET ?"
            args.append(filter_.offset)

        return SQLQuery(sql=sql, params=tuple(args))

    def by_id(self, query_id: str) -> SQLQuery:
        """Most recent event for a query id."""
        sql = (
            f"SELECT {self._select_list(ALL_COLUMNS)} FROM {self.table}"
            " WHERE query_id = ?"
            " ORDER BY event_time DESC"
            " LIMIT 1"
        )
        return SQLQuery(sql=sql, params=(query_id,))

    def databases(self) -> SQLQuery:
        """Distinct database names referenced by the log, sorted by name."""
        sql = (
            "SELECT DISTINCT name FROM ("
            f"SELECT unnest(databases) AS name FROM {self.table}"
            ") WHERE name != '' ORDER BY name"
        )
        return SQLQuery(sql=sql)

    def aggregation(self, filter_: QueryLogFilter, bucket: BucketSpec) -> SQLQuery:
        """
        Build a time-bucketed aggregation query.

        The bucket interval is written into the SQL text. It is only accepted
        from a BucketSpec holding a BucketInterval member, never from a string.

        Raises:
            TypeError: If ``bucket`` is not a BucketSpec over BucketInterval
        """
        if not isinstance(bucket, BucketSpec) or not isinstance(
            bucket.bucket, BucketInterval
        ):
            raise TypeError("bucket must be a BucketSpec built from BucketInterval")

        conditions, args = self.conditions(filter_)

        sql = (
            "SELECT"
            f" time_bucket(INTERVAL '{bucket.interval}', event_time) AS time_bucket,"
            " count(*) AS total_queries,"
            " avg(query_duration_ms) AS avg_duration_ms,"
            " max(query_duration_ms) AS max_duration_ms,"
            " avg(memory_usage) AS avg_memory_usage,"
            " max(memory_usage) AS max_memory_usage,"
            " sum(read_bytes) AS total_read_bytes,"
            " sum(written_bytes) AS total_written_bytes,"
            f" sum(CASE WHEN {FAILED_PREDICATE} THEN 1 ELSE 0 END) AS failed_queries"
            f" FROM {self.table}"
            f"{self._where(conditions)}"
            " GROUP BY time_bucket"
            " ORDER BY time_bucket ASC"
        )
        return SQLQuery(sql=sql, params=tuple(args))
