"""Query log retrieval service."""

from typing import Any, Protocol, Sequence

import structlog

from querywatch.exceptions import QueryLogNotFoundError
from querywatch.logging_config import log_operation
from querywatch.querylog.buckets import BucketSpec, determine_bucket_size
from querywatch.querylog.builder import QueryLogQueryBuilder, SQLQuery
from querywatch.querylog.filters import LISTING_LIMITS, LimitPolicy, QueryLogFilter
from querywatch.querylog.materializer import (
    materialize_bucket,
    materialize_projection,
    materialize_record,
)
from querywatch.querylog.models import LogRecord, MetricBucket

logger = structlog.get_logger(__name__)


class LogStore(Protocol):
    """Executes parameterized query log SQL."""

    async def fetch_all(self, query: SQLQuery, operation: str) -> list[tuple[Any, ...]]:
        ...

    async def ping(self) -> None:
        ...


class QueryLogService:
    """
    Read-only retrieval over the query log.

    The service holds no mutable state; concurrent requests share one
    instance. Filters arrive validated (see ``parse_filter``), SQL is built
    by QueryLogQueryBuilder, and rows are decoded by the materializer.

    Usage:
        service = QueryLogService(store, QueryLogQueryBuilder("query_log"))
        records, count = await service.list_logs(filter_)
    """

    def __init__(
        self,
        store: LogStore,
        builder: QueryLogQueryBuilder | None = None,
    ) -> None:
        self.store = store
        self.builder = builder or QueryLogQueryBuilder()

    async def list_logs(self, filter_: QueryLogFilter) -> tuple[list[LogRecord], int]:
        """
        List full records matching a filter.

        Returns:
            Tuple of (records, number of records returned)
        """
        query = self.builder.listing(filter_)
        rows = await self.store.fetch_all(query, operation="query_logs")
        records = [materialize_record(row) for row in rows]

        log_operation(
            logger, "list_logs", count=len(records), limit=LISTING_LIMITS.clamp(filter_.limit)
        )
        return records, len(records)

    async def list_logs_projected(
        self,
        filter_: QueryLogFilter,
        columns: Sequence[str],
        limits: LimitPolicy = LISTING_LIMITS,
        operation: str = "query_logs",
    ) -> tuple[list[dict[str, Any]], list[str], int]:
        """
        List a column projection of the records matching a filter.

        Args:
            filter_: Validated filter
            columns: Registry column names, in presentation order
            limits: Limit policy of the retrieval path
            operation: Operation name reported by store errors

        Returns:
            Tuple of (rows keyed by column, column list, number of rows)

        Raises:
            InvalidColumnError: If a column is outside the registry; raised
                before the store is called
        """
        column_list = list(columns)
        query = self.builder.listing(filter_, columns=column_list, limits=limits)
        rows = await self.store.fetch_all(query, operation=operation)
        data = [materialize_projection(row, column_list) for row in rows]

        log_operation(
            logger,
            "list_logs_projected",
            count=len(data),
            columns=len(column_list),
        )
        return data, column_list, len(data)

    async def aggregate_metrics(
        self, filter_: QueryLogFilter
    ) -> tuple[list[MetricBucket], BucketSpec]:
        """
        Aggregate the filtered log into time buckets.

        The bucket width follows the filter's time range.

        Returns:
            Tuple of (buckets in ascending time order, bucket used)
        """
        bucket = determine_bucket_size(filter_.start_time, filter_.end_time)
        query = self.builder.aggregation(filter_, bucket)
        rows = await self.store.fetch_all(query, operation="aggregated_metrics")
        buckets = [materialize_bucket(row) for row in rows]

        log_operation(logger, "aggregate_metrics", count=len(buckets), bucket=bucket.label)
        return buckets, bucket

    async def list_databases(self) -> list[str]:
        """Database names referenced by the log, sorted."""
        rows = await self.store.fetch_all(self.builder.databases(), operation="databases")
        databases = [row[0] for row in rows]

        log_operation(logger, "list_databases", count=len(databases))
        return databases

    async def get_by_id(self, query_id: str) -> LogRecord:
        """
        Fetch the most recent event for a query id.

        Raises:
            QueryLogNotFoundError: If no event carries this id
        """
        rows = await self.store.fetch_all(
            self.builder.by_id(query_id), operation="query_log"
        )
        if not rows:
            raise QueryLogNotFoundError(query_id)

        log_operation(logger, "get_by_id", query_id=query_id)
        return materialize_record(rows[0])
