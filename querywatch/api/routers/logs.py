"""Query log router for the QueryWatch API.

This module provides endpoints for listing, aggregating, exporting and
fetching query log events. Filter parameters are read from the raw query
string and validated by ``parse_filter`` so that every validation failure
uses the same error envelope.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import StreamingResponse

from querywatch.api.dependencies import LogService, QueryParams
from querywatch.exceptions import MissingColumnsError
from querywatch.querylog.filters import EXPORT_LIMITS, LISTING_LIMITS, parse_filter
from querywatch.querylog.formatting import iter_csv, to_json_value

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/logs", tags=["logs"])

# Parameters that do not apply to aggregated metrics.
NON_METRIC_PARAMETERS = ("limit", "offset", "columns", "sort_by", "sort_order")


def _pagination(limit: int, offset: int, count: int) -> dict[str, int]:
    return {"limit": limit, "offset": offset, "count": count}


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    summary="List query log events",
    description="""
List query log events matching the filter parameters.

With `columns`, only the requested columns are returned and the response
carries the column list in presentation order.

Example:
    GET /api/v1/logs?only_failed=true&min_duration_ms=1000&limit=20
""",
)
async def list_logs(service: LogService, params: QueryParams) -> dict[str, Any]:
    """List query log events.

    Raises:
        FilterValidationError: If a parameter cannot be parsed
        InvalidColumnError: If ``columns`` names an unknown column
        StoreError: If the log store fails
    """
    filter_ = parse_filter(params, LISTING_LIMITS)

    if filter_.columns:
        data, columns, count = await service.list_logs_projected(
            filter_, filter_.columns, limits=LISTING_LIMITS
        )
        return {
            "data": [
                {column: to_json_value(value) for column, value in row.items()}
                for row in data
            ],
            "columns": columns,
            "pagination": _pagination(filter_.limit, filter_.offset, count),
        }

    records, count = await service.list_logs(filter_)
    return {
        "data": [record.model_dump(mode="json") for record in records],
        "pagination": _pagination(filter_.limit, filter_.offset, count),
    }


@router.get(
    "/metrics",
    status_code=status.HTTP_200_OK,
    summary="Aggregated query metrics",
    description="""
Time-bucketed metrics for charts. The bucket width follows the requested
time range, from 5 seconds (up to 5 minutes) to 1 day (over 30 days).

Example:
    GET /api/v1/logs/metrics?start_time=2024-01-01T00:00:00Z&end_time=2024-01-01T06:00:00Z
""",
)
async def aggregated_metrics(service: LogService, params: QueryParams) -> dict[str, Any]:
    """Aggregate query log events into time buckets."""
    filter_params = {
        name: value
        for name, value in params.items()
        if name not in NON_METRIC_PARAMETERS
    }
    filter_ = parse_filter(filter_params)

    buckets, bucket = await service.aggregate_metrics(filter_)
    return {
        "data": [b.model_dump(mode="json") for b in buckets],
        "bucket_size": bucket.label,
        "bucket_label": bucket.interval,
    }


@router.get(
    "/export",
    status_code=status.HTTP_200_OK,
    summary="Export query logs as CSV",
    response_class=StreamingResponse,
    description="""
Export the requested columns of the matching events as CSV.

`columns` is required. Default limit 1000, maximum 100000. Array columns are
joined with `;`, timestamps are RFC3339 in UTC.

Example:
    GET /api/v1/logs/export?columns=query_id,query,event_time&limit=5000
""",
)
async def export_csv(service: LogService, params: QueryParams) -> StreamingResponse:
    """Export query log events as a CSV download.

    Rows are fetched before the response starts, so a store failure is
    reported as an error response rather than a truncated file.

    Raises:
        MissingColumnsError: If ``columns`` is absent or empty
    """
    if not params.get("columns", "").strip():
        raise MissingColumnsError("columns parameter is required for CSV export")

    filter_ = parse_filter(params, EXPORT_LIMITS)
    data, columns, count = await service.list_logs_projected(
        filter_,
        filter_.columns,
        limits=EXPORT_LIMITS,
        operation="query_logs_for_export",
    )

    filename = f"query_logs_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}.csv"

    logger.info(
        "Exporting query logs",
        extra={"rows": count, "columns": len(columns), "export_file": filename},
    )

    return StreamingResponse(
        iter_csv(columns, data),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get(
    "/{query_id}",
    status_code=status.HTTP_200_OK,
    summary="Get query log event by id",
)
async def get_query_log(query_id: str, service: LogService) -> dict[str, Any]:
    """Most recent event for a query id.

    Raises:
        QueryLogNotFoundError: If no event carries this id
    """
    record = await service.get_by_id(query_id)
    return record.model_dump(mode="json")
