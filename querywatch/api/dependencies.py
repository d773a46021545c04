"""FastAPI dependencies for the QueryWatch API.

This module provides dependency injection for:
- The shared query log service
- The log store (readiness checks)
- Raw query string parameters for filter parsing
"""

from typing import Annotated

from fastapi import Depends, Request

from querywatch.api.exceptions import ServiceUnavailableException
from querywatch.querylog.service import LogStore, QueryLogService


def get_log_store(request: Request) -> LogStore:
    """Return the log store opened by the application lifespan.

    Raises:
        ServiceUnavailableException: If the store is not initialized
    """
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise ServiceUnavailableException()
    return store


def get_log_service(request: Request) -> QueryLogService:
    """Return the shared query log service.

    Raises:
        ServiceUnavailableException: If the store is not initialized

    Example:
        @router.get("/logs")
        async def list_logs(service: LogService):
            ...
    """
    service = getattr(request.app.state, "log_service", None)
    if service is None:
        raise ServiceUnavailableException()
    return service


def get_query_params(request: Request) -> dict[str, str]:
    """Raw query string parameters; filter parsing happens in parse_filter."""
    return dict(request.query_params)


LogService = Annotated[QueryLogService, Depends(get_log_service)]
Store = Annotated[LogStore, Depends(get_log_store)]
QueryParams = Annotated[dict[str, str], Depends(get_query_params)]
