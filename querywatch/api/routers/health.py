"""Liveness and readiness probes."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel

from querywatch import __version__
from querywatch.api.dependencies import Store
from querywatch.api.exceptions import ServiceUnavailableException
from querywatch.exceptions import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Liveness payload."""

    status: str
    timestamp: datetime
    version: str


class ReadinessResponse(BaseModel):
    """Readiness payload with per-dependency results."""

    status: str
    timestamp: datetime
    version: str
    checks: dict[str, str]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
)
async def health_check() -> HealthResponse:
    """Liveness check; does not touch the log store.

    Example:
        GET /health
        {
            "status": "ok",
            "version": "0.1.0"
        }
    """
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Log store readiness probe",
)
async def readiness_check(store: Store) -> ReadinessResponse:
    """Ping the log store; 503 `database_unavailable` when it does not answer.

    Raises:
        ServiceUnavailableException: If the store does not answer

    Example:
        GET /health/ready
        {
            "status": "ready",
            "checks": {"database": "ok"}
        }
    """
    try:
        await store.ping()
    except StoreError as e:
        logger.warning("Log store not ready", extra={"operation": e.operation})
        raise ServiceUnavailableException() from e

    return ReadinessResponse(
        status="ready",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        checks={"database": "ok"},
    )
