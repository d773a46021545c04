"""Database enumeration router for the QueryWatch API."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from querywatch.api.dependencies import LogService

router = APIRouter(prefix="/api/v1/databases", tags=["databases"])


class DatabaseListResponse(BaseModel):
    """Databases referenced by the query log."""

    databases: list[str]


@router.get(
    "",
    response_model=DatabaseListResponse,
    status_code=status.HTTP_200_OK,
    summary="List databases",
)
async def list_databases(service: LogService) -> DatabaseListResponse:
    """Sorted names of every database referenced by the query log.

    Example:
        GET /api/v1/databases
        {
            "databases": ["analytics", "default"]
        }
    """
    return DatabaseListResponse(databases=await service.list_databases())
