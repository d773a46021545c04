"""QueryWatch API routers package.

This package contains all API route handlers organized by domain.
"""

from querywatch.api.routers.databases import router as databases_router
from querywatch.api.routers.health import router as health_router
from querywatch.api.routers.logs import router as logs_router

__all__ = [
    "databases_router",
    "health_router",
    "logs_router",
]
