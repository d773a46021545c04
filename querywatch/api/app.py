"""FastAPI application for the QueryWatch HTTP API."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from querywatch import __version__
from querywatch.api.exceptions import QueryWatchAPIException
from querywatch.api.middleware import (
    CORSHeadersMiddleware,
    LoggingMiddleware,
    RequestIDMiddleware,
)
from querywatch.api.routers import databases_router, health_router, logs_router
from querywatch.config import Settings, get_settings
from querywatch.exceptions import QueryWatchError, get_http_status
from querywatch.logging_config import log_error, setup_logging
from querywatch.querylog.builder import QueryLogQueryBuilder
from querywatch.querylog.service import QueryLogService
from querywatch.store.duckdb_store import DuckDBLogStore

logger = structlog.get_logger(__name__)


def error_response(
    status_code: int, error: str, message: str, headers: dict | None = None
) -> JSONResponse:
    """Render the ``{"error": kind, "message": text}`` envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message},
        headers=headers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the log store on startup and close its pool on shutdown.

    The store and the service built over it live on ``app.state`` so the
    dependency functions can reach them.
    """
    settings: Settings = app.state.settings
    setup_logging(settings)
    logger.info(
        "api_starting",
        host=settings.querywatch_host,
        port=settings.querywatch_port,
        version=__version__,
    )

    store = DuckDBLogStore.from_settings(settings)
    try:
        await store.initialize()
    except QueryWatchError as e:
        log_error(logger, e, "open_log_store", store_path=settings.store_path)
        raise

    app.state.store = store
    app.state.log_service = QueryLogService(
        store, QueryLogQueryBuilder(settings.query_log_table)
    )
    logger.info(
        "log_store_open",
        store_path=settings.store_path,
        table=settings.query_log_table,
        pool_size=settings.store_pool_size,
    )

    try:
        yield
    finally:
        await store.close()
        app.state.store = None
        app.state.log_service = None
        logger.info("api_stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; ``settings`` defaults to the global settings."""
    settings = settings or get_settings()

    app = FastAPI(
        title="QueryWatch API",
        description="Query log monitoring for columnar analytical databases",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Added last runs first: the request id is bound before anything logs.
    app.add_middleware(
        CORSHeadersMiddleware, allowed_origins=settings.cors_allowed_origins
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    for router in (health_router, logs_router, databases_router):
        app.include_router(router)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Map every failure onto the JSON error envelope."""

    @app.exception_handler(QueryWatchError)
    async def domain_error_handler(request: Request, exc: QueryWatchError) -> JSONResponse:
        status_code = get_http_status(exc)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "request_failed",
            path=request.url.path,
            status_code=status_code,
            error_kind=exc.error_kind,
            error_type=type(exc).__name__,
            error_message=exc.message,
        )
        return error_response(status_code, exc.error_kind, exc.public_message)

    @app.exception_handler(QueryWatchAPIException)
    async def api_error_handler(request: Request, exc: QueryWatchAPIException) -> JSONResponse:
        logger.warning(
            "request_rejected",
            path=request.url.path,
            status_code=exc.status_code,
            detail=exc.detail,
        )
        return error_response(exc.status_code, exc.error, exc.detail, exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "invalid request"
        return error_response(status.HTTP_400_BAD_REQUEST, "invalid_parameters", message)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        log_error(logger, exc, "handle_request", path=request.url.path)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "Internal server error",
        )


app = create_app()
