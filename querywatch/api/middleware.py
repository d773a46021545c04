"""HTTP middleware: request ids, access logging and CORS."""

import logging
import time
from typing import Callable, Sequence
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from querywatch.logging_config import bind_request_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id.

    A client-supplied ``X-Request-ID`` is reused, otherwise a UUID4 is
    generated. The id is stored on ``request.state``, bound into the
    structlog context for the duration of the request and echoed on the
    response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id
        bind_request_context(request_id)

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log with status and latency.

    Query strings are left out: they carry filter values such as the
    query text search.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        fields = {
            "request_id": getattr(request.state, "request_id", "unknown"),
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "unknown",
        }
        logger.debug("%s %s received", request.method, request.url.path, extra=fields)

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        logger.info(
            "%s %s -> %d in %.3fs",
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
            extra={**fields, "status_code": response.status_code, "duration_seconds": elapsed},
        )
        return response


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Add CORS headers for allowed browser origins.

    The request Origin is echoed back only when it is in ``allowed_origins``
    (or the list contains ``*``). Preflight requests are answered directly.

    Example:
        app.add_middleware(
            CORSHeadersMiddleware,
            allowed_origins=["http://localhost:3000"],
        )
    """

    allow_methods = "GET, POST, PUT, DELETE, OPTIONS"
    allow_headers = "Origin, Content-Type, Accept, X-Request-ID"

    def __init__(self, app: ASGIApp, allowed_origins: Sequence[str] = ()) -> None:
        super().__init__(app)
        self.allowed_origins = set(allowed_origins)

    def _allowed(self, origin: str | None) -> bool:
        if not origin:
            return False
        return "*" in self.allowed_origins or origin in self.allowed_origins

    def _apply(self, response: Response, origin: str) -> None:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = self.allow_methods
        response.headers["Access-Control-Allow-Headers"] = self.allow_headers
        response.headers["Access-Control-Expose-Headers"] = (
            "Content-Disposition, X-Request-ID"
        )
        response.headers["Vary"] = "Origin"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        origin = request.headers.get("Origin")
        allowed = self._allowed(origin)

        if (
            request.method == "OPTIONS"
            and "Access-Control-Request-Method" in request.headers
        ):
            response = Response(status_code=204 if allowed else 403)
            if allowed:
                self._apply(response, origin)
            return response

        response = await call_next(request)
        if allowed:
            self._apply(response, origin)

        return response
