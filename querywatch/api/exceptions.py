"""FastAPI exception hierarchy for the QueryWatch API.

Domain errors (``querywatch.exceptions``) are mapped to responses by the
application's exception handlers. The classes here cover conditions that
only exist at the HTTP layer.
"""

from fastapi import HTTPException, status


class QueryWatchAPIException(HTTPException):
    """Base API exception for QueryWatch.

    Carries the machine-readable error kind rendered in the
    ``{"error": kind, "message": text}`` envelope.
    """

    def __init__(
        self,
        status_code: int,
        error: str,
        detail: str,
        headers: dict | None = None,
    ):
        """Initialize API exception.

        Args:
            status_code: HTTP status code
            error: Error kind for the response envelope
            detail: Error message detail
            headers: Optional HTTP headers
        """
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error = error


class ServiceUnavailableException(QueryWatchAPIException):
    """Log store unavailable (503).

    Raised when the store is not initialized or fails its readiness check.
    """

    def __init__(self, detail: str = "Log store unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error="database_unavailable",
            detail=detail,
        )
