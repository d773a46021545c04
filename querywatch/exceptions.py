"""Custom exceptions for QueryWatch."""

from typing import Any


class QueryWatchError(Exception):
    """Base exception for all QueryWatch errors."""

    error_kind = "internal_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def public_message(self) -> str:
        """Message safe to return to API clients."""
        return self.message


class ConfigurationError(QueryWatchError):
    """Configuration-related errors."""

    pass


class FilterValidationError(QueryWatchError):
    """Bad or unknown filter input supplied by the caller."""

    error_kind = "invalid_parameters"


class InvalidColumnError(FilterValidationError):
    """A requested column is not part of the column registry."""

    error_kind = "invalid_columns"

    def __init__(self, column: str) -> None:
        super().__init__(f"invalid column: {column}", column=column)
        self.column = column


class MissingColumnsError(FilterValidationError):
    """Column projection is required but was not supplied."""

    error_kind = "missing_columns"

    def __init__(self, detail: str = "columns parameter is required") -> None:
        super().__init__(detail)


class QueryLogNotFoundError(QueryWatchError):
    """No query log entry matches the requested id."""

    error_kind = "not_found"

    def __init__(self, query_id: str) -> None:
        super().__init__("Query log not found", query_id=query_id)


class StoreError(QueryWatchError):
    """Log store connectivity or execution failure."""

    error_kind = "database_error"

    def __init__(self, operation: str, details: str = "") -> None:
        message = f"Log store error during {operation}"
        if details:
            message = f"{message}: {details}"
        super().__init__(message, operation=operation)
        self.operation = operation

    @property
    def public_message(self) -> str:
        return f"Failed to retrieve {self.operation.replace('_', ' ')}"


class StoreTimeoutError(StoreError):
    """Log store query exceeded its deadline."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        super().__init__(operation, f"timeout after {timeout_seconds}s")
        self.context["timeout_seconds"] = timeout_seconds


class ConnectionPoolExhaustedError(StoreError):
    """Connection pool exhausted or closed."""

    def __init__(self, max_connections: int, operation: str = "acquire_connection") -> None:
        super().__init__(operation, f"all {max_connections} connections in use")
        self.context["max_connections"] = max_connections


class SchemaDriftError(QueryWatchError):
    """Store returned a value whose type disagrees with the column registry."""

    error_kind = "schema_drift"

    def __init__(self, column: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Column {column} expected {expected}, store returned {actual}",
            column=column,
            expected=expected,
            actual=actual,
        )

    @property
    def public_message(self) -> str:
        return "Query log schema does not match the column registry"


class UnsupportedFormatError(QueryWatchError):
    """Unsupported file format for loading query log exports."""

    error_kind = "invalid_parameters"

    def __init__(self, format_name: str) -> None:
        super().__init__(f"Unsupported format: {format_name}", format_name=format_name)


def get_http_status(error: Exception) -> int:
    """Map exception to HTTP status code.

    Every StoreError, timeouts and pool exhaustion included, is a 500
    `database_error`.
    """
    status_map = {
        InvalidColumnError: 400,
        MissingColumnsError: 400,
        FilterValidationError: 400,
        UnsupportedFormatError: 400,
        QueryLogNotFoundError: 404,
        StoreError: 500,
        SchemaDriftError: 500,
        ConfigurationError: 500,
    }

    for exc_type, status in status_map.items():
        if isinstance(error, exc_type):
            return status

    return 500
