"""Query log record and metric models."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from querywatch.querylog.formatting import format_timestamp


class QueryPhase(str, Enum):
    """Lifecycle phase of a logged query event."""

    QUERY_START = "QueryStart"
    QUERY_FINISH = "QueryFinish"
    EXCEPTION_BEFORE_START = "ExceptionBeforeStart"
    EXCEPTION_WHILE_PROCESSING = "ExceptionWhileProcessing"


def is_failed(exception_code: int, phase: str) -> bool:
    """Failure classification shared with the SQL failure predicate."""
    return exception_code != 0 or phase == QueryPhase.EXCEPTION_BEFORE_START.value


def is_successful(exception_code: int, phase: str) -> bool:
    """Success classification shared with the SQL success predicate."""
    return phase == QueryPhase.QUERY_FINISH.value and exception_code == 0


class LogRecord(BaseModel):
    """
    One event from the query log.

    Records are produced by the log store and never modified here. ``query_id``
    is not unique across time: a long-lived id can appear in several events.

    Attributes:
        query_id: Query identifier
        query: Full query text
        event_time: Event timestamp (UTC)
        event_date: Event date, used by the store for partition pruning
        type: Lifecycle phase (see QueryPhase)
        query_duration_ms: Execution time in milliseconds
        memory_usage: Peak memory in bytes (signed, accounting can go negative)
        read_rows / read_bytes: Data read from tables and table functions
        written_rows / written_bytes: Data written (INSERT queries)
        result_rows / result_bytes: Size of the result set
        databases / tables: Objects touched by the query
        exception_code: Non-zero when an exception occurred
        exception: Exception message
        user: Executing user
        client_hostname / http_user_agent: Client information
        initial_user / initial_query_id: Initiator of a distributed query
        is_initial_query: 1 for the root query, 0 for distributed sub-queries
    """

    model_config = ConfigDict(frozen=True)

    query_id: str
    query: str
    event_time: datetime
    event_date: date
    type: str
    query_duration_ms: int = Field(ge=0)
    memory_usage: int
    read_rows: int = Field(ge=0)
    read_bytes: int = Field(ge=0)
    written_rows: int = Field(ge=0)
    written_bytes: int = Field(ge=0)
    result_rows: int = Field(ge=0)
    result_bytes: int = Field(ge=0)
    databases: list[str]
    tables: list[str]
    exception_code: int
    exception: str
    user: str
    client_hostname: str
    http_user_agent: str
    initial_user: str
    initial_query_id: str
    is_initial_query: int = Field(ge=0, le=255)

    @property
    def failed(self) -> bool:
        return is_failed(self.exception_code, self.type)

    @property
    def succeeded(self) -> bool:
        return is_successful(self.exception_code, self.type)

    @field_serializer("event_time")
    def _serialize_event_time(self, value: datetime) -> str:
        return format_timestamp(value)


class MetricBucket(BaseModel):
    """Aggregated metrics for one time bucket."""

    model_config = ConfigDict(frozen=True)

    time_bucket: datetime
    total_queries: int
    avg_duration_ms: float
    max_duration_ms: int
    avg_memory_usage: float
    max_memory_usage: int
    total_read_bytes: int
    total_written_bytes: int
    failed_queries: int

    @field_serializer("time_bucket")
    def _serialize_time_bucket(self, value: datetime) -> str:
        return format_timestamp(value)
