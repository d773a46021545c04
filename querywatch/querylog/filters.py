"""Filter model for query log retrieval.

Filters are built from untyped user input (HTTP query strings, CLI options),
validated once, and then treated as immutable values by the query builders.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from querywatch.exceptions import FilterValidationError, InvalidColumnError
from querywatch.querylog.columns import (
    DEFAULT_SORT_COLUMN,
    is_sortable_column,
    is_valid_column,
)

logger = logging.getLogger(__name__)


class SortOrder(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class LimitPolicy:
    """Default and maximum row limit for a retrieval path."""

    default: int
    maximum: int

    def clamp(self, requested: int | None) -> int:
        """Clamp a requested limit into ``1..maximum``; non-positive means default."""
        if requested is None or requested <= 0:
            return self.default
        if requested > self.maximum:
            return self.maximum
        return requested


LISTING_LIMITS = LimitPolicy(default=100, maximum=1000)
EXPORT_LIMITS = LimitPolicy(default=1000, maximum=100000)

# Largest value DuckDB binds as BIGINT.
MAX_BIGINT = 2**63 - 1

FILTER_PARAMETERS = (
    "db_name",
    "query_id",
    "only_failed",
    "only_success",
    "min_duration_ms",
    "user",
    "query_contains",
    "query_kind",
    "start_time",
    "end_time",
    "limit",
    "offset",
    "columns",
    "sort_by",
    "sort_order",
)


class QueryLogFilter(BaseModel):
    """
    Validated query log constraints.

    Every field is optional; an absent value means "no constraint". String
    filters are matched exactly except ``query_contains`` (case-insensitive
    substring). Time bounds are inclusive and normalised to naive UTC.

    Raw query-string values are coerced by pydantic's lax mode: RFC3339
    timestamps (including ``Z``), ``true``/``1``/``yes`` booleans and
    integer strings.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    db_name: str | None = None
    query_id: str | None = None
    only_failed: bool = False
    only_success: bool = False
    min_duration_ms: int = Field(default=0, ge=0, le=MAX_BIGINT)
    user: str | None = None
    query_contains: str | None = None
    query_kind: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    limit: int = 0
    offset: int = Field(default=0, le=MAX_BIGINT)
    columns: tuple[str, ...] | None = None
    sort_by: str | None = None
    sort_order: SortOrder = SortOrder.DESC

    @field_validator(
        "db_name", "query_id", "user", "query_contains", "query_kind", "sort_by",
        "start_time", "end_time",
        mode="before",
    )
    @classmethod
    def empty_string_is_absent(cls, v: Any) -> Any:
        if isinstance(v, str) and v == "":
            return None
        return v

    @field_validator("sort_order", mode="before")
    @classmethod
    def fold_case(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @field_validator("offset")
    @classmethod
    def non_negative_offset(cls, v: int) -> int:
        return max(v, 0)

    @field_validator("columns", mode="before")
    @classmethod
    def validate_columns(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, str):
            return parse_columns(v)
        return _validated_columns(v)

    @property
    def resolved_sort_column(self) -> str:
        """Sort column to use; unknown or non-sortable columns fall back to event_time."""
        if self.sort_by and is_sortable_column(self.sort_by):
            return self.sort_by
        if self.sort_by:
            logger.debug(
                "Ignoring non-sortable sort column",
                extra={"sort_by": self.sort_by, "fallback": DEFAULT_SORT_COLUMN},
            )
        return DEFAULT_SORT_COLUMN

    def with_limit(self, limits: LimitPolicy) -> "QueryLogFilter":
        """Return a copy whose limit is clamped by ``limits``."""
        return self.model_copy(update={"limit": limits.clamp(self.limit)})


def _validated_columns(columns: Any) -> tuple[str, ...]:
    validated: dict[str, None] = {}
    for column in columns:
        column = str(column).strip()
        if not column:
            continue
        if not is_valid_column(column):
            raise InvalidColumnError(column)
        validated.setdefault(column)

    if not validated:
        raise FilterValidationError("at least one valid column is required")

    return tuple(validated)


def parse_columns(raw: str) -> tuple[str, ...]:
    """
    Parse a comma-separated column projection.

    Args:
        raw: Comma-separated column names, e.g. "query_id,query"

    Returns:
        Tuple of registry column names in first-occurrence order; repeats
        are dropped

    Raises:
        InvalidColumnError: If any name is outside the registry
        FilterValidationError: If no column names remain after trimming
    """
    return _validated_columns(raw.split(","))


def parse_filter(
    params: Mapping[str, Any],
    limits: LimitPolicy = LISTING_LIMITS,
) -> QueryLogFilter:
    """
    Build a validated filter from raw request parameters.

    Args:
        params: Raw parameters; values are strings (query string) or already
            typed values (CLI). Unknown keys and blank values are ignored.
        limits: Limit policy of the retrieval path (listing or export)

    Returns:
        QueryLogFilter with its limit clamped

    Raises:
        FilterValidationError: If a value cannot be coerced or is out of range
        InvalidColumnError: If ``columns`` names an unknown column
    """
    values = {
        name: params[name]
        for name in FILTER_PARAMETERS
        if params.get(name) is not None
        and not (isinstance(params[name], str) and not params[name].strip())
    }

    try:
        filter_ = QueryLogFilter(**values)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "filter"
        raise FilterValidationError(
            f"invalid value for {field}: {error['msg']}", parameter=field
        ) from None

    return filter_.with_limit(limits)
