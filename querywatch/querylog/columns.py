"""Column registry for the query log.

The registry is the only place column names may come from before they are
written into SQL text. Every user-supplied column name (projection, sort) is
checked against it.
"""

from dataclasses import dataclass
from enum import Enum


class ColumnKind(str, Enum):
    """Scalar kind of a query log column, used to decode store values."""

    STRING = "string"
    TIMESTAMP = "timestamp"
    DATE = "date"
    UINT = "uint"
    INT = "int"
    FLAG = "flag"
    STRING_ARRAY = "string_array"


@dataclass(frozen=True)
class Column:
    """A retrievable query log column."""

    name: str
    kind: ColumnKind
    sortable: bool = False


COLUMN_REGISTRY: tuple[Column, ...] = (
    Column("query_id", ColumnKind.STRING, sortable=True),
    Column("query", ColumnKind.STRING),
    Column("event_time", ColumnKind.TIMESTAMP, sortable=True),
    Column("event_date", ColumnKind.DATE, sortable=True),
    Column("type", ColumnKind.STRING, sortable=True),
    Column("query_duration_ms", ColumnKind.UINT, sortable=True),
    Column("memory_usage", ColumnKind.INT, sortable=True),
    Column("read_rows", ColumnKind.UINT, sortable=True),
    Column("read_bytes", ColumnKind.UINT, sortable=True),
    Column("written_rows", ColumnKind.UINT, sortable=True),
    Column("written_bytes", ColumnKind.UINT, sortable=True),
    Column("result_rows", ColumnKind.UINT, sortable=True),
    Column("result_bytes", ColumnKind.UINT, sortable=True),
    Column("databases", ColumnKind.STRING_ARRAY),
    Column("tables", ColumnKind.STRING_ARRAY),
    Column("exception_code", ColumnKind.INT, sortable=True),
    Column("exception", ColumnKind.STRING),
    Column("user", ColumnKind.STRING, sortable=True),
    Column("client_hostname", ColumnKind.STRING, sortable=True),
    Column("http_user_agent", ColumnKind.STRING),
    Column("initial_user", ColumnKind.STRING, sortable=True),
    Column("initial_query_id", ColumnKind.STRING, sortable=True),
    Column("is_initial_query", ColumnKind.FLAG, sortable=True),
)

_COLUMNS_BY_NAME: dict[str, Column] = {column.name: column for column in COLUMN_REGISTRY}

ALL_COLUMNS: tuple[str, ...] = tuple(column.name for column in COLUMN_REGISTRY)

SORTABLE_COLUMNS: frozenset[str] = frozenset(
    column.name for column in COLUMN_REGISTRY if column.sortable
)

DEFAULT_SORT_COLUMN = "event_time"


def is_valid_column(name: str) -> bool:
    """Check whether ``name`` is a retrievable column."""
    return name in _COLUMNS_BY_NAME


def is_sortable_column(name: str) -> bool:
    """Check whether ``name`` may be used in ORDER BY."""
    return name in SORTABLE_COLUMNS


def get_column(name: str) -> Column:
    """Look up a registry column.

    Raises:
        KeyError: If the column is not registered
    """
    return _COLUMNS_BY_NAME[name]


def quote_column(name: str) -> str:
    """Render a registry column for SQL. ``user`` is a reserved word in DuckDB."""
    if not is_valid_column(name):
        raise KeyError(name)
    return f'"{name}"' if name == "user" else name
