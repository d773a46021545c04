"""Decode raw store rows into query log records, projections and buckets."""

from datetime import date, datetime
from typing import Any, Callable, Sequence

from querywatch.exceptions import SchemaDriftError
from querywatch.querylog.builder import METRIC_COLUMNS
from querywatch.querylog.columns import ALL_COLUMNS, ColumnKind, get_column
from querywatch.querylog.models import LogRecord, MetricBucket

FLAG_MAX = 255


def _drift(column: str, kind: ColumnKind, value: Any) -> SchemaDriftError:
    return SchemaDriftError(column, kind.value, type(value).__name__)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _decode_string(column: str, value: Any) -> str:
    if not isinstance(value, str):
        raise _drift(column, ColumnKind.STRING, value)
    return value


def _decode_timestamp(column: str, value: Any) -> datetime:
    if not isinstance(value, datetime):
        raise _drift(column, ColumnKind.TIMESTAMP, value)
    return value


def _decode_date(column: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, date):
        raise _drift(column, ColumnKind.DATE, value)
    return value


def _decode_uint(column: str, value: Any) -> int:
    if not _is_int(value) or value < 0:
        raise _drift(column, ColumnKind.UINT, value)
    return int(value)


def _decode_int(column: str, value: Any) -> int:
    if not _is_int(value):
        raise _drift(column, ColumnKind.INT, value)
    return int(value)


def _decode_flag(column: str, value: Any) -> int:
    if not _is_int(value) or not 0 <= value <= FLAG_MAX:
        raise _drift(column, ColumnKind.FLAG, value)
    return int(value)


def _decode_string_array(column: str, value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)) or not all(
        isinstance(item, str) for item in value
    ):
        raise _drift(column, ColumnKind.STRING_ARRAY, value)
    return list(value)


_DECODERS: dict[ColumnKind, Callable[[str, Any], Any]] = {
    ColumnKind.STRING: _decode_string,
    ColumnKind.TIMESTAMP: _decode_timestamp,
    ColumnKind.DATE: _decode_date,
    ColumnKind.UINT: _decode_uint,
    ColumnKind.INT: _decode_int,
    ColumnKind.FLAG: _decode_flag,
    ColumnKind.STRING_ARRAY: _decode_string_array,
}


def decode_value(column: str, value: Any) -> Any:
    """
    Decode one store value according to the registry kind of ``column``.

    Raises:
        SchemaDriftError: If the value's type disagrees with the registry
    """
    kind = get_column(column).kind
    return _DECODERS[kind](column, value)


def _check_width(row: Sequence[Any], columns: Sequence[str]) -> None:
    if len(row) != len(columns):
        raise SchemaDriftError(
            "<row>", f"{len(columns)} values", f"{len(row)} values"
        )


def materialize_projection(row: Sequence[Any], columns: Sequence[str]) -> dict[str, Any]:
    """Decode a projected row into a column-keyed dict."""
    _check_width(row, columns)
    return {column: decode_value(column, value) for column, value in zip(columns, row)}


def materialize_record(row: Sequence[Any]) -> LogRecord:
    """Decode a full row (in ALL_COLUMNS order) into a LogRecord."""
    return LogRecord(**materialize_projection(row, ALL_COLUMNS))


def materialize_bucket(row: Sequence[Any]) -> MetricBucket:
    """Decode one aggregation row into a MetricBucket."""
    _check_width(row, METRIC_COLUMNS)
    values = dict(zip(METRIC_COLUMNS, row))

    if not isinstance(values["time_bucket"], datetime):
        raise SchemaDriftError(
            "time_bucket", ColumnKind.TIMESTAMP.value, type(values["time_bucket"]).__name__
        )

    for name in METRIC_COLUMNS[1:]:
        value = values[name]
        if value is None or isinstance(value, bool):
            raise SchemaDriftError(name, "number", type(value).__name__)
        if name.startswith("avg_"):
            values[name] = float(value)
        else:
            values[name] = int(value)

    return MetricBucket(**values)
