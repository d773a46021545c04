"""Value formatting for JSON responses and CSV export."""

import csv
import io
from datetime import date, datetime, timezone
from typing import Any, Iterable, Iterator, Mapping, Sequence

ARRAY_SEPARATOR = ";"


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as RFC3339. Naive timestamps are UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def to_json_value(value: Any) -> Any:
    """Convert a decoded column value to a JSON-compatible value."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def to_csv_value(value: Any) -> str:
    """Convert a decoded column value to a CSV cell."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ARRAY_SEPARATOR.join(str(item) for item in value)
    if isinstance(value, float):
        return repr(value)
    return str(value)


def iter_csv(columns: Sequence[str], rows: Iterable[Mapping[str, Any]]) -> Iterator[str]:
    """
    Render projected rows as CSV text, one chunk per line.

    The first chunk is the header row of column names.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer)

    def flush() -> str:
        chunk = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
        return chunk

    writer.writerow(columns)
    yield flush()

    for row in rows:
        writer.writerow([to_csv_value(row[column]) for column in columns])
        yield flush()
