"""Adaptive time bucket sizing for aggregated metrics."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum


class BucketInterval(Enum):
    """Closed set of bucket widths.

    The interval text of a member is written directly into aggregation SQL,
    so only members of this enum may ever reach that position.
    """

    FIVE_SECONDS = ("5 SECOND", "5s", timedelta(seconds=5))
    THIRTY_SECONDS = ("30 SECOND", "30s", timedelta(seconds=30))
    ONE_MINUTE = ("1 MINUTE", "1m", timedelta(minutes=1))
    THREE_MINUTES = ("3 MINUTE", "3m", timedelta(minutes=3))
    FIFTEEN_MINUTES = ("15 MINUTE", "15m", timedelta(minutes=15))
    ONE_HOUR = ("1 HOUR", "1h", timedelta(hours=1))
    SIX_HOURS = ("6 HOUR", "6h", timedelta(hours=6))
    ONE_DAY = ("1 DAY", "1d", timedelta(days=1))

    def __init__(self, interval: str, label: str, width: timedelta) -> None:
        self.interval = interval
        self.label = label
        self.width = width


@dataclass(frozen=True)
class BucketSpec:
    """Chosen granularity for one aggregation request."""

    bucket: BucketInterval

    @property
    def interval(self) -> str:
        return self.bucket.interval

    @property
    def label(self) -> str:
        return self.bucket.label

    @property
    def width(self) -> timedelta:
        return self.bucket.width


# (maximum span, bucket); first match wins. Keeps charts at roughly 60-170 points.
BUCKET_POLICY: tuple[tuple[timedelta, BucketInterval], ...] = (
    (timedelta(minutes=5), BucketInterval.FIVE_SECONDS),
    (timedelta(minutes=30), BucketInterval.THIRTY_SECONDS),
    (timedelta(hours=2), BucketInterval.ONE_MINUTE),
    (timedelta(hours=6), BucketInterval.THREE_MINUTES),
    (timedelta(days=1), BucketInterval.FIFTEEN_MINUTES),
    (timedelta(days=7), BucketInterval.ONE_HOUR),
    (timedelta(days=30), BucketInterval.SIX_HOURS),
)

DEFAULT_BUCKET = BucketSpec(BucketInterval.ONE_MINUTE)


def bucket_for_span(span: timedelta) -> BucketSpec:
    """Select the bucket for a time span."""
    for max_span, bucket in BUCKET_POLICY:
        if span <= max_span:
            return BucketSpec(bucket)
    return BucketSpec(BucketInterval.ONE_DAY)


def determine_bucket_size(
    start_time: datetime | None, end_time: datetime | None
) -> BucketSpec:
    """
    Select the bucket size for a requested time range.

    Args:
        start_time: Inclusive lower bound, or None
        end_time: Inclusive upper bound, or None

    Returns:
        BucketSpec; one minute when either bound is missing
    """
    if start_time is None or end_time is None:
        return DEFAULT_BUCKET

    return bucket_for_span(end_time - start_time)
