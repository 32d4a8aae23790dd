"""
Bucketizer

Maps timestamped events onto trailing calendar-day buckets for chart series.
Pure: the same input (including ``now``) always yields the same buckets.
"""

from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, List, Optional, Tuple, Union

import pytz

from admin_metrics.core.config import settings
from admin_metrics.core.exceptions import InvalidWindowError, MalformedSnapshotError
from admin_metrics.models.analytics import Bucket
from admin_metrics.models.common import parse_timestamp

TimezoneLike = Union[str, Any, None]


def _resolve_timezone(tz: TimezoneLike):
    if tz is None:
        tz = settings.ANALYTICS_TIMEZONE
    if isinstance(tz, str):
        try:
            return pytz.timezone(tz)
        except pytz.exceptions.UnknownTimeZoneError:
            raise InvalidWindowError(f"Unknown time zone: {tz}", timezone=tz)
    return tz


def local_date(value: Any, tz: TimezoneLike = None) -> date:
    """Calendar day of a timestamp in the bucketing time zone."""
    try:
        parsed = parse_timestamp(value)
    except ValueError as e:
        raise MalformedSnapshotError(str(e), value=str(value)) from e
    if parsed is None:
        raise MalformedSnapshotError("Event timestamp is missing")
    return parsed.astimezone(_resolve_timezone(tz)).date()


def window_dates(
    window_days: int, now: Optional[datetime] = None, tz: TimezoneLike = None
) -> List[date]:
    """The ``window_days`` calendar days ending today, oldest first."""
    if isinstance(window_days, bool) or not isinstance(window_days, int):
        raise InvalidWindowError(
            "Window must be a whole number of days", window_days=window_days
        )
    if window_days <= 0:
        raise InvalidWindowError(
            "Window must cover at least one day", window_days=window_days
        )

    today = local_date(now or datetime.now(timezone.utc), tz)
    start = today - timedelta(days=window_days - 1)
    return [start + timedelta(days=offset) for offset in range(window_days)]


def bucketize(
    timestamps: Iterable[Any],
    window_days: int,
    now: Optional[datetime] = None,
    tz: TimezoneLike = None,
) -> List[Bucket]:
    """
    Count events per calendar day over the trailing window.

    Args:
        timestamps: Event timestamps (datetime or ISO string)
        window_days: Number of days, including today
        now: Anchor for "today" (defaults to the current time)
        tz: Time zone name or tzinfo deciding the calendar day

    Returns:
        Exactly ``window_days`` buckets, oldest to newest. Days without events
        have count 0; events outside the window are dropped.
    """
    days = window_dates(window_days, now, tz)
    first, last = days[0], days[-1]

    counts: Counter = Counter()
    for value in timestamps:
        day = local_date(value, tz)
        if first <= day <= last:
            counts[day] += 1

    return [
        Bucket(date=day, label=day.strftime("%b %d"), count=counts.get(day, 0))
        for day in days
    ]


def cumulative_series(
    buckets: List[Bucket], baseline: int = 0
) -> List[Tuple[Bucket, int]]:
    """Pair each bucket with the running total (growth charts)."""
    running = baseline
    points = []
    for bucket in buckets:
        running += bucket.count
        points.append((bucket, running))
    return points
