"""Calendar bucketing for daily rollups, heatmap cells and cost periods."""

from datetime import datetime, timedelta, tzinfo
from enum import Enum
from typing import Optional


class DatePeriod(str, Enum):
    TODAY = "Today"
    THIS_WEEK = "This Week"
    THIS_MONTH = "This Month"
    ALL_TIME = "All Time"


def to_local(dt: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Convert to ``tz`` (the machine's local zone when None).

    Naive datetimes are taken to already be in that zone.
    """
    if dt.tzinfo is None:
        return dt if tz is None else dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def local_date_key(dt: datetime, tz: Optional[tzinfo] = None) -> str:
    """Calendar date as YYYY-MM-DD in local time."""
    return to_local(dt, tz).strftime("%Y-%m-%d")


def heatmap_cell(dt: datetime, tz: Optional[tzinfo] = None) -> tuple[int, int]:
    """Return (day_of_week, hour) with Sunday = 0."""
    local = to_local(dt, tz)
    return (local.weekday() + 1) % 7, local.hour


def get_periods(dt: datetime, now: Optional[datetime] = None,
                tz: Optional[tzinfo] = None) -> list[DatePeriod]:
    """All cumulative periods containing ``dt``; ALL_TIME always applies.

    Weeks start on Monday.
    """
    if now is None:
        now = datetime.now(tz) if tz is not None else datetime.now()
    now = to_local(now, tz)
    local = to_local(dt, tz)
    if local.tzinfo is None and now.tzinfo is not None:
        now = now.replace(tzinfo=None)
    elif local.tzinfo is not None and now.tzinfo is None:
        now = now.replace(tzinfo=local.tzinfo)

    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)

    periods = []
    if local >= today:
        periods.append(DatePeriod.TODAY)
    if local >= week_start:
        periods.append(DatePeriod.THIS_WEEK)
    if local >= month_start:
        periods.append(DatePeriod.THIS_MONTH)
    periods.append(DatePeriod.ALL_TIME)
    return periods
