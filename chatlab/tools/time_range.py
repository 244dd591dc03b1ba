"""
Time-range resolution shared by every time-scoped query tool.

A tool call may carry its own ``year``/``month``; otherwise the ambient time
filter of the run applies. The resolved window is always a pair of inclusive
epoch-second bounds.
"""

import calendar
from datetime import datetime, tzinfo

from .models import TimeFilter, ToolContext

ALL_TIME = "all time"


def month_window(year: int, month: int | None = None, tz: tzinfo | None = None) -> TimeFilter:
    """
    Window covering a full calendar year, or a full month when given.

    Bounds are ``00:00:00`` of the first day and ``23:59:59`` of the last day
    in ``tz`` (local time when None).
    """
    if month is None:
        start = datetime(year, 1, 1, tzinfo=tz)
        end = datetime(year, 12, 31, 23, 59, 59, tzinfo=tz)
    else:
        last_day = calendar.monthrange(year, month)[1]
        start = datetime(year, month, 1, tzinfo=tz)
        end = datetime(year, month, last_day, 23, 59, 59, tzinfo=tz)

    return TimeFilter(start_ts=int(start.timestamp()), end_ts=int(end.timestamp()))


def resolve_time_filter(
    year: int | None, month: int | None, context: ToolContext
) -> TimeFilter | None:
    """
    Effective time filter for one tool call.

    - no year: the context's ambient filter (None means all time); a month
      without a year is ignored
    - year only: the whole calendar year
    - year and month: the whole calendar month
    """
    if year is None:
        return context.time_filter
    return month_window(year, month, context.tz)


def format_time_range(
    time_filter: TimeFilter | None, tz: tzinfo | None = None
) -> dict[str, str] | str:
    """Render a window as ISO dates for the model, or ``"all time"``."""
    if time_filter is None:
        return ALL_TIME
    return {
        "start": datetime.fromtimestamp(time_filter.start_ts, tz).date().isoformat(),
        "end": datetime.fromtimestamp(time_filter.end_ts, tz).date().isoformat(),
    }


def format_timestamp(timestamp: int, tz: tzinfo | None = None) -> str:
    return datetime.fromtimestamp(timestamp, tz).strftime("%Y-%m-%d %H:%M:%S")
