"""
Calendar Period Boundaries

One definition of "day", "week" and "month" for the whole system.
The budget check and the statistics both call into this module, so
today's cash total shown on the dashboard is always the same number the
budget warning was computed from.

Rules:
- A day is a local calendar day in the configured timezone, starting at 00:00.
- Weeks start on Monday.
- Windows are half-open: start <= instant < end.
"""

from datetime import datetime, timedelta, tzinfo
from typing import Optional

from finance_tracker.models.finance import ensure_utc


def to_local(instant: datetime, tz: tzinfo) -> datetime:
    """Express an instant in the local timezone."""
    return ensure_utc(instant).astimezone(tz)


def local_day_start(instant: datetime, tz: tzinfo) -> datetime:
    """Local midnight at the start of the instant's calendar day."""
    local = to_local(instant, tz)
    return datetime(local.year, local.month, local.day, tzinfo=tz)


def _add_days(day_start: datetime, days: int, tz: tzinfo) -> datetime:
    # Calendar arithmetic on the date, so DST shifts never move midnight
    moved = day_start.date() + timedelta(days=days)
    return datetime(moved.year, moved.month, moved.day, tzinfo=tz)


def week_start(instant: datetime, tz: tzinfo) -> datetime:
    """Local midnight of the Monday starting the instant's week."""
    day = local_day_start(instant, tz)
    return _add_days(day, -day.weekday(), tz)


def month_start(instant: datetime, tz: tzinfo) -> datetime:
    local = to_local(instant, tz)
    return datetime(local.year, local.month, 1, tzinfo=tz)


def day_window(instant: datetime, tz: tzinfo) -> tuple[datetime, datetime]:
    start = local_day_start(instant, tz)
    return start, _add_days(start, 1, tz)


def week_window(instant: datetime, tz: tzinfo) -> tuple[datetime, datetime]:
    start = week_start(instant, tz)
    return start, _add_days(start, 7, tz)


def month_window(instant: datetime, tz: tzinfo) -> tuple[datetime, datetime]:
    start = month_start(instant, tz)
    if start.month == 12:
        end = datetime(start.year + 1, 1, 1, tzinfo=tz)
    else:
        end = datetime(start.year, start.month + 1, 1, tzinfo=tz)
    return start, end


def last_n_days(
    instant: datetime,
    tz: tzinfo,
    days: int = 7,
) -> list[tuple[datetime, datetime]]:
    """
    Day windows for the trailing calendar days, oldest first.

    The instant's own day is the last window.
    """
    today = local_day_start(instant, tz)
    windows = []
    for offset in range(days - 1, -1, -1):
        start = _add_days(today, -offset, tz)
        windows.append((start, _add_days(start, 1, tz)))
    return windows


def in_window(
    instant: datetime,
    start: Optional[datetime],
    end: Optional[datetime],
) -> bool:
    """Half-open containment check. Missing bounds are unbounded."""
    instant = ensure_utc(instant)
    if start is not None and instant < start:
        return False
    if end is not None and instant >= end:
        return False
    return True
