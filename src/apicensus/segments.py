"""Split a date range into calendar-month-third query windows.

Usage statistics are requested one window at a time so that each response
stays small and so the report can show per-window and per-month columns.
Every month contributes up to three windows -- days 1-10, 11-20 and
21-end -- clipped to the requested range::

    >>> [s.label for s in plan_segments("20250305", "20250325")]
    ['2025-03-05~10', '2025-03-11~20', '2025-03-21~25']

Windows are half-open: :attr:`~apicensus.models.DateSegment.end` is local
midnight of the day after the window's last day.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta

from apicensus.exceptions import ConfigurationError
from apicensus.models import DateSegment

_DATE_FORMAT = "%Y%m%d"

# (first day, last day) of each month third; None means end of month.
_THIRDS: tuple[tuple[int, int | None], ...] = ((1, 10), (11, 20), (21, None))


def parse_date(value: str | None, name: str = "date") -> date:
    """Parse a ``YYYYMMDD`` string.

    Raises:
        ConfigurationError: If *value* is empty or not a valid date.
    """
    if not value or not value.strip():
        raise ConfigurationError(f"{name} is not set (expected YYYYMMDD)")
    try:
        return datetime.strptime(value.strip(), _DATE_FORMAT).date()
    except ValueError as exc:
        raise ConfigurationError(f"{name} '{value}' is not a valid YYYYMMDD date") from exc


def month_key(day: date) -> str:
    """Return the ``YY.MM`` key of *day*'s month."""
    return day.strftime("%y.%m")


def _local_midnight(day: date) -> datetime:
    return datetime.combine(day, time.min).astimezone()


def plan_segments(start_date: str | None, end_date: str | None) -> list[DateSegment]:
    """Plan the ordered, gapless windows covering ``[start_date, end_date]``.

    Args:
        start_date: First day, ``YYYYMMDD``, inclusive.
        end_date: Last day, ``YYYYMMDD``, inclusive.

    Returns:
        Non-overlapping segments in chronological order whose days cover
        the range exactly once.

    Raises:
        ConfigurationError: If either date is missing or unparsable, or the
            start is after the end.
    """
    start = parse_date(start_date, "start date")
    end = parse_date(end_date, "end date")
    if start > end:
        raise ConfigurationError(
            f"start date {start:%Y%m%d} is after end date {end:%Y%m%d}"
        )

    segments: list[DateSegment] = []
    cursor = start.replace(day=1)
    while cursor <= end:
        last_of_month = calendar.monthrange(cursor.year, cursor.month)[1]
        key = month_key(cursor)
        for first, last in _THIRDS:
            window_start = cursor.replace(day=first)
            window_end = cursor.replace(day=last if last is not None else last_of_month)
            clipped_start = max(window_start, start)
            clipped_end = min(window_end, end)
            if clipped_start > clipped_end:
                continue
            segments.append(
                DateSegment(
                    label=f"{clipped_start:%Y-%m-%d}~{clipped_end.day}",
                    start=_local_midnight(clipped_start),
                    end=_local_midnight(clipped_end + timedelta(days=1)),
                    month_key=key,
                    first_day=clipped_start,
                    last_day=clipped_end,
                )
            )
        # First day of the next month.
        cursor = (cursor.replace(day=28) + timedelta(days=4)).replace(day=1)

    return segments
