"""AdsDash — Business Calendar Helpers.

All automated syncs work on "yesterday" in the business timezone, not UTC.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from adsdash.config import settings

DATE_FORMAT = "%Y-%m-%d"


def business_today(tz_name: Optional[str] = None) -> date:
    """Today's calendar date in the business timezone."""
    return datetime.now(ZoneInfo(tz_name or settings.business_timezone)).date()


def get_yesterday(tz_name: Optional[str] = None) -> str:
    """Yesterday as YYYY-MM-DD in the business timezone."""
    return (business_today(tz_name) - timedelta(days=1)).strftime(DATE_FORMAT)


def parse_date(value: str) -> date:
    return datetime.strptime(value, DATE_FORMAT).date()


def validate_date(d: Optional[str]) -> Optional[str]:
    """Return the date string if valid YYYY-MM-DD, else None."""
    if not d or len(d) != 10:
        return None
    try:
        datetime.strptime(d, DATE_FORMAT)
        return d
    except ValueError:
        return None


def previous_period(since: str, until: str) -> Tuple[str, str]:
    """Window of equal length ending the day before `since`."""
    start = parse_date(since)
    stop = parse_date(until)
    period_days = (stop - start).days + 1
    prev_stop = start - timedelta(days=1)
    prev_start = prev_stop - timedelta(days=period_days - 1)
    return prev_start.strftime(DATE_FORMAT), prev_stop.strftime(DATE_FORMAT)


def monthly_chunks(since: str, until: str) -> List[Tuple[str, str]]:
    """Split [since, until] into calendar-month windows, both ends inclusive.

    The first and last windows are clipped to the requested range.
    """
    start = parse_date(since)
    stop = parse_date(until)
    chunks: List[Tuple[str, str]] = []
    cursor = start
    while cursor <= stop:
        last_day = calendar.monthrange(cursor.year, cursor.month)[1]
        month_end = cursor.replace(day=last_day)
        chunk_end = min(month_end, stop)
        chunks.append((cursor.strftime(DATE_FORMAT), chunk_end.strftime(DATE_FORMAT)))
        cursor = chunk_end + timedelta(days=1)
    return chunks
