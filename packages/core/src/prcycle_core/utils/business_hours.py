from __future__ import annotations

from datetime import datetime, timedelta


def is_business_day(moment: datetime) -> bool:
    """Monday to Friday."""
    return moment.weekday() < 5


def business_hours_between(start: datetime, end: datetime) -> float:
    """Hours between two instants counting weekdays only (24h per weekday).

    Returns 0.0 when end is not after start. Both datetimes must share the
    same tzinfo; days are split at midnight in that zone.
    """
    if start >= end:
        return 0.0

    total = timedelta(0)
    cursor = start
    while cursor < end:
        next_midnight = (cursor + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
        segment_end = min(next_midnight, end)
        if is_business_day(cursor):
            total += segment_end - cursor
        cursor = segment_end
    return total.total_seconds() / 3600


def hours_between(start: datetime, end: datetime, business_only: bool = False) -> float:
    """Signed wall-clock hours from start to end, or weekday-only hours."""
    if business_only:
        if end < start:
            return -business_hours_between(end, start)
        return business_hours_between(start, end)
    return (end - start).total_seconds() / 3600


def format_hours(hours: float | None) -> str:
    """'-' for absent, '3.50h' under a day, '2d 4h' above."""
    if hours is None:
        return "-"
    days = int(hours // 24)
    if days > 0:
        return f"{days}d {round(hours % 24)}h"
    return f"{hours:.2f}h"
