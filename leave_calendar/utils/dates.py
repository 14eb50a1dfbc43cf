"""Calendar-day helpers.

All comparisons in the engine are made on ``YYYY-MM-DD`` keys rather than on
timestamps so that a day never drifts across a timezone boundary.
"""
from datetime import date, datetime, timedelta
from typing import Iterable, List, Union

API_DATE_FORMAT = "%Y-%m-%d"

DateLike = Union[date, datetime, str]

def to_date(value: DateLike) -> date:
    """Coerce a date, datetime or API date string (``2024-06-10`` or ``2024-06-10T00:00:00Z``)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.strptime(value.strip().split("T")[0], API_DATE_FORMAT).date()
    raise TypeError(f"Cannot interpret {value!r} as a calendar day")

def date_key(value: DateLike) -> str:
    return to_date(value).strftime(API_DATE_FORMAT)

def week_start(value: DateLike) -> date:
    """Monday of the week containing ``value``."""
    day = to_date(value)
    return day - timedelta(days=day.weekday())

def week_end(value: DateLike) -> date:
    return week_start(value) + timedelta(days=6)

def week_days(value: DateLike) -> List[date]:
    start = week_start(value)
    return [start + timedelta(days=i) for i in range(7)]

def month_bounds(year: int, month: int):
    first = date(year, month, 1)
    if month == 12:
        last = date(year + 1, 1, 1) - timedelta(days=1)
    else:
        last = date(year, month + 1, 1) - timedelta(days=1)
    return first, last

def month_grid(year: int, month: int) -> List[date]:
    """Every day of the month padded out to whole Monday-first weeks."""
    first, last = month_bounds(year, month)
    start = week_start(first)
    end = week_end(last)
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]

def shift_month(year: int, month: int, delta: int):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1

def chronological_bounds(dates: Iterable[DateLike]):
    days = sorted(to_date(d) for d in dates)
    if not days:
        raise ValueError("No dates to bound")
    return days[0], days[-1]

def format_range(dates: Iterable[DateLike]) -> str:
    """``Jun 10, 2024`` for one day, ``Jun 10 - Jun 12, 2024`` for several."""
    start, end = chronological_bounds(dates)
    if start == end:
        return start.strftime("%b %d, %Y")
    return f"{start.strftime('%b %d')} - {end.strftime('%b %d, %Y')}"
