"""
Pure predicates over a calendar day and a set of requests.

Nothing here holds state, so every function is safe to call on each recompute.
"""
from itertools import combinations
from typing import Iterable, List

from leave_calendar.models.request import PeriodType, Request
from leave_calendar.utils.dates import DateLike, date_key

def covering_requests(day: DateLike, requests: Iterable[Request]) -> List[Request]:
    """Requests whose inclusive [start_date, end_date] contains `day`."""
    key = date_key(day)
    return [
        r for r in requests
        if date_key(r.start_date) <= key <= date_key(r.end_date)
    ]

def periods_conflict(a: PeriodType, b: PeriodType) -> bool:
    # Full day blocks everything; identical periods block each other.
    # Two TIME periods always conflict, whatever their actual hours.
    if a == PeriodType.FULL_DAY or b == PeriodType.FULL_DAY:
        return True
    return a == b

def conflicts(a: Request, b: Request) -> bool:
    return periods_conflict(a.period_type, b.period_type)

def has_conflict(requests: Iterable[Request]) -> bool:
    return any(conflicts(a, b) for a, b in combinations(list(requests), 2))

def conflicts_with_period(day: DateLike, period_type: PeriodType, requests: Iterable[Request]) -> bool:
    """Would a new `period_type` request on `day` clash with one already there?"""
    return any(
        periods_conflict(existing.period_type, period_type)
        for existing in covering_requests(day, requests)
    )
