from typing import Dict, Iterable, List, Tuple

from leave_calendar.models.calendar import CalendarCellState, Selection
from leave_calendar.models.request import PeriodType, Request
from leave_calendar.services import interval_index
from leave_calendar.utils.dates import DateLike, date_key, month_grid, to_date

# Fields a caller may change directly; everything else on a cell is derived
MUTABLE_CELL_FIELDS = frozenset({"mode"})

class CalendarCellStore:
    """
    Memoized per-day view model.

    A cell is recomputed from (selection, requests) the first time it is read
    after either input changed. Only the cycling `mode` is owned here; covering
    requests, selection and conflict flags are always derived.
    """

    def __init__(self, selection: Selection, requests: Iterable[Request] = ()):
        self._selection = selection
        self._requests: Tuple[Request, ...] = tuple(requests)
        self._requests_version = 0
        self._modes: Dict[str, PeriodType] = {}
        self._memo: Dict[str, Tuple[Tuple[int, int], CalendarCellState]] = {}

    @property
    def requests(self) -> Tuple[Request, ...]:
        return self._requests

    def set_requests(self, requests: Iterable[Request]) -> None:
        self._requests = tuple(requests)
        self._requests_version += 1
        self._memo.clear()

    def mode_of(self, day: DateLike) -> PeriodType:
        return self._modes.get(date_key(day), PeriodType.FULL_DAY)

    def _stamp(self) -> Tuple[int, int]:
        return (self._selection.version, self._requests_version)

    def get_cell_state(self, day: DateLike) -> CalendarCellState:
        key = date_key(day)
        stamp = self._stamp()
        cached = self._memo.get(key)
        if cached and cached[0] == stamp:
            return cached[1]

        covering = interval_index.covering_requests(key, self._requests)
        state = CalendarCellState(
            date=to_date(day),
            mode=self.mode_of(key),
            covering_requests=tuple(covering),
            is_selected=self._selection.contains(to_date(day)),
            has_conflict=interval_index.has_conflict(covering),
        )
        self._memo[key] = (stamp, state)
        return state

    def update_cell_state(self, day: DateLike, **changes) -> CalendarCellState:
        derived = set(changes) - MUTABLE_CELL_FIELDS
        if derived:
            raise ValueError(f"Cell fields {sorted(derived)} are derived and cannot be set")

        key = date_key(day)
        if "mode" in changes:
            self._modes[key] = PeriodType(changes["mode"])
        self._memo.pop(key, None)
        return self.get_cell_state(key)

    def detect_conflicts(self, day: DateLike, period_type: PeriodType) -> bool:
        return interval_index.conflicts_with_period(day, period_type, self.get_cell_state(day).covering_requests)

    def cells_for_month(self, year: int, month: int) -> List[CalendarCellState]:
        return [self.get_cell_state(day) for day in month_grid(year, month)]

