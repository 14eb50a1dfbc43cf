import enum
import datetime
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from leave_calendar.models.request import PeriodType, Request, RequestType
from leave_calendar.utils.dates import date_key

class SelectionMode(str, enum.Enum):
    SINGLE = "single"
    RANGE = "range"

class Selection:
    """
    Transient, client-only set of highlighted days.

    Shared by reference between the selection engine (the only writer) and the
    cell store (a reader). `version` moves on every change so readers can tell
    when their derived views are out of date.
    """

    def __init__(self):
        self._dates: List[datetime.date] = []
        self._active_request_type: Optional[RequestType] = None
        self._mode = SelectionMode.SINGLE
        self._version = 0

    @property
    def selected_dates(self) -> Tuple[datetime.date, ...]:
        return tuple(self._dates)

    @property
    def active_request_type(self) -> Optional[RequestType]:
        return self._active_request_type

    @property
    def selection_mode(self) -> SelectionMode:
        return self._mode

    @property
    def version(self) -> int:
        return self._version

    @property
    def is_empty(self) -> bool:
        return not self._dates

    def contains(self, day: datetime.date) -> bool:
        key = date_key(day)
        return any(date_key(d) == key for d in self._dates)

    def replace(self, dates: Iterable[datetime.date], request_type: Optional[RequestType]) -> None:
        self._dates = list(dates)
        self._active_request_type = request_type if self._dates else None
        self._mode = SelectionMode.RANGE if len(self._dates) > 1 else SelectionMode.SINGLE
        self._version += 1

    def __repr__(self) -> str:
        days = ", ".join(date_key(d) for d in self._dates)
        return f"Selection([{days}], type={self._active_request_type}, mode={self._mode.value})"

class CalendarCellState(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime.date
    mode: PeriodType = PeriodType.FULL_DAY
    covering_requests: Tuple[Request, ...] = ()
    is_selected: bool = False
    has_conflict: bool = False

class SelectionSummary(BaseModel):
    request_type: Optional[RequestType] = None
    date_range: str
    count: int
