# Models package
from .request import (
    PERIOD_CYCLE,
    PeriodType,
    Request,
    RequestStatus,
    RequestType,
    TimeType,
)
from .calendar import CalendarCellState, Selection, SelectionMode, SelectionSummary
from .week_submission import LOCKED_STATUSES, WeekStatus, WeekStatusSnapshot, WeekSubmission
from .timesheet import Timesheet

__all__ = [
    "PERIOD_CYCLE",
    "PeriodType",
    "Request",
    "RequestStatus",
    "RequestType",
    "TimeType",
    "CalendarCellState",
    "Selection",
    "SelectionMode",
    "SelectionSummary",
    "LOCKED_STATUSES",
    "WeekStatus",
    "WeekStatusSnapshot",
    "WeekSubmission",
    "Timesheet",
]
