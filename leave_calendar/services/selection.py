import logging
from datetime import date
from typing import Callable, List, Optional

from leave_calendar.models.calendar import Selection, SelectionSummary
from leave_calendar.models.request import PERIOD_CYCLE, PeriodType, RequestType
from leave_calendar.services.calendar_cells import CalendarCellStore
from leave_calendar.utils.dates import DateLike, date_key, format_range, to_date

logger = logging.getLogger(__name__)

class SelectionEngine:
    """
    State machine over a shared `Selection`.

    Empty -> SingleType(type, dates). Days can only be batched under one
    request type; choosing a day under another type starts a fresh selection.
    Never touches the network.
    """

    def __init__(
        self,
        selection: Selection,
        cells: CalendarCellStore,
        on_time_mode: Optional[Callable[[date], None]] = None,
    ):
        self.selection = selection
        self.cells = cells
        self._on_time_mode = on_time_mode

    def toggle_date_selection(self, day: DateLike, request_type: Optional[RequestType] = None) -> List[date]:
        day = to_date(day)
        current = list(self.selection.selected_dates)
        active = self.selection.active_request_type
        request_type = RequestType(request_type) if request_type else None

        if self.selection.contains(day):
            # Deselect; an emptied selection forgets its request type
            key = date_key(day)
            remaining = [d for d in current if date_key(d) != key]
            self.selection.replace(remaining, active)
        elif not current:
            self.selection.replace([day], request_type)
        elif request_type is not None and request_type == active:
            self.selection.replace(current + [day], active)
        else:
            self.selection.replace([day], request_type)

        logger.debug(
            f"Selection changed: {date_key(day)} type={request_type} "
            f"total={len(self.selection.selected_dates)}"
        )
        return list(self.selection.selected_dates)

    def toggle_date_mode(self, day: DateLike) -> PeriodType:
        day = to_date(day)
        current = self.cells.mode_of(day)
        next_mode = PERIOD_CYCLE[(PERIOD_CYCLE.index(current) + 1) % len(PERIOD_CYCLE)]
        self.cells.update_cell_state(day, mode=next_mode)
        logger.debug(f"Mode toggled: {date_key(day)} {current.value} -> {next_mode.value}")

        # A TIME request is single-day with nothing left to refine
        if next_mode == PeriodType.TIME and self._on_time_mode is not None:
            self._on_time_mode(day)
        return next_mode

    def clear_selection(self) -> None:
        self.selection.replace([], None)

    @property
    def has_selection(self) -> bool:
        return not self.selection.is_empty

    @property
    def is_multi_selection(self) -> bool:
        return len(self.selection.selected_dates) > 1

    @property
    def selected_date_count(self) -> int:
        return len(self.selection.selected_dates)

    def selection_summary(self) -> Optional[SelectionSummary]:
        dates = self.selection.selected_dates
        if not dates:
            return None
        return SelectionSummary(
            request_type=self.selection.active_request_type,
            date_range=format_range(dates),
            count=len(dates),
        )
