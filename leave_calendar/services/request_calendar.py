import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from leave_calendar.core.config import settings
from leave_calendar.core.exceptions import AppException, AuthenticationError, ConflictError, ValidationError
from leave_calendar.models.calendar import CalendarCellState, Selection, SelectionSummary
from leave_calendar.models.request import PeriodType, Request, RequestType
from leave_calendar.schemas.requests import RequestQuery
from leave_calendar.services.api_client import ApprovalApi
from leave_calendar.services.calendar_cells import CalendarCellStore
from leave_calendar.services.modal_router import (
    LifecyclePhase,
    WorkflowRoute,
    build_update_dto,
    prepare_submission,
    resolve_workflow,
    route_for_request,
    total_days,
    validate_form,
)
from leave_calendar.services.query_cache import QueryCache
from leave_calendar.services.selection import SelectionEngine
from leave_calendar.services.week_submission import MSG_SESSION_EXPIRED
from leave_calendar.utils.dates import DateLike, shift_month, to_date

logger = logging.getLogger(__name__)

REQUESTS_QUERY = "requests"

class SubmissionResult(BaseModel):
    ok: bool
    errors: Dict[str, str] = Field(default_factory=dict)
    message: Optional[str] = None
    request: Optional[Request] = None
    # Selected days where the new period overlaps something already booked
    conflicts: List[date] = Field(default_factory=list)

def _failure(error: AppException) -> SubmissionResult:
    if isinstance(error, ValidationError):
        return SubmissionResult(ok=False, errors={error.field or "__all__": error.message}, message=error.message)
    if isinstance(error, ConflictError):
        return SubmissionResult(ok=False, message=error.message or "This request overlaps an existing request.")
    if isinstance(error, AuthenticationError):
        return SubmissionResult(ok=False, message=MSG_SESSION_EXPIRED)
    return SubmissionResult(ok=False, message=error.message)

class RequestCalendar:
    """
    Command surface of the personal request calendar.

    Wires one `Selection` into the cell store and the selection engine, routes
    the selection to a workflow and talks to the approval API on confirm.
    """

    def __init__(
        self,
        api: ApprovalApi,
        year: Optional[int] = None,
        month: Optional[int] = None,
        request_type: Optional[RequestType] = None,
        cache: Optional[QueryCache] = None,
        today: Optional[date] = None,
        on_open_submission: Optional[Callable[[WorkflowRoute], None]] = None,
    ):
        self.api = api
        self.cache = cache if cache is not None else QueryCache()
        self.today = today or date.today()
        self.filters = RequestQuery(
            year=year or self.today.year,
            month=month or self.today.month,
            request_type=request_type,
        )

        self.selection = Selection()
        self.cells = CalendarCellStore(self.selection)
        self.engine = SelectionEngine(self.selection, self.cells, on_time_mode=self._open_time_submission)

        self.active_route: Optional[WorkflowRoute] = None
        self.active_request: Optional[Request] = None
        self.load_error: Optional[AppException] = None
        self._on_open_submission = on_open_submission

    # --- month view ---
    @property
    def requests_key(self):
        return (REQUESTS_QUERY, self.filters.year, self.filters.month, self.filters.request_type)

    def set_filters(self, year: int, month: int, request_type: Optional[RequestType] = None) -> List[Request]:
        self.filters = RequestQuery(year=year, month=month, request_type=request_type)
        if not self.cache.is_stale(self.requests_key, settings.requests_stale_seconds):
            cached = self.cache.get(self.requests_key)
            self.cells.set_requests(cached)
            return list(cached)
        return self.refresh_requests()

    def previous_month(self) -> List[Request]:
        year, month = shift_month(self.filters.year, self.filters.month, -1)
        return self.set_filters(year, month, self.filters.request_type)

    def next_month(self) -> List[Request]:
        year, month = shift_month(self.filters.year, self.filters.month, 1)
        return self.set_filters(year, month, self.filters.request_type)

    def go_to_today(self) -> List[Request]:
        return self.set_filters(self.today.year, self.today.month, self.filters.request_type)

    def refresh_requests(self) -> List[Request]:
        key = self.requests_key
        token = self.cache.begin_fetch(key)
        try:
            requests = self.api.list_my_requests(key[1], key[2], key[3])
        except AppException as e:
            logger.error(f"Could not load requests for {key[1]}-{key[2]:02d}: {e.message}")
            self.load_error = e
            return list(self.cells.requests)

        # The user may have moved to another month while this was in flight
        if not self.cache.resolve(key, token, requests) or key != self.requests_key:
            logger.debug(f"Discarding stale month view {key}")
            return list(self.cells.requests)

        self.load_error = None
        self.cells.set_requests(requests)
        return requests

    def cells_for_month(self) -> List[CalendarCellState]:
        return self.cells.cells_for_month(self.filters.year, self.filters.month)

    def get_cell_state(self, day: DateLike) -> CalendarCellState:
        return self.cells.get_cell_state(day)

    # --- selection buttons ---
    # A changed selection closes the open workflow; TIME mode reopens its own from the engine callback
    def select_date(self, day: DateLike, request_type: Optional[RequestType] = None) -> List[date]:
        self.close_submission()
        return self.engine.toggle_date_selection(day, request_type)

    def cycle_period_mode(self, day: DateLike) -> PeriodType:
        self.close_submission()
        return self.engine.toggle_date_mode(day)

    def clear_selection(self) -> None:
        self.engine.clear_selection()
        self.close_submission()

    def selection_summary(self) -> Optional[SelectionSummary]:
        return self.engine.selection_summary()

    def current_period(self) -> PeriodType:
        """Period of the most recently picked day."""
        dates = self.selection.selected_dates
        if not dates:
            return PeriodType.FULL_DAY
        return self.cells.mode_of(dates[-1])

    def requested_days(self) -> float:
        return total_days(self.selection.selected_dates, self.current_period())

    # --- workflows ---
    def open_submission(self) -> Optional[WorkflowRoute]:
        if self.selection.is_empty:
            return None
        route = resolve_workflow(self.selection.active_request_type, self.current_period(), LifecyclePhase.CREATE)
        self.active_route = route
        self.active_request = None
        if route is not None and self._on_open_submission is not None:
            self._on_open_submission(route)
        return route

    def _open_time_submission(self, day: date) -> None:
        # A time request is always one day: narrow the selection to it
        if [to_date(d) for d in self.selection.selected_dates] != [day]:
            active = self.selection.active_request_type
            self.engine.clear_selection()
            self.engine.toggle_date_selection(day, active)
        self.open_submission()

    def close_submission(self) -> None:
        self.active_route = None
        self.active_request = None

    def submit_selection(self, form_data: Dict[str, Any]) -> SubmissionResult:
        route = self.active_route or self.open_submission()
        dates = list(self.selection.selected_dates)
        prepared = prepare_submission(route, form_data, dates)
        if not prepared.is_valid:
            return SubmissionResult(ok=False, errors=prepared.errors)

        dto = prepared.dto
        conflicts = [d for d in dates if self.cells.detect_conflicts(d, dto.period_type)]
        if conflicts:
            logger.info(f"Submitting over {len(conflicts)} day(s) with existing requests")

        try:
            created = self.api.create_request(dto)
        except AppException as e:
            return _failure(e)

        logger.info(f"Created {dto.request_type.value}/{dto.period_type.value} request {created.id}")
        self.engine.clear_selection()
        self.close_submission()
        self._reload_after_write()
        return SubmissionResult(ok=True, request=created, conflicts=conflicts, message="Request submitted")

    def open_request(self, request: Request) -> WorkflowRoute:
        route = route_for_request(request)
        self.active_route = route
        self.active_request = request
        if self._on_open_submission is not None:
            self._on_open_submission(route)
        return route

    def submit_edit(self, request: Request, changes: Dict[str, Any]) -> SubmissionResult:
        if not request.is_editable:
            return SubmissionResult(ok=False, errors={"__all__": "Only pending requests can be edited"})

        route = route_for_request(request)
        data = request.model_dump(mode="json", exclude_none=True)
        data.update(changes)
        validation = validate_form(route, data)
        if not validation.is_valid:
            return SubmissionResult(ok=False, errors=validation.errors)

        try:
            updated = self.api.update_request(request.id, build_update_dto(validation.form))
        except AppException as e:
            return _failure(e)

        self.close_submission()
        self._reload_after_write()
        return SubmissionResult(ok=True, request=updated, message="Request updated")

    def cancel_request(self, request: Request) -> SubmissionResult:
        if not request.is_editable:
            return SubmissionResult(ok=False, errors={"__all__": "Only pending requests can be cancelled"})
        try:
            self.api.delete_request(request.id)
        except AppException as e:
            return _failure(e)

        logger.info(f"Cancelled request {request.id}")
        self.close_submission()
        self._reload_after_write()
        return SubmissionResult(ok=True, message="Request cancelled")

    def _reload_after_write(self) -> None:
        self.cache.invalidate((REQUESTS_QUERY,))
        self.refresh_requests()
