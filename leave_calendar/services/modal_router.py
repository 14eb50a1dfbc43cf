"""
Routing of a finished selection to one submission workflow.

Each `WorkflowKind` carries its own form schema, so "which modal" is decided
once, by `resolve_workflow`, instead of by a chain of string comparisons at
render time.
"""
import enum
import logging
from datetime import date
from typing import Any, Dict, Iterable, Optional, Sequence, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from leave_calendar.core.config import settings
from leave_calendar.models.request import PeriodType, Request, RequestType
from leave_calendar.schemas.requests import (
    CreateRequestDto,
    OffRequestForm,
    OnsiteRequestForm,
    RemoteRequestForm,
    RequestFormBase,
    TimeRequestForm,
    UpdateRequestDto,
)
from leave_calendar.utils.dates import chronological_bounds, to_date

logger = logging.getLogger(__name__)

class WorkflowKind(str, enum.Enum):
    OFF = "OFF"
    REMOTE = "REMOTE"
    ONSITE = "ONSITE"
    TIME = "TIME"

class LifecyclePhase(str, enum.Enum):
    CREATE = "create"
    EDIT = "edit"
    VIEW = "view"

WORKFLOW_FORMS: Dict[WorkflowKind, Type[RequestFormBase]] = {
    WorkflowKind.OFF: OffRequestForm,
    WorkflowKind.REMOTE: RemoteRequestForm,
    WorkflowKind.ONSITE: OnsiteRequestForm,
    WorkflowKind.TIME: TimeRequestForm,
}

# Inline messages shown next to a field, whatever the underlying rule was
FIELD_MESSAGES = {
    "absence_type_id": "Please select an absence type",
    "project_id": "Please select a project for onsite work",
    "location": "Please specify the onsite location",
    "reason": "Reason must be at least 5 characters",
    "time_type": "Please select a time type",
    "start_time": "Start time is required (HH:MM)",
    "end_time": "End time is required (HH:MM)",
}

HALF_DAY_PERIODS = (PeriodType.MORNING, PeriodType.AFTERNOON)

class WorkflowRoute(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: WorkflowKind
    phase: LifecyclePhase = LifecyclePhase.CREATE
    form_model: Type[RequestFormBase]
    required_fields: frozenset
    request_type: Optional[RequestType] = None
    period_type: PeriodType = PeriodType.FULL_DAY

    @property
    def title(self) -> str:
        return f"{self.phase.value.capitalize()} {self.kind.value} Request"

    @property
    def is_read_only(self) -> bool:
        return self.phase == LifecyclePhase.VIEW

class FormValidation(BaseModel):
    is_valid: bool
    errors: Dict[str, str] = Field(default_factory=dict)
    form: Optional[RequestFormBase] = None
    dto: Optional[Any] = None

def required_fields(form_model: Type[BaseModel]) -> frozenset:
    return frozenset(name for name, field in form_model.model_fields.items() if field.is_required())

def resolve_workflow(
    request_type: Optional[RequestType],
    period_type: Optional[PeriodType],
    phase: LifecyclePhase = LifecyclePhase.CREATE,
) -> Optional[WorkflowRoute]:
    """Exactly one route, or None when there is nothing to open."""
    request_type = RequestType(request_type) if request_type else None
    period_type = PeriodType(period_type) if period_type else None

    if period_type == PeriodType.TIME:
        kind = WorkflowKind.TIME
    elif request_type is not None:
        kind = WorkflowKind(request_type.value)
    else:
        return None

    form_model = WORKFLOW_FORMS[kind]
    return WorkflowRoute(
        kind=kind,
        phase=LifecyclePhase(phase),
        form_model=form_model,
        required_fields=required_fields(form_model),
        request_type=request_type,
        period_type=period_type or PeriodType.FULL_DAY,
    )

def route_for_request(request: Request) -> WorkflowRoute:
    """Edit while the request is still pending, view-only once decided."""
    phase = LifecyclePhase.EDIT if request.is_editable else LifecyclePhase.VIEW
    return resolve_workflow(request.request_type, request.period_type, phase)

def total_days(selected_dates: Sequence[date], period_type: Optional[PeriodType]) -> float:
    if len(selected_dates) > 1:
        return float(len(selected_dates))
    if not selected_dates:
        return 0.0
    return 0.5 if period_type in HALF_DAY_PERIODS else 1.0

def validate_form(route: WorkflowRoute, data: Dict[str, Any]) -> FormValidation:
    try:
        form = route.form_model.model_validate(data)
    except PydanticValidationError as e:
        errors: Dict[str, str] = {}
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else "__all__"
            if field in errors:
                continue
            if err["type"] == "value_error":
                # Cross-field rule: keep its own wording
                errors[field] = str(err["msg"]).removeprefix("Value error, ")
            else:
                errors[field] = FIELD_MESSAGES.get(field, err["msg"])
        return FormValidation(is_valid=False, errors=errors)
    return FormValidation(is_valid=True, form=form)

def wire_request_type(route: WorkflowRoute) -> RequestType:
    if route.kind == WorkflowKind.TIME:
        return RequestType(settings.time_request_wire_type)
    return RequestType(route.kind.value)

def build_create_dto(route: WorkflowRoute, form: RequestFormBase, selected_dates: Iterable[date]) -> CreateRequestDto:
    days = [to_date(d) for d in selected_dates]
    start, end = chronological_bounds(days)
    if route.kind == WorkflowKind.TIME and start != end:
        raise ValueError("A time request covers exactly one day")

    period = PeriodType.TIME if route.kind == WorkflowKind.TIME else route.period_type
    if route.kind == WorkflowKind.TIME and route.request_type not in (None, wire_request_type(route)):
        logger.info(
            f"Time request selected under {route.request_type.value}; "
            f"sent as {wire_request_type(route).value}/TIME"
        )

    return CreateRequestDto(
        request_type=wire_request_type(route),
        period_type=period,
        start_date=start,
        end_date=end,
        **form.model_dump(exclude_none=True),
    )

def build_update_dto(form: RequestFormBase) -> UpdateRequestDto:
    return UpdateRequestDto(**form.model_dump(exclude_none=True))

def prepare_submission(
    route: Optional[WorkflowRoute],
    data: Dict[str, Any],
    selected_dates: Sequence[date],
) -> FormValidation:
    """Validate a form and, when valid, attach the normalized CreateRequestDto."""
    if route is None:
        return FormValidation(is_valid=False, errors={"__all__": "Nothing to submit"})
    if route.is_read_only:
        return FormValidation(is_valid=False, errors={"__all__": "This request can no longer be changed"})
    if not selected_dates:
        return FormValidation(is_valid=False, errors={"__all__": "Select at least one day"})

    result = validate_form(route, data)
    if not result.is_valid:
        return result
    try:
        dto = build_create_dto(route, result.form, selected_dates)
    except ValueError as e:
        return FormValidation(is_valid=False, errors={"__all__": str(e)})
    return FormValidation(is_valid=True, form=result.form, dto=dto)
