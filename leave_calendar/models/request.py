import enum
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from leave_calendar.utils.dates import to_date

class RequestType(str, enum.Enum):
    OFF = "OFF"
    REMOTE = "REMOTE"
    ONSITE = "ONSITE"

class PeriodType(str, enum.Enum):
    FULL_DAY = "FULL_DAY"
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    TIME = "TIME"

# Order in which a calendar cell cycles through periods
PERIOD_CYCLE = (PeriodType.FULL_DAY, PeriodType.MORNING, PeriodType.AFTERNOON, PeriodType.TIME)

class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class TimeType(str, enum.Enum):
    LATE_ARRIVAL = "LATE_ARRIVAL"
    EARLY_DEPARTURE = "EARLY_DEPARTURE"

class Request(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore", frozen=True)

    id: str
    user_id: Optional[str] = None
    request_type: RequestType
    period_type: PeriodType
    start_date: date
    end_date: date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    time_type: Optional[TimeType] = None
    reason: str = ""
    absence_type_id: Optional[str] = None
    project_id: Optional[str] = None
    location: Optional[str] = None
    note: Optional[str] = None
    status: RequestStatus = RequestStatus.PENDING
    rejected_reason: Optional[str] = None

    @field_validator("id", "user_id", "absence_type_id", "project_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value):
        return None if value is None else str(value)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _calendar_day(cls, value):
        return to_date(value)

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        if self.period_type == PeriodType.TIME and self.start_date != self.end_date:
            raise ValueError("A TIME request must start and end on the same day")
        return self

    @property
    def is_editable(self) -> bool:
        return self.status == RequestStatus.PENDING

    @property
    def is_time_request(self) -> bool:
        return self.period_type == PeriodType.TIME
