import re

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from datetime import date
from typing import Optional

from leave_calendar.models.request import PeriodType, RequestType, TimeType

TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"
SERVER_TIME_PATTERN = r"^(\d{1,2}:\d{2}):\d{2}(?:\.\d+)?$"

def to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)

class RequestFormBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    reason: str = Field(..., min_length=5)
    note: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

# --- Workflow forms ---
class OffRequestForm(RequestFormBase):
    absence_type_id: str = Field(..., min_length=1)

class RemoteRequestForm(RequestFormBase):
    project_id: Optional[str] = None

class OnsiteRequestForm(RequestFormBase):
    project_id: str = Field(..., min_length=1)
    location: str = Field(..., min_length=2)

class TimeRequestForm(RequestFormBase):
    time_type: TimeType
    start_time: str = Field(..., pattern=TIME_PATTERN)
    end_time: str = Field(..., pattern=TIME_PATTERN)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _drop_seconds(cls, value):
        # Stored requests come back as HH:MM:SS
        if isinstance(value, str):
            match = re.match(SERVER_TIME_PATTERN, value.strip())
            if match:
                return match.group(1)
        return value

    @field_validator("end_time")
    @classmethod
    def _end_after_start(cls, value: str, info: ValidationInfo) -> str:
        # Same calendar day; applies to late arrivals and early departures alike
        start = info.data.get("start_time")
        if start and to_minutes(value) <= to_minutes(start):
            raise ValueError("End time must be after start time")
        return value

# --- Wire payloads ---
class CreateRequestDto(BaseModel):
    request_type: RequestType
    period_type: PeriodType
    start_date: date
    end_date: date
    reason: str
    note: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    time_type: Optional[TimeType] = None
    absence_type_id: Optional[str] = None
    project_id: Optional[str] = None
    location: Optional[str] = None

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)

class UpdateRequestDto(BaseModel):
    reason: Optional[str] = None
    note: Optional[str] = None
    absence_type_id: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    time_type: Optional[TimeType] = None
    project_id: Optional[str] = None
    location: Optional[str] = None

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)

class RequestQuery(BaseModel):
    year: int
    month: int = Field(..., ge=1, le=12)
    request_type: Optional[RequestType] = None

    def to_params(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)

class SubmitWeekDto(BaseModel):
    week_start_date: date
