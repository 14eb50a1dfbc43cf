import enum
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from leave_calendar.utils.dates import to_date

class WeekStatus(str, enum.Enum):
    NOT_SUBMITTED = "NOT_SUBMITTED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

# Once a week reaches one of these the client never offers to submit it again
LOCKED_STATUSES = frozenset({WeekStatus.SUBMITTED, WeekStatus.APPROVED, WeekStatus.REJECTED})

class WeekSubmission(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: Optional[str] = None
    user_id: Optional[str] = None
    week_start_date: date
    week_end_date: Optional[date] = None
    status: WeekStatus = WeekStatus.SUBMITTED
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value):
        return None if value is None else str(value)

    @field_validator("week_start_date", "week_end_date", mode="before")
    @classmethod
    def _calendar_day(cls, value):
        return None if value is None else to_date(value)

class WeekStatusSnapshot(BaseModel):
    """What the client currently believes about one week."""
    model_config = ConfigDict(frozen=True)

    is_submitted: bool = False
    status: WeekStatus = WeekStatus.NOT_SUBMITTED
    submission: Optional[WeekSubmission] = None

    @property
    def is_locked(self) -> bool:
        return self.status in LOCKED_STATUSES

NOT_SUBMITTED = WeekStatusSnapshot()
