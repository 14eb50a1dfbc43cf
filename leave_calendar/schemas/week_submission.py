from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Optional

from leave_calendar.models.week_submission import WeekStatus

class WeekSubmittedCheck(BaseModel):
    """Answer of the direct "is this week submitted" endpoint."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    is_submitted: bool = Field(default=False, validation_alias=AliasChoices("is_submitted", "isSubmitted"))
    status: Optional[WeekStatus] = None
