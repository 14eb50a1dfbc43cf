import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

from leave_calendar.utils.dates import to_date

class Timesheet(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: str
    date: datetime.date
    working_time: Union[float, str, None] = 0
    type: str = "NORMAL"
    status: str = "PENDING"
    note: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value)

    @field_validator("date", mode="before")
    @classmethod
    def _calendar_day(cls, value):
        return to_date(value)

    @property
    def hours(self) -> float:
        # Decimal columns arrive as strings; anything unparseable counts as zero
        if self.working_time is None or self.working_time == "":
            return 0.0
        try:
            value = Decimal(str(self.working_time))
        except InvalidOperation:
            return 0.0
        if not value.is_finite():
            return 0.0
        return float(value)
