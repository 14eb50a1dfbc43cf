import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from leave_calendar.core.exceptions import AppException
from leave_calendar.models.timesheet import Timesheet
from leave_calendar.services.week_submission import TIMESHEETS_QUERY, WeekSubmissionCoordinator
from leave_calendar.utils.dates import DateLike, date_key, to_date, week_days, week_end

logger = logging.getLogger(__name__)

class WeekTimesheetView:
    """Read model of one week's timesheet, gated by that week's approval status."""

    def __init__(self, coordinator: WeekSubmissionCoordinator, today: Optional[date] = None):
        self.coordinator = coordinator
        self.api = coordinator.api
        self.cache = coordinator.cache
        self.today = today or date.today()
        self.load_error: Optional[AppException] = None

    @property
    def week_start_date(self) -> date:
        return self.coordinator.week_start_date

    @property
    def days(self) -> List[date]:
        return week_days(self.week_start_date)

    @property
    def timesheets_key(self):
        return (TIMESHEETS_QUERY, date_key(self.week_start_date), self.coordinator.user_id)

    def load(self) -> List[Timesheet]:
        key = self.timesheets_key
        token = self.cache.begin_fetch(key)
        try:
            entries = self.api.list_timesheets(self.week_start_date, week_end(self.week_start_date))
        except AppException as e:
            logger.error(f"Could not load timesheets for week {key[1]}: {e.message}")
            self.load_error = e
            return self.entries
        self.load_error = None
        self.cache.resolve(key, token, entries)
        self.coordinator.current_status()
        return self.entries

    @property
    def entries(self) -> List[Timesheet]:
        return list(self.cache.get(self.timesheets_key, []))

    def _by_day(self) -> Dict[str, List[Timesheet]]:
        grouped = defaultdict(list)
        for entry in self.entries:
            grouped[date_key(entry.date)].append(entry)
        return grouped

    def entries_for(self, day: DateLike) -> List[Timesheet]:
        return self._by_day().get(date_key(day), [])

    def daily_total(self, day: DateLike) -> float:
        return sum(entry.hours for entry in self.entries_for(day))

    def week_total(self) -> float:
        return sum(self.daily_total(day) for day in self.days)

    def can_add_entry(self, day: DateLike) -> bool:
        # No entries for future days or for a week already sent for approval
        return to_date(day) <= self.today and not self.coordinator.is_locked

    def lock_message_for(self, day: DateLike) -> Optional[str]:
        if self.coordinator.is_locked:
            return self.coordinator.lock_message
        if to_date(day) > self.today:
            return "Cannot add entries for future dates"
        return None
