import pytest
from datetime import date

from leave_calendar.services.query_cache import QueryCache
from leave_calendar.services.timesheet_week import WeekTimesheetView
from leave_calendar.services.week_submission import WeekSubmissionCoordinator

@pytest.fixture
def view(api_client, clock):
    coordinator = WeekSubmissionCoordinator(api_client, date(2024, 6, 10), cache=QueryCache(clock=clock))
    return WeekTimesheetView(coordinator, today=date(2024, 6, 12))

def test_totals_tolerate_decimal_strings(view, server):
    server.add_timesheet(date(2024, 6, 10), "4.50")
    server.add_timesheet(date(2024, 6, 10), 3)
    server.add_timesheet(date(2024, 6, 11), "not-a-number")
    server.add_timesheet(date(2024, 6, 17), 8)

    entries = view.load()
    assert len(entries) == 3
    assert len(view.entries_for(date(2024, 6, 10))) == 2
    assert view.daily_total("2024-06-10") == 7.5
    assert view.daily_total(date(2024, 6, 11)) == 0.0
    assert view.week_total() == 7.5

def test_entries_only_for_past_days_of_open_week(view):
    view.load()
    assert view.can_add_entry(date(2024, 6, 10))
    assert view.can_add_entry(date(2024, 6, 12))
    assert not view.can_add_entry(date(2024, 6, 13))
    assert view.lock_message_for(date(2024, 6, 13)) == "Cannot add entries for future dates"
    assert view.lock_message_for(date(2024, 6, 11)) is None

def test_submitted_week_blocks_new_entries(view, server):
    server.add_submission(date(2024, 6, 10))
    view.load()
    assert not view.can_add_entry(date(2024, 6, 11))
    assert view.lock_message_for(date(2024, 6, 11)) == "Week submitted - Editing disabled"

def test_submitting_the_week_drops_cached_timesheets(view, server):
    server.add_timesheet(date(2024, 6, 10), 8)
    view.load()
    assert view.week_total() == 8.0

    assert view.coordinator.submit().ok
    assert view.entries == []
    assert not view.can_add_entry(date(2024, 6, 10))

def test_load_failure_is_recorded(view, server):
    server.fail("GET", "/timesheets", 500, "Boom", times=3)
    assert view.load() == []
    assert view.load_error is not None
