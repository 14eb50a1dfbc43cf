import pytest
import requests
from datetime import date

from leave_calendar.core.exceptions import (
    AuthenticationError,
    ConflictError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from leave_calendar.models.request import PeriodType, RequestType
from leave_calendar.models.week_submission import WeekStatus
from leave_calendar.schemas.requests import CreateRequestDto, UpdateRequestDto
from leave_calendar.services.api_client import ApprovalApiClient

class BrokenSession:
    """requests-style session whose every call fails at the transport level."""

    def __init__(self, error):
        self.error = error
        self.calls = 0

    def request(self, method, url, **kwargs):
        self.calls += 1
        raise self.error

def test_list_requests_for_month(api_client, server):
    server.add_request(id="r1", request_type="OFF", start_date=date(2024, 6, 10))
    server.add_request(id="r2", request_type="REMOTE", start_date=date(2024, 7, 1))
    server.add_request(id="r3", request_type="REMOTE", start_date=date(2024, 5, 30), end_date=date(2024, 6, 2))

    requests_ = api_client.list_my_requests(2024, 6)
    assert sorted(r.id for r in requests_) == ["r1", "r3"]

    remote = api_client.list_my_requests(2024, 6, RequestType.REMOTE)
    assert [r.id for r in remote] == ["r3"]

def test_create_update_delete_request(api_client, server):
    dto = CreateRequestDto(
        request_type=RequestType.ONSITE,
        period_type=PeriodType.MORNING,
        start_date=date(2024, 6, 11),
        end_date=date(2024, 6, 11),
        reason="Client workshop",
        project_id="p-7",
        location="Berlin office",
    )
    created = api_client.create_request(dto)
    assert created.request_type == RequestType.ONSITE
    assert created.location == "Berlin office"
    assert created.is_editable

    updated = api_client.update_request(created.id, UpdateRequestDto(location="Munich office"))
    assert updated.location == "Munich office"

    assert api_client.delete_request(created.id) is None
    assert created.id not in server.requests

def test_stale_token_is_rejected(api_client, server):
    api_client.list_my_submissions()
    assert server.count("GET", "/timesheets/week-submissions/my") == 1

    api_client.set_token("expired")
    with pytest.raises(AuthenticationError):
        api_client.list_my_submissions()

def test_conflict_is_not_retried(api_client, server):
    server.add_submission(date(2024, 6, 10))
    with pytest.raises(ConflictError) as exc:
        api_client.submit_week(date(2024, 6, 10))
    assert exc.value.status_code == 409
    assert server.count("POST", "/timesheets/week-submissions") == 1

def test_already_submitted_message_maps_to_conflict(api_client, server):
    server.fail("POST", "/timesheets/week-submissions", 400, "Week has already submitted status")
    with pytest.raises(ConflictError):
        api_client.submit_week(date(2024, 6, 10))

def test_validation_error_keeps_field(api_client, server):
    server.fail("POST", "/requests", 400, "Absence type is required", field="absence_type_id")
    dto = CreateRequestDto(
        request_type=RequestType.OFF,
        period_type=PeriodType.FULL_DAY,
        start_date=date(2024, 6, 10),
        end_date=date(2024, 6, 10),
        reason="Family event",
    )
    with pytest.raises(ValidationError) as exc:
        api_client.create_request(dto)
    assert exc.value.field == "absence_type_id"
    assert exc.value.message == "Absence type is required"

def test_missing_request_is_not_found(api_client):
    with pytest.raises(NotFoundError):
        api_client.delete_request("nope")

def test_server_errors_are_retried(api_client, server):
    server.fail("GET", "/timesheets/week-submissions/my", 503, "Service unavailable", times=2)
    assert api_client.list_my_submissions() == []
    assert server.count("GET", "/timesheets/week-submissions/my") == 3

def test_server_error_after_last_attempt(api_client, server):
    server.fail("GET", "/timesheets/week-submissions/my", 500, "Boom", times=3)
    with pytest.raises(ServerError):
        api_client.list_my_submissions()

def test_transport_failure_retries_then_raises():
    session = BrokenSession(requests.exceptions.ConnectionError("connection refused"))
    api = ApprovalApiClient(base_url="http://approval.invalid", session=session, max_attempts=3, min_wait=0, max_wait=0)
    with pytest.raises(NetworkError) as exc:
        api.list_my_submissions()
    assert exc.value.retryable is True
    assert session.calls == 3

def test_timeout_maps_to_network_error():
    session = BrokenSession(requests.exceptions.ReadTimeout("slow"))
    api = ApprovalApiClient(base_url="http://approval.invalid", session=session, max_attempts=1, min_wait=0, max_wait=0)
    with pytest.raises(NetworkError):
        api.is_week_submitted(date(2024, 6, 10))
    assert session.calls == 1

def test_week_check_and_history(api_client, server):
    assert api_client.is_week_submitted(date(2024, 6, 12)).is_submitted is False

    server.add_submission(date(2024, 6, 10), status="APPROVED")
    check = api_client.is_week_submitted(date(2024, 6, 10))
    assert check.is_submitted is True
    assert check.status == WeekStatus.APPROVED

    history = api_client.list_my_submissions()
    assert history[0].week_start_date == date(2024, 6, 10)
    assert history[0].week_end_date == date(2024, 6, 16)

def test_timesheets_for_range(api_client, server):
    server.add_timesheet(date(2024, 6, 10), "7.50")
    server.add_timesheet(date(2024, 6, 20), 8)
    entries = api_client.list_timesheets(date(2024, 6, 10), date(2024, 6, 16))
    assert len(entries) == 1
    assert entries[0].date == date(2024, 6, 10)
    assert entries[0].hours == 7.5

def test_wrong_shape_answer_is_not_retried(api_client, server):
    server.respond("POST", "/timesheets/week-submissions", {"success": True, "data": {"unexpected": 1}}, status_code=201)

    with pytest.raises(MalformedResponseError) as exc:
        api_client.submit_week(date(2024, 6, 10))
    assert exc.value.status_code == 502
    assert not exc.value.retryable
    assert server.count("POST", "/timesheets/week-submissions") == 1

def test_non_json_answer_is_malformed(api_client, server):
    server.respond("GET", "/requests", "<html>Maintenance</html>")
    with pytest.raises(MalformedResponseError):
        api_client.list_my_requests(2024, 6)
    assert server.count("GET", "/requests") == 1

@pytest.mark.parametrize("body", [
    {"data": {"items": "not-a-list"}},
    {"data": [{"id": "r1", "request_type": "OFF", "start_date": 20240610}]},
    {"data": [], "error": "not an object"},
])
def test_broken_list_answers_are_malformed(api_client, server, body):
    server.respond("GET", "/requests", body)
    with pytest.raises(MalformedResponseError):
        api_client.list_my_requests(2024, 6)
