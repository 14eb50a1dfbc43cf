import pytest
import os
import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

# Set env before importing engine components
os.environ["APP_ENV"] = "testing"
os.environ["LEAVE_CALENDAR_API_TOKEN"] = "test-token"

from fastapi import Depends, FastAPI, Request as HttpRequest
from fastapi.responses import JSONResponse, Response
from fastapi.testclient import TestClient

from leave_calendar.core.schemas import ApiResponse
from leave_calendar.models.request import PeriodType, Request, RequestType
from leave_calendar.services.api_client import ApprovalApiClient
from leave_calendar.utils.dates import date_key, month_bounds, week_end, week_start

TEST_TOKEN = "test-token"

class FakeApiError(Exception):
    def __init__(self, status_code: int, message: str, code: str = "ERROR", field: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        self.field = field

class FakeReply(Exception):
    """Canned answer for one call; a str body is sent as text/html."""
    def __init__(self, body: Any, status_code: int = 200):
        self.body = body
        self.status_code = status_code

class FakeApprovalServer:
    """In-memory approval API speaking the same envelopes as the real service."""

    def __init__(self):
        self.token: Optional[str] = TEST_TOKEN
        self.requests: Dict[str, Dict[str, Any]] = {}
        self.timesheets: List[Dict[str, Any]] = []
        self.submissions: List[Dict[str, Any]] = []
        self.calls: List[Tuple[str, str]] = []
        self.failures: Dict[Tuple[str, str], List[Exception]] = {}
        self.app = self._build_app()

    # --- test helpers ---
    def fail(self, method: str, path: str, status_code: int, message: str, times: int = 1, field: Optional[str] = None):
        queue = self.failures.setdefault((method, path), [])
        queue.extend(FakeApiError(status_code, message, field=field) for _ in range(times))

    def respond(self, method: str, path: str, body: Any, status_code: int = 200, times: int = 1):
        """Answer the next call(s) with `body` instead of running the route."""
        queue = self.failures.setdefault((method, path), [])
        queue.extend(FakeReply(body, status_code) for _ in range(times))

    def count(self, method: str, path: str) -> int:
        return sum(1 for call in self.calls if call == (method, path))

    def add_request(self, **fields) -> Dict[str, Any]:
        record = {
            "id": fields.pop("id", uuid.uuid4().hex[:8]),
            "user_id": "u-1",
            "reason": "Seeded request",
            "status": "PENDING",
            "period_type": PeriodType.FULL_DAY.value,
        }
        record.update({k: (date_key(v) if isinstance(v, date) else getattr(v, "value", v)) for k, v in fields.items()})
        record.setdefault("end_date", record["start_date"])
        self.requests[record["id"]] = record
        return record

    def add_timesheet(self, day: date, working_time: Any, **fields) -> Dict[str, Any]:
        record = {"id": uuid.uuid4().hex[:8], "date": f"{date_key(day)}T00:00:00.000Z", "working_time": working_time}
        record.update(fields)
        self.timesheets.append(record)
        return record

    def add_submission(self, week_start_date: date, status: str = "SUBMITTED") -> Dict[str, Any]:
        record = {
            "id": uuid.uuid4().hex[:8],
            "user_id": "u-1",
            "week_start_date": date_key(week_start(week_start_date)),
            "week_end_date": date_key(week_end(week_start_date)),
            "status": status,
        }
        self.submissions.append(record)
        return record

    def find_submission(self, week_start_date: date) -> Optional[Dict[str, Any]]:
        key = date_key(week_start(week_start_date))
        return next((s for s in self.submissions if s["week_start_date"] == key), None)

    # --- app ---
    def _build_app(self) -> FastAPI:
        server = self

        async def record_and_gate(request: HttpRequest):
            server.calls.append((request.method, request.url.path))
            if server.token and request.headers.get("Authorization") != f"Bearer {server.token}":
                raise FakeApiError(401, "Unauthorized", code="AUTH_FAILED")
            queue = server.failures.get((request.method, request.url.path))
            if queue:
                raise queue.pop(0)

        app = FastAPI(dependencies=[Depends(record_and_gate)])

        @app.exception_handler(FakeApiError)
        async def fake_error_handler(request: HttpRequest, exc: FakeApiError):
            body = ApiResponse.fail(exc.message, code=exc.code, field=exc.field).model_dump()
            if exc.field:
                body["field"] = exc.field
            return JSONResponse(status_code=exc.status_code, content=body)

        @app.exception_handler(FakeReply)
        async def fake_reply_handler(request: HttpRequest, exc: FakeReply):
            if isinstance(exc.body, str):
                return Response(status_code=exc.status_code, content=exc.body, media_type="text/html")
            return JSONResponse(status_code=exc.status_code, content=exc.body)

        @app.get("/requests")
        def list_requests(year: int, month: int, request_type: Optional[str] = None):
            first, last = month_bounds(year, month)
            items = [
                r for r in server.requests.values()
                if r["start_date"] <= date_key(last) and r["end_date"] >= date_key(first)
                and (request_type is None or r["request_type"] == request_type)
            ]
            return ApiResponse.ok(items).model_dump()

        @app.post("/requests", status_code=201)
        def create_request(payload: Dict[str, Any]):
            record = server.add_request(**payload)
            return ApiResponse.ok(record, message="Request created").model_dump()

        @app.patch("/requests/{request_id}")
        def update_request(request_id: str, payload: Dict[str, Any]):
            record = server.requests.get(request_id)
            if record is None:
                raise FakeApiError(404, "Request not found", code="NOT_FOUND")
            if record["status"] != "PENDING":
                raise FakeApiError(400, "Only pending requests can be updated", code="VALIDATION_ERROR")
            record.update(payload)
            return ApiResponse.ok(record).model_dump()

        @app.delete("/requests/{request_id}", status_code=204)
        def delete_request(request_id: str):
            if server.requests.pop(request_id, None) is None:
                raise FakeApiError(404, "Request not found", code="NOT_FOUND")
            return Response(status_code=204)

        @app.get("/timesheets")
        def list_timesheets(start_date: str, end_date: str, limit: int = 50):
            items = [t for t in server.timesheets if start_date <= t["date"][:10] <= end_date]
            return ApiResponse.ok(items[:limit]).model_dump()

        @app.get("/timesheets/week-submissions/check")
        def check_week(week_start_date: str):
            match = server.find_submission(date.fromisoformat(week_start_date))
            data = {"isSubmitted": match is not None, "status": match["status"] if match else None}
            return ApiResponse.ok(data).model_dump()

        @app.get("/timesheets/week-submissions/my")
        def my_submissions():
            return ApiResponse.ok(list(server.submissions)).model_dump()

        @app.post("/timesheets/week-submissions", status_code=201)
        def submit_week(payload: Dict[str, Any]):
            day = date.fromisoformat(payload["week_start_date"])
            if server.find_submission(day) is not None:
                raise FakeApiError(409, "Week already submitted", code="CONFLICT")
            record = server.add_submission(day)
            return ApiResponse.ok(record, message="Week submitted").model_dump()

        return app

class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

@pytest.fixture(scope="function")
def make_request():
    """Helper fixture to build Request models directly, without the fake server."""
    def _make_request(request_id, start, end=None, period_type=PeriodType.FULL_DAY, request_type=RequestType.OFF, **fields) -> Request:
        return Request(
            id=request_id,
            request_type=request_type,
            period_type=period_type,
            start_date=start,
            end_date=end or start,
            reason=fields.pop("reason", "Family matters"),
            **fields,
        )
    return _make_request

@pytest.fixture(scope="function")
def server():
    """A fresh fake approval API for each test."""
    return FakeApprovalServer()

@pytest.fixture(scope="function")
def client(server):
    with TestClient(server.app) as c:
        yield c

@pytest.fixture(scope="function")
def api_client(client):
    """Real ApprovalApiClient whose HTTP session is the TestClient; no backoff waits."""
    return ApprovalApiClient(
        base_url="http://testserver",
        token=TEST_TOKEN,
        session=client,
        max_attempts=3,
        min_wait=0,
        max_wait=0,
    )

@pytest.fixture(scope="function")
def clock():
    return FakeClock()
