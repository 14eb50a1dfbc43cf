import logging
from datetime import date
from typing import Any, Dict, List, Optional, Protocol, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError as SchemaError
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from leave_calendar.core.config import settings
from leave_calendar.core.exceptions import MalformedResponseError, NetworkError, error_from_response
from leave_calendar.core.logging import current_request_id
from leave_calendar.core.schemas import error_message, unwrap
from leave_calendar.models.request import Request, RequestType
from leave_calendar.models.timesheet import Timesheet
from leave_calendar.models.week_submission import WeekSubmission
from leave_calendar.schemas.requests import CreateRequestDto, RequestQuery, SubmitWeekDto, UpdateRequestDto
from leave_calendar.schemas.week_submission import WeekSubmittedCheck
from leave_calendar.utils.dates import date_key

logger = logging.getLogger(__name__)

TIMESHEET_PAGE_LIMIT = 200  # a month of days with several entries each

M = TypeVar("M", bound=BaseModel)

class ApprovalApi(Protocol):
    """Operations the engine needs from the request/approval service."""

    def list_my_requests(self, year: int, month: int, request_type: Optional[RequestType] = None) -> List[Request]: ...
    def create_request(self, dto: CreateRequestDto) -> Request: ...
    def update_request(self, request_id: str, dto: UpdateRequestDto) -> Request: ...
    def delete_request(self, request_id: str) -> None: ...
    def list_timesheets(self, start: date, end: date) -> List[Timesheet]: ...
    def is_week_submitted(self, week_start_date: date) -> WeekSubmittedCheck: ...
    def list_my_submissions(self) -> List[WeekSubmission]: ...
    def submit_week(self, week_start_date: date) -> WeekSubmission: ...

def _as_list(payload: Any) -> List[Any]:
    data = unwrap(payload)
    if isinstance(data, dict) and "items" in data:
        data = data["items"]
    if data is None:
        return []
    if not isinstance(data, list):
        raise MalformedResponseError(f"Expected a list from the approval service, got {type(data).__name__}")
    return data

def _malformed(model: Type[BaseModel], error: Exception) -> MalformedResponseError:
    logger.error(f"Unexpected {model.__name__} payload: {error}")
    return MalformedResponseError(
        f"Unexpected {model.__name__} data from the approval service", details={"error": str(error)}
    )

def _parse(model: Type[M], payload: Any) -> M:
    # Field validators raise TypeError on values pydantic cannot coerce
    try:
        return model.model_validate(unwrap(payload) or {})
    except (SchemaError, TypeError) as e:
        raise _malformed(model, e)

def _parse_list(model: Type[M], payload: Any) -> List[M]:
    try:
        return [model.model_validate(item) for item in _as_list(payload)]
    except (SchemaError, TypeError) as e:
        raise _malformed(model, e)

class ApprovalApiClient:
    """
    HTTP transport for the approval API.

    Network failures and 5xx answers are retried with exponential backoff;
    everything else is mapped straight onto the typed error taxonomy. A 2xx
    answer that is not JSON or has the wrong shape raises
    `MalformedResponseError`, which is never retried.
    `session` may be any object with a requests-style `request()` method.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        session: Any = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        min_wait: Optional[float] = None,
        max_wait: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.api.base_url).rstrip("/")
        self.token = token if token is not None else settings.api.token
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.api.timeout_seconds
        self.max_attempts = max_attempts or settings.api.retry_max_attempts
        self.min_wait = settings.api.retry_min_wait if min_wait is None else min_wait
        self.max_wait = settings.api.retry_max_wait if max_wait is None else max_wait

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            settings.request_id_header: current_request_id(),
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type(NetworkError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def _send(self, method: str, path: str, params: Optional[Dict[str, Any]] = None, json: Any = None) -> Any:
        url = f"{self.base_url}{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        logger.info(f"API {method} {path}")

        try:
            response = self.session.request(
                method, url, params=params, json=json, headers=self._headers(), timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            logger.error(f"API timeout: {method} {path}")
            raise NetworkError("The approval service did not answer in time.")
        except requests.exceptions.RequestException as e:
            logger.error(f"API transport error: {method} {path}: {e}")
            raise NetworkError("Network error occurred", details={"error": str(e)})

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            message = error_message(payload)
            logger.warning(f"API error {response.status_code}: {method} {path}: {message}")
            raise error_from_response(
                response.status_code, message, details=payload if isinstance(payload, dict) else None
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.error(f"API {method} {path} answered {response.status_code} with a non-JSON body")
            raise MalformedResponseError("The approval service sent a response that is not JSON.")

    def _call(self, method: str, path: str, params: Optional[Dict[str, Any]] = None, json: Any = None) -> Any:
        return self._retrying()(self._send, method, path, params=params, json=json)

    # --- Requests ---
    def list_my_requests(self, year: int, month: int, request_type: Optional[RequestType] = None) -> List[Request]:
        query = RequestQuery(year=year, month=month, request_type=request_type)
        payload = self._call("GET", "/requests", params=query.to_params())
        return _parse_list(Request, payload)

    def create_request(self, dto: CreateRequestDto) -> Request:
        payload = self._call("POST", "/requests", json=dto.to_payload())
        return _parse(Request, payload)

    def update_request(self, request_id: str, dto: UpdateRequestDto) -> Request:
        payload = self._call("PATCH", f"/requests/{request_id}", json=dto.to_payload())
        return _parse(Request, payload)

    def delete_request(self, request_id: str) -> None:
        self._call("DELETE", f"/requests/{request_id}")

    # --- Timesheets ---
    def list_timesheets(self, start: date, end: date) -> List[Timesheet]:
        params = {"start_date": date_key(start), "end_date": date_key(end), "limit": TIMESHEET_PAGE_LIMIT}
        payload = self._call("GET", "/timesheets", params=params)
        return _parse_list(Timesheet, payload)

    # --- Week submissions ---
    def is_week_submitted(self, week_start_date: date) -> WeekSubmittedCheck:
        payload = self._call(
            "GET", "/timesheets/week-submissions/check", params={"week_start_date": date_key(week_start_date)}
        )
        return _parse(WeekSubmittedCheck, payload)

    def list_my_submissions(self) -> List[WeekSubmission]:
        payload = self._call("GET", "/timesheets/week-submissions/my")
        return _parse_list(WeekSubmission, payload)

    def submit_week(self, week_start_date: date) -> WeekSubmission:
        dto = SubmitWeekDto(week_start_date=week_start_date)
        payload = self._call("POST", "/timesheets/week-submissions", json=dto.model_dump(mode="json"))
        return _parse(WeekSubmission, payload)
