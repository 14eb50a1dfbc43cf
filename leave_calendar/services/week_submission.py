import enum
import logging
from datetime import date
from typing import List, Optional

from pydantic import BaseModel

from leave_calendar.core.config import settings
from leave_calendar.core.exceptions import AppException, AuthenticationError, ConflictError
from leave_calendar.models.week_submission import NOT_SUBMITTED, WeekStatus, WeekStatusSnapshot, WeekSubmission
from leave_calendar.services.api_client import ApprovalApi
from leave_calendar.services.query_cache import QueryCache
from leave_calendar.utils.dates import DateLike, date_key, week_start

logger = logging.getLogger(__name__)

STATUS_QUERY = "week-submission-status"
SUBMISSIONS_QUERY = "week-submissions"
TIMESHEETS_QUERY = "timesheets"

MSG_SUBMITTED = "Week submitted for approval successfully!"
MSG_ALREADY_SUBMITTED = "This week has already been submitted for approval."
MSG_OVERLAPPING = "Cannot submit overlapping weeks that are already submitted."
MSG_SESSION_EXPIRED = "Your session has expired. Please log in again."
MSG_NETWORK = "Network error occurred. Please check your connection and try again."

class SubmitOutcomeKind(str, enum.Enum):
    SUBMITTED = "submitted"
    ALREADY_SUBMITTED = "already_submitted"
    AUTH_REQUIRED = "auth_required"
    FAILED = "failed"

class SubmitOutcome(BaseModel):
    kind: SubmitOutcomeKind
    message: str
    retryable: bool = False
    submission: Optional[WeekSubmission] = None

    @property
    def ok(self) -> bool:
        return self.kind == SubmitOutcomeKind.SUBMITTED

    @property
    def is_informational(self) -> bool:
        return self.kind == SubmitOutcomeKind.ALREADY_SUBMITTED

class ButtonPhase(str, enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"

class WeekSubmissionCoordinator:
    """
    Single source of truth for one work week's approval status.

    Reads reconcile the direct "is submitted" endpoint with the requester's
    submission history. The submit action writes SUBMITTED into the cache
    before the network call and replays the snapshot if the call fails.
    """

    def __init__(
        self,
        api: ApprovalApi,
        week_start_date: DateLike,
        cache: Optional[QueryCache] = None,
        user_id: Optional[str] = None,
    ):
        self.api = api
        self.week_start_date: date = week_start(week_start_date)
        self.cache = cache if cache is not None else QueryCache()
        self.user_id = user_id
        self.phase = ButtonPhase.IDLE
        self.last_error: Optional[AppException] = None
        self.status_error: Optional[AppException] = None

    @property
    def status_key(self):
        return (STATUS_QUERY, date_key(self.week_start_date), self.user_id)

    @property
    def submissions_key(self):
        return (SUBMISSIONS_QUERY, self.user_id)

    # --- read path ---
    def load_submissions(self) -> List[WeekSubmission]:
        if not self.cache.is_stale(self.submissions_key, settings.submissions_stale_seconds):
            return self.cache.get(self.submissions_key)
        token = self.cache.begin_fetch(self.submissions_key)
        submissions = self.api.list_my_submissions()
        self.cache.resolve(self.submissions_key, token, submissions)
        return submissions

    def find_in_history(self, submissions: List[WeekSubmission]) -> Optional[WeekSubmission]:
        target = date_key(self.week_start_date)
        return next((s for s in submissions if date_key(s.week_start_date) == target), None)

    def derive_status(self) -> WeekStatusSnapshot:
        self.status_error = None

        # 1. Direct endpoint
        try:
            check = self.api.is_week_submitted(self.week_start_date)
            if check.is_submitted:
                return WeekStatusSnapshot(is_submitted=True, status=check.status or WeekStatus.SUBMITTED)
        except AppException as e:
            logger.warning(f"Week status check failed for {date_key(self.week_start_date)}: {e.message}")
            self.status_error = e

        # 2. Submission history
        try:
            match = self.find_in_history(self.load_submissions())
        except AppException as e:
            logger.warning(f"Submission history unavailable: {e.message}")
            self.status_error = self.status_error or e
            match = None

        if match is not None and match.status != WeekStatus.NOT_SUBMITTED:
            return WeekStatusSnapshot(is_submitted=True, status=match.status, submission=match)

        # 3. Nothing found (or nothing reachable): let the user try
        return NOT_SUBMITTED

    def refresh(self) -> WeekStatusSnapshot:
        token = self.cache.begin_fetch(self.status_key)
        snapshot = self.derive_status()
        if not self.cache.resolve(self.status_key, token, snapshot):
            logger.debug(f"Status for {date_key(self.week_start_date)} changed while it was being read")
        return self.status

    @property
    def status(self) -> WeekStatusSnapshot:
        return self.cache.get(self.status_key, NOT_SUBMITTED)

    def current_status(self) -> WeekStatusSnapshot:
        if self.cache.is_stale(self.status_key, settings.week_status_stale_seconds):
            return self.refresh()
        return self.status

    # --- button surface ---
    @property
    def is_submitting(self) -> bool:
        return self.phase == ButtonPhase.SUBMITTING

    @property
    def is_locked(self) -> bool:
        return self.status.is_locked

    @property
    def is_button_disabled(self) -> bool:
        return self.is_locked or self.is_submitting

    @property
    def button_text(self) -> str:
        if self.is_submitting:
            return "Submitting..."
        status = self.status.status
        if status == WeekStatus.APPROVED:
            return "Week Approved"
        if status == WeekStatus.REJECTED:
            return "Week Rejected"
        if status == WeekStatus.SUBMITTED:
            return "Week Already Submitted"
        return "Submit Week for Approval"

    @property
    def lock_message(self) -> Optional[str]:
        if not self.is_locked:
            return None
        return f"Week {self.status.status.value.lower()} - Editing disabled"

    # --- write path ---
    def submit(self) -> SubmitOutcome:
        if self.is_submitting or self.is_locked:
            logger.info(f"Week {date_key(self.week_start_date)} already submitted; not sending again")
            return SubmitOutcome(
                kind=SubmitOutcomeKind.ALREADY_SUBMITTED,
                message=MSG_ALREADY_SUBMITTED,
                submission=self.status.submission,
            )

        # 1. Snapshot, 2. optimistic write
        memento = self.cache.apply_optimistic(
            self.status_key, WeekStatusSnapshot(is_submitted=True, status=WeekStatus.SUBMITTED)
        )
        self.phase = ButtonPhase.SUBMITTING
        self.last_error = None
        logger.info(f"Submitting week {date_key(self.week_start_date)} for approval")

        # 3. Network call
        try:
            submission = self.api.submit_week(self.week_start_date)
        except AppException as e:
            # 5. Roll back to exactly what was there before
            self.cache.restore(memento)
            self.phase = ButtonPhase.IDLE
            self.last_error = e
            return self._failure_outcome(e)
        except Exception:
            self.cache.restore(memento)
            self.phase = ButtonPhase.IDLE
            raise

        # 4. Replace the optimistic value with server truth
        self.phase = ButtonPhase.IDLE
        for prefix in (STATUS_QUERY, SUBMISSIONS_QUERY, TIMESHEETS_QUERY):
            self.cache.invalidate((prefix,))
        self.cache.set(
            self.status_key,
            WeekStatusSnapshot(is_submitted=True, status=submission.status, submission=submission),
        )
        logger.info(f"Week {date_key(self.week_start_date)} submitted ({submission.status.value})")
        return SubmitOutcome(kind=SubmitOutcomeKind.SUBMITTED, message=MSG_SUBMITTED, submission=submission)

    def _failure_outcome(self, error: AppException) -> SubmitOutcome:
        if isinstance(error, ConflictError):
            logger.info(f"Week {date_key(self.week_start_date)} rejected as duplicate: {error.message}")
            # Terminal: pick up whatever the server now says about this week
            self.cache.invalidate(self.submissions_key)
            self.refresh()
            message = MSG_OVERLAPPING if "overlapping" in error.message.lower() else MSG_ALREADY_SUBMITTED
            return SubmitOutcome(kind=SubmitOutcomeKind.ALREADY_SUBMITTED, message=message)

        if isinstance(error, AuthenticationError):
            logger.warning("Session expired during week submission")
            return SubmitOutcome(kind=SubmitOutcomeKind.AUTH_REQUIRED, message=MSG_SESSION_EXPIRED)

        logger.error(f"Week submission failed: {error.message}")
        if error.retryable:
            return SubmitOutcome(kind=SubmitOutcomeKind.FAILED, message=MSG_NETWORK, retryable=True)
        return SubmitOutcome(
            kind=SubmitOutcomeKind.FAILED,
            message=f"Failed to submit week: {error.message or 'Unknown error'}",
        )
