import os
import logging
from pydantic import BaseModel, Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

class ApiSettings(BaseModel):
    base_url: str = Field(default=os.getenv("LEAVE_CALENDAR_API_URL", "http://localhost:3000/time-management"))
    token: Optional[str] = Field(default=os.getenv("LEAVE_CALENDAR_API_TOKEN"))
    timeout_seconds: float = Field(default=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30")))

    # Transport retry policy (exponential backoff, network/5xx only)
    retry_max_attempts: int = Field(default=int(os.getenv("RETRY_MAX_ATTEMPTS", "3")))
    retry_min_wait: float = Field(default=float(os.getenv("RETRY_MIN_WAIT", "4")))
    retry_max_wait: float = Field(default=float(os.getenv("RETRY_MAX_WAIT", "10")))

class Config(BaseModel):
    app_name: str = "Leave Calendar Engine"
    environment: str = os.getenv("APP_ENV", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    api: ApiSettings = ApiSettings()

    # Cache freshness
    week_status_stale_seconds: float = float(os.getenv("WEEK_STATUS_STALE_SECONDS", "30"))
    submissions_stale_seconds: float = float(os.getenv("SUBMISSIONS_STALE_SECONDS", "60"))
    requests_stale_seconds: float = float(os.getenv("REQUESTS_STALE_SECONDS", "30"))

    # Late arrival / early departure requests travel as this request type with period TIME
    time_request_wire_type: str = os.getenv("TIME_REQUEST_WIRE_TYPE", "OFF")

settings = Config()

# --- Startup Validation ---
_logger = logging.getLogger(__name__)
if settings.environment != "development" and not settings.api.token:
    _logger.warning("LEAVE_CALENDAR_API_TOKEN is not set; requests will be sent unauthenticated.")
