import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from leave_calendar.core.config import settings

# Correlation id of the current user action (one click, one submit); sent as X-Request-ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        req_id = request_id_var.get()
        if req_id:
            log_record["request_id"] = req_id

        log_record.setdefault("service", settings.app_name)
        log_record.setdefault("env", settings.environment)
        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = (log_record.get("level") or record.levelname).upper()

def new_request_id() -> str:
    """Start a new correlation scope and return its id."""
    req_id = uuid.uuid4().hex
    request_id_var.set(req_id)
    return req_id

def current_request_id() -> str:
    return request_id_var.get() or new_request_id()

def setup_logging(level: Optional[str] = None) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(CustomJsonFormatter("%(timestamp) %(level) %(name) %(message)"))

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level or settings.log_level)

    # The HTTP stack logs every connection at DEBUG/INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)
