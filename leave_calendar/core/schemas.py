from typing import Any, Dict, Generic, Optional, TypeVar
from pydantic import BaseModel, Field

T = TypeVar("T")

class ErrorInfo(BaseModel):
    code: Optional[str] = None
    message: str
    field: Optional[str] = None

class ApiResponse(BaseModel, Generic[T]):
    """
    Envelope returned by the approval API. Some endpoints answer with a bare payload instead.

    `ok` and `fail` build the same envelopes the service sends.
    """
    success: Optional[bool] = None
    data: Optional[T] = None
    message: Optional[str] = None
    error: Optional[ErrorInfo] = None
    metadata: Optional[Dict[str, Any]] = Field(default_factory=dict)

    @classmethod
    def ok(cls, data: T, message: Optional[str] = None) -> "ApiResponse[T]":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, message: str, code: str = "ERROR", field: Optional[str] = None) -> "ApiResponse[T]":
        return cls(success=False, message=message, error=ErrorInfo(code=code, message=message, field=field))

def unwrap(payload: Any) -> Any:
    """
    Return the `data` member of an envelope, or the payload itself when it is bare.

    Envelopes are read through `ApiResponse`, so a broken envelope raises
    pydantic's ValidationError just like a body of the wrong shape.
    """
    if isinstance(payload, dict) and "data" in payload:
        return ApiResponse[Any].model_validate(payload).data
    return payload

def error_message(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    if payload.get("message"):
        message = payload["message"]
        # FastAPI/NestJS validation errors may carry a list of messages
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        return str(message)
    error = payload.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    errors = payload.get("errors")
    if isinstance(errors, list) and errors:
        return "; ".join(str(e.get("msg", e)) if isinstance(e, dict) else str(e) for e in errors)
    if payload.get("detail"):
        detail = payload["detail"]
        if isinstance(detail, dict) and detail.get("message"):
            return str(detail["message"])
        return detail if isinstance(detail, str) else str(detail)
    return ""
