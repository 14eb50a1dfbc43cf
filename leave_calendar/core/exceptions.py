from typing import Any, Dict, Optional

class AppException(Exception):
    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class ValidationError(AppException):
    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.field = field
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=details
        )

class ConflictError(AppException):
    """Overlapping/duplicate request or an already-submitted week. Never retried."""
    def __init__(self, message: str = "Resource already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details
        )

class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )

class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )

class NotFoundError(AppException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND"
        )

class NetworkError(AppException):
    retryable = True

    def __init__(self, message: str = "Network error occurred", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=0,
            error_code="NETWORK_ERROR",
            details=details
        )

class ServerError(NetworkError):
    def __init__(self, message: str = "Server error", status_code: int = 500, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details)
        self.status_code = status_code
        self.error_code = "SERVER_ERROR"

class MalformedResponseError(AppException):
    """A 2xx answer that is not JSON or does not have the expected shape. Not retried: the write may have landed."""
    def __init__(self, message: str = "Unexpected response from the approval service", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=502,
            error_code="MALFORMED_RESPONSE",
            details=details
        )

CONFLICT_MARKERS = ("already submitted", "overlapping weeks")

def error_from_response(status_code: int, message: str, details: Optional[Dict[str, Any]] = None) -> AppException:
    """Map an HTTP failure from the approval API onto the typed error taxonomy."""
    lowered = (message or "").lower()
    if status_code == 409 or any(marker in lowered for marker in CONFLICT_MARKERS):
        return ConflictError(message, details=details)
    if status_code == 401:
        return AuthenticationError(message or "Authentication required")
    if status_code == 403:
        return AccessDeniedError(message or "Insufficient permissions")
    if status_code == 404:
        return NotFoundError(message or "Resource not found")
    if status_code in (400, 422):
        field = (details or {}).get("field")
        return ValidationError(message or "Invalid request data", field=field, details=details)
    if status_code >= 500:
        return ServerError(message or "Server error", status_code=status_code, details=details)
    return AppException(message or "An error occurred", status_code=status_code, details=details)
