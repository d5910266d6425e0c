"""
Application Exceptions

Error taxonomy shared by services and the HTTP layer. Operational errors
(validation, not found, forbidden, ...) map to stable 4xx codes; anything
else is treated as internal and its message is never shown to clients in
production.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Stable error codes returned in the response envelope."""

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


@dataclass(frozen=True)
class FieldError:
    """Single validation failure for one input field."""

    field: str
    message: str
    constraint: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class AppError(Exception):
    """Base exception for all application errors.

    Attributes:
        status_code: HTTP status returned to the client
        code: Stable machine-readable error code
        message: Human readable message
        details: Optional structured context
        is_operational: False for programmer/infrastructure failures
    """

    status_code: int = 500
    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"
    is_operational: bool = True

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class BadRequestError(AppError):
    status_code = 400
    code = ErrorCode.BAD_REQUEST
    default_message = "Bad request"


class UnauthorizedError(AppError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED
    default_message = "Authentication required"


class ForbiddenError(AppError):
    status_code = 403
    code = ErrorCode.FORBIDDEN
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    code = ErrorCode.NOT_FOUND
    default_message = "Resource not found"

    def __init__(self, resource: str, resource_id: Any = None):
        details = {"resource": resource}
        if resource_id is not None:
            details["id"] = str(resource_id)
        super().__init__(message=f"{resource} not found", details=details)


class ValidationError(AppError):
    """Raised when input fails validation; carries one entry per field."""

    status_code = 400
    code = ErrorCode.VALIDATION_ERROR
    default_message = "Validation failed"

    def __init__(
        self,
        errors: List[FieldError],
        message: Optional[str] = None,
    ):
        self.errors = list(errors)
        super().__init__(message=message)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["validation_errors"] = [error.to_dict() for error in self.errors]
        return payload


class RateLimitExceededError(AppError):
    status_code = 429
    code = ErrorCode.RATE_LIMIT_EXCEEDED
    default_message = "Too many requests"

    def __init__(self, retry_after: int, limit: int):
        self.retry_after = retry_after
        self.limit = limit
        super().__init__(details={"retry_after": retry_after, "limit": limit})


class RequestTimeoutError(AppError):
    status_code = 408
    code = ErrorCode.REQUEST_TIMEOUT
    default_message = "Request timed out"


class ServiceUnavailableError(AppError):
    status_code = 503
    code = ErrorCode.SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable"


class InternalError(AppError):
    status_code = 500
    code = ErrorCode.INTERNAL_ERROR
    is_operational = False
