"""
Exception handlers.

Every error leaves the API in the standard envelope and carries the
request's correlation id. Messages of unexpected failures are replaced by a
generic text in production; the full error is logged.
"""

from typing import Any, Iterable, List

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from opentelemetry import trace
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.config import Settings
from ..core.correlation import get_correlation_id
from ..core.exceptions import (
    AppError,
    BadRequestError,
    FieldError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from .responses import error_response

logger = structlog.get_logger()

_LOCATION_ROOTS = ("body", "query", "path", "header", "cookie")


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _field_name(loc: Iterable[Any]) -> str:
    parts = [str(part) for part in loc]
    if parts and parts[0] in _LOCATION_ROOTS:
        parts = parts[1:]
    return ".".join(parts) or "request"


def field_errors_from_pydantic(errors: Iterable[dict]) -> List[FieldError]:
    """Map pydantic error dicts onto ``FieldError`` entries."""
    field_errors = []
    for error in errors:
        message = error.get("msg", "Invalid value")
        # Custom errors raised as ValueError are prefixed by pydantic
        message = message.removeprefix("Value error, ")
        field_errors.append(
            FieldError(
                field=_field_name(error.get("loc", ())),
                message=message,
                constraint=error.get("type", "invalid"),
            )
        )
    return field_errors


async def app_error_handler(request: Request, exc: AppError):
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        code=exc.code.value,
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
    )

    headers = {}
    retry_after = getattr(exc, "retry_after", None)
    if retry_after:
        headers["Retry-After"] = str(retry_after)
    if isinstance(exc, UnauthorizedError):
        headers["WWW-Authenticate"] = "Bearer"

    if not exc.is_operational and _settings(request).is_production:
        exc = InternalError()
    return error_response(exc, get_correlation_id(request), headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    error = ValidationError(field_errors_from_pydantic(exc.errors()))
    logger.info(
        "Request validation failed",
        path=request.url.path,
        fields=[field_error.field for field_error in error.errors],
    )
    return error_response(error, get_correlation_id(request))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Routing-level errors (unknown path, wrong method) in the envelope."""
    if exc.status_code == 404:
        error: AppError = NotFoundError("Route")
    elif exc.status_code == 401:
        error = UnauthorizedError(str(exc.detail))
    elif exc.status_code == 403:
        error = ForbiddenError(str(exc.detail))
    elif exc.status_code < 500:
        error = BadRequestError(str(exc.detail))
        error.status_code = exc.status_code
    else:
        error = InternalError(str(exc.detail))
    return error_response(error, get_correlation_id(request), getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception):
    correlation_id = get_correlation_id(request)

    span = trace.get_current_span()
    span.record_exception(exc)
    span.set_attribute("error.type", type(exc).__name__)

    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        correlation_id=correlation_id,
        exc_info=exc,
    )

    if _settings(request).is_production:
        error = InternalError()
    else:
        error = InternalError(f"{type(exc).__name__}: {exc}")
    return error_response(error, correlation_id)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
