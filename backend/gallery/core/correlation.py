"""
Correlation ID Middleware

Reuses a well-formed ``X-Correlation-ID`` from the caller or generates a
UUID4, binds it to the structlog context for the lifetime of the request,
and echoes it on the response.
"""

import re
import uuid
from typing import Awaitable, Callable, Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from .logging import bind_request_context, clear_request_context

logger = structlog.get_logger()

CORRELATION_HEADER = "X-Correlation-ID"
_VALID_ID = re.compile(r"^[a-zA-Z0-9\-_\.]{8,255}$")


def get_correlation_id(request: Request) -> Optional[str]:
    return getattr(request.state, "correlation_id", None)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach a correlation id to every request, log line and response."""

    def __init__(self, app: ASGIApp, header_name: str = CORRELATION_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = self._extract_or_generate(request)
        request.state.correlation_id = correlation_id
        clear_request_context()
        bind_request_context(correlation_id)

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception:
            logger.error("Unhandled error during request processing", exc_info=True)
            raise

        response.headers[self.header_name] = correlation_id
        logger.info("Request completed", status_code=response.status_code)
        return response

    def _extract_or_generate(self, request: Request) -> str:
        candidate = (request.headers.get(self.header_name) or "").strip()
        if candidate and _VALID_ID.match(candidate):
            return candidate
        if candidate:
            logger.warning(
                "Invalid correlation ID format in request header, generating new one",
                received_correlation_id=candidate[:64],
            )
        return str(uuid.uuid4())
