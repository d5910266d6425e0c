"""
Request Timeout Middleware

Bounds the time spent producing a response. On expiry the client receives a
408 envelope; work already handed to the database or cache is not
guaranteed to be aborted.
"""

import asyncio
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..api.responses import error_response
from ..core.correlation import get_correlation_id
from ..core.exceptions import RequestTimeoutError

logger = structlog.get_logger()


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, timeout_seconds: float = 15.0):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Request timed out",
                method=request.method,
                path=request.url.path,
                timeout_seconds=self.timeout_seconds,
            )
            return error_response(
                RequestTimeoutError(
                    f"Request exceeded {self.timeout_seconds:g}s timeout"
                ),
                correlation_id=get_correlation_id(request),
            )
