"""
Rate Limiting Middleware

Applies the caller's tier limit to every request and answers HTTP 429 with
``Retry-After`` once the window is exhausted. Must run after
``AuthenticationMiddleware`` so the tier can be read from
``request.state.user``.
"""

import logging
import time
from typing import Callable, Iterable, Optional

from fastapi import Request, Response, status
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware

from ...api.responses import error_response
from ...core.correlation import get_correlation_id
from ...core.exceptions import RateLimitExceededError
from .rate_limiter import RateLimiter, RateLimitResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_EXCLUDED_PATHS = ("/health", "/ready", "/metrics", "/docs", "/openapi.json")


def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # First hop is the original client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


class RateLimitingMiddleware(BaseHTTPMiddleware):
    """Per-identity fixed-window limiting with X-RateLimit-* headers."""

    def __init__(
        self,
        app,
        exclude_paths: Optional[Iterable[str]] = None,
        enabled: bool = True,
    ):
        super().__init__(app)
        self.exclude_paths = set(exclude_paths or DEFAULT_EXCLUDED_PATHS)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or request.url.path in self.exclude_paths:
            return await call_next(request)

        limiter: Optional[RateLimiter] = getattr(request.app.state, "rate_limiter", None)
        if limiter is None:
            return await call_next(request)

        with tracer.start_as_current_span("rate_limiting_middleware.dispatch") as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("http.path", request.url.path)

            try:
                result = await limiter.check(
                    getattr(request.state, "user", None), get_client_ip(request)
                )
            except Exception as e:
                # Fail open: an unavailable counter store never blocks traffic
                logger.error(f"Rate limiting unavailable, allowing request: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                return await call_next(request)

            if not result.allowed:
                span.set_attribute("http.status_code", status.HTTP_429_TOO_MANY_REQUESTS)
                response = error_response(
                    RateLimitExceededError(
                        retry_after=result.retry_after or result.reset_seconds,
                        limit=result.limit,
                    ),
                    correlation_id=get_correlation_id(request),
                )
                self._add_rate_limit_headers(response, result)
                return response

            response = await call_next(request)
            self._add_rate_limit_headers(response, result)
            return response

    def _add_rate_limit_headers(self, response: Response, result: RateLimitResult) -> None:
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining_requests)
        response.headers["X-RateLimit-Reset"] = str(int(time.time()) + result.reset_seconds)
        if result.retry_after:
            response.headers["Retry-After"] = str(result.retry_after)
