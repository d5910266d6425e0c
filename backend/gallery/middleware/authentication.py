"""
Authentication Middleware

Resolves the bearer token (when one is sent) into an ``AuthenticatedUser``
before routing, so rate limiting can pick the caller's tier. The middleware
never rejects a request itself: a failed verification is stored on
``request.state.auth_error`` and raised by the route dependencies only on
routes that require a user.
"""

from typing import Callable, Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..core.exceptions import AppError, UnauthorizedError

logger = structlog.get_logger()


def extract_bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return ""
    return token.strip()


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Attach the caller identity (or the reason it is missing) to the request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.user = None
        request.state.auth_error = None

        token = extract_bearer_token(request)
        if token == "":
            request.state.auth_error = UnauthorizedError("Invalid authorization header")
        elif token:
            identity_client = getattr(request.app.state, "identity_client", None)
            if identity_client is None:
                request.state.auth_error = UnauthorizedError("Authentication unavailable")
            else:
                try:
                    user = await identity_client.verify_token(token)
                except AppError as e:
                    logger.info(
                        "Token verification failed",
                        code=e.code.value,
                        path=request.url.path,
                    )
                    request.state.auth_error = e
                else:
                    request.state.user = user
                    structlog.contextvars.bind_contextvars(user_id=user.id)

        return await call_next(request)
