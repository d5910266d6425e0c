"""
Rate Limiter Service

Fixed-window rate limiting backed by Redis (INCR + EXPIRE). Counters are
keyed by the authenticated user id, or by client IP for anonymous callers,
and the limit is picked from the caller's tier.
"""

import logging
from typing import Optional

from opentelemetry import trace
from pydantic import BaseModel, Field

from ...core.config import Settings, get_settings
from ...domain.identity import AuthenticatedUser, Role
from ...infrastructure.redis.cache_store import RedisCacheStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RateLimitResult(BaseModel):
    """Result of rate limit check."""

    allowed: bool = Field(..., description="Whether request is allowed")
    current_count: int = Field(..., description="Current request count")
    remaining_requests: int = Field(..., description="Remaining requests")
    reset_seconds: int = Field(..., description="Seconds until reset")
    limit: int = Field(..., description="Rate limit threshold")
    window: int = Field(..., description="Time window in seconds")
    identifier: str = Field(..., description="Rate limit identifier")
    limit_type: str = Field(..., description="Tier the limit was taken from")
    retry_after: Optional[int] = Field(None, description="Retry-After header value")


class RateLimitConfig(BaseModel):
    """Rate limit configuration."""

    requests_per_window: int = Field(..., ge=1, description="Number of allowed requests")
    window_seconds: int = Field(..., ge=1, description="Time window in seconds")


class RateLimiter:
    """
    Tiered fixed-window limiter.

    Tiers: ``anonymous``, ``authenticated`` (USER and MODERATOR) and
    ``admin``. All share one window length.
    """

    def __init__(self, store: RedisCacheStore, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.store = store
        window = settings.RATE_LIMIT_WINDOW_SECONDS
        self.tiers = {
            "anonymous": RateLimitConfig(
                requests_per_window=settings.RATE_LIMIT_ANONYMOUS, window_seconds=window
            ),
            "authenticated": RateLimitConfig(
                requests_per_window=settings.RATE_LIMIT_AUTHENTICATED,
                window_seconds=window,
            ),
            "admin": RateLimitConfig(
                requests_per_window=settings.RATE_LIMIT_ADMIN, window_seconds=window
            ),
        }

    @staticmethod
    def tier_for(user: Optional[AuthenticatedUser]) -> str:
        if user is None:
            return "anonymous"
        if user.has_any_role(Role.ADMIN):
            return "admin"
        return "authenticated"

    async def check(
        self, user: Optional[AuthenticatedUser], client_ip: str
    ) -> RateLimitResult:
        """
        Count one request against the caller's window.

        Store errors propagate; the middleware decides to fail open.
        """
        tier = self.tier_for(user)
        config = self.tiers[tier]
        identifier = f"user:{user.id}" if user is not None else f"ip:{client_ip}"

        with tracer.start_as_current_span("rate_limiter.check") as span:
            span.set_attribute("rate_limit.tier", tier)

            count, reset_seconds = await self.store.increment(
                identifier, config.window_seconds
            )
            allowed = count <= config.requests_per_window
            span.set_attribute("rate_limit.allowed", allowed)

            if not allowed:
                logger.warning(
                    f"Rate limit exceeded for {identifier}",
                    extra={
                        "identifier": identifier,
                        "tier": tier,
                        "count": count,
                        "limit": config.requests_per_window,
                    },
                )

            return RateLimitResult(
                allowed=allowed,
                current_count=count,
                remaining_requests=max(0, config.requests_per_window - count),
                reset_seconds=reset_seconds,
                limit=config.requests_per_window,
                window=config.window_seconds,
                identifier=identifier,
                limit_type=tier,
                retry_after=None if allowed else max(1, reset_seconds),
            )
