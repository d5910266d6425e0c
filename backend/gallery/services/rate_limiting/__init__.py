"""
Rate Limiting Services

Redis-backed fixed-window limiting with anonymous, authenticated and admin
tiers.
"""

from .middleware import RateLimitingMiddleware
from .rate_limiter import RateLimitConfig, RateLimiter, RateLimitResult

__all__ = [
    "RateLimitConfig",
    "RateLimiter",
    "RateLimitResult",
    "RateLimitingMiddleware",
]
