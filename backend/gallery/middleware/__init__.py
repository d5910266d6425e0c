"""
Middleware modules for request/response processing.
"""

from .authentication import AuthenticationMiddleware
from .security import SecurityHeadersMiddleware
from .timeout import RequestTimeoutMiddleware

__all__ = [
    "AuthenticationMiddleware",
    "RequestTimeoutMiddleware",
    "SecurityHeadersMiddleware",
]
