"""
Exceptions raised by the Redis layer.

The cache store translates every redis-py failure into one of these, with
the redis-py error chained as ``__cause__``. Nothing here decides whether a
failure is fatal: the entity services swallow cache errors and the rate
limiter middleware fails open.
"""

from typing import Any, Dict, Optional


def _describe(original_error: Optional[Exception], **context: Any) -> Dict[str, Any]:
    details = {name: value for name, value in context.items() if value}
    if original_error is not None:
        details["cause"] = f"{type(original_error).__name__}: {original_error}"
    return details


class RedisException(Exception):
    """Base class; ``error_code`` identifies the failure kind in logs."""

    error_code = "REDIS_ERROR"

    def __init__(
        self,
        message: str = "Redis error",
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(message)
        if original_error is not None:
            self.__cause__ = original_error


class RedisConnectionException(RedisException):
    """The server could not be reached or dropped the connection."""

    error_code = "REDIS_CONNECTION_ERROR"

    def __init__(
        self,
        message: str = "Redis connection failed",
        host: Optional[str] = None,
        port: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message, _describe(original_error, host=host, port=port), original_error
        )


class RedisOperationTimeoutException(RedisException):
    error_code = "REDIS_TIMEOUT_ERROR"

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            f"Redis {operation} timed out",
            _describe(original_error, operation=operation, key=key),
            original_error,
        )


class RedisOperationException(RedisException):
    """A command was rejected (wrong type, OOM, script error, ...)."""

    error_code = "REDIS_OPERATION_ERROR"

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            f"Redis {operation} failed",
            _describe(original_error, operation=operation, key=key),
            original_error,
        )


class RedisConfigurationException(RedisException):
    """Bad ``REDIS_URL`` or a client used before ``initialize()``."""

    error_code = "REDIS_CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message, _describe(original_error, config_key=config_key), original_error
        )
