"""
Redis Infrastructure Module

- RedisConnectionFactory: single bounded pool shared by the whole process
- RedisCacheStore: namespaced key/value adapter used by cache and rate limiter
- Exception hierarchy for store failures
"""

from .cache_store import RedisCacheStore
from .connection_factory import RedisConnectionFactory
from .exceptions import (
    RedisException,
    RedisConnectionException,
    RedisOperationTimeoutException,
    RedisOperationException,
    RedisConfigurationException,
)

__all__ = [
    "RedisCacheStore",
    "RedisConnectionFactory",
    "RedisException",
    "RedisConnectionException",
    "RedisOperationTimeoutException",
    "RedisOperationException",
    "RedisConfigurationException",
]
