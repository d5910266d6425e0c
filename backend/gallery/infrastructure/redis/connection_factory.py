"""
Redis Connection Factory

Owns the single bounded connection pool shared by the cache service and the
rate limiter. Created once at startup, closed at shutdown.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import (
    AuthenticationError as RedisAuthError,
    RedisError,
)

from opentelemetry.instrumentation.redis import RedisInstrumentor

from ...core.config import Settings, get_settings
from .exceptions import RedisConfigurationException, RedisConnectionException

logger = logging.getLogger(__name__)


class RedisConnectionFactory:
    """
    Factory for the application's Redis client.

    Builds one ``ConnectionPool`` from ``REDIS_URL`` and hands out clients
    bound to it. ``client`` may be injected directly (tests use fakeredis).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[Redis] = None,
        instrument: bool = True,
    ):
        self.settings = settings or get_settings()
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = client
        self._initialized = client is not None
        self._lock = asyncio.Lock()
        self._instrument = instrument

    async def initialize(self) -> None:
        """Create the connection pool and verify connectivity."""
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return

            if self._instrument:
                try:
                    RedisInstrumentor().instrument()
                    logger.info("Redis OpenTelemetry instrumentation enabled")
                except Exception as e:
                    logger.warning(
                        f"Failed to enable Redis OpenTelemetry instrumentation: {e}"
                    )

            parsed_url = urlparse(self.settings.redis_url)
            if parsed_url.scheme not in ("redis", "rediss"):
                raise RedisConfigurationException(
                    message=f"Unsupported Redis URL scheme: {parsed_url.scheme}",
                    config_key="REDIS_URL",
                )

            try:
                self._pool = ConnectionPool.from_url(
                    self.settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=self.settings.REDIS_CONNECTION_TIMEOUT,
                    socket_timeout=self.settings.REDIS_OPERATION_TIMEOUT,
                    retry_on_timeout=True,
                    max_connections=self.settings.REDIS_MAX_CONNECTIONS,
                )
                self._client = Redis(connection_pool=self._pool)
                await self._test_connection()
            except RedisConnectionException:
                await self.close()
                raise
            except Exception as e:
                await self.close()
                logger.error(f"Failed to initialize Redis connection factory: {e}")
                raise RedisConfigurationException(
                    message=f"Redis connection factory initialization failed: {e}",
                    original_error=e,
                )

            self._initialized = True
            logger.info(
                "Redis connection factory initialized",
                extra={
                    "host": parsed_url.hostname or "localhost",
                    "port": parsed_url.port or 6379,
                    "max_connections": self.settings.REDIS_MAX_CONNECTIONS,
                },
            )

    async def _test_connection(self) -> None:
        """Ping the server once."""
        try:
            await self._client.ping()
            logger.debug("Redis connection test successful")
        except (RedisAuthError, RedisError, OSError) as e:
            parsed_url = urlparse(self.settings.redis_url)
            raise RedisConnectionException(
                message="Redis connection test failed",
                host=parsed_url.hostname,
                port=parsed_url.port,
                original_error=e,
            )

    @property
    def client(self) -> Redis:
        if self._client is None:
            raise RedisConfigurationException(
                "Redis connection factory not initialized. Call initialize() first."
            )
        return self._client

    async def close(self) -> None:
        """Close the client and disconnect the pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        self._initialized = False
        logger.info("Redis connections closed")
