"""
Redis Cache Store Adapter

Thin namespaced wrapper over a redis-py asyncio client. Keys passed in and
returned are relative to ``prefix``. Every command failure is re-raised as a
``RedisException`` subclass with the redis-py error chained; callers decide
whether a failure is fatal.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from redis.asyncio import Redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
    RedisError,
)

from .exceptions import (
    RedisConnectionException,
    RedisOperationException,
    RedisOperationTimeoutException,
)

logger = logging.getLogger(__name__)

SCAN_BATCH_SIZE = 100


class RedisCacheStore:
    """Key/value store with TTL, namespacing and pattern-based bulk delete."""

    def __init__(self, client: Redis, prefix: str = ""):
        self.client = client
        self.prefix = prefix

    def _full(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _relative(self, key: str) -> str:
        if isinstance(key, bytes):
            key = key.decode("utf-8")
        if self.prefix and key.startswith(self.prefix):
            return key[len(self.prefix):]
        return key

    @asynccontextmanager
    async def _command(self, operation: str, key: Optional[str] = None):
        """Translate redis-py errors into the infrastructure hierarchy."""
        try:
            yield
        except RedisTimeoutError as e:
            logger.warning(f"Redis {operation} timed out", extra={"key": key})
            raise RedisOperationTimeoutException(operation, key, original_error=e)
        except (RedisConnectionError, ConnectionError, OSError) as e:
            logger.warning(f"Redis {operation} connection failure: {e}")
            raise RedisConnectionException(
                message=f"Redis connection failed during {operation}",
                original_error=e,
            )
        except RedisError as e:
            logger.warning(f"Redis {operation} failed: {e}", extra={"key": key})
            raise RedisOperationException(operation, key, original_error=e)

    async def get(self, key: str) -> Optional[str]:
        async with self._command("get", key):
            return await self.client.get(self._full(key))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        async with self._command("set", key):
            await self.client.set(self._full(key), value, ex=ttl_seconds)

    async def set_many(self, items: Mapping[str, str], ttl_seconds: int) -> None:
        """Write several keys with the same TTL in one MULTI/EXEC."""
        if not items:
            return
        async with self._command("set_many"):
            async with self.client.pipeline(transaction=True) as pipe:
                for key, value in items.items():
                    pipe.set(self._full(key), value, ex=ttl_seconds)
                await pipe.execute()

    async def delete(self, key: str) -> bool:
        """Delete one key; returns whether it existed."""
        async with self._command("delete", key):
            return bool(await self.client.delete(self._full(key)))

    async def delete_many(self, keys: Iterable[str]) -> int:
        keys = [self._full(key) for key in keys]
        if not keys:
            return 0
        async with self._command("delete_many"):
            return int(await self.client.unlink(*keys))

    async def scan_page(
        self, cursor: int, pattern: str, count: int = SCAN_BATCH_SIZE
    ) -> Tuple[int, List[str]]:
        """One SCAN step; a returned cursor of 0 means iteration finished."""
        async with self._command("scan", pattern):
            next_cursor, keys = await self.client.scan(
                cursor=cursor, match=self._full(pattern), count=count
            )
        return int(next_cursor), [self._relative(key) for key in keys]

    async def scan(self, pattern: str, count: int = SCAN_BATCH_SIZE) -> List[str]:
        """All keys matching ``pattern`` (relative to the prefix)."""
        found: List[str] = []
        cursor = 0
        while True:
            cursor, keys = await self.scan_page(cursor, pattern, count)
            found.extend(keys)
            if cursor == 0:
                break
        # SCAN may return a key more than once
        return list(dict.fromkeys(found))

    async def add_to_set(
        self, key: str, members: Iterable[str], ttl_seconds: Optional[int] = None
    ) -> None:
        members = list(members)
        if not members:
            return
        async with self._command("sadd", key):
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.sadd(self._full(key), *members)
                if ttl_seconds:
                    pipe.expire(self._full(key), ttl_seconds)
                await pipe.execute()

    async def set_members(self, key: str) -> Set[str]:
        async with self._command("smembers", key):
            members = await self.client.smembers(self._full(key))
        return {m.decode("utf-8") if isinstance(m, bytes) else m for m in members}

    async def remove_from_set(self, key: str, members: Iterable[str]) -> int:
        members = list(members)
        if not members:
            return 0
        async with self._command("srem", key):
            return int(await self.client.srem(self._full(key), *members))

    async def ttl(self, key: str) -> int:
        async with self._command("ttl", key):
            return int(await self.client.ttl(self._full(key)))

    async def increment(self, key: str, ttl_seconds: int) -> Tuple[int, int]:
        """
        Fixed-window counter: INCR, and start the expiry on the first hit.

        Returns the new count and the seconds left in the window.
        """
        full_key = self._full(key)
        async with self._command("incr", key):
            count = int(await self.client.incr(full_key))
            if count == 1:
                await self.client.expire(full_key, ttl_seconds)
                return count, ttl_seconds
            remaining = int(await self.client.ttl(full_key))
            if remaining < 0:
                # Counter lost its expiry (e.g. crash between INCR and EXPIRE)
                await self.client.expire(full_key, ttl_seconds)
                remaining = ttl_seconds
        return count, remaining

    async def ping(self) -> bool:
        async with self._command("ping"):
            return bool(await self.client.ping())

    async def memory_info(self) -> Dict[str, Any]:
        async with self._command("info"):
            return await self.client.info("memory")
