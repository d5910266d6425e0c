"""
Cache-Aside Service

Generic get/set/delete/clear over the Redis cache store. Every logical entry
is stored as two physical keys that share a TTL:

    <key>            JSON payload (zlib + base64 when compressed)
    <key>:metadata   {created_at, expires_at, compressed, size, tags}

Entries can be grouped under tags (Redis sets of member keys) so related
entries are dropped together without scanning the keyspace.
"""

import asyncio
import base64
import binascii
import json
import logging
import time
import zlib
from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from opentelemetry import trace
from prometheus_client import Counter, Histogram

from ...domain.cache.value_objects import TTL, CacheKey, CacheTag
from ...infrastructure.redis.cache_store import RedisCacheStore
from ...infrastructure.redis.exceptions import RedisException

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

METADATA_SUFFIX = ":metadata"
TAG_NAMESPACE = "tag:"

CACHE_REQUESTS = Counter(
    "gallery_cache_requests_total",
    "Cache operations by outcome",
    ["operation", "result"],
)
CACHE_OPERATION_DURATION = Histogram(
    "gallery_cache_operation_duration_seconds",
    "Latency of cache service operations",
    ["operation"],
)

KeyLike = Union[CacheKey, str]
TagLike = Union[CacheTag, str]
TTLLike = Union[TTL, int]


class CacheSerializationError(ValueError):
    """Raised when a value cannot be encoded for the cache."""


@dataclass
class CacheMetadata:
    created_at: str
    expires_at: str
    compressed: bool
    size: int
    tags: List[str] = field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> "CacheMetadata":
        data = json.loads(raw)
        return cls(
            created_at=data["created_at"],
            expires_at=data["expires_at"],
            compressed=bool(data.get("compressed", False)),
            size=int(data.get("size", 0)),
            tags=list(data.get("tags") or []),
        )


def _key(key: KeyLike) -> str:
    if isinstance(key, CacheKey):
        return key.value
    return CacheKey(key).value


def _tag(tag: TagLike) -> str:
    if isinstance(tag, CacheTag):
        return tag.value
    return CacheTag(tag).value


def _ttl_seconds(ttl: Optional[TTLLike], default: int) -> int:
    if ttl is None:
        return default
    if isinstance(ttl, TTL):
        return ttl.seconds
    return TTL(int(ttl)).seconds


class CacheService:
    """
    Cache-aside service.

    ``set`` and ``delete`` propagate store failures to the caller. ``get``
    propagates store failures but treats a corrupt entry as a miss.
    ``health_check`` never raises.
    """

    def __init__(
        self,
        store: RedisCacheStore,
        default_ttl: int = 3600,
        compression_threshold: int = 1024,
        max_latency_ms: float = 100.0,
        memory_threshold_percent: float = 90.0,
    ):
        self.store = store
        self.default_ttl = default_ttl
        self.compression_threshold = compression_threshold
        self.max_latency_ms = max_latency_ms
        self.memory_threshold_percent = memory_threshold_percent

    @staticmethod
    def metadata_key(key: str) -> str:
        return f"{key}{METADATA_SUFFIX}"

    @staticmethod
    def tag_key(tag: str) -> str:
        return f"{TAG_NAMESPACE}{tag}"

    def _encode(self, value: Any, compress: bool) -> tuple[str, bool, int]:
        try:
            serialized = json.dumps(value, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(f"Value is not JSON serializable: {e}") from e

        raw = serialized.encode("utf-8")
        if compress and len(raw) > self.compression_threshold:
            packed = base64.b64encode(zlib.compress(raw)).decode("ascii")
            return packed, True, len(raw)
        return serialized, False, len(raw)

    @staticmethod
    def _decode(payload: str, metadata: CacheMetadata) -> Any:
        if metadata.compressed:
            payload = zlib.decompress(base64.b64decode(payload)).decode("utf-8")
        return json.loads(payload)

    async def set(
        self,
        key: KeyLike,
        value: Any,
        ttl: Optional[TTLLike] = None,
        compress: bool = True,
        tags: Optional[Iterable[TagLike]] = None,
    ) -> None:
        """Store ``value`` under ``key`` with its metadata record and tags."""
        cache_key = _key(key)
        ttl_seconds = _ttl_seconds(ttl, self.default_ttl)
        tag_values = [_tag(tag) for tag in (tags or [])]

        with tracer.start_as_current_span("cache_service.set") as span:
            span.set_attribute("cache.key", cache_key)
            span.set_attribute("cache.ttl", ttl_seconds)
            start = time.perf_counter()

            payload, compressed, size = self._encode(value, compress)
            now = datetime.now(timezone.utc)
            metadata = CacheMetadata(
                created_at=now.isoformat(),
                expires_at=(now + timedelta(seconds=ttl_seconds)).isoformat(),
                compressed=compressed,
                size=size,
                tags=tag_values,
            )

            try:
                await self.store.set_many(
                    {cache_key: payload, self.metadata_key(cache_key): metadata.to_json()},
                    ttl_seconds,
                )
                # Tag sets must outlive every member they index
                tag_ttl = max(ttl_seconds, self.default_ttl)
                for tag in tag_values:
                    await self.store.add_to_set(self.tag_key(tag), [cache_key], tag_ttl)
            except RedisException as e:
                CACHE_REQUESTS.labels(operation="set", result="error").inc()
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

            CACHE_REQUESTS.labels(operation="set", result="ok").inc()
            CACHE_OPERATION_DURATION.labels(operation="set").observe(
                time.perf_counter() - start
            )
            span.set_attribute("cache.compressed", compressed)
            span.set_attribute("cache.size", size)

    async def get(self, key: KeyLike) -> Optional[Any]:
        """Return the cached value, or None on a miss or a corrupt entry."""
        cache_key = _key(key)

        with tracer.start_as_current_span("cache_service.get") as span:
            span.set_attribute("cache.key", cache_key)
            start = time.perf_counter()

            try:
                payload, raw_metadata = await asyncio.gather(
                    self.store.get(cache_key),
                    self.store.get(self.metadata_key(cache_key)),
                )
            except RedisException as e:
                CACHE_REQUESTS.labels(operation="get", result="error").inc()
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise
            finally:
                CACHE_OPERATION_DURATION.labels(operation="get").observe(
                    time.perf_counter() - start
                )

            if payload is None or raw_metadata is None:
                CACHE_REQUESTS.labels(operation="get", result="miss").inc()
                span.set_attribute("cache.hit", False)
                return None

            try:
                metadata = CacheMetadata.from_json(raw_metadata)
                value = self._decode(payload, metadata)
            except (ValueError, KeyError, TypeError, zlib.error, binascii.Error) as e:
                CACHE_REQUESTS.labels(operation="get", result="corrupt").inc()
                span.set_attribute("cache.hit", False)
                logger.warning(
                    f"Discarding unreadable cache entry {cache_key}: {e}",
                    extra={"key": cache_key, "error_type": type(e).__name__},
                )
                return None

            CACHE_REQUESTS.labels(operation="get", result="hit").inc()
            span.set_attribute("cache.hit", True)
            return value

    async def delete(self, key: KeyLike) -> bool:
        """Remove an entry and its metadata; returns whether the value existed."""
        cache_key = _key(key)
        meta_key = self.metadata_key(cache_key)

        with tracer.start_as_current_span("cache_service.delete") as span:
            span.set_attribute("cache.key", cache_key)

            tags: List[str] = []
            try:
                raw_metadata = await self.store.get(meta_key)
                if raw_metadata:
                    tags = CacheMetadata.from_json(raw_metadata).tags
            except (RedisException, ValueError, KeyError, TypeError) as e:
                logger.warning(
                    f"Could not read tags for {cache_key} before delete: {e}"
                )

            existed = await self.store.delete(cache_key)
            await self.store.delete_many([meta_key])

            for tag in tags:
                try:
                    await self.store.remove_from_set(self.tag_key(tag), [cache_key])
                except RedisException as e:
                    logger.warning(f"Could not unregister {cache_key} from tag {tag}: {e}")

            CACHE_REQUESTS.labels(
                operation="delete", result="ok" if existed else "absent"
            ).inc()
            return existed

    async def invalidate_tag(self, tag: TagLike) -> int:
        """
        Delete every entry registered under ``tag``.

        Only the members read here are removed from the set, so a member
        added concurrently stays indexed for the next invalidation.
        """
        tag_value = _tag(tag)
        tag_key = self.tag_key(tag_value)

        with tracer.start_as_current_span("cache_service.invalidate_tag") as span:
            span.set_attribute("cache.tag", tag_value)

            members = await self.store.set_members(tag_key)
            if not members:
                return 0

            keys: List[str] = []
            for member in members:
                keys.extend([member, self.metadata_key(member)])
            await self.store.delete_many(keys)
            await self.store.remove_from_set(tag_key, members)

            CACHE_REQUESTS.labels(operation="invalidate_tag", result="ok").inc()
            span.set_attribute("cache.invalidated", len(members))
            logger.debug(
                f"Invalidated {len(members)} cache entries for tag {tag_value}",
                extra={"tag": tag_value, "count": len(members)},
            )
            return len(members)

    async def clear(self) -> int:
        """Delete every key in the namespace, one SCAN page at a time."""
        with tracer.start_as_current_span("cache_service.clear") as span:
            deleted = 0
            cursor = 0
            while True:
                cursor, keys = await self.store.scan_page(cursor, "*")
                if keys:
                    deleted += await self.store.delete_many(keys)
                if cursor == 0:
                    break

            span.set_attribute("cache.deleted", deleted)
            logger.info(f"Cache cleared, {deleted} keys removed")
            return deleted

    async def health_check(self) -> Dict[str, Any]:
        """Ping latency plus memory pressure; never raises."""
        start = time.perf_counter()
        try:
            await self.store.ping()
            latency_ms = (time.perf_counter() - start) * 1000

            info = await self.store.memory_info()
            used = int(info.get("used_memory", 0) or 0)
            limit = int(info.get("maxmemory", 0) or 0)
            memory_used_percent = (used / limit * 100) if limit else 0.0

            healthy = (
                latency_ms < self.max_latency_ms
                and memory_used_percent < self.memory_threshold_percent
            )
            return {
                "healthy": healthy,
                "latency_ms": round(latency_ms, 2),
                "memory_used_percent": round(memory_used_percent, 2),
            }

        except RedisException as e:
            logger.error(f"Cache health check failed: {e}")
            return {
                "healthy": False,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                "memory_used_percent": 0.0,
                "error": e.message,
            }
