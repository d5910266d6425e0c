"""
Shared cache-aside plumbing for the entity services.

Cache failures are never allowed to fail a request. Every failure is
logged, counted in ``gallery_cache_errors_total`` and the operation
continues against the database. A failed read is logged at ``error`` and a
plain miss at ``debug`` so the two stay distinguishable.
"""

from typing import Any, Iterable, Optional

import structlog
from opentelemetry import trace
from prometheus_client import Counter

from ..core.database import DatabaseManager
from ..core.exceptions import ForbiddenError
from ..domain.cache.value_objects import CacheKey, CacheTag
from ..domain.identity import AuthenticatedUser
from .cache.cache_service import CacheService

logger = structlog.get_logger()
tracer = trace.get_tracer(__name__)

CACHE_ERRORS = Counter(
    "gallery_cache_errors_total",
    "Cache failures absorbed by entity services",
    ["operation"],
)


class CachedEntityService:
    """Base class wiring a database manager and the cache service together."""

    entity_name = "Entity"

    def __init__(
        self,
        database: DatabaseManager,
        cache: CacheService,
        entity_ttl: int = 300,
        list_ttl: int = 60,
    ):
        self.database = database
        self.cache = cache
        self.entity_ttl = entity_ttl
        self.list_ttl = list_ttl

    def _cache_failure(self, operation: str, error: Exception, **context) -> None:
        CACHE_ERRORS.labels(operation=operation).inc()
        log = logger.error if operation in ("read", "invalidate") else logger.warning
        log(
            "Cache operation failed, continuing without cache",
            entity=self.entity_name,
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **context,
        )

    async def _cache_read(self, key: CacheKey) -> Optional[Any]:
        try:
            value = await self.cache.get(key)
        except Exception as e:
            self._cache_failure("read", e, key=key.value)
            return None

        if value is None:
            logger.debug("Cache miss", entity=self.entity_name, key=key.value)
        else:
            logger.debug("Cache hit", entity=self.entity_name, key=key.value)
        return value

    async def _cache_populate(
        self,
        key: CacheKey,
        value: Any,
        ttl: int,
        tags: Optional[Iterable[CacheTag]] = None,
    ) -> None:
        try:
            await self.cache.set(key, value, ttl=ttl, tags=tags)
        except Exception as e:
            self._cache_failure("populate", e, key=key.value)

    async def _invalidate(
        self,
        keys: Iterable[CacheKey] = (),
        tags: Iterable[CacheTag] = (),
    ) -> None:
        """Drop entries and tag groups; must only be called after commit."""
        with tracer.start_as_current_span(f"{self.entity_name.lower()}.invalidate"):
            for key in keys:
                try:
                    await self.cache.delete(key)
                except Exception as e:
                    self._cache_failure("invalidate", e, key=key.value)
            for tag in tags:
                try:
                    await self.cache.invalidate_tag(tag)
                except Exception as e:
                    self._cache_failure("invalidate", e, tag=tag.value)

    def _ensure_can_modify(self, owner_id: str, user: AuthenticatedUser) -> None:
        if not user.can_modify(owner_id):
            logger.warning(
                "Ownership check failed",
                entity=self.entity_name,
                user_id=user.id,
                owner_id=owner_id,
            )
            raise ForbiddenError(
                f"You do not have permission to modify this {self.entity_name.lower()}"
            )
