"""Cache-aside service."""

from .cache_service import CacheMetadata, CacheSerializationError, CacheService

__all__ = ["CacheMetadata", "CacheSerializationError", "CacheService"]
