"""Cache domain value objects."""

from .value_objects import TTL, CacheKey, CacheTag, params_digest

__all__ = ["TTL", "CacheKey", "CacheTag", "params_digest"]
