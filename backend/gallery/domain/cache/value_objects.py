"""
Cache Value Objects

Immutable value objects for cache keys, tags and expirations.
Key builders here are the single source of truth for the cache layout, so
read paths and invalidation paths cannot drift apart.
"""

import hashlib
import json
import re
from dataclasses import dataclass
from typing import Any, Mapping, Union
from uuid import UUID

_UUID_PATTERN = re.compile(r"^[a-f0-9-]{36}$")


def _normalize_id(value: Union[str, UUID], kind: str) -> str:
    text = str(value).lower()
    if not _UUID_PATTERN.match(text):
        raise ValueError(f"Invalid {kind} ID format")
    return text


def params_digest(params: Mapping[str, Any]) -> str:
    """Stable digest of list parameters (key order and None values ignored)."""
    canonical = json.dumps(
        {k: v for k, v in params.items() if v is not None},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:32]


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Keys are relative to the cache namespace prefix; the cache service adds
    the prefix when talking to the store.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not self.value:
            raise ValueError("Cache key cannot be empty")

        if len(self.value) > 250:
            raise ValueError("Cache key too long (max 250 characters)")

        if any(char.isspace() for char in self.value):
            raise ValueError("Cache key cannot contain whitespace")

    @classmethod
    def profile(cls, profile_id: Union[str, UUID]) -> "CacheKey":
        """Single profile entry."""
        return cls(f"profile:{_normalize_id(profile_id, 'profile')}")

    @classmethod
    def profile_list(cls, params: Mapping[str, Any]) -> "CacheKey":
        """One page of the profile gallery for a given filter/sort/page."""
        return cls(f"profile:list:{params_digest(params)}")

    @classmethod
    def experience(cls, experience_id: Union[str, UUID]) -> "CacheKey":
        """Single experience entry."""
        return cls(f"experience:{_normalize_id(experience_id, 'experience')}")

    @classmethod
    def profile_experiences(
        cls, profile_id: Union[str, UUID], params: Mapping[str, Any]
    ) -> "CacheKey":
        """One page of a profile's experiences."""
        profile_str = _normalize_id(profile_id, "profile")
        return cls(f"experience:profile:{profile_str}:list:{params_digest(params)}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CacheTag:
    """
    Cache tag value object for invalidation groups.

    Every list page is registered under a tag so a write can drop all pages
    that might contain the changed row without scanning the keyspace.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate tag value."""
        if not self.value:
            raise ValueError("Cache tag cannot be empty")
        if len(self.value) > 100:
            raise ValueError("Cache tag too long (max 100 characters)")
        if any(char.isspace() for char in self.value):
            raise ValueError("Cache tag cannot contain whitespace")

    @classmethod
    def profile_lists(cls) -> "CacheTag":
        """All cached pages of the profile gallery."""
        return cls("profiles:list")

    @classmethod
    def profile_experience_lists(cls, profile_id: Union[str, UUID]) -> "CacheTag":
        """All cached experience pages of one profile."""
        return cls(f"profile:{_normalize_id(profile_id, 'profile')}:experiences")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache expiration.
    """

    seconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.seconds <= 0:
            raise ValueError("TTL must be positive")
        if self.seconds > 86400 * 365:  # Max 1 year
            raise ValueError("TTL too large (max 1 year)")

    @classmethod
    def minutes(cls, minutes: int) -> "TTL":
        """Create TTL from minutes."""
        return cls(minutes * 60)

    @classmethod
    def hours(cls, hours: int) -> "TTL":
        """Create TTL from hours."""
        return cls(hours * 3600)

    def __str__(self) -> str:
        return f"{self.seconds}s"
