"""
Identity value objects resolved from the external identity provider.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Iterable, Optional


class Role(str, Enum):
    USER = "USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"

    @classmethod
    def parse_many(cls, values: Optional[Iterable[str]]) -> FrozenSet["Role"]:
        """Known roles from a provider payload; unknown names are ignored."""
        roles = set()
        for value in values or []:
            try:
                roles.add(cls(str(value).upper()))
            except ValueError:
                continue
        return frozenset(roles or {cls.USER})


@dataclass(frozen=True)
class AuthenticatedUser:
    """Caller identity attached to a request after token verification."""

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None
    roles: FrozenSet[Role] = field(default_factory=lambda: frozenset({Role.USER}))
    session_id: Optional[str] = None
    last_login_at: Optional[datetime] = None

    def has_any_role(self, *roles: Role) -> bool:
        return any(role in self.roles for role in roles)

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    def can_modify(self, owner_id: str) -> bool:
        return self.id == owner_id or self.is_admin

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "image_url": self.image_url,
            "roles": sorted(role.value for role in self.roles),
            "last_login_at": self.last_login_at.isoformat()
            if self.last_login_at
            else None,
        }
