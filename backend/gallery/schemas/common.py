"""
Shared schema pieces: timestamps and the page model produced by services.
"""

from datetime import datetime, timezone
from typing import Generic, List, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Page(BaseModel, Generic[T]):
    """One page of results as produced by the services (and cached)."""

    items: List[T]
    page: int
    page_size: int
    total: int

    @property
    def has_next_page(self) -> bool:
        return self.page * self.page_size < self.total

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1
