"""
Experience Repository
"""

from typing import List, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from gallery.models import Experience
from gallery.schemas.experience import ExperienceListQuery
from .base import BaseRepository


class ExperienceRepository(BaseRepository):
    """Experience-specific repository."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Experience)

    async def list_for_profile(
        self, profile_id: UUID, query: ExperienceListQuery
    ) -> Tuple[List[Experience], int]:
        """Live experiences of one profile, sorted as requested."""
        if profile_id is None:
            raise ValueError("profile_id is required (cannot be None)")

        column = getattr(Experience, query.sort_by)
        ordering = column.asc() if query.sort_order == "asc" else column.desc()

        stmt = (
            self._active()
            .where(Experience.profile_id == profile_id)
            .order_by(ordering, Experience.id.asc())
        )
        return await self.paginate(stmt, query.page, query.page_size)
