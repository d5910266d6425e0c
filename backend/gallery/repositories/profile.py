"""
Profile Repository

Gallery queries (search, company filter, pagination) and cascading soft
delete for profiles.
"""

from typing import List, Tuple
from uuid import UUID

from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from gallery.models import Experience, Profile
from gallery.schemas.profile import ProfileListQuery
from .base import BaseRepository

logger = structlog.get_logger()


def like_pattern(term: str) -> str:
    """Substring LIKE pattern with wildcards in ``term`` escaped."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class ProfileRepository(BaseRepository):
    """Profile-specific repository."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Profile)

    async def list_page(self, query: ProfileListQuery) -> Tuple[List[Profile], int]:
        """
        One page of the gallery, newest first.

        ``search`` matches headline or bio; ``company`` matches any live
        experience of the profile. Both are case-insensitive substrings.
        """
        stmt = self._active()

        if query.search:
            pattern = like_pattern(query.search.strip())
            stmt = stmt.where(
                or_(
                    Profile.headline.ilike(pattern, escape="\\"),
                    Profile.bio.ilike(pattern, escape="\\"),
                )
            )

        if query.company:
            pattern = like_pattern(query.company.strip())
            stmt = stmt.where(
                exists(
                    select(Experience.id).where(
                        Experience.profile_id == Profile.id,
                        Experience.is_deleted == False,  # noqa: E712
                        Experience.company.ilike(pattern, escape="\\"),
                    )
                )
            )

        stmt = stmt.order_by(Profile.created_at.desc(), Profile.id.desc())
        return await self.paginate(stmt, query.page, query.page_size)

    async def soft_delete_with_experiences(self, profile: Profile) -> List[UUID]:
        """Soft delete a profile and its live experiences; returns their ids."""
        experience_ids = []
        for experience in profile.active_experiences:
            experience.mark_deleted()
            experience_ids.append(experience.id)

        await self.soft_delete(profile)

        logger.info(
            "Profile experiences soft deleted",
            profile_id=str(profile.id),
            count=len(experience_ids),
        )
        return experience_ids
