"""
Profile Service

Profile CRUD with cache-aside reads. Writes commit first; the matching
cache entries and list pages are invalidated only after the transaction
has committed.
"""

from typing import Any, Dict
from uuid import UUID

from pydantic import ValidationError as SchemaValidationError
import structlog

from ..core.exceptions import FieldError, NotFoundError, ValidationError
from ..domain.cache.value_objects import CacheKey, CacheTag
from ..domain.identity import AuthenticatedUser
from ..models import Profile
from ..repositories.profile import ProfileRepository
from ..schemas.common import Page
from ..schemas.profile import ProfileCreate, ProfileListQuery, ProfileRead, ProfileUpdate
from .base import CachedEntityService, tracer

logger = structlog.get_logger()


def _clean_social_links(links: Any) -> Dict[str, str]:
    if not links:
        return {}
    if hasattr(links, "model_dump"):
        links = links.model_dump()
    return {name: url for name, url in links.items() if url}


class ProfileService(CachedEntityService):
    """Business operations on profiles."""

    entity_name = "Profile"

    async def create(self, user: AuthenticatedUser, data: ProfileCreate) -> ProfileRead:
        with tracer.start_as_current_span("profile_service.create"):
            async with self.database.transaction() as session:
                repository = ProfileRepository(session)
                profile = Profile(
                    user_id=user.id,
                    headline=data.headline,
                    bio=data.bio,
                    avatar_url=data.avatar_url,
                    social_links=_clean_social_links(data.social_links),
                    experiences=[],
                )
                await repository.create(profile)

            result = ProfileRead.from_model(profile)
            await self._invalidate(tags=[CacheTag.profile_lists()])

            logger.info("Profile created", profile_id=str(result.id), user_id=user.id)
            return result

    async def get(self, profile_id: UUID) -> ProfileRead:
        """Cached read; a missing profile raises and is never cached."""
        with tracer.start_as_current_span("profile_service.get") as span:
            span.set_attribute("profile_id", str(profile_id))
            key = CacheKey.profile(profile_id)

            cached = await self._cache_read(key)
            if cached is not None:
                try:
                    return ProfileRead.model_validate(cached)
                except SchemaValidationError as e:
                    self._cache_failure("decode", e, key=key.value)

            async with self.database.session() as session:
                profile = await ProfileRepository(session).get(profile_id)
                if profile is None:
                    raise NotFoundError("Profile", profile_id)
                result = ProfileRead.from_model(profile)

            await self._cache_populate(
                key, result.model_dump(mode="json"), self.entity_ttl
            )
            return result

    async def list(self, query: ProfileListQuery) -> Page[ProfileRead]:
        """One gallery page; the cache key covers every query parameter."""
        with tracer.start_as_current_span("profile_service.list"):
            key = CacheKey.profile_list(query.model_dump())

            cached = await self._cache_read(key)
            if cached is not None:
                try:
                    return Page[ProfileRead].model_validate(cached)
                except SchemaValidationError as e:
                    self._cache_failure("decode", e, key=key.value)

            async with self.database.session() as session:
                profiles, total = await ProfileRepository(session).list_page(query)
                page = Page[ProfileRead](
                    items=[ProfileRead.from_model(profile) for profile in profiles],
                    page=query.page,
                    page_size=query.page_size,
                    total=total,
                )

            await self._cache_populate(
                key,
                page.model_dump(mode="json"),
                self.list_ttl,
                tags=[CacheTag.profile_lists()],
            )
            return page

    async def update(
        self, profile_id: UUID, user: AuthenticatedUser, data: ProfileUpdate
    ) -> ProfileRead:
        changes = data.model_dump(exclude_unset=True)
        if "headline" in changes and changes["headline"] is None:
            raise ValidationError(
                [FieldError("headline", "Headline cannot be null", "required")]
            )
        if "social_links" in changes:
            changes["social_links"] = _clean_social_links(changes["social_links"])

        with tracer.start_as_current_span("profile_service.update"):
            async with self.database.transaction() as session:
                repository = ProfileRepository(session)
                profile = await repository.get(profile_id)
                if profile is None:
                    raise NotFoundError("Profile", profile_id)
                self._ensure_can_modify(profile.user_id, user)
                await repository.update(profile, changes)
                result = ProfileRead.from_model(profile)

            await self._invalidate(
                keys=[CacheKey.profile(profile_id)],
                tags=[CacheTag.profile_lists()],
            )

            logger.info(
                "Profile updated",
                profile_id=str(profile_id),
                user_id=user.id,
                fields=sorted(changes),
            )
            return result

    async def delete(self, profile_id: UUID, user: AuthenticatedUser) -> None:
        """Soft delete the profile and, with it, all of its experiences."""
        with tracer.start_as_current_span("profile_service.delete"):
            async with self.database.transaction() as session:
                repository = ProfileRepository(session)
                profile = await repository.get(profile_id)
                if profile is None:
                    raise NotFoundError("Profile", profile_id)
                self._ensure_can_modify(profile.user_id, user)
                experience_ids = await repository.soft_delete_with_experiences(profile)

            await self._invalidate(
                keys=[CacheKey.profile(profile_id)]
                + [CacheKey.experience(experience_id) for experience_id in experience_ids],
                tags=[
                    CacheTag.profile_lists(),
                    CacheTag.profile_experience_lists(profile_id),
                ],
            )

            logger.info(
                "Profile deleted",
                profile_id=str(profile_id),
                user_id=user.id,
                experiences_deleted=len(experience_ids),
            )
