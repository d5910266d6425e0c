"""
Experience Service

Experience CRUD with cache-aside reads. A profile embeds its experiences
and the gallery's company filter depends on them, so every experience write
also invalidates the parent profile entry and the gallery list pages, and
bumps the parent's ``updated_at`` so its validator changes too.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import ValidationError as SchemaValidationError
import structlog

from ..core.exceptions import FieldError, NotFoundError, ValidationError
from ..domain.cache.value_objects import CacheKey, CacheTag
from ..domain.identity import AuthenticatedUser
from ..models import Experience, Profile, utcnow
from ..repositories.experience import ExperienceRepository
from ..repositories.profile import ProfileRepository
from ..schemas.common import Page
from ..schemas.experience import (
    ExperienceCreate,
    ExperienceListQuery,
    ExperienceRead,
    ExperienceUpdate,
)
from .base import CachedEntityService, tracer

logger = structlog.get_logger()

REQUIRED_FIELDS = ("title", "company", "start_date")


def check_date_range(start_date: date, end_date: Optional[date]) -> None:
    if end_date is not None and end_date < start_date:
        raise ValidationError(
            [
                FieldError(
                    field="end_date",
                    message="End date must be on or after start date",
                    constraint="date_range",
                )
            ]
        )


class ExperienceService(CachedEntityService):
    """Business operations on experiences."""

    entity_name = "Experience"

    @staticmethod
    def _touch(profile: Profile) -> None:
        profile.updated_at = utcnow()

    def _write_invalidation(self, profile_id: UUID, experience_id: Optional[UUID] = None):
        keys = [CacheKey.profile(profile_id)]
        if experience_id is not None:
            keys.append(CacheKey.experience(experience_id))
        tags = [CacheTag.profile_lists(), CacheTag.profile_experience_lists(profile_id)]
        return keys, tags

    async def create(
        self, user: AuthenticatedUser, data: ExperienceCreate
    ) -> ExperienceRead:
        check_date_range(data.start_date, data.end_date)

        with tracer.start_as_current_span("experience_service.create"):
            async with self.database.transaction() as session:
                profile = await ProfileRepository(session).get(data.profile_id)
                if profile is None:
                    raise NotFoundError("Profile", data.profile_id)
                self._ensure_can_modify(profile.user_id, user)

                experience = Experience(
                    profile_id=profile.id,
                    title=data.title,
                    company=data.company,
                    start_date=data.start_date,
                    end_date=data.end_date,
                    description=data.description,
                )
                await ExperienceRepository(session).create(experience)
                self._touch(profile)

            result = ExperienceRead.model_validate(experience)
            keys, tags = self._write_invalidation(result.profile_id)
            await self._invalidate(keys=keys, tags=tags)

            logger.info(
                "Experience created",
                experience_id=str(result.id),
                profile_id=str(result.profile_id),
                user_id=user.id,
            )
            return result

    async def get(self, experience_id: UUID) -> ExperienceRead:
        with tracer.start_as_current_span("experience_service.get") as span:
            span.set_attribute("experience_id", str(experience_id))
            key = CacheKey.experience(experience_id)

            cached = await self._cache_read(key)
            if cached is not None:
                try:
                    return ExperienceRead.model_validate(cached)
                except SchemaValidationError as e:
                    self._cache_failure("decode", e, key=key.value)

            async with self.database.session() as session:
                experience = await ExperienceRepository(session).get(experience_id)
                if experience is None:
                    raise NotFoundError("Experience", experience_id)
                result = ExperienceRead.model_validate(experience)

            await self._cache_populate(
                key, result.model_dump(mode="json"), self.entity_ttl
            )
            return result

    async def list_for_profile(
        self, profile_id: UUID, query: ExperienceListQuery
    ) -> Page[ExperienceRead]:
        with tracer.start_as_current_span("experience_service.list_for_profile"):
            key = CacheKey.profile_experiences(profile_id, query.model_dump())

            cached = await self._cache_read(key)
            if cached is not None:
                try:
                    return Page[ExperienceRead].model_validate(cached)
                except SchemaValidationError as e:
                    self._cache_failure("decode", e, key=key.value)

            async with self.database.session() as session:
                if await ProfileRepository(session).get(profile_id) is None:
                    raise NotFoundError("Profile", profile_id)
                experiences, total = await ExperienceRepository(
                    session
                ).list_for_profile(profile_id, query)
                page = Page[ExperienceRead](
                    items=[ExperienceRead.model_validate(e) for e in experiences],
                    page=query.page,
                    page_size=query.page_size,
                    total=total,
                )

            await self._cache_populate(
                key,
                page.model_dump(mode="json"),
                self.list_ttl,
                tags=[CacheTag.profile_experience_lists(profile_id)],
            )
            return page

    async def update(
        self, experience_id: UUID, user: AuthenticatedUser, data: ExperienceUpdate
    ) -> ExperienceRead:
        changes = data.model_dump(exclude_unset=True)
        nulls = [field for field in REQUIRED_FIELDS if field in changes and changes[field] is None]
        if nulls:
            raise ValidationError(
                [FieldError(field, f"{field} cannot be null", "required") for field in nulls]
            )

        with tracer.start_as_current_span("experience_service.update"):
            async with self.database.transaction() as session:
                repository = ExperienceRepository(session)
                experience = await repository.get(experience_id)
                if experience is None:
                    raise NotFoundError("Experience", experience_id)

                profile = await ProfileRepository(session).get(experience.profile_id)
                if profile is None:
                    raise NotFoundError("Experience", experience_id)
                self._ensure_can_modify(profile.user_id, user)

                check_date_range(
                    changes.get("start_date", experience.start_date),
                    changes["end_date"] if "end_date" in changes else experience.end_date,
                )
                await repository.update(experience, changes)
                self._touch(profile)
                result = ExperienceRead.model_validate(experience)

            keys, tags = self._write_invalidation(result.profile_id, experience_id)
            await self._invalidate(keys=keys, tags=tags)

            logger.info(
                "Experience updated",
                experience_id=str(experience_id),
                user_id=user.id,
                fields=sorted(changes),
            )
            return result

    async def delete(self, experience_id: UUID, user: AuthenticatedUser) -> None:
        with tracer.start_as_current_span("experience_service.delete"):
            async with self.database.transaction() as session:
                repository = ExperienceRepository(session)
                experience = await repository.get(experience_id)
                if experience is None:
                    raise NotFoundError("Experience", experience_id)

                profile = await ProfileRepository(session).get(experience.profile_id)
                if profile is None:
                    raise NotFoundError("Experience", experience_id)
                self._ensure_can_modify(profile.user_id, user)

                profile_id = experience.profile_id
                await repository.soft_delete(experience)
                self._touch(profile)

            keys, tags = self._write_invalidation(profile_id, experience_id)
            await self._invalidate(keys=keys, tags=tags)

            logger.info(
                "Experience deleted",
                experience_id=str(experience_id),
                profile_id=str(profile_id),
                user_id=user.id,
            )
