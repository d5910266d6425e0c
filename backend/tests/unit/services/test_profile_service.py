"""
Unit tests for ProfileService: cache-aside reads, post-commit invalidation
and the cache failure policy.
"""

from datetime import date
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from gallery.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from gallery.domain.cache.value_objects import CacheKey, CacheTag
from gallery.infrastructure.redis import RedisConnectionException
from gallery.schemas import ExperienceCreate, ProfileCreate, ProfileListQuery, ProfileUpdate


def cache_errors(operation: str) -> float:
    return REGISTRY.get_sample_value(
        "gallery_cache_errors_total", {"operation": operation}
    ) or 0.0


class TestProfileReads:
    async def test_get_populates_cache(self, profile_service, cache_service, owner_profile):
        key = CacheKey.profile(owner_profile.id)
        assert await cache_service.get(key) is None

        profile = await profile_service.get(owner_profile.id)

        assert profile.headline == "Staff Engineer"
        cached = await cache_service.get(key)
        assert cached["id"] == str(owner_profile.id)

    async def test_cache_hit_skips_database(
        self, profile_service, owner_profile, query_counter
    ):
        await profile_service.get(owner_profile.id)
        before = query_counter["count"]

        profile = await profile_service.get(owner_profile.id)

        assert profile.id == owner_profile.id
        assert query_counter["count"] == before

    async def test_not_found_is_never_cached(self, profile_service, redis_client):
        missing = uuid4()

        with pytest.raises(NotFoundError) as exc_info:
            await profile_service.get(missing)

        assert exc_info.value.details["resource"] == "Profile"
        assert await redis_client.keys(f"*{missing}*") == []

    async def test_identical_list_calls_hit_database_once(
        self, profile_service, owner_profile, query_counter
    ):
        query = ProfileListQuery(page=1, page_size=12)

        first = await profile_service.list(query)
        after_first = query_counter["count"]
        for _ in range(4):
            page = await profile_service.list(ProfileListQuery(page=1, page_size=12))
            assert page == first

        assert after_first > 0
        assert query_counter["count"] == after_first
        assert first.total == 1

    async def test_list_filters(self, profile_service, experience_service, owner, other_user):
        mine = await profile_service.create(owner, ProfileCreate(headline="Data Scientist"))
        await profile_service.create(other_user, ProfileCreate(headline="Product Designer", bio="Loves data"))
        await experience_service.create(
            owner,
            ExperienceCreate(
                profile_id=mine.id,
                title="Analyst",
                company="Globex",
                start_date=date(2018, 1, 1),
            ),
        )

        by_search = await profile_service.list(ProfileListQuery(search="data"))
        by_company = await profile_service.list(ProfileListQuery(company="glob"))

        assert by_search.total == 2
        assert [p.id for p in by_company.items] == [mine.id]

    async def test_list_search_escapes_wildcards(self, profile_service, owner):
        await profile_service.create(owner, ProfileCreate(headline="Engineer"))

        page = await profile_service.list(ProfileListQuery(search="%"))

        assert page.total == 0

    async def test_list_pagination(self, profile_service, owner):
        for i in range(5):
            await profile_service.create(owner, ProfileCreate(headline=f"Engineer {i}"))

        page = await profile_service.list(ProfileListQuery(page=2, page_size=2))

        assert page.total == 5
        assert len(page.items) == 2
        assert page.has_next_page and page.has_previous_page
        # newest first
        assert page.items[0].headline == "Engineer 2"


class TestProfileWrites:
    async def test_create_invalidates_list_pages(self, profile_service, owner):
        await profile_service.list(ProfileListQuery())
        await profile_service.create(owner, ProfileCreate(headline="New Person"))

        page = await profile_service.list(ProfileListQuery())

        assert page.total == 1

    async def test_update_is_visible_immediately(self, profile_service, owner, owner_profile):
        await profile_service.get(owner_profile.id)
        await profile_service.list(ProfileListQuery())

        await profile_service.update(
            owner_profile.id, owner, ProfileUpdate(headline="Principal Engineer")
        )

        assert (await profile_service.get(owner_profile.id)).headline == "Principal Engineer"
        listed = await profile_service.list(ProfileListQuery())
        assert listed.items[0].headline == "Principal Engineer"

    async def test_update_leaves_unset_fields(self, profile_service, owner, owner_profile):
        updated = await profile_service.update(
            owner_profile.id, owner, ProfileUpdate(avatar_url="https://cdn.example.com/a.png")
        )
        assert updated.headline == "Staff Engineer"
        assert updated.bio == "Builds distributed systems"
        assert updated.updated_at >= owner_profile.updated_at

    async def test_update_rejects_null_headline(self, profile_service, owner, owner_profile):
        with pytest.raises(ValidationError) as exc_info:
            await profile_service.update(owner_profile.id, owner, ProfileUpdate(headline=None))
        assert exc_info.value.errors[0].field == "headline"

    async def test_update_requires_ownership(self, profile_service, other_user, owner_profile):
        with pytest.raises(ForbiddenError):
            await profile_service.update(
                owner_profile.id, other_user, ProfileUpdate(headline="Hijacked")
            )

        assert (await profile_service.get(owner_profile.id)).headline == "Staff Engineer"

    async def test_admin_can_update_any_profile(self, profile_service, admin, owner_profile):
        updated = await profile_service.update(
            owner_profile.id, admin, ProfileUpdate(bio="Moderated")
        )
        assert updated.bio == "Moderated"

    async def test_delete_twice_raises_not_found(self, profile_service, admin, owner_profile):
        await profile_service.delete(owner_profile.id, admin)

        with pytest.raises(NotFoundError):
            await profile_service.delete(owner_profile.id, admin)

    async def test_delete_evicts_cached_reads(
        self, profile_service, experience_service, admin, owner_profile, owner_experience
    ):
        await profile_service.get(owner_profile.id)
        await experience_service.get(owner_experience.id)

        await profile_service.delete(owner_profile.id, admin)

        with pytest.raises(NotFoundError):
            await profile_service.get(owner_profile.id)
        with pytest.raises(NotFoundError):
            await experience_service.get(owner_experience.id)
        assert (await profile_service.list(ProfileListQuery())).total == 0

    async def test_failed_write_does_not_invalidate(self, profile_service, other_user, owner_profile):
        with patch.object(profile_service, "_invalidate", AsyncMock()) as invalidate:
            with pytest.raises(ForbiddenError):
                await profile_service.update(
                    owner_profile.id, other_user, ProfileUpdate(headline="Nope")
                )
        invalidate.assert_not_called()


class TestCacheFailurePolicy:
    async def test_read_failure_falls_back_to_database(
        self, profile_service, owner_profile
    ):
        before = cache_errors("read")
        with patch.object(
            profile_service.cache,
            "get",
            AsyncMock(side_effect=RedisConnectionException()),
        ):
            profile = await profile_service.get(owner_profile.id)

        assert profile.id == owner_profile.id
        assert cache_errors("read") == before + 1

    async def test_populate_failure_is_swallowed(self, profile_service, owner_profile):
        before = cache_errors("populate")
        with patch.object(
            profile_service.cache,
            "set",
            AsyncMock(side_effect=RedisConnectionException()),
        ):
            profile = await profile_service.get(owner_profile.id)

        assert profile.id == owner_profile.id
        assert cache_errors("populate") == before + 1

    async def test_invalidation_failure_does_not_fail_write(
        self, profile_service, owner, owner_profile
    ):
        before = cache_errors("invalidate")
        with patch.object(
            profile_service.cache,
            "invalidate_tag",
            AsyncMock(side_effect=RedisConnectionException()),
        ):
            updated = await profile_service.update(
                owner_profile.id, owner, ProfileUpdate(headline="Still Saved")
            )

        assert updated.headline == "Still Saved"
        assert cache_errors("invalidate") == before + 1

    async def test_stale_shaped_entry_is_treated_as_miss(
        self, profile_service, cache_service, owner_profile
    ):
        await cache_service.set(CacheKey.profile(owner_profile.id), {"unexpected": True})

        profile = await profile_service.get(owner_profile.id)

        assert profile.headline == "Staff Engineer"
