"""
Concurrent writers against a file-backed database: after both updates
commit, the cached view and the database agree.
"""

import asyncio
from uuid import UUID

import httpx
import pytest
from sqlalchemy import select

from gallery.core.database import DatabaseManager
from gallery.domain.cache.value_objects import CacheKey
from gallery.models import Profile

pytestmark = pytest.mark.integration


@pytest.fixture
async def file_database(settings, tmp_path):
    file_settings = settings.model_copy(
        update={"DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path}/gallery.db"}
    )
    manager = DatabaseManager(file_settings)
    await manager.initialize()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
async def file_client(app_factory, settings, file_database, cache_service, redis_client, identity_client):
    app = app_factory(settings, file_database, cache_service, redis_client, identity_client)
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


async def test_concurrent_updates_leave_cache_consistent(
    file_client, file_database, cache_service, auth_headers
):
    created = await file_client.post(
        "/api/v1/profiles", json={"headline": "Original"}, headers=auth_headers["owner"]
    )
    profile_id = created.json()["data"]["id"]
    url = f"/api/v1/profiles/{profile_id}"
    await file_client.get(url)

    first, second = await asyncio.gather(
        file_client.put(url, json={"headline": "Written by A"}, headers=auth_headers["owner"]),
        file_client.put(url, json={"headline": "Written by B"}, headers=auth_headers["admin"]),
    )
    assert first.status_code == 200
    assert second.status_code == 200

    served = (await file_client.get(url)).json()["data"]

    async with file_database.session() as session:
        stored = (
            await session.execute(select(Profile).where(Profile.id == UUID(served["id"])))
        ).scalar_one()
    cached = await cache_service.get(CacheKey.profile(stored.id))

    assert served["headline"] in ("Written by A", "Written by B")
    assert served["headline"] == stored.headline
    assert cached["headline"] == stored.headline
