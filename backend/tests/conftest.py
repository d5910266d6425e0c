"""
Main pytest configuration for all backend tests.

Redis is replaced by fakeredis, the database by in-memory aiosqlite and the
identity provider by a token table, so the whole suite runs in-process.
"""

import os
from datetime import date
from typing import Dict, Optional

import fakeredis
import fakeredis.aioredis
import httpx
import pytest
from sqlalchemy import event

# Set test environment variables before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["IDENTITY_PROVIDER_URL"] = "http://identity.test"
os.environ["IDENTITY_PROVIDER_SECRET_KEY"] = "sk_test_gallery"
os.environ["LOG_LEVEL"] = "WARNING"

from gallery.core.config import get_settings
from gallery.core.database import DatabaseManager
from gallery.core.exceptions import UnauthorizedError
from gallery.domain.identity import AuthenticatedUser, Role
from gallery.infrastructure.redis import RedisCacheStore
from gallery.main import create_app
from gallery.schemas import ExperienceCreate, ProfileCreate
from gallery.services import ExperienceService, ProfileService
from gallery.services.cache import CacheService
from gallery.services.rate_limiting import RateLimiter

OWNER = AuthenticatedUser(id="user_owner", email="owner@example.com")
OTHER = AuthenticatedUser(id="user_other", email="other@example.com")
MODERATOR = AuthenticatedUser(
    id="user_moderator", roles=frozenset({Role.USER, Role.MODERATOR})
)
ADMIN = AuthenticatedUser(id="user_admin", roles=frozenset({Role.ADMIN}))

TOKENS: Dict[str, AuthenticatedUser] = {
    "owner-token": OWNER,
    "other-token": OTHER,
    "moderator-token": MODERATOR,
    "admin-token": ADMIN,
}


class FakeIdentityClient:
    """Token table standing in for the identity provider."""

    def __init__(self, tokens: Dict[str, AuthenticatedUser]):
        self.tokens = dict(tokens)
        self.revoked = []

    async def verify_token(self, token: str) -> AuthenticatedUser:
        user = self.tokens.get(token)
        if user is None:
            raise UnauthorizedError("Invalid session token")
        return user

    async def revoke_session(self, session_id: str) -> None:
        self.revoked.append(session_id)

    async def close(self) -> None:
        pass


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner():
    return OWNER


@pytest.fixture
def other_user():
    return OTHER


@pytest.fixture
def moderator():
    return MODERATOR


@pytest.fixture
def admin():
    return ADMIN


@pytest.fixture
def auth_headers():
    """Bearer headers keyed by role name."""
    return {
        "owner": bearer("owner-token"),
        "other": bearer("other-token"),
        "moderator": bearer("moderator-token"),
        "admin": bearer("admin-token"),
        "invalid": bearer("not-a-real-token"),
    }


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
async def redis_client():
    client = fakeredis.aioredis.FakeRedis(
        server=fakeredis.FakeServer(), decode_responses=True
    )
    yield client
    await client.aclose()


@pytest.fixture
def cache_store(redis_client, settings):
    return RedisCacheStore(redis_client, settings.CACHE_KEY_PREFIX)


@pytest.fixture
def cache_service(cache_store, settings):
    return CacheService(
        cache_store,
        default_ttl=settings.CACHE_DEFAULT_TTL,
        compression_threshold=settings.CACHE_COMPRESSION_THRESHOLD,
    )


@pytest.fixture
async def database(settings):
    manager = DatabaseManager(settings)
    await manager.initialize()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def query_counter(database):
    """Counts SQL statements sent to the database."""
    counter = {"count": 0}

    def _count(*args, **kwargs):
        counter["count"] += 1

    engine = database.engine.sync_engine
    event.listen(engine, "before_cursor_execute", _count)
    yield counter
    event.remove(engine, "before_cursor_execute", _count)


@pytest.fixture
def profile_service(database, cache_service, settings):
    return ProfileService(
        database,
        cache_service,
        entity_ttl=settings.CACHE_ENTITY_TTL,
        list_ttl=settings.CACHE_LIST_TTL,
    )


@pytest.fixture
def experience_service(database, cache_service, settings):
    return ExperienceService(
        database,
        cache_service,
        entity_ttl=settings.CACHE_ENTITY_TTL,
        list_ttl=settings.CACHE_LIST_TTL,
    )


@pytest.fixture
async def owner_profile(profile_service):
    return await profile_service.create(
        OWNER,
        ProfileCreate(headline="Staff Engineer", bio="Builds distributed systems"),
    )


@pytest.fixture
async def owner_experience(experience_service, owner_profile):
    return await experience_service.create(
        OWNER,
        ExperienceCreate(
            profile_id=owner_profile.id,
            title="Senior Engineer",
            company="Acme Corp",
            start_date=date(2019, 3, 1),
        ),
    )


@pytest.fixture
def identity_client():
    return FakeIdentityClient(TOKENS)


def build_app(
    settings,
    database,
    cache_service,
    redis_client,
    identity_client,
    rate_limiter: Optional[RateLimiter] = None,
):
    """Application with its lifespan singletons injected directly."""
    app = create_app(settings)
    app.state.database = database
    app.state.cache_service = cache_service
    app.state.identity_client = identity_client
    app.state.rate_limiter = rate_limiter or RateLimiter(
        RedisCacheStore(redis_client, settings.RATE_LIMIT_KEY_PREFIX), settings
    )
    app.state.profile_service = ProfileService(
        database,
        cache_service,
        entity_ttl=settings.CACHE_ENTITY_TTL,
        list_ttl=settings.CACHE_LIST_TTL,
    )
    app.state.experience_service = ExperienceService(
        database,
        cache_service,
        entity_ttl=settings.CACHE_ENTITY_TTL,
        list_ttl=settings.CACHE_LIST_TTL,
    )
    return app


@pytest.fixture
def app_factory():
    return build_app


@pytest.fixture
def app(settings, database, cache_service, redis_client, identity_client):
    return build_app(settings, database, cache_service, redis_client, identity_client)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as http_client:
        yield http_client
