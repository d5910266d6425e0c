"""
HTTP tests for correlation ids, security headers, rate limiting and error
masking.
"""

from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import httpx
import pytest

from gallery.infrastructure.redis import RedisCacheStore, RedisConnectionException
from gallery.services.rate_limiting import RateLimiter

pytestmark = pytest.mark.integration


def make_client(app):
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    return httpx.AsyncClient(transport=transport, base_url="http://testserver")


class TestCorrelationId:
    async def test_valid_header_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Correlation-ID": "req-12345678"})

        assert response.headers["X-Correlation-ID"] == "req-12345678"

    async def test_invalid_header_is_replaced(self, client):
        response = await client.get("/health", headers={"X-Correlation-ID": "bad id!"})

        generated = response.headers["X-Correlation-ID"]
        assert generated != "bad id!"
        assert UUID(generated).version == 4

    async def test_error_responses_carry_the_id(self, client):
        response = await client.get(
            f"/api/v1/profiles/{uuid4()}", headers={"X-Correlation-ID": "trace-abcdefgh"}
        )

        assert response.status_code == 404
        assert response.headers["X-Correlation-ID"] == "trace-abcdefgh"


async def test_security_headers(client):
    response = await client.get("/api/v1/nothing-here")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "default-src 'none'" in response.headers["Content-Security-Policy"]
    # HSTS only in production
    assert "Strict-Transport-Security" not in response.headers


class TestRateLimiting:
    @pytest.fixture
    def limited_app(self, app_factory, settings, database, cache_service, redis_client, identity_client):
        limited = settings.model_copy(update={"RATE_LIMIT_ANONYMOUS": 2})
        limiter = RateLimiter(
            RedisCacheStore(redis_client, limited.RATE_LIMIT_KEY_PREFIX), limited
        )
        return app_factory(
            settings, database, cache_service, redis_client, identity_client, limiter
        )

    async def test_headers_on_allowed_requests(self, client):
        response = await client.get("/api/v1/profiles")

        assert int(response.headers["X-RateLimit-Limit"]) > 0
        assert "X-RateLimit-Remaining" in response.headers
        assert "X-RateLimit-Reset" in response.headers
        assert "Retry-After" not in response.headers

    async def test_exhausted_window_is_429(self, limited_app):
        async with make_client(limited_app) as http_client:
            first = await http_client.get("/api/v1/profiles")
            await http_client.get("/api/v1/profiles")
            denied = await http_client.get("/api/v1/profiles")

        assert first.headers["X-RateLimit-Limit"] == "2"
        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert denied.status_code == 429
        assert int(denied.headers["Retry-After"]) >= 1
        assert denied.headers["X-RateLimit-Remaining"] == "0"
        error = denied.json()["error"]
        assert error["code"] == "RATE_LIMIT_EXCEEDED"
        assert error["details"]["limit"] == 2

    async def test_health_is_never_limited(self, limited_app):
        async with make_client(limited_app) as http_client:
            statuses = [(await http_client.get("/health")).status_code for _ in range(5)]

        assert statuses == [200] * 5

    async def test_authenticated_callers_use_their_own_tier(self, limited_app, auth_headers):
        async with make_client(limited_app) as http_client:
            for _ in range(3):
                response = await http_client.get(
                    "/api/v1/profiles", headers=auth_headers["owner"]
                )

        assert response.status_code == 200

    async def test_store_outage_fails_open(
        self, app_factory, settings, database, cache_service, redis_client, identity_client
    ):
        store = AsyncMock(spec=RedisCacheStore)
        store.increment.side_effect = RedisConnectionException("redis down")
        app = app_factory(
            settings,
            database,
            cache_service,
            redis_client,
            identity_client,
            RateLimiter(store, settings),
        )

        async with make_client(app) as http_client:
            response = await http_client.get("/api/v1/profiles")

        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers


class TestUnexpectedErrors:
    @pytest.fixture
    def broken_app(self, app_factory, database, cache_service, redis_client, identity_client):
        def build(settings):
            app = app_factory(settings, database, cache_service, redis_client, identity_client)
            app.state.profile_service = AsyncMock()
            app.state.profile_service.get.side_effect = RuntimeError(
                "password=hunter2 in connection string"
            )
            return app

        return build

    async def test_message_hidden_in_production(self, broken_app, settings):
        app = broken_app(settings.model_copy(update={"ENVIRONMENT": "production"}))

        async with make_client(app) as http_client:
            response = await http_client.get(f"/api/v1/profiles/{uuid4()}")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert "hunter2" not in response.text

    async def test_message_shown_outside_production(self, broken_app, settings):
        app = broken_app(settings)

        async with make_client(app) as http_client:
            response = await http_client.get(f"/api/v1/profiles/{uuid4()}")

        assert response.status_code == 500
        assert response.json()["error"]["message"].startswith("RuntimeError")
