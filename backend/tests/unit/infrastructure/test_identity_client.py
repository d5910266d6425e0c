"""
Unit tests for the identity provider client against a mocked transport.
"""

from datetime import datetime, timezone

import httpx
import pytest

from gallery.core.exceptions import ServiceUnavailableError, UnauthorizedError
from gallery.domain.identity import Role
from gallery.infrastructure.identity import IdentityProviderClient

SESSION = {"id": "sess_1", "user_id": "user_42", "status": "active"}
USER = {
    "id": "user_42",
    "email_addresses": [{"email_address": "ada@example.com"}],
    "first_name": "Ada",
    "last_name": "Lovelace",
    "image_url": "https://img.example.com/ada.png",
    "public_metadata": {"roles": ["moderator", "user"]},
    "last_sign_in_at": 1700000000000,
}


def make_client(settings, handler):
    http_client = httpx.AsyncClient(
        base_url="http://identity.test", transport=httpx.MockTransport(handler)
    )
    return IdentityProviderClient(settings, http_client=http_client)


def provider(session_status=200, user_status=200, session=None, user=None, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        if request.url.path == "/v1/sessions/verify":
            return httpx.Response(session_status, json=session or SESSION)
        if request.url.path.startswith("/v1/users/"):
            return httpx.Response(user_status, json=user or USER)
        if request.url.path.endswith("/revoke"):
            return httpx.Response(200, json={})
        return httpx.Response(404)

    return handler


async def test_verify_token_builds_user(settings):
    calls = []
    client = make_client(settings, provider(calls=calls))

    user = await client.verify_token("session-token")

    assert user.id == "user_42"
    assert user.email == "ada@example.com"
    assert user.roles == frozenset({Role.MODERATOR, Role.USER})
    assert user.session_id == "sess_1"
    assert user.last_login_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)
    assert calls[0].headers["Authorization"] == "Bearer sk_test_gallery"
    await client.close()


async def test_missing_roles_default_to_user(settings):
    client = make_client(settings, provider(user={"id": "user_42", "email": "a@b.co"}))

    user = await client.verify_token("session-token")

    assert user.roles == frozenset({Role.USER})
    assert user.email == "a@b.co"


async def test_blank_token_rejected_without_calling_provider(settings):
    calls = []
    client = make_client(settings, provider(calls=calls))

    with pytest.raises(UnauthorizedError):
        await client.verify_token("  ")
    assert calls == []


@pytest.mark.parametrize("status", [400, 401, 404])
async def test_rejected_token_is_unauthorized(settings, status):
    client = make_client(settings, provider(session_status=status))

    with pytest.raises(UnauthorizedError):
        await client.verify_token("expired")


async def test_inactive_session_is_unauthorized(settings):
    session = dict(SESSION, status="revoked")
    client = make_client(settings, provider(session=session))

    with pytest.raises(UnauthorizedError):
        await client.verify_token("revoked")


async def test_provider_error_is_service_unavailable(settings):
    client = make_client(settings, provider(session_status=500))

    with pytest.raises(ServiceUnavailableError):
        await client.verify_token("session-token")


async def test_unreachable_provider_is_retried_then_unavailable(settings):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(settings, handler)

    with pytest.raises(ServiceUnavailableError):
        await client.verify_token("session-token")
    assert len(attempts) == 3


async def test_unknown_user_is_unauthorized(settings):
    client = make_client(settings, provider(user_status=404))

    with pytest.raises(UnauthorizedError):
        await client.verify_token("session-token")


async def test_revoke_session(settings):
    calls = []
    client = make_client(settings, provider(calls=calls))

    await client.revoke_session("sess_1")

    assert calls[0].method == "POST"
    assert calls[0].url.path == "/v1/sessions/sess_1/revoke"
