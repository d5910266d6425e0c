"""
HTTP tests for the session endpoints and identity provider failures.
"""

import pytest

from gallery.core.exceptions import ServiceUnavailableError
from gallery.domain.identity import AuthenticatedUser, Role

pytestmark = pytest.mark.integration


async def test_session_returns_verified_user(client, auth_headers):
    response = await client.get("/api/v1/auth/session", headers=auth_headers["moderator"])

    assert response.status_code == 200
    assert response.headers["Cache-Control"] == "private, no-store"
    user = response.json()["data"]["user"]
    assert user["id"] == "user_moderator"
    assert user["roles"] == ["MODERATOR", "USER"]


async def test_session_requires_token(client):
    response = await client.get("/api/v1/auth/session")

    assert response.status_code == 401


async def test_malformed_authorization_header(client):
    response = await client.get(
        "/api/v1/auth/session", headers={"Authorization": "Basic dXNlcjpwYXNz"}
    )

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid authorization header"


async def test_signout_revokes_session(client, identity_client):
    identity_client.tokens["session-token"] = AuthenticatedUser(
        id="user_session", roles=frozenset({Role.USER}), session_id="sess_9"
    )

    response = await client.post("/api/v1/auth/signout", headers={"Authorization": "Bearer session-token"})

    assert response.status_code == 200
    assert response.json()["data"] == {"signed_out": True}
    assert identity_client.revoked == ["sess_9"]


async def test_public_reads_tolerate_bad_tokens(client, auth_headers):
    response = await client.get("/api/v1/profiles", headers=auth_headers["invalid"])

    assert response.status_code == 200


async def test_identity_provider_outage_is_503(client, identity_client, auth_headers):
    async def unavailable(token):
        raise ServiceUnavailableError("Identity provider unavailable")

    identity_client.verify_token = unavailable

    response = await client.get("/api/v1/auth/session", headers=auth_headers["owner"])

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"
