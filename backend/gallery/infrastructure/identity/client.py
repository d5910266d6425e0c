"""
Identity provider client.

Verifies bearer session tokens against the external identity provider and
loads the user profile (email, names, avatar, roles) that goes with them.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...core.config import Settings, get_settings
from ...core.exceptions import ServiceUnavailableError, UnauthorizedError
from ...domain.identity import AuthenticatedUser, Role

logger = structlog.get_logger()

_transport_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    retry=retry_if_exception_type(httpx.TransportError),
    reraise=True,
)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Provider timestamps are epoch milliseconds."""
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


class IdentityProviderClient:
    """Client for the identity provider's backend API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._client = http_client or httpx.AsyncClient(
            base_url=self.settings.IDENTITY_PROVIDER_URL,
            timeout=self.settings.IDENTITY_PROVIDER_TIMEOUT,
        )
        self._headers = {
            "Authorization": f"Bearer {self.settings.IDENTITY_PROVIDER_SECRET_KEY}"
        }

    @_transport_retry
    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        return await self._client.post(path, json=payload, headers=self._headers)

    @_transport_retry
    async def _get(self, path: str) -> httpx.Response:
        return await self._client.get(path, headers=self._headers)

    async def verify_token(self, token: str) -> AuthenticatedUser:
        """
        Resolve a session token into an authenticated user.

        Raises:
            UnauthorizedError: Token is malformed, unknown, revoked or expired
            ServiceUnavailableError: The provider cannot be reached or errored
        """
        if not token or not token.strip():
            raise UnauthorizedError("Invalid token format")

        try:
            response = await self._post("/v1/sessions/verify", {"token": token})
        except httpx.HTTPError as e:
            logger.error("Identity provider unreachable", error=str(e))
            raise ServiceUnavailableError("Identity provider unavailable") from e

        if response.status_code in (400, 401, 403, 404):
            logger.info(
                "Session token rejected by identity provider",
                status_code=response.status_code,
            )
            raise UnauthorizedError("Invalid session token")
        if response.status_code != 200:
            logger.error(
                "Identity provider error during verification",
                status_code=response.status_code,
            )
            raise ServiceUnavailableError("Identity provider unavailable")

        session = response.json()
        user_id = session.get("user_id")
        if not user_id or session.get("status", "active") != "active":
            raise UnauthorizedError("Invalid session token")

        user = await self.get_user(user_id)
        return AuthenticatedUser(
            id=user_id,
            email=user.get("email"),
            first_name=user.get("first_name"),
            last_name=user.get("last_name"),
            image_url=user.get("image_url"),
            roles=Role.parse_many((user.get("public_metadata") or {}).get("roles")),
            session_id=session.get("id"),
            last_login_at=_parse_timestamp(user.get("last_sign_in_at")),
        )

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        try:
            response = await self._get(f"/v1/users/{user_id}")
        except httpx.HTTPError as e:
            logger.error("Identity provider unreachable", error=str(e), user_id=user_id)
            raise ServiceUnavailableError("Identity provider unavailable") from e

        if response.status_code == 404:
            raise UnauthorizedError("User not found")
        if response.status_code != 200:
            logger.error(
                "Identity provider error loading user",
                status_code=response.status_code,
                user_id=user_id,
            )
            raise ServiceUnavailableError("Identity provider unavailable")

        payload = response.json()
        email = payload.get("email")
        if email is None:
            addresses = payload.get("email_addresses") or []
            if addresses:
                email = addresses[0].get("email_address")
        payload["email"] = email
        return payload

    async def revoke_session(self, session_id: str) -> None:
        """Revoke a session; an already revoked session is not an error."""
        try:
            response = await self._post(f"/v1/sessions/{session_id}/revoke", {})
        except httpx.HTTPError as e:
            logger.error("Identity provider unreachable", error=str(e))
            raise ServiceUnavailableError("Identity provider unavailable") from e

        if response.status_code not in (200, 204, 404):
            logger.error(
                "Failed to revoke session",
                session_id=session_id,
                status_code=response.status_code,
            )
            raise ServiceUnavailableError("Failed to revoke session")

        logger.info("Session revoked", session_id=session_id)

    async def close(self) -> None:
        await self._client.aclose()
