"""
Session endpoints backed by the identity provider.
"""

import structlog
from fastapi import APIRouter, Depends

from ...domain.identity import AuthenticatedUser
from ...infrastructure.identity import IdentityProviderClient
from ..dependencies import get_current_user, get_identity_client
from ..responses import mutation_response, success_response

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/session")
async def get_session(user: AuthenticatedUser = Depends(get_current_user)):
    """The verified caller behind the bearer token."""
    return success_response(
        {"user": user.to_dict(), "session_id": user.session_id},
        headers={"Cache-Control": "private, no-store"},
    )


@router.post("/signout")
async def sign_out(
    user: AuthenticatedUser = Depends(get_current_user),
    identity_client: IdentityProviderClient = Depends(get_identity_client),
):
    if user.session_id:
        await identity_client.revoke_session(user.session_id)
    logger.info("User signed out", user_id=user.id, session_id=user.session_id)
    return mutation_response({"signed_out": True})
