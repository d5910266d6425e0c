"""
FastAPI dependencies.

Singletons are created in the application lifespan and stored on
``app.state``; these dependencies hand them to the routes.
"""

from typing import Callable

from fastapi import Depends, Request

from ..core.database import DatabaseManager
from ..core.exceptions import ForbiddenError, UnauthorizedError
from ..domain.identity import AuthenticatedUser, Role
from ..infrastructure.identity import IdentityProviderClient
from ..services import ExperienceService, ProfileService
from ..services.cache import CacheService


def get_database(request: Request) -> DatabaseManager:
    return request.app.state.database


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache_service


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def get_experience_service(request: Request) -> ExperienceService:
    return request.app.state.experience_service


def get_identity_client(request: Request) -> IdentityProviderClient:
    return request.app.state.identity_client


def get_current_user(request: Request) -> AuthenticatedUser:
    """The verified caller; raises the stored verification error otherwise."""
    user = getattr(request.state, "user", None)
    if user is not None:
        return user
    error = getattr(request.state, "auth_error", None)
    if error is not None:
        raise error
    raise UnauthorizedError("Authentication required")


def require_roles(*roles: Role) -> Callable[..., AuthenticatedUser]:
    """Dependency factory: the caller must hold at least one of ``roles``."""

    def dependency(
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if not user.has_any_role(*roles):
            raise ForbiddenError(
                "Insufficient permissions",
                details={"required_roles": sorted(role.value for role in roles)},
            )
        return user

    return dependency
