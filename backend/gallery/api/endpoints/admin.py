"""
Administrative endpoints.
"""

import structlog
from fastapi import APIRouter, Depends

from ...domain.identity import AuthenticatedUser, Role
from ...services.cache import CacheService
from ..dependencies import get_cache_service, require_roles
from ..responses import mutation_response

logger = structlog.get_logger()
router = APIRouter(prefix="/admin", tags=["admin"])


@router.delete("/cache")
async def clear_cache(
    user: AuthenticatedUser = Depends(require_roles(Role.ADMIN)),
    cache: CacheService = Depends(get_cache_service),
):
    """Drop every entry in the cache namespace."""
    deleted = await cache.clear()
    logger.warning("Cache cleared", user_id=user.id, keys_deleted=deleted)
    return mutation_response({"keys_deleted": deleted})
