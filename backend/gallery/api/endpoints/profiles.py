"""
Profiles API endpoints.

Reads are public and served cache-aside; writes require a verified user and
ownership, and profile deletion is reserved for administrators.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from ...domain.identity import AuthenticatedUser, Role
from ...schemas.experience import ExperienceListQuery, ExperienceSortField, SortOrder
from ...schemas.profile import ProfileCreate, ProfileListQuery, ProfileUpdate
from ...services import ExperienceService, ProfileService
from ..dependencies import (
    get_current_user,
    get_experience_service,
    get_profile_service,
    require_roles,
)
from ..responses import (
    entity_response,
    mutation_response,
    no_content_response,
    paginated_response,
)

router = APIRouter(prefix="/profiles", tags=["profiles"])


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


@router.post("", status_code=201)
async def create_profile(
    data: ProfileCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    profile = await service.create(user, data)
    return mutation_response(profile, status_code=201)


@router.get("")
async def list_profiles(
    page: int = Query(1, ge=1),
    page_size: int = Query(12, ge=1, le=100, alias="pageSize"),
    search: Optional[str] = Query(None, max_length=100),
    company: Optional[str] = Query(None, max_length=100),
    service: ProfileService = Depends(get_profile_service),
):
    query = ProfileListQuery(
        page=page,
        page_size=page_size,
        search=_blank_to_none(search),
        company=_blank_to_none(company),
    )
    return paginated_response(await service.list(query))


@router.get("/{profile_id}")
async def get_profile(
    profile_id: UUID,
    request: Request,
    service: ProfileService = Depends(get_profile_service),
):
    profile = await service.get(profile_id)
    return entity_response(request, profile, profile.updated_at)


@router.put("/{profile_id}")
async def update_profile(
    profile_id: UUID,
    data: ProfileUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    profile = await service.update(profile_id, user, data)
    return mutation_response(profile)


@router.delete("/{profile_id}", status_code=204)
async def delete_profile(
    profile_id: UUID,
    user: AuthenticatedUser = Depends(require_roles(Role.ADMIN)),
    service: ProfileService = Depends(get_profile_service),
):
    await service.delete(profile_id, user)
    return no_content_response()


@router.get("/{profile_id}/experiences")
async def list_profile_experiences(
    profile_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    sort_by: ExperienceSortField = Query("start_date", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
    user: AuthenticatedUser = Depends(get_current_user),
    service: ExperienceService = Depends(get_experience_service),
):
    query = ExperienceListQuery(
        page=page, page_size=page_size, sort_by=sort_by, sort_order=sort_order
    )
    return paginated_response(await service.list_for_profile(profile_id, query))
