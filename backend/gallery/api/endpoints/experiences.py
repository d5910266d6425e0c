"""
Experiences API endpoints.

All experience routes require a verified user; writes additionally require
ownership of the parent profile (or the ADMIN role).
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Request

from ...domain.identity import AuthenticatedUser
from ...schemas.experience import ExperienceCreate, ExperienceUpdate
from ...services import ExperienceService
from ..dependencies import get_current_user, get_experience_service
from ..responses import entity_response, mutation_response, no_content_response

router = APIRouter(prefix="/experiences", tags=["experiences"])


@router.post("", status_code=201)
async def create_experience(
    data: ExperienceCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ExperienceService = Depends(get_experience_service),
):
    experience = await service.create(user, data)
    return mutation_response(experience, status_code=201)


@router.get("/{experience_id}")
async def get_experience(
    experience_id: UUID,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ExperienceService = Depends(get_experience_service),
):
    experience = await service.get(experience_id)
    return entity_response(request, experience, experience.updated_at)


@router.put("/{experience_id}")
async def update_experience(
    experience_id: UUID,
    data: ExperienceUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ExperienceService = Depends(get_experience_service),
):
    experience = await service.update(experience_id, user, data)
    return mutation_response(experience)


@router.delete("/{experience_id}", status_code=204)
async def delete_experience(
    experience_id: UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ExperienceService = Depends(get_experience_service),
):
    await service.delete(experience_id, user)
    return no_content_response()
