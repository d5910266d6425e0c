"""Application services."""

from .experience_service import ExperienceService
from .profile_service import ProfileService

__all__ = ["ExperienceService", "ProfileService"]
