"""API schemas."""

from .common import Page
from .experience import (
    ExperienceCreate,
    ExperienceListQuery,
    ExperienceRead,
    ExperienceUpdate,
)
from .profile import (
    ProfileCreate,
    ProfileListQuery,
    ProfileRead,
    ProfileUpdate,
    SocialLinks,
)

__all__ = [
    "Page",
    "ExperienceCreate",
    "ExperienceListQuery",
    "ExperienceRead",
    "ExperienceUpdate",
    "ProfileCreate",
    "ProfileListQuery",
    "ProfileRead",
    "ProfileUpdate",
    "SocialLinks",
]
