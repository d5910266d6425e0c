"""Repositories for soft-deletable models."""

from .base import BaseRepository
from .experience import ExperienceRepository
from .profile import ProfileRepository

__all__ = ["BaseRepository", "ExperienceRepository", "ProfileRepository"]
