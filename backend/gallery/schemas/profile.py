"""
Profile request/response schemas.
"""

import re
from datetime import datetime
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError

from .experience import ExperienceRead

URL_PATTERN = re.compile(
    r"^https?://(?:[\w-]+\.)+[\w-]{2,}(?::\d{1,5})?(?:[/?#][^\s]*)?$", re.IGNORECASE
)

Headline = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=3, max_length=100)
]
Bio = Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)]


def validate_url(value: Optional[str]) -> Optional[str]:
    """Accept absolute http(s) URLs only; empty values become None."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if len(value) > 2048 or not URL_PATTERN.match(value):
        raise PydanticCustomError("url", "Invalid URL format")
    return value


class SocialLinks(BaseModel):
    model_config = ConfigDict(extra="forbid")

    linkedin: Optional[str] = None
    github: Optional[str] = None
    website: Optional[str] = None

    @field_validator("linkedin", "github", "website", mode="before")
    @classmethod
    def check_urls(cls, v):
        return validate_url(v)


class ProfileBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bio: Optional[Bio] = Field(None, description="Short biography")
    avatar_url: Optional[str] = Field(None, description="Avatar image URL")
    social_links: Optional[SocialLinks] = None

    @field_validator("bio", mode="before")
    @classmethod
    def empty_bio_is_null(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("avatar_url", mode="before")
    @classmethod
    def check_avatar_url(cls, v):
        return validate_url(v)


class ProfileCreate(ProfileBase):
    """Schema for creating profiles."""

    headline: Headline = Field(..., description="Professional headline")


class ProfileUpdate(ProfileBase):
    """Schema for updating profiles; omitted fields stay unchanged."""

    headline: Optional[Headline] = None

    @model_validator(mode="after")
    def require_some_field(self):
        if not self.model_fields_set:
            raise PydanticCustomError(
                "min_properties", "At least one field must be provided"
            )
        return self


class ProfileRead(BaseModel):
    """Profile as returned by the API and stored in the cache."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    headline: str
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    social_links: dict = Field(default_factory=dict)
    experiences: List[ExperienceRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, profile) -> "ProfileRead":
        return cls(
            id=profile.id,
            user_id=profile.user_id,
            headline=profile.headline,
            bio=profile.bio,
            avatar_url=profile.avatar_url,
            social_links=profile.social_links or {},
            experiences=[
                ExperienceRead.model_validate(experience)
                for experience in profile.active_experiences
            ],
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )


class ProfileListQuery(BaseModel):
    """Every input that shapes a profile list page."""

    page: int = Field(1, ge=1)
    page_size: int = Field(12, ge=1, le=100)
    search: Optional[str] = Field(None, max_length=100)
    company: Optional[str] = Field(None, max_length=100)
