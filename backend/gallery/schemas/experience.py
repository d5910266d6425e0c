"""
Experience request/response schemas.
"""

from datetime import date, datetime
from typing import Annotated, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic_core import PydanticCustomError

MIN_YEAR = 1900

# Letters, digits, whitespace and - . , ( ) &
ExperienceText = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True,
        min_length=1,
        max_length=100,
        pattern=r"^[\w\s\-\.,()&]+$",
    ),
]
Description = Annotated[str, StringConstraints(strip_whitespace=True, max_length=1000)]

ExperienceSortField = Literal["start_date", "end_date", "created_at", "title", "company"]
SortOrder = Literal["asc", "desc"]


def check_not_future(value: Optional[date]) -> Optional[date]:
    if value is None:
        return None
    if value > date.today():
        raise PydanticCustomError("date_not_future", "Date cannot be in the future")
    if value.year < MIN_YEAR:
        raise PydanticCustomError(
            "date_min_year", "Date must be in or after {min_year}", {"min_year": MIN_YEAR}
        )
    return value


class ExperienceBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    end_date: Optional[date] = Field(None, description="Null means current position")
    description: Optional[Description] = None

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v):
        return check_not_future(v)

    @field_validator("description", mode="before")
    @classmethod
    def empty_description_is_null(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ExperienceCreate(ExperienceBase):
    """Schema for creating experiences."""

    profile_id: UUID
    title: ExperienceText
    company: ExperienceText
    start_date: date

    @field_validator("start_date")
    @classmethod
    def validate_start_date(cls, v):
        return check_not_future(v)


class ExperienceUpdate(ExperienceBase):
    """Schema for updating experiences; omitted fields stay unchanged."""

    title: Optional[ExperienceText] = None
    company: Optional[ExperienceText] = None
    start_date: Optional[date] = None

    @field_validator("start_date")
    @classmethod
    def validate_start_date(cls, v):
        return check_not_future(v)


class ExperienceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    profile_id: UUID
    title: str
    company: str
    start_date: date
    end_date: Optional[date] = None
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ExperienceListQuery(BaseModel):
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1, le=100)
    sort_by: ExperienceSortField = "start_date"
    sort_order: SortOrder = "desc"
