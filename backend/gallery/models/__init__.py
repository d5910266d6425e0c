"""
Profile Gallery Database Models

SQLAlchemy models for profiles and their work experiences.
Rows are soft deleted; every read path filters on ``is_deleted``.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import (
    Uuid,
    String,
    Text,
    Boolean,
    Date,
    JSON,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Index,
    false,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Canonical Base class for all database models."""

    pass


class TimestampMixin:
    """Mixin for timestamp fields."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )


class SoftDeleteMixin:
    """Mixin for soft delete functionality."""

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False, index=True
    )

    def mark_deleted(self, when: Optional[datetime] = None) -> None:
        self.is_deleted = True
        self.deleted_at = when or utcnow()


class Profile(Base, TimestampMixin, SoftDeleteMixin):
    """Public professional profile owned by one identity-provider user."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    headline: Mapped[str] = mapped_column(String(100), nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    social_links: Mapped[Dict[str, Any]] = mapped_column(
        JSON, default=dict, nullable=False
    )

    experiences: Mapped[List["Experience"]] = relationship(
        "Experience",
        back_populates="profile",
        cascade="all, delete-orphan",
        order_by="desc(Experience.start_date)",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("length(headline) >= 3", name="ck_profiles_headline_length"),
        Index("ix_profiles_created_at", "created_at"),
    )

    @property
    def active_experiences(self) -> List["Experience"]:
        return [experience for experience in self.experiences if not experience.is_deleted]

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, user_id={self.user_id})>"


class Experience(Base, TimestampMixin, SoftDeleteMixin):
    """Work experience entry attached to a profile."""

    __tablename__ = "experiences"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    company: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    profile: Mapped["Profile"] = relationship("Profile", back_populates="experiences")

    __table_args__ = (
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_experiences_date_range",
        ),
        Index("ix_experiences_profile_start", "profile_id", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<Experience(id={self.id}, profile_id={self.profile_id}, title={self.title})>"
