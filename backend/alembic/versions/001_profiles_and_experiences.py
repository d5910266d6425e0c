"""Profiles and experiences

Revision ID: 001_profiles_and_experiences
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001_profiles_and_experiences"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "is_deleted", sa.Boolean(), server_default=sa.false(), nullable=False
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("headline", sa.String(100), nullable=False),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.String(2048), nullable=True),
        sa.Column("social_links", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "length(headline) >= 3", name="ck_profiles_headline_length"
        ),
    )
    op.create_index("ix_profiles_user_id", "profiles", ["user_id"])
    op.create_index("ix_profiles_is_deleted", "profiles", ["is_deleted"])
    op.create_index("ix_profiles_created_at", "profiles", ["created_at"])

    op.create_table(
        "experiences",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "profile_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("company", sa.String(100), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_experiences_date_range",
        ),
    )
    op.create_index("ix_experiences_profile_id", "experiences", ["profile_id"])
    op.create_index("ix_experiences_company", "experiences", ["company"])
    op.create_index("ix_experiences_is_deleted", "experiences", ["is_deleted"])
    op.create_index(
        "ix_experiences_profile_start", "experiences", ["profile_id", "start_date"]
    )


def downgrade() -> None:
    op.drop_table("experiences")
    op.drop_table("profiles")
