"""Baseline schema: users, stats, opportunities, applications, messaging

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0a1b2c3d4e5f"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _user_fk(**kw) -> sa.ForeignKey:
    return sa.ForeignKey("users.id", **kw)


def upgrade() -> None:
    """Create every table the domain layer uses."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("profile_picture_url", sa.Text(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column(
            "onboarding_completed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "user_skills",
        sa.Column("user_id", sa.String(50), _user_fk(ondelete="CASCADE"), primary_key=True),
        sa.Column("skill", sa.String(100), primary_key=True),
    )
    op.create_table(
        "user_causes",
        sa.Column("user_id", sa.String(50), _user_fk(ondelete="CASCADE"), primary_key=True),
        sa.Column("cause", sa.String(100), primary_key=True),
    )

    # -- gamification -------------------------------------------------------
    op.create_table(
        "volunteer_stats",
        sa.Column("user_id", sa.String(50), _user_fk(ondelete="CASCADE"), primary_key=True),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("hours", sa.Float(), nullable=False),
    )
    op.create_index("ix_volunteer_stats_points", "volunteer_stats", ["points"])

    op.create_table(
        "volunteer_badges",
        sa.Column("user_id", sa.String(50), _user_fk(ondelete="CASCADE"), primary_key=True),
        sa.Column("badge", sa.String(100), primary_key=True),
        sa.Column(
            "awarded_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )

    op.create_table(
        "gamification_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(50), _user_fk(ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("value", sa.String(255), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column(
            "timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index(
        "ix_gamification_log_user_time", "gamification_log", ["user_id", "timestamp"]
    )

    # -- opportunities & applications ---------------------------------------
    op.create_table(
        "opportunities",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("organization_id", sa.String(50), _user_fk(ondelete="CASCADE"), nullable=False),
        sa.Column("organization", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("commitment", sa.String(100), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("points_awarded", sa.Integer(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("application_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("event_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("event_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_opportunities_organization_id", "opportunities", ["organization_id"])
    op.create_index("ix_opportunities_category", "opportunities", ["category"])

    op.create_table(
        "opportunity_skills",
        sa.Column(
            "opportunity_id",
            sa.String(50),
            sa.ForeignKey("opportunities.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("skill", sa.String(100), primary_key=True),
    )

    op.create_table(
        "applications",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column(
            "opportunity_id", sa.String(50), sa.ForeignKey("opportunities.id"), nullable=False
        ),
        sa.Column("opportunity_title", sa.String(255), nullable=False),
        sa.Column("volunteer_id", sa.String(50), _user_fk(), nullable=False),
        sa.Column("applicant_name", sa.String(255), nullable=False),
        sa.Column("applicant_email", sa.String(255), nullable=False),
        sa.Column("resume_url", sa.Text(), nullable=True),
        sa.Column("cover_letter", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attendance", sa.String(10), nullable=False),
        sa.Column("org_rating", sa.Integer(), nullable=True),
        sa.Column("hours_logged_by_org", sa.Float(), nullable=True),
    )
    op.create_index("ix_applications_volunteer_id", "applications", ["volunteer_id"])
    op.create_index("ix_applications_opportunity_id", "applications", ["opportunity_id"])

    # -- messaging ----------------------------------------------------------
    op.create_table(
        "conversations",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("organization_id", sa.String(50), nullable=False),
        sa.Column("volunteer_id", sa.String(50), nullable=False),
        sa.Column("opportunity_id", sa.String(50), nullable=False),
        sa.Column("opportunity_title", sa.String(255), nullable=True),
        sa.Column("organization_name", sa.String(255), nullable=True),
        sa.Column("volunteer_name", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "organization_id", "volunteer_id", "opportunity_id",
            name="uq_conversations_org_volunteer_opportunity",
        ),
    )
    op.create_index("ix_conversations_volunteer_id", "conversations", ["volunteer_id"])
    op.create_index("ix_conversations_organization_id", "conversations", ["organization_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "conversation_id",
            sa.String(50),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sender_id", sa.String(50), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
    )
    op.create_index(
        "ix_messages_conversation_time", "messages", ["conversation_id", "timestamp"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(50), _user_fk(ondelete="CASCADE"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(255), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_user_time", "notifications", ["user_id", "created_at"])

    # -- moderation ---------------------------------------------------------
    op.create_table(
        "admin_reports",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("reporter_id", sa.String(50), nullable=False),
        sa.Column("reported_user_id", sa.String(50), _user_fk(ondelete="CASCADE"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("resolved_by", sa.String(50), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_admin_reports_status", "admin_reports", ["status"])


def downgrade() -> None:
    """Drop everything, children before parents."""
    for table in (
        "admin_reports",
        "notifications",
        "messages",
        "conversations",
        "applications",
        "opportunity_skills",
        "opportunities",
        "gamification_log",
        "volunteer_badges",
        "volunteer_stats",
        "user_causes",
        "user_skills",
        "users",
    ):
        op.drop_table(table)
