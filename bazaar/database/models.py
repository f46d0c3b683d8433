"""
bazaar.database.models — SQLAlchemy 2.0 Data Models
====================================================

Relational schema backing the Volunteer Bazaar domain layer.

Tables:
- users              — Volunteers, organizations and admins
- user_skills        — Multi-valued skills per user (one row per value)
- user_causes        — Multi-valued causes per user (one row per value)
- volunteer_stats    — 1:1 gamification totals for a volunteer
- volunteer_badges   — Earned badges (append-only, one row per badge)
- gamification_log   — Append-only audit trail for every stat mutation
- opportunities      — Postings owned by an organization
- opportunity_skills — Required skills per opportunity
- applications       — Volunteer applications with status + attendance
- conversations      — One thread per (organization, volunteer, opportunity)
- messages           — Append-only messages; only ``is_read`` ever changes
- notifications      — Per-user notification log
- admin_reports      — User reports awaiting moderation

Multi-valued attributes are child tables keyed by (owner, value), never
delimited strings.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Bazaar ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class UserRole(enum.StrEnum):
    VOLUNTEER = "volunteer"
    ORGANIZATION = "organization"
    ADMIN = "admin"


class ApplicationStatus(enum.StrEnum):
    """Lifecycle of a volunteer application."""
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    WITHDRAWN = "withdrawn"


class Attendance(enum.StrEnum):
    PENDING = "pending"
    PRESENT = "present"
    ABSENT = "absent"


class StatKind(enum.StrEnum):
    """What a gamification_log row records."""
    POINTS = "points"
    BADGE = "badge"
    HOURS = "hours"


class ReportStatus(enum.StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    profile_picture_url: Mapped[str | None] = mapped_column(Text, default=None)
    bio: Mapped[str | None] = mapped_column(Text, default=None)
    onboarding_completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_users_role", "role"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id!r} name={self.display_name!r} role={self.role}>"


class UserSkill(Base):
    __tablename__ = "user_skills"

    user_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    skill: Mapped[str] = mapped_column(String(100), primary_key=True)


class UserCause(Base):
    __tablename__ = "user_causes"

    user_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    cause: Mapped[str] = mapped_column(String(100), primary_key=True)


# ---------------------------------------------------------------------------
# VolunteerStats — 1:1 with a volunteer, created lazily on first award
# ---------------------------------------------------------------------------
class VolunteerStats(Base):
    __tablename__ = "volunteer_stats"

    user_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (
        Index("ix_volunteer_stats_points", "points"),
    )

    def __repr__(self) -> str:
        return f"<VolunteerStats user={self.user_id!r} pts={self.points} hrs={self.hours}>"


class VolunteerBadge(Base):
    __tablename__ = "volunteer_badges"

    user_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    badge: Mapped[str] = mapped_column(String(100), primary_key=True)
    awarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<VolunteerBadge user={self.user_id!r} badge={self.badge!r}>"


# ---------------------------------------------------------------------------
# GamificationLog — append-only audit trail
# ---------------------------------------------------------------------------
class GamificationLog(Base):
    __tablename__ = "gamification_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(10), nullable=False)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_gamification_log_user_time", "user_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<GamificationLog id={self.id} user={self.user_id!r} kind={self.kind}>"


# ---------------------------------------------------------------------------
# Opportunities
# ---------------------------------------------------------------------------
class Opportunity(Base):
    __tablename__ = "opportunities"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    organization_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Display-name snapshot of the owning organization
    organization: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    commitment: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_url: Mapped[str | None] = mapped_column(Text, default=None)
    application_deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    event_start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    event_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_opportunities_organization_id", "organization_id"),
        Index("ix_opportunities_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Opportunity id={self.id!r} title={self.title!r}>"


class OpportunitySkill(Base):
    __tablename__ = "opportunity_skills"

    opportunity_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("opportunities.id", ondelete="CASCADE"), primary_key=True
    )
    skill: Mapped[str] = mapped_column(String(100), primary_key=True)


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------
class Application(Base):
    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    opportunity_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("opportunities.id"), nullable=False
    )
    # Snapshots taken at submission time, never re-synced
    opportunity_title: Mapped[str] = mapped_column(String(255), nullable=False)
    volunteer_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("users.id"), nullable=False
    )
    applicant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    applicant_email: Mapped[str] = mapped_column(String(255), nullable=False)
    resume_url: Mapped[str | None] = mapped_column(Text, default=None)
    cover_letter: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApplicationStatus.SUBMITTED.value
    )
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    attendance: Mapped[str] = mapped_column(
        String(10), nullable=False, default=Attendance.PENDING.value
    )
    org_rating: Mapped[int | None] = mapped_column(Integer, default=None)
    hours_logged_by_org: Mapped[float | None] = mapped_column(Float, default=None)

    __table_args__ = (
        Index("ix_applications_volunteer_id", "volunteer_id"),
        Index("ix_applications_opportunity_id", "opportunity_id"),
    )

    def __repr__(self) -> str:
        return f"<Application id={self.id!r} status={self.status}>"


# ---------------------------------------------------------------------------
# Conversations & Messages
# ---------------------------------------------------------------------------
class Conversation(Base):
    """A message thread between one organization and one volunteer about
    one opportunity.

    Participant and opportunity columns deliberately carry no foreign keys:
    a conversation may outlive (or predate) the rows it names, and its
    display names are snapshots.
    """
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    organization_id: Mapped[str] = mapped_column(String(50), nullable=False)
    volunteer_id: Mapped[str] = mapped_column(String(50), nullable=False)
    opportunity_id: Mapped[str] = mapped_column(String(50), nullable=False)
    opportunity_title: Mapped[str | None] = mapped_column(String(255), default=None)
    organization_name: Mapped[str | None] = mapped_column(String(255), default=None)
    volunteer_name: Mapped[str | None] = mapped_column(String(255), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    messages: Mapped[list[Message]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: (Message.timestamp, Message.id),
    )

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "volunteer_id", "opportunity_id",
            name="uq_conversations_org_volunteer_opportunity",
        ),
        Index("ix_conversations_volunteer_id", "volunteer_id"),
        Index("ix_conversations_organization_id", "organization_id"),
    )

    def __repr__(self) -> str:
        return f"<Conversation id={self.id!r} opp={self.opportunity_id!r}>"


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(String(50), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    conversation: Mapped[Conversation] = relationship(back_populates="messages")

    __table_args__ = (
        Index("ix_messages_conversation_time", "conversation_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<Message id={self.id} convo={self.conversation_id!r} read={self.is_read}>"


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(String(255), default=None)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_notifications_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id!r} read={self.is_read}>"


# ---------------------------------------------------------------------------
# AdminReport — user reports awaiting moderation
# ---------------------------------------------------------------------------
class AdminReport(Base):
    __tablename__ = "admin_reports"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    reporter_id: Mapped[str] = mapped_column(String(50), nullable=False)
    reported_user_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReportStatus.PENDING.value
    )
    admin_notes: Mapped[str | None] = mapped_column(Text, default=None)
    resolved_by: Mapped[str | None] = mapped_column(String(50), default=None)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_admin_reports_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<AdminReport id={self.id!r} status={self.status}>"
