"""
bazaar.records — Operation Output Shapes
=========================================

Frozen dataclasses returned by every store operation.  ORM rows never leave
a session; callers only ever see these.

``to_dict()`` renders camelCase keys for the web front-end, e.g.
``VolunteerApplication.opportunity_title`` → ``"opportunityTitle"``.
Timestamps serialise as ISO-8601 strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from typing import Any


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class _Record:
    """Mixin providing camelCase serialisation.

    Fields marked ``metadata={"private": True}`` are left out.
    """

    __slots__ = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            _camel(f.name): _jsonable(getattr(self, f.name))
            for f in fields(self)
            if not f.metadata.get("private")
        }


# ---------------------------------------------------------------------------
# Identity & stats
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class VolunteerStats(_Record):
    points: int = 0
    hours: float = 0.0
    badges: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class UserProfile(_Record):
    """A user with its multi-valued attributes resolved.

    ``stats`` is only populated for volunteers.
    """

    id: str
    email: str
    display_name: str
    role: str
    profile_picture_url: str | None = None
    bio: str | None = None
    onboarding_completed: bool = False
    skills: list[str] = field(default_factory=list)
    causes: list[str] = field(default_factory=list)
    stats: VolunteerStats | None = None
    hashed_password: str | None = field(
        default=None, repr=False, metadata={"private": True}
    )


@dataclass(frozen=True, slots=True)
class LeaderboardEntry(_Record):
    user_id: str
    user_name: str
    points: int


@dataclass(frozen=True, slots=True)
class AppStatistics(_Record):
    total_volunteers: int
    total_organizations: int
    total_opportunities: int


@dataclass(frozen=True, slots=True)
class GamificationEntry(_Record):
    id: int
    user_id: str
    kind: str
    value: str
    reason: str
    timestamp: datetime | None


# ---------------------------------------------------------------------------
# Opportunities & applications
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Opportunity(_Record):
    id: str
    organization_id: str
    organization: str
    title: str
    description: str
    location: str
    commitment: str
    category: str
    points_awarded: int = 0
    image_url: str | None = None
    required_skills: list[str] = field(default_factory=list)
    application_deadline: datetime | None = None
    event_start_date: datetime | None = None
    event_end_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class VolunteerApplication(_Record):
    id: str
    opportunity_id: str
    opportunity_title: str
    volunteer_id: str
    applicant_name: str
    applicant_email: str
    status: str
    attendance: str
    submitted_at: datetime | None = None
    resume_url: str | None = None
    cover_letter: str | None = None
    org_rating: int | None = None
    hours_logged_by_org: float | None = None


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Message(_Record):
    id: int
    conversation_id: str
    sender_id: str
    text: str
    timestamp: datetime | None
    is_read: bool


@dataclass(frozen=True, slots=True)
class Conversation(_Record):
    """A thread with its full message history, oldest first."""

    id: str
    organization_id: str
    volunteer_id: str
    opportunity_id: str
    opportunity_title: str | None
    organization_name: str | None
    volunteer_name: str | None
    created_at: datetime | None
    updated_at: datetime | None
    messages: list[Message] = field(default_factory=list)

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None


@dataclass(frozen=True, slots=True)
class ConversationSummary(_Record):
    """Inbox row: a thread plus its derived unread count and last message."""

    id: str
    organization_id: str
    volunteer_id: str
    opportunity_id: str
    opportunity_title: str | None
    organization_name: str | None
    volunteer_name: str | None
    created_at: datetime | None
    updated_at: datetime | None
    unread_count: int = 0
    last_message: Message | None = None


# ---------------------------------------------------------------------------
# Notifications & moderation
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class UserNotification(_Record):
    id: int
    user_id: str
    message: str
    link: str | None
    is_read: bool
    created_at: datetime | None


@dataclass(frozen=True, slots=True)
class AdminReport(_Record):
    id: str
    reporter_id: str
    reported_user_id: str
    reason: str
    status: str
    created_at: datetime | None
    admin_notes: str | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    reporter_display_name: str | None = None
    reported_user_display_name: str | None = None
