"""
bazaar.constants — Shared Constants & Helpers
==============================================

Single source of truth for the badge ladder, application state machine,
user-facing notification copy, dashboard links, and id/placeholder helpers.
Import from here instead of duplicating across stores.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from bazaar.database.models import ApplicationStatus

# ---------------------------------------------------------------------------
# Hour-based badge ladder (checked after every hours increment)
# ---------------------------------------------------------------------------
HOUR_BADGES: list[tuple[str, float, str]] = [
    ("First Timer", 1, "Logging your first volunteer hour"),
    ("Helping Hand", 10, "Volunteering for 10 hours"),
    ("Dedicated Helper", 25, "Volunteering for 25 hours"),
    ("Community Champion", 50, "Volunteering for 50 hours"),
    ("Volunteer Hero", 100, "Volunteering for 100 hours"),
]


# ---------------------------------------------------------------------------
# Application state machine
# ---------------------------------------------------------------------------
STATUS_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.SUBMITTED: frozenset({
        ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED,
    }),
    ApplicationStatus.ACCEPTED: frozenset({
        ApplicationStatus.COMPLETED, ApplicationStatus.WITHDRAWN,
    }),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.COMPLETED: frozenset(),
    ApplicationStatus.WITHDRAWN: frozenset(),
}


# ---------------------------------------------------------------------------
# Listing knobs
# ---------------------------------------------------------------------------
VOLUNTEER_SORTS: tuple[str, ...] = (
    "points_desc", "points_asc", "name_asc", "name_desc", "hours_desc", "hours_asc",
)
DEFAULT_VOLUNTEER_SORT = "points_desc"
DEFAULT_NOTIFICATION_LIMIT = 50
DEFAULT_ACCEPTANCE_BONUS = 10

# Extra points for a high organization rating on a completed application
RATING_BONUS: dict[int, int] = {5: 20, 4: 10}


# ---------------------------------------------------------------------------
# Dashboard links attached to notifications
# ---------------------------------------------------------------------------
LINK_ORG_APPLICATIONS = "/dashboard/organization/applications"
LINK_VOLUNTEER_APPLICATIONS = "/dashboard/volunteer/applications"
LINK_VOLUNTEER_DASHBOARD = "/dashboard/volunteer"


# Volunteer-facing notice per status change: (message template, link)
STATUS_NOTICES: dict[ApplicationStatus, tuple[str, str]] = {
    ApplicationStatus.ACCEPTED: (
        'Your application for "{title}" has been accepted.', LINK_VOLUNTEER_APPLICATIONS,
    ),
    ApplicationStatus.REJECTED: (
        'Unfortunately, your application for "{title}" was not accepted at this time.',
        LINK_VOLUNTEER_DASHBOARD,
    ),
    ApplicationStatus.COMPLETED: (
        'Your application for "{title}" has been marked as completed.',
        LINK_VOLUNTEER_APPLICATIONS,
    ),
    ApplicationStatus.WITHDRAWN: (
        'Your application for "{title}" has been withdrawn.', LINK_VOLUNTEER_APPLICATIONS,
    ),
}


def conversation_link(conversation_id: str) -> str:
    return f"/dashboard/messages/{conversation_id}"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def utcnow() -> datetime:
    return datetime.now(UTC)


def new_id(prefix: str) -> str:
    """Generate a prefixed string id, e.g. ``opp-3f9c0a1b2d4e``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def placeholder_name(label: str, entity_id: str) -> str:
    """Short stand-in name for a row that could not be resolved.

    >>> placeholder_name("Org", "org_123456")
    'Org (org_)'
    """
    return f"{label} ({entity_id[:4]})"


def format_amount(value: float) -> str:
    """Render 3.0 as ``"3"`` and 2.5 as ``"2.5"`` for user-facing copy."""
    return str(int(value)) if float(value).is_integer() else f"{value:g}"
