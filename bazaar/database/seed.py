"""
bazaar.database.seed — Demo Data Seeder
========================================

A small marketplace so a fresh development database is immediately usable:
three organizations, three volunteers, one opportunity per organization and
a short conversation thread for each pair.

Idempotent: rows are keyed by fixed ids and only inserted when missing.
Nothing created later by users is ever overwritten.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from bazaar.constants import utcnow
from bazaar.database.engine import DataContext
from bazaar.database.models import (
    Conversation,
    Message,
    Opportunity,
    OpportunitySkill,
    User,
    UserCause,
    UserRole,
    UserSkill,
    VolunteerStats,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
DEMO_ORGANIZATIONS: list[tuple[str, str, str]] = [
    ("org_123456", "contact@redcross.example", "Red Cross Chapter"),
    ("org_234567", "hello@foodbank.example", "Food Bank Network"),
    ("org_345678", "team@animalrescue.example", "Animal Rescue Center"),
]
"""``(id, email, display_name)``"""

DEMO_VOLUNTEERS: list[tuple[str, str, str, list[str], list[str]]] = [
    ("vol_123456", "john@example.com", "John Volunteer", ["First Aid", "Logistics"], ["Disaster Relief"]),
    ("vol_234567", "sarah@example.com", "Sarah Helper", ["Event Planning"], ["Hunger"]),
    ("vol_345678", "mike@example.com", "Mike Service", ["Animal Care"], ["Animal Welfare"]),
]
"""``(id, email, display_name, skills, causes)``"""

DEMO_OPPORTUNITIES: list[dict] = [
    {
        "id": "opp-345678",
        "organization_id": "org_123456",
        "title": "Disaster Relief Volunteer",
        "description": "Help prepare emergency kits and staff shelters after local disasters.",
        "location": "Springfield",
        "commitment": "Flexible",
        "category": "Disaster Relief",
        "points_awarded": 50,
        "skills": ["First Aid", "Logistics"],
    },
    {
        "id": "opp-123456",
        "organization_id": "org_234567",
        "title": "Food Drive Coordinator",
        "description": "Coordinate collection points and volunteers for the monthly food drive.",
        "location": "Shelbyville",
        "commitment": "Weekly",
        "category": "Hunger",
        "points_awarded": 30,
        "skills": ["Event Planning"],
    },
    {
        "id": "opp-234567",
        "organization_id": "org_345678",
        "title": "Animal Shelter Helper",
        "description": "Walk and socialize dogs waiting for adoption.",
        "location": "Springfield",
        "commitment": "Weekends",
        "category": "Animal Welfare",
        "points_awarded": 20,
        "skills": ["Animal Care"],
    },
]

# convo id, org, volunteer, opportunity, [(sender is org?, text)]
DEMO_CONVERSATIONS: list[tuple[str, str, str, str, list[tuple[bool, str]]]] = [
    ("convo-123456", "org_123456", "vol_123456", "opp-345678", [
        (True, "Hello John, thank you for your interest in our Disaster Relief Volunteer opportunity!"),
        (False, "Hi there! I'm excited to help out with disaster relief efforts."),
        (True, "Great! We have an orientation session this weekend. Would you be able to attend?"),
    ]),
    ("convo-234567", "org_234567", "vol_234567", "opp-123456", [
        (True, "Hi Sarah, thanks for applying to our Food Drive Coordinator position!"),
        (False, "Hello! I'm very interested in helping with food security initiatives."),
    ]),
    ("convo-345678", "org_345678", "vol_345678", "opp-234567", [
        (True, "Hello Mike, thank you for your interest in helping at our animal shelter!"),
        (False, "Hi there! I love animals and would be happy to help out."),
        (True, "Perfect! Can you start this weekend? We have orientation at 9 AM on Saturday."),
    ]),
]


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_demo_data(ctx: DataContext) -> int:
    """Insert any missing demo rows.  Returns how many top-level rows were added.

    Safe to call on every startup.
    """
    inserted = 0
    now = utcnow()
    with ctx.transaction() as session:
        for user_id, email, name in DEMO_ORGANIZATIONS:
            if session.get(User, user_id) is None:
                session.add(User(
                    id=user_id, email=email, display_name=name,
                    role=UserRole.ORGANIZATION.value, onboarding_completed=True,
                ))
                inserted += 1

        for user_id, email, name, skills, causes in DEMO_VOLUNTEERS:
            if session.get(User, user_id) is None:
                session.add(User(
                    id=user_id, email=email, display_name=name,
                    role=UserRole.VOLUNTEER.value, onboarding_completed=True,
                ))
                session.add_all(UserSkill(user_id=user_id, skill=s) for s in skills)
                session.add_all(UserCause(user_id=user_id, cause=c) for c in causes)
                session.add(VolunteerStats(user_id=user_id, points=0, hours=0.0))
                inserted += 1
        session.flush()

        for entry in DEMO_OPPORTUNITIES:
            if session.get(Opportunity, entry["id"]) is not None:
                continue
            owner = session.get(User, entry["organization_id"])
            fields = {k: v for k, v in entry.items() if k != "skills"}
            session.add(Opportunity(
                **fields, organization=owner.display_name, created_at=now, updated_at=now,
            ))
            session.add_all(
                OpportunitySkill(opportunity_id=entry["id"], skill=s) for s in entry["skills"]
            )
            inserted += 1
        session.flush()

        for convo_id, org_id, vol_id, opp_id, lines in DEMO_CONVERSATIONS:
            if session.get(Conversation, convo_id) is not None:
                continue
            started = now - timedelta(days=len(lines))
            session.add(Conversation(
                id=convo_id,
                organization_id=org_id,
                volunteer_id=vol_id,
                opportunity_id=opp_id,
                opportunity_title=session.get(Opportunity, opp_id).title,
                organization_name=session.get(User, org_id).display_name,
                volunteer_name=session.get(User, vol_id).display_name,
                created_at=started,
                updated_at=started + timedelta(days=len(lines) - 1),
            ))
            session.flush()
            for i, (from_org, text) in enumerate(lines):
                last = i == len(lines) - 1
                session.add(Message(
                    conversation_id=convo_id,
                    sender_id=org_id if from_org else vol_id,
                    text=text,
                    timestamp=started + timedelta(days=i),
                    is_read=not last,
                ))
            inserted += 1

    if inserted:
        logger.info("Seeded %d demo rows.", inserted)
    return inserted
