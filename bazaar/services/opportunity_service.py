"""
bazaar.services.opportunity_service — Opportunity Catalog
==========================================================

CRUD over organization postings and their required-skill child rows, plus
the filterable public listing.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from bazaar import records
from bazaar.constants import new_id, utcnow
from bazaar.database.engine import DataContext
from bazaar.database.models import Opportunity, OpportunitySkill, User
from bazaar.errors import NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset({
    "title", "description", "location", "commitment", "category",
    "points_awarded", "image_url", "application_deadline",
    "event_start_date", "event_end_date", "required_skills",
})


def _skills_for(session: Session, opportunity_ids: list[str]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = defaultdict(list)
    if opportunity_ids:
        rows = session.execute(
            select(OpportunitySkill.opportunity_id, OpportunitySkill.skill)
            .where(OpportunitySkill.opportunity_id.in_(opportunity_ids))
            .order_by(OpportunitySkill.skill)
        )
        for opp_id, skill in rows:
            grouped[opp_id].append(skill)
    return grouped


def _replace_skills(session: Session, opportunity_id: str, skills) -> None:
    session.execute(delete(OpportunitySkill).where(OpportunitySkill.opportunity_id == opportunity_id))
    for skill in dict.fromkeys(skills):
        session.add(OpportunitySkill(opportunity_id=opportunity_id, skill=skill))


def _to_record(row: Opportunity, skills: list[str]) -> records.Opportunity:
    return records.Opportunity(
        id=row.id,
        organization_id=row.organization_id,
        organization=row.organization,
        title=row.title,
        description=row.description,
        location=row.location,
        commitment=row.commitment,
        category=row.category,
        points_awarded=row.points_awarded,
        image_url=row.image_url,
        required_skills=skills,
        application_deadline=row.application_deadline,
        event_start_date=row.event_start_date,
        event_end_date=row.event_end_date,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def load_opportunity(session: Session, opportunity_id: str) -> records.Opportunity | None:
    row = session.get(Opportunity, opportunity_id, populate_existing=True)
    if row is None:
        return None
    return _to_record(row, _skills_for(session, [row.id]).get(row.id, []))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def get_opportunities(
    ctx: DataContext,
    keywords: str | None = None,
    category: str | None = None,
    location: str | None = None,
    commitment: str | None = None,
    organization_id: str | None = None,
) -> list[records.Opportunity]:
    """Filtered listing, newest first.

    Filters are AND-combined.  A filter that is ``None`` or an empty string
    is left out of the query entirely.
    """
    stmt = select(Opportunity)
    if keywords:
        stmt = stmt.where(
            Opportunity.title.icontains(keywords, autoescape=True)
            | Opportunity.description.icontains(keywords, autoescape=True)
        )
    if category:
        stmt = stmt.where(Opportunity.category == category)
    if location:
        stmt = stmt.where(Opportunity.location.icontains(location, autoescape=True))
    if commitment:
        stmt = stmt.where(Opportunity.commitment == commitment)
    if organization_id:
        stmt = stmt.where(Opportunity.organization_id == organization_id)
    stmt = stmt.order_by(Opportunity.created_at.desc(), Opportunity.id)

    with ctx.session() as session:
        rows = session.scalars(stmt).all()
        skills = _skills_for(session, [row.id for row in rows])
        return [_to_record(row, skills.get(row.id, [])) for row in rows]


def get_opportunity_by_id(ctx: DataContext, opportunity_id: str) -> records.Opportunity | None:
    with ctx.session() as session:
        return load_opportunity(session, opportunity_id)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
def create_opportunity(
    ctx: DataContext,
    organization_id: str,
    title: str,
    description: str,
    location: str,
    commitment: str,
    category: str,
    *,
    points_awarded: int = 0,
    image_url: str | None = None,
    required_skills: list[str] | None = None,
    application_deadline: datetime | None = None,
    event_start_date: datetime | None = None,
    event_end_date: datetime | None = None,
    organization: str | None = None,
) -> records.Opportunity:
    """Post a new opportunity for *organization_id*.

    *organization* is the display-name snapshot shown on listings; when
    omitted it is copied from the owning user.
    """
    if points_awarded < 0:
        raise ValidationFailedError(f"points_awarded must be non-negative, got {points_awarded}")
    if not title:
        raise ValidationFailedError("Opportunity title is required")

    with ctx.transaction() as session:
        if organization is None:
            owner = session.get(User, organization_id)
            if owner is None:
                raise NotFoundError("organization", organization_id)
            organization = owner.display_name

        now = utcnow()
        opp = Opportunity(
            id=new_id("opp"),
            organization_id=organization_id,
            organization=organization,
            title=title,
            description=description,
            location=location,
            commitment=commitment,
            category=category,
            points_awarded=points_awarded,
            image_url=image_url,
            application_deadline=application_deadline,
            event_start_date=event_start_date,
            event_end_date=event_end_date,
            created_at=now,
            updated_at=now,
        )
        session.add(opp)
        session.flush()
        _replace_skills(session, opp.id, required_skills or [])
        session.flush()

        logger.info("Opportunity created: %s %r by %s", opp.id, title, organization_id)
        return load_opportunity(session, opp.id)


def update_opportunity(ctx: DataContext, opportunity_id: str, **updates) -> records.Opportunity:
    """Apply a partial update and refresh ``updated_at``.

    ``required_skills`` replaces the whole set when supplied.

    Raises
    ------
    NotFoundError
        If the opportunity does not exist.
    ValidationFailedError
        On an unknown field or negative ``points_awarded``.
    """
    unknown = set(updates) - _UPDATABLE_FIELDS
    if unknown:
        raise ValidationFailedError(f"Cannot update opportunity fields: {sorted(unknown)}")
    if updates.get("points_awarded") is not None and updates["points_awarded"] < 0:
        raise ValidationFailedError(
            f"points_awarded must be non-negative, got {updates['points_awarded']}"
        )

    with ctx.transaction() as session:
        opp = session.get(Opportunity, opportunity_id)
        if opp is None:
            raise NotFoundError("opportunity", opportunity_id)

        skills = updates.pop("required_skills", None)
        for key, value in updates.items():
            setattr(opp, key, value)
        opp.updated_at = utcnow()
        if skills is not None:
            _replace_skills(session, opportunity_id, skills)
        session.flush()

        logger.info("Opportunity updated: %s", opportunity_id)
        return load_opportunity(session, opportunity_id)


def delete_opportunity(ctx: DataContext, opportunity_id: str) -> bool:
    """Delete the skill rows, then the opportunity.  False if it was absent."""
    with ctx.transaction() as session:
        session.execute(
            delete(OpportunitySkill).where(OpportunitySkill.opportunity_id == opportunity_id)
        )
        result = session.execute(
            delete(Opportunity)
            .where(Opportunity.id == opportunity_id)
            .execution_options(synchronize_session=False)
        )
        deleted = result.rowcount > 0

    if deleted:
        logger.info("Opportunity deleted: %s", opportunity_id)
    return deleted
