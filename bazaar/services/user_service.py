"""
bazaar.services.user_service — Users, Skills & Causes
======================================================

Identity records and their multi-valued attributes.  Skills and causes live
in child tables (one row per value) and are replaced wholesale on update:
delete-all then re-insert, inside the caller's transaction.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from bazaar.constants import DEFAULT_VOLUNTEER_SORT
from bazaar.database.engine import DataContext
from bazaar.database.models import (
    Opportunity,
    User,
    UserCause,
    UserRole,
    UserSkill,
    VolunteerBadge,
    VolunteerStats,
)
from bazaar.errors import NotFoundError, ValidationFailedError
from bazaar.records import AppStatistics, UserProfile
from bazaar.records import VolunteerStats as VolunteerStatsRecord
from bazaar.services.stats_service import read_stats

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset({
    "display_name", "profile_picture_url", "bio", "onboarding_completed",
    "hashed_password", "role", "skills", "causes",
})

_VOLUNTEER_SORTS = {
    "points_desc": lambda: func.coalesce(VolunteerStats.points, 0).desc(),
    "points_asc": lambda: func.coalesce(VolunteerStats.points, 0).asc(),
    "name_asc": lambda: User.display_name.asc(),
    "name_desc": lambda: User.display_name.desc(),
    "hours_desc": lambda: func.coalesce(VolunteerStats.hours, 0).desc(),
    "hours_asc": lambda: func.coalesce(VolunteerStats.hours, 0).asc(),
}


def _check_role(role: str) -> None:
    if role not in set(UserRole):
        raise ValidationFailedError(f"Unknown role: {role!r}")


def _replace_values(session: Session, model, user_id: str, column: str, values: Iterable[str]) -> None:
    """Full-replace one multi-valued attribute."""
    session.execute(delete(model).where(model.user_id == user_id))
    for value in dict.fromkeys(values):
        session.add(model(user_id=user_id, **{column: value}))


def _values_by_user(session: Session, model, column: str, user_ids: list[str]) -> dict[str, list[str]]:
    col = getattr(model, column)
    grouped: dict[str, list[str]] = defaultdict(list)
    if user_ids:
        rows = session.execute(
            select(model.user_id, col).where(model.user_id.in_(user_ids)).order_by(col)
        )
        for owner, value in rows:
            grouped[owner].append(value)
    return grouped


def load_profile(session: Session, user: User) -> UserProfile:
    """Resolve *user* into a :class:`UserProfile` with skills, causes and stats."""
    skills = session.scalars(
        select(UserSkill.skill).where(UserSkill.user_id == user.id).order_by(UserSkill.skill)
    ).all()
    causes = session.scalars(
        select(UserCause.cause).where(UserCause.user_id == user.id).order_by(UserCause.cause)
    ).all()
    stats = read_stats(session, user.id) if user.role == UserRole.VOLUNTEER else None
    return UserProfile(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
        profile_picture_url=user.profile_picture_url,
        bio=user.bio,
        onboarding_completed=bool(user.onboarding_completed),
        skills=list(skills),
        causes=list(causes),
        stats=stats,
        hashed_password=user.hashed_password,
    )


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def get_user_by_id(ctx: DataContext, user_id: str) -> UserProfile | None:
    with ctx.session() as session:
        user = session.get(User, user_id)
        return load_profile(session, user) if user is not None else None


def get_user_by_email(ctx: DataContext, email: str) -> UserProfile | None:
    with ctx.session() as session:
        user = session.scalar(select(User).where(User.email == email))
        return load_profile(session, user) if user is not None else None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
def create_user(ctx: DataContext, profile: UserProfile) -> UserProfile:
    """Insert a user with its skills, causes and (for volunteers) stats.

    A volunteer's stats row is seeded from ``profile.stats`` when given,
    zeros otherwise, and any listed badges are inserted with it.

    Raises
    ------
    ValidationFailedError
        If ``profile.role`` is not a known role.
    TransactionAbortedError
        If the id or email is already taken.
    """
    _check_role(profile.role)
    if not profile.id or not profile.email:
        raise ValidationFailedError("User id and email are required")

    with ctx.transaction() as session:
        user = User(
            id=profile.id,
            email=profile.email,
            display_name=profile.display_name,
            role=profile.role,
            hashed_password=profile.hashed_password or "",
            profile_picture_url=profile.profile_picture_url,
            bio=profile.bio,
            onboarding_completed=profile.onboarding_completed,
        )
        session.add(user)
        session.flush()

        _replace_values(session, UserSkill, user.id, "skill", profile.skills)
        _replace_values(session, UserCause, user.id, "cause", profile.causes)

        if profile.role == UserRole.VOLUNTEER:
            seed = profile.stats or VolunteerStatsRecord()
            session.add(VolunteerStats(user_id=user.id, points=seed.points, hours=seed.hours))
            for badge in dict.fromkeys(seed.badges):
                session.add(VolunteerBadge(user_id=user.id, badge=badge))
        session.flush()

        logger.info("User created: %s (%s, %s)", user.id, user.display_name, user.role)
        return load_profile(session, user)


def update_user(ctx: DataContext, user_id: str, **updates) -> UserProfile:
    """Partial update: only the keyword arguments given are touched.

    ``skills`` and ``causes`` replace the whole set when supplied.

    Raises
    ------
    NotFoundError
        If no user has *user_id*.
    ValidationFailedError
        On an unknown field or role.
    """
    unknown = set(updates) - _UPDATABLE_FIELDS
    if unknown:
        raise ValidationFailedError(f"Cannot update user fields: {sorted(unknown)}")
    if "role" in updates:
        _check_role(updates["role"])

    with ctx.transaction() as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("user", user_id)

        skills = updates.pop("skills", None)
        causes = updates.pop("causes", None)
        for key, value in updates.items():
            setattr(user, key, value)
        if skills is not None:
            _replace_values(session, UserSkill, user_id, "skill", skills)
        if causes is not None:
            _replace_values(session, UserCause, user_id, "cause", causes)
        session.flush()

        logger.info("User updated: %s (%s)", user_id, ", ".join(sorted(updates)) or "sets only")
        return load_profile(session, user)


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------
def get_volunteers(
    ctx: DataContext,
    keywords: str | None = None,
    sort_by: str | None = None,
) -> list[UserProfile]:
    """All volunteers, optionally filtered by a name/bio substring.

    Unknown or missing *sort_by* falls back to ``points_desc``.  Skills,
    causes and badges are each fetched in one batch for the whole page.
    """
    order = _VOLUNTEER_SORTS.get(sort_by or DEFAULT_VOLUNTEER_SORT, _VOLUNTEER_SORTS[DEFAULT_VOLUNTEER_SORT])
    stmt = (
        select(User, VolunteerStats.points, VolunteerStats.hours)
        .outerjoin(VolunteerStats, VolunteerStats.user_id == User.id)
        .where(User.role == UserRole.VOLUNTEER.value)
    )
    if keywords:
        stmt = stmt.where(
            User.display_name.icontains(keywords, autoescape=True)
            | User.bio.icontains(keywords, autoescape=True)
        )
    stmt = stmt.order_by(order(), User.display_name, User.id)

    with ctx.session() as session:
        rows = session.execute(stmt).all()
        ids = [row.User.id for row in rows]
        skills = _values_by_user(session, UserSkill, "skill", ids)
        causes = _values_by_user(session, UserCause, "cause", ids)
        badges = _values_by_user(session, VolunteerBadge, "badge", ids)

    return [
        UserProfile(
            id=row.User.id,
            email=row.User.email,
            display_name=row.User.display_name,
            role=row.User.role,
            profile_picture_url=row.User.profile_picture_url,
            bio=row.User.bio,
            onboarding_completed=bool(row.User.onboarding_completed),
            skills=skills.get(row.User.id, []),
            causes=causes.get(row.User.id, []),
            stats=VolunteerStatsRecord(
                points=row.points or 0,
                hours=row.hours or 0.0,
                badges=badges.get(row.User.id, []),
            ),
        )
        for row in rows
    ]


def get_app_statistics(ctx: DataContext) -> AppStatistics:
    """Headline counts for the landing page."""
    with ctx.session() as session:
        by_role = dict(session.execute(
            select(User.role, func.count()).group_by(User.role)
        ).all())
        opportunities = session.scalar(select(func.count()).select_from(Opportunity)) or 0
    return AppStatistics(
        total_volunteers=by_role.get(UserRole.VOLUNTEER.value, 0),
        total_organizations=by_role.get(UserRole.ORGANIZATION.value, 0),
        total_opportunities=opportunities,
    )
