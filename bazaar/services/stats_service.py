"""
bazaar.services.stats_service — Volunteer Points, Hours & Badges
=================================================================

Gamification totals for volunteers.  Every mutation writes a
``gamification_log`` row in the same transaction.

Increments are always relative deltas (``SET points = points + :delta``),
never read-compute-write, so concurrent awards for the same volunteer add
up instead of overwriting each other.  The stats row is created lazily: the
first award inserts it under a SAVEPOINT, and a concurrent first award that
loses the insert race falls back to the increment.

The ``*_in_session`` helpers take an open session so the application store
can credit points and hours inside its own transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bazaar.constants import HOUR_BADGES, format_amount, utcnow
from bazaar.database.engine import DataContext
from bazaar.database.models import (
    GamificationLog,
    StatKind,
    User,
    UserRole,
    VolunteerBadge,
    VolunteerStats,
)
from bazaar.errors import NotFoundError, ValidationFailedError
from bazaar.records import GamificationEntry, LeaderboardEntry
from bazaar.records import VolunteerStats as VolunteerStatsRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Session-level helpers
# ---------------------------------------------------------------------------
def _require_user(session: Session, user_id: str) -> None:
    if session.get(User, user_id) is None:
        raise NotFoundError("user", user_id)


def _log(session: Session, user_id: str, kind: StatKind, value: str, reason: str) -> None:
    session.add(GamificationLog(
        user_id=user_id,
        kind=kind.value,
        value=value,
        reason=reason,
        timestamp=utcnow(),
    ))


def _increment(session: Session, user_id: str, *, points: int = 0, hours: float = 0.0) -> None:
    """Apply a relative delta to the stats row, creating it if absent."""
    stmt = (
        update(VolunteerStats)
        .where(VolunteerStats.user_id == user_id)
        .values(points=VolunteerStats.points + points, hours=VolunteerStats.hours + hours)
        .execution_options(synchronize_session=False)
    )
    if session.execute(stmt).rowcount:
        return

    # No row yet.  The UPDATE above has already opened the transaction, so
    # the SAVEPOINT below nests inside it.
    try:
        with session.begin_nested():
            session.add(VolunteerStats(user_id=user_id, points=points, hours=hours))
    except IntegrityError:
        # Someone else inserted the row first
        logger.debug("Stats row for %s created concurrently; incrementing", user_id)
        session.execute(stmt)


def read_stats(session: Session, user_id: str) -> VolunteerStatsRecord:
    """Current totals plus badges, zeros if no stats row exists."""
    row = session.execute(
        select(VolunteerStats.points, VolunteerStats.hours)
        .where(VolunteerStats.user_id == user_id)
    ).first()
    badges = session.scalars(
        select(VolunteerBadge.badge)
        .where(VolunteerBadge.user_id == user_id)
        .order_by(VolunteerBadge.awarded_at, VolunteerBadge.badge)
    ).all()
    if row is None:
        return VolunteerStatsRecord(points=0, hours=0.0, badges=list(badges))
    return VolunteerStatsRecord(points=row.points, hours=row.hours, badges=list(badges))


def add_points_in_session(session: Session, user_id: str, amount: int, reason: str) -> None:
    if amount < 0:
        raise ValidationFailedError(f"Points delta must be non-negative, got {amount}")
    _increment(session, user_id, points=amount)
    _log(session, user_id, StatKind.POINTS, str(amount), reason)
    logger.info("+%d points → %s (%s)", amount, user_id, reason)


def grant_badge_in_session(session: Session, user_id: str, badge: str, reason: str) -> bool:
    """Insert *badge* unless already held.  Returns True if newly granted."""
    held = session.scalar(
        select(VolunteerBadge.badge).where(
            VolunteerBadge.user_id == user_id, VolunteerBadge.badge == badge
        )
    )
    if held is not None:
        return False
    _increment(session, user_id)
    session.add(VolunteerBadge(user_id=user_id, badge=badge, awarded_at=utcnow()))
    _log(session, user_id, StatKind.BADGE, badge, reason)
    session.flush()
    logger.info("Badge %r awarded → %s", badge, user_id)
    return True


def log_hours_in_session(session: Session, user_id: str, amount: float, reason: str) -> list[str]:
    """Add hours, then grant any hour badges now reached.

    Returns the names of badges granted by this call.
    """
    if amount < 0:
        raise ValidationFailedError(f"Hours delta must be non-negative, got {amount}")
    _increment(session, user_id, hours=amount)
    _log(session, user_id, StatKind.HOURS, format_amount(amount), reason)
    logger.info("+%s hours → %s (%s)", format_amount(amount), user_id, reason)

    total = session.scalar(
        select(VolunteerStats.hours).where(VolunteerStats.user_id == user_id)
    ) or 0.0
    granted = []
    for name, threshold, badge_reason in HOUR_BADGES:
        if total >= threshold and grant_badge_in_session(session, user_id, name, badge_reason):
            granted.append(name)
    return granted


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------
def get_volunteer_stats(ctx: DataContext, user_id: str) -> VolunteerStatsRecord:
    with ctx.session() as session:
        return read_stats(session, user_id)


def add_points(ctx: DataContext, user_id: str, amount: int, reason: str) -> VolunteerStatsRecord:
    """Credit *amount* points and return the refreshed totals.

    Raises
    ------
    ValidationFailedError
        If *amount* is negative.
    NotFoundError
        If the user does not exist.
    """
    with ctx.transaction() as session:
        _require_user(session, user_id)
        add_points_in_session(session, user_id, amount, reason)
        return read_stats(session, user_id)


def award_badge(ctx: DataContext, user_id: str, badge: str, reason: str) -> VolunteerStatsRecord:
    """Idempotent: a badge already held produces no new badge or log row."""
    if not badge:
        raise ValidationFailedError("Badge name must not be empty")
    with ctx.transaction() as session:
        _require_user(session, user_id)
        grant_badge_in_session(session, user_id, badge, reason)
        return read_stats(session, user_id)


def log_hours(ctx: DataContext, user_id: str, amount: float, reason: str) -> VolunteerStatsRecord:
    with ctx.transaction() as session:
        _require_user(session, user_id)
        log_hours_in_session(session, user_id, amount, reason)
        return read_stats(session, user_id)


def get_leaderboard(ctx: DataContext, limit: int = 10) -> list[LeaderboardEntry]:
    """Top volunteers by points, ties broken by name."""
    stmt = (
        select(User.id, User.display_name, VolunteerStats.points)
        .join(VolunteerStats, VolunteerStats.user_id == User.id)
        .where(User.role == UserRole.VOLUNTEER.value)
        .order_by(VolunteerStats.points.desc(), User.display_name)
        .limit(limit)
    )
    with ctx.session() as session:
        return [
            LeaderboardEntry(user_id=row.id, user_name=row.display_name, points=row.points)
            for row in session.execute(stmt)
        ]


def get_gamification_log(ctx: DataContext, user_id: str) -> list[GamificationEntry]:
    """Audit trail for one user, newest first."""
    stmt = (
        select(GamificationLog)
        .where(GamificationLog.user_id == user_id)
        .order_by(GamificationLog.timestamp.desc(), GamificationLog.id.desc())
    )
    with ctx.session() as session:
        return [
            GamificationEntry(
                id=row.id,
                user_id=row.user_id,
                kind=row.kind,
                value=row.value,
                reason=row.reason,
                timestamp=row.timestamp,
            )
            for row in session.scalars(stmt)
        ]
