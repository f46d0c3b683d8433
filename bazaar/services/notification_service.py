"""
bazaar.services.notification_service — Per-User Notification Log
=================================================================

Append-only notifications with a single false→true read transition.

Other stores raise notifications as side effects of their own writes; they
call :func:`add_notification` with their open session so the notification
commits (or rolls back) together with the change it announces.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from bazaar.constants import utcnow
from bazaar.database.engine import DataContext
from bazaar.database.models import Notification
from bazaar.records import UserNotification

logger = logging.getLogger(__name__)


def _to_record(row: Notification) -> UserNotification:
    return UserNotification(
        id=row.id,
        user_id=row.user_id,
        message=row.message,
        link=row.link,
        is_read=row.is_read,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# In-transaction helper
# ---------------------------------------------------------------------------
def add_notification(
    session: Session, user_id: str, message: str, link: str | None = None
) -> Notification:
    """Queue an unread notification on the caller's session and flush it."""
    note = Notification(
        user_id=user_id,
        message=message,
        link=link,
        is_read=False,
        created_at=utcnow(),
    )
    session.add(note)
    session.flush()
    logger.debug("Notification %d queued for %s", note.id, user_id)
    return note


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
def create_notification(
    ctx: DataContext, user_id: str, message: str, link: str | None = None
) -> UserNotification:
    with ctx.transaction() as session:
        return _to_record(add_notification(session, user_id, message, link))


def mark_notification_read(
    ctx: DataContext, notification_id: int, user_id: str
) -> UserNotification | None:
    """Mark one notification read, but only if *user_id* owns it.

    Returns ``None`` when no row matched: the id does not exist or belongs
    to someone else.  Another user's notification is never touched.
    """
    with ctx.transaction() as session:
        result = session.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.debug(
                "mark_notification_read: no notification %s for %s", notification_id, user_id
            )
            return None
        row = session.get(Notification, notification_id, populate_existing=True)
        return _to_record(row)


def mark_all_notifications_read(ctx: DataContext, user_id: str) -> int:
    """Flip every unread notification for *user_id*; return how many changed."""
    with ctx.transaction() as session:
        result = session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def get_notifications_for_user(
    ctx: DataContext,
    user_id: str,
    include_read: bool = True,
    limit: int | None = None,
) -> list[UserNotification]:
    """Newest first, capped at *limit* (default ``ctx.notification_limit``)."""
    if limit is None:
        limit = ctx.notification_limit
    stmt = select(Notification).where(Notification.user_id == user_id)
    if not include_read:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)

    with ctx.session() as session:
        return [_to_record(row) for row in session.scalars(stmt)]


def get_unread_count(ctx: DataContext, user_id: str) -> int:
    with ctx.session() as session:
        return session.scalar(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        ) or 0
