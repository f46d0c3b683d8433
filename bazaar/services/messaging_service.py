"""
bazaar.services.messaging_service — Conversations & Messages
=============================================================

One conversation per (organization, volunteer, opportunity) triple.
Messages are append-only; the only mutation is the ``is_read`` flag going
false→true for messages the reader did not send.

Unread counts and the last message of each conversation are derived at read
time from the messages table; nothing is cached on the conversation row.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, aliased

from bazaar import records
from bazaar.constants import new_id, placeholder_name, utcnow
from bazaar.database.engine import DataContext
from bazaar.database.models import Conversation, Message, Opportunity, User, UserRole
from bazaar.errors import NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)

_PARTICIPANT_ROLES = (UserRole.VOLUNTEER.value, UserRole.ORGANIZATION.value)


# ---------------------------------------------------------------------------
# Row → record
# ---------------------------------------------------------------------------
def _message_record(row: Message) -> records.Message:
    return records.Message(
        id=row.id,
        conversation_id=row.conversation_id,
        sender_id=row.sender_id,
        text=row.text,
        timestamp=row.timestamp,
        is_read=row.is_read,
    )


def _list_messages(session: Session, conversation_id: str) -> list[records.Message]:
    rows = session.scalars(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.timestamp, Message.id)
    )
    return [_message_record(row) for row in rows]


def conversation_view(session: Session, convo: Conversation) -> records.Conversation:
    return records.Conversation(
        id=convo.id,
        organization_id=convo.organization_id,
        volunteer_id=convo.volunteer_id,
        opportunity_id=convo.opportunity_id,
        opportunity_title=convo.opportunity_title,
        organization_name=convo.organization_name,
        volunteer_name=convo.volunteer_name,
        created_at=convo.created_at,
        updated_at=convo.updated_at,
        messages=_list_messages(session, convo.id),
    )


def _participant_column(role: str):
    if role not in _PARTICIPANT_ROLES:
        raise ValidationFailedError(f"Conversations are listed per volunteer or organization, not {role!r}")
    return Conversation.volunteer_id if role == UserRole.VOLUNTEER else Conversation.organization_id


def _get_for_participant(session: Session, conversation_id: str, user_id: str, role: str) -> Conversation:
    column = _participant_column(role)
    convo = session.get(Conversation, conversation_id)
    if convo is None or getattr(convo, column.key) != user_id:
        raise NotFoundError("conversation", conversation_id)
    return convo


def _mark_read(session: Session, conversation_id: str, reader_id: str) -> int:
    result = session.execute(
        update(Message)
        .where(
            Message.conversation_id == conversation_id,
            Message.sender_id != reader_id,
            Message.is_read.is_(False),
        )
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


# ---------------------------------------------------------------------------
# In-transaction helpers
# ---------------------------------------------------------------------------
def append_message(session: Session, convo: Conversation, sender_id: str, text: str) -> Message:
    """Insert an unread message and move *convo* to the top of the inbox."""
    now = utcnow()
    msg = Message(
        conversation_id=convo.id,
        sender_id=sender_id,
        text=text,
        timestamp=now,
        is_read=False,
    )
    session.add(msg)
    convo.updated_at = now
    session.flush()
    return msg


def open_conversation(
    session: Session,
    organization_id: str,
    volunteer_id: str,
    opportunity_id: str,
    *,
    opportunity_title: str | None = None,
    organization_name: str | None = None,
    volunteer_name: str | None = None,
) -> Conversation:
    """Find the conversation for the triple, or insert one.

    Display names not supplied are resolved from their rows; a missing row
    is logged and replaced by a short placeholder instead of failing.
    """
    convo = session.scalar(
        select(Conversation).where(
            Conversation.organization_id == organization_id,
            Conversation.volunteer_id == volunteer_id,
            Conversation.opportunity_id == opportunity_id,
        )
    )
    if convo is not None:
        return convo

    if organization_name is None:
        org = session.get(User, organization_id)
        if org is None:
            logger.warning("Conversation: organization %s not found", organization_id)
            organization_name = placeholder_name("Org", organization_id)
        else:
            organization_name = org.display_name
    if volunteer_name is None:
        vol = session.get(User, volunteer_id)
        if vol is None:
            logger.warning("Conversation: volunteer %s not found", volunteer_id)
            volunteer_name = placeholder_name("Volunteer", volunteer_id)
        else:
            volunteer_name = vol.display_name
    if opportunity_title is None:
        opp = session.get(Opportunity, opportunity_id)
        if opp is None:
            logger.warning("Conversation: opportunity %s not found", opportunity_id)
            opportunity_title = "Unknown Opportunity"
        else:
            opportunity_title = opp.title

    now = utcnow()
    convo = Conversation(
        id=new_id("convo"),
        organization_id=organization_id,
        volunteer_id=volunteer_id,
        opportunity_id=opportunity_id,
        opportunity_title=opportunity_title,
        organization_name=organization_name,
        volunteer_name=volunteer_name,
        created_at=now,
        updated_at=now,
    )
    session.add(convo)
    session.flush()
    logger.info("Conversation %s opened (%s ↔ %s)", convo.id, organization_id, volunteer_id)
    return convo


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
def create_conversation(
    ctx: DataContext,
    organization_id: str,
    volunteer_id: str,
    opportunity_id: str,
    initial_message: str,
    opportunity_title: str | None = None,
    organization_name: str | None = None,
    volunteer_name: str | None = None,
) -> records.Conversation:
    """Find-or-create the conversation, then append *initial_message*.

    The message is attributed to the organization.  Calling this twice for
    the same triple yields one conversation holding two messages.
    """
    if not initial_message or not initial_message.strip():
        raise ValidationFailedError("Initial message must not be empty")

    with ctx.transaction() as session:
        convo = open_conversation(
            session,
            organization_id,
            volunteer_id,
            opportunity_id,
            opportunity_title=opportunity_title,
            organization_name=organization_name,
            volunteer_name=volunteer_name,
        )
        append_message(session, convo, organization_id, initial_message)
        return conversation_view(session, convo)


def send_message(ctx: DataContext, conversation_id: str, sender_id: str, text: str) -> records.Message:
    """Append an unread message and bump the conversation's ``updated_at``.

    Raises
    ------
    NotFoundError
        If the conversation does not exist.
    ValidationFailedError
        If *text* is empty.
    """
    if not text or not text.strip():
        raise ValidationFailedError("Message text must not be empty")

    with ctx.transaction() as session:
        convo = session.get(Conversation, conversation_id)
        if convo is None:
            raise NotFoundError("conversation", conversation_id)
        return _message_record(append_message(session, convo, sender_id, text))


def mark_conversation_read(ctx: DataContext, conversation_id: str, user_id: str, role: str) -> int:
    """Mark every unread message not sent by *user_id* as read.

    Returns the number of messages that changed.
    """
    with ctx.transaction() as session:
        _get_for_participant(session, conversation_id, user_id, role)
        return _mark_read(session, conversation_id, user_id)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def get_conversations_for_user(ctx: DataContext, user_id: str, role: str) -> list[records.ConversationSummary]:
    """Inbox for *user_id*, most recently active first.

    Runs as a single statement: the unread count and the id of the latest
    message are correlated subqueries, and the latest message row is
    outer-joined back in by that id.
    """
    column = _participant_column(role)

    unread = (
        select(func.count(Message.id))
        .where(
            Message.conversation_id == Conversation.id,
            Message.sender_id != user_id,
            Message.is_read.is_(False),
        )
        .correlate(Conversation)
        .scalar_subquery()
    )
    latest_id = (
        select(Message.id)
        .where(Message.conversation_id == Conversation.id)
        .order_by(Message.timestamp.desc(), Message.id.desc())
        .limit(1)
        .correlate(Conversation)
        .scalar_subquery()
    )
    last = aliased(Message)
    stmt = (
        select(Conversation, unread.label("unread_count"), last)
        .outerjoin(last, last.id == latest_id)
        .where(column == user_id)
        .order_by(Conversation.updated_at.desc(), Conversation.id)
    )

    with ctx.session() as session:
        return [
            records.ConversationSummary(
                id=convo.id,
                organization_id=convo.organization_id,
                volunteer_id=convo.volunteer_id,
                opportunity_id=convo.opportunity_id,
                opportunity_title=convo.opportunity_title,
                organization_name=convo.organization_name,
                volunteer_name=convo.volunteer_name,
                created_at=convo.created_at,
                updated_at=convo.updated_at,
                unread_count=unread_count or 0,
                last_message=_message_record(last_msg) if last_msg is not None else None,
            )
            for convo, unread_count, last_msg in session.execute(stmt)
        ]


def get_conversation_details(
    ctx: DataContext, conversation_id: str, user_id: str, role: str
) -> records.Conversation:
    """Open a conversation: return it with all messages, then mark it read.

    The returned ``is_read`` flags are as they were *before* this call; the
    stored flags for messages from the other party are flipped to read in
    the same transaction.

    Raises
    ------
    NotFoundError
        If the conversation does not exist or *user_id* is not its
        participant in *role*.
    """
    with ctx.transaction() as session:
        convo = _get_for_participant(session, conversation_id, user_id, role)
        view = conversation_view(session, convo)
        marked = _mark_read(session, conversation_id, user_id)
        if marked:
            logger.debug("Opened %s: %d message(s) marked read for %s", conversation_id, marked, user_id)
        return view
