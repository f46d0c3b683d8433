"""
bazaar.services.application_service — Application Lifecycle
============================================================

Volunteer applications and everything they trigger.

Status moves along ``submitted → accepted | rejected`` and
``accepted → completed | withdrawn``; anything else is rejected with
:class:`~bazaar.errors.ValidationFailedError`.  Attendance is recorded once
(``pending → present | absent``); ``present`` completes the application and
credits the volunteer in the same transaction.

Every side effect (notification, points, hours, conversation) is written on
the caller's session, so each public operation commits or rolls back as a
single unit.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from bazaar import records
from bazaar.constants import (
    LINK_ORG_APPLICATIONS,
    LINK_VOLUNTEER_DASHBOARD,
    RATING_BONUS,
    STATUS_NOTICES,
    STATUS_TRANSITIONS,
    conversation_link,
    format_amount,
    new_id,
    utcnow,
)
from bazaar.database.engine import DataContext
from bazaar.database.models import Application, ApplicationStatus, Attendance, Opportunity, User
from bazaar.errors import NotFoundError, ValidationFailedError
from bazaar.services.messaging_service import append_message, conversation_view, open_conversation
from bazaar.services.notification_service import add_notification
from bazaar.services.stats_service import add_points_in_session, log_hours_in_session

logger = logging.getLogger(__name__)


def _to_record(row: Application) -> records.VolunteerApplication:
    return records.VolunteerApplication(
        id=row.id,
        opportunity_id=row.opportunity_id,
        opportunity_title=row.opportunity_title,
        volunteer_id=row.volunteer_id,
        applicant_name=row.applicant_name,
        applicant_email=row.applicant_email,
        status=row.status,
        attendance=row.attendance,
        submitted_at=row.submitted_at,
        resume_url=row.resume_url,
        cover_letter=row.cover_letter,
        org_rating=row.org_rating,
        hours_logged_by_org=row.hours_logged_by_org,
    )


def _get_application(session: Session, application_id: str) -> Application:
    app = session.get(Application, application_id)
    if app is None:
        raise NotFoundError("application", application_id)
    return app


def _move_status(app: Application, target: ApplicationStatus) -> None:
    try:
        current = ApplicationStatus(app.status)
    except ValueError:
        raise ValidationFailedError(f"Application {app.id} has unknown status {app.status!r}") from None
    if target not in STATUS_TRANSITIONS[current]:
        raise ValidationFailedError(
            f"Application {app.id} cannot move from {current.value} to {target.value}"
        )
    app.status = target.value


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------
def submit_volunteer_application(
    ctx: DataContext,
    opportunity_id: str,
    volunteer_id: str,
    *,
    applicant_name: str | None = None,
    applicant_email: str | None = None,
    opportunity_title: str | None = None,
    resume_url: str | None = None,
    cover_letter: str | None = None,
) -> records.VolunteerApplication:
    """Insert a ``submitted`` application and notify the organization.

    The opportunity title and applicant identity are copied onto the row
    now and never re-synced, so later edits do not rewrite history.

    Raises
    ------
    NotFoundError
        If the opportunity or volunteer does not exist.
    """
    with ctx.transaction() as session:
        opp = session.get(Opportunity, opportunity_id)
        if opp is None:
            raise NotFoundError("opportunity", opportunity_id)
        volunteer = session.get(User, volunteer_id)
        if volunteer is None:
            raise NotFoundError("user", volunteer_id)

        app = Application(
            id=new_id("app"),
            opportunity_id=opp.id,
            opportunity_title=opportunity_title or opp.title,
            volunteer_id=volunteer.id,
            applicant_name=applicant_name or volunteer.display_name,
            applicant_email=applicant_email or volunteer.email,
            resume_url=resume_url,
            cover_letter=cover_letter,
            status=ApplicationStatus.SUBMITTED.value,
            attendance=Attendance.PENDING.value,
            submitted_at=utcnow(),
        )
        session.add(app)
        session.flush()

        add_notification(
            session,
            opp.organization_id,
            f'New application from {app.applicant_name} for "{app.opportunity_title}"',
            LINK_ORG_APPLICATIONS,
        )
        logger.info("Application %s submitted: %s → %s", app.id, volunteer_id, opportunity_id)
        return _to_record(app)


# ---------------------------------------------------------------------------
# Status & performance
# ---------------------------------------------------------------------------
def update_application_status(
    ctx: DataContext, application_id: str, status: str
) -> records.VolunteerApplication:
    """Move an application to *status* and tell the volunteer.

    Raises
    ------
    NotFoundError
        If the application does not exist.
    ValidationFailedError
        If *status* is unknown or not reachable from the current status.
    """
    try:
        target = ApplicationStatus(status)
    except ValueError:
        raise ValidationFailedError(f"Unknown application status: {status!r}") from None

    with ctx.transaction() as session:
        app = _get_application(session, application_id)
        previous = app.status
        _move_status(app, target)
        session.flush()

        template, link = STATUS_NOTICES[target]
        add_notification(
            session, app.volunteer_id, template.format(title=app.opportunity_title), link
        )
        logger.info("Application %s: %s → %s", application_id, previous, target.value)
        return _to_record(app)


def record_volunteer_performance(
    ctx: DataContext,
    application_id: str,
    attendance: str,
    org_rating: int | None = None,
    hours_logged_by_org: float | None = None,
) -> records.VolunteerApplication:
    """Record attendance feedback for an application, all or nothing.

    With ``attendance="present"`` the same transaction also:

    1. completes the application (it must currently be ``accepted``)
    2. credits the opportunity's ``points_awarded``, if any, plus a
       rating bonus for a 4- or 5-star ``org_rating``
    3. credits *hours_logged_by_org*, if positive, plus any hour badges
    4. sends the volunteer one summary notification

    ``absent`` and ``pending`` only store the feedback fields.

    Raises
    ------
    ValidationFailedError
        On an unknown attendance value, a rating outside 1–5, negative
        hours, or attendance that was already recorded.
    NotFoundError
        If the application does not exist.
    """
    try:
        mark = Attendance(attendance)
    except ValueError:
        raise ValidationFailedError(f"Unknown attendance value: {attendance!r}") from None
    if org_rating is not None and not 1 <= org_rating <= 5:
        raise ValidationFailedError(f"Rating must be between 1 and 5, got {org_rating}")
    if hours_logged_by_org is not None and hours_logged_by_org < 0:
        raise ValidationFailedError(f"Hours must be non-negative, got {hours_logged_by_org}")

    with ctx.transaction() as session:
        app = _get_application(session, application_id)
        if app.attendance != Attendance.PENDING and mark != app.attendance:
            raise ValidationFailedError(
                f"Attendance for {application_id} is already recorded as {app.attendance}"
            )
        if app.attendance == Attendance.PRESENT:
            raise ValidationFailedError(f"Application {application_id} is already completed")

        app.attendance = mark.value
        if org_rating is not None:
            app.org_rating = org_rating
        if hours_logged_by_org is not None:
            app.hours_logged_by_org = hours_logged_by_org

        if mark == Attendance.PRESENT:
            _move_status(app, ApplicationStatus.COMPLETED)
            session.flush()

            points = session.scalar(
                select(Opportunity.points_awarded).where(Opportunity.id == app.opportunity_id)
            ) or 0
            hours = hours_logged_by_org or 0
            if points > 0:
                add_points_in_session(
                    session, app.volunteer_id, points, f"Completed opportunity: {app.opportunity_title}"
                )
            bonus = RATING_BONUS.get(app.org_rating or 0, 0)
            if bonus:
                add_points_in_session(
                    session,
                    app.volunteer_id,
                    bonus,
                    f"Received {app.org_rating}-star rating for: {app.opportunity_title}",
                )
            if hours > 0:
                log_hours_in_session(
                    session, app.volunteer_id, hours, f"Volunteered for: {app.opportunity_title}"
                )
            add_notification(
                session,
                app.volunteer_id,
                f"You've earned {points + bonus} points and logged {format_amount(hours)} hours "
                f'for "{app.opportunity_title}".',
                LINK_VOLUNTEER_DASHBOARD,
            )
        session.flush()

        logger.info("Performance recorded for %s: attendance=%s", application_id, mark.value)
        return _to_record(app)


def accept_volunteer_application(
    ctx: DataContext,
    application_id: str,
    organization_id: str,
    organization_name: str | None = None,
    bonus_points: int | None = None,
) -> tuple[records.VolunteerApplication, records.Conversation]:
    """Accept an application and open the conversation with the volunteer.

    In one transaction: status → ``accepted``, find-or-create the
    conversation with a congratulation message, *bonus_points* to the
    volunteer, and a notification linking to the conversation.
    *bonus_points* defaults to ``ctx.acceptance_bonus_points``.

    Raises
    ------
    NotFoundError
        If the application does not exist or is not for one of
        *organization_id*'s opportunities.
    ValidationFailedError
        If the application is not in ``submitted`` status.
    """
    if bonus_points is None:
        bonus_points = ctx.acceptance_bonus_points

    with ctx.transaction() as session:
        app = _get_application(session, application_id)
        owner = session.scalar(
            select(Opportunity.organization_id).where(Opportunity.id == app.opportunity_id)
        )
        if owner != organization_id:
            raise NotFoundError("application", application_id)

        _move_status(app, ApplicationStatus.ACCEPTED)
        session.flush()

        title = app.opportunity_title
        convo = open_conversation(
            session,
            organization_id,
            app.volunteer_id,
            app.opportunity_id,
            opportunity_title=title,
            organization_name=organization_name,
            volunteer_name=app.applicant_name,
        )
        append_message(
            session,
            convo,
            organization_id,
            f'Congratulations! Your application for "{title}" has been accepted. '
            "Let's coordinate next steps.",
        )
        if bonus_points > 0:
            add_points_in_session(
                session, app.volunteer_id, bonus_points, f"Application accepted for: {title}"
            )
        add_notification(
            session,
            app.volunteer_id,
            f'Your application for "{title}" has been accepted!',
            conversation_link(convo.id),
        )

        logger.info("Application %s accepted; conversation %s", application_id, convo.id)
        return _to_record(app), conversation_view(session, convo)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def get_application_by_id(ctx: DataContext, application_id: str) -> records.VolunteerApplication | None:
    with ctx.session() as session:
        app = session.get(Application, application_id)
        return _to_record(app) if app is not None else None


def get_applications_for_volunteer(ctx: DataContext, volunteer_id: str) -> list[records.VolunteerApplication]:
    stmt = (
        select(Application)
        .where(Application.volunteer_id == volunteer_id)
        .order_by(Application.submitted_at.desc(), Application.id)
    )
    with ctx.session() as session:
        return [_to_record(row) for row in session.scalars(stmt)]


def get_applications_for_organization(ctx: DataContext, organization_id: str) -> list[records.VolunteerApplication]:
    """Applications to any of *organization_id*'s opportunities, newest first.

    Resolves the organization's opportunity ids first; with none, returns
    without querying applications at all.
    """
    with ctx.session() as session:
        opportunity_ids = session.scalars(
            select(Opportunity.id).where(Opportunity.organization_id == organization_id)
        ).all()
        if not opportunity_ids:
            logger.debug("Organization %s has no opportunities", organization_id)
            return []
        rows = session.scalars(
            select(Application)
            .where(Application.opportunity_id.in_(opportunity_ids))
            .order_by(Application.submitted_at.desc(), Application.id)
        )
        return [_to_record(row) for row in rows]
