"""
bazaar.services.report_service — User Reports for Moderation
=============================================================

Users flag other users; admins resolve or dismiss the report with notes.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, select

from bazaar import records
from bazaar.constants import new_id, placeholder_name, utcnow
from bazaar.database.engine import DataContext
from bazaar.database.models import AdminReport, ReportStatus, User
from bazaar.errors import NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)

_CLOSING_STATUSES = (ReportStatus.RESOLVED.value, ReportStatus.DISMISSED.value)


def _to_record(row: AdminReport, names: dict[str, str] | None = None) -> records.AdminReport:
    names = names or {}
    return records.AdminReport(
        id=row.id,
        reporter_id=row.reporter_id,
        reported_user_id=row.reported_user_id,
        reason=row.reason,
        status=row.status,
        created_at=row.created_at,
        admin_notes=row.admin_notes,
        resolved_by=row.resolved_by,
        resolved_at=row.resolved_at,
        reporter_display_name=names.get(row.reporter_id),
        reported_user_display_name=names.get(row.reported_user_id),
    )


def report_user(ctx: DataContext, reporter_id: str, reported_user_id: str, reason: str) -> records.AdminReport:
    """File a pending report against *reported_user_id*.

    Raises
    ------
    ValidationFailedError
        If *reason* is blank or a user reports themselves.
    NotFoundError
        If the reported user does not exist.
    """
    if not reason or not reason.strip():
        raise ValidationFailedError("A report needs a reason")
    if reporter_id == reported_user_id:
        raise ValidationFailedError("Users cannot report themselves")

    with ctx.transaction() as session:
        if session.get(User, reported_user_id) is None:
            raise NotFoundError("user", reported_user_id)
        report = AdminReport(
            id=new_id("report"),
            reporter_id=reporter_id,
            reported_user_id=reported_user_id,
            reason=reason.strip(),
            status=ReportStatus.PENDING.value,
            created_at=utcnow(),
        )
        session.add(report)
        session.flush()
        logger.info("Report %s filed: %s → %s", report.id, reporter_id, reported_user_id)
        return _to_record(report)


def get_reports(ctx: DataContext) -> list[records.AdminReport]:
    """All reports, pending first, then newest first.

    Each carries the reporter's and reported user's display names; a user
    that no longer exists shows as ``User (abcd)``.
    """
    pending_first = case((AdminReport.status == ReportStatus.PENDING.value, 0), else_=1)
    stmt = select(AdminReport).order_by(pending_first, AdminReport.created_at.desc(), AdminReport.id)

    with ctx.session() as session:
        reports = session.scalars(stmt).all()
        user_ids = {r.reporter_id for r in reports} | {r.reported_user_id for r in reports}
        names: dict[str, str] = {}
        if user_ids:
            names = dict(session.execute(
                select(User.id, User.display_name).where(User.id.in_(user_ids))
            ).all())
        for missing in user_ids - names.keys():
            logger.warning("Report references unknown user %s", missing)
            names[missing] = placeholder_name("User", missing)
        return [_to_record(r, names) for r in reports]


def resolve_report(
    ctx: DataContext,
    report_id: str,
    admin_id: str,
    admin_notes: str,
    status: str = ReportStatus.RESOLVED.value,
) -> records.AdminReport:
    """Close a pending report as ``resolved`` or ``dismissed``.

    Raises
    ------
    ValidationFailedError
        If notes are blank, *status* is not a closing status, or the report
        is already closed.
    NotFoundError
        If the report does not exist.
    """
    if not admin_notes or not admin_notes.strip():
        raise ValidationFailedError("Admin notes are required to close a report")
    if status not in _CLOSING_STATUSES:
        raise ValidationFailedError(f"Reports close as resolved or dismissed, not {status!r}")

    with ctx.transaction() as session:
        report = session.get(AdminReport, report_id)
        if report is None:
            raise NotFoundError("report", report_id)
        if report.status != ReportStatus.PENDING:
            raise ValidationFailedError(f"Report {report_id} is already {report.status}")

        report.status = status
        report.admin_notes = admin_notes.strip()
        report.resolved_by = admin_id
        report.resolved_at = utcnow()
        session.flush()
        logger.info("Report %s %s by %s", report_id, status, admin_id)
        return _to_record(report)
