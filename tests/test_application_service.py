"""
tests/test_application_service.py — Application Lifecycle
==========================================================
Submission, status transitions, attendance with its side effects, the
accept workflow, and all-or-nothing behaviour when a side effect fails.
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from bazaar.database.models import Conversation, GamificationLog, Notification
from bazaar.errors import NotFoundError, TransactionAbortedError, ValidationFailedError
from bazaar.services import (
    application_service,
    messaging_service,
    notification_service,
    opportunity_service,
    stats_service,
)


@pytest.fixture
def opportunity(make_user, make_opportunity):
    make_user("org-1", role="organization", name="Red Cross")
    make_user("vol-1", name="Jane Doe")
    return make_opportunity("org-1", "Beach Cleanup", points_awarded=50)


@pytest.fixture
def submitted(ctx, opportunity):
    return application_service.submit_volunteer_application(ctx, opportunity.id, "vol-1")


def _accept(ctx, app_id):
    return application_service.update_application_status(ctx, app_id, "accepted")


def _count(ctx, model, **where) -> int:
    stmt = select(func.count()).select_from(model)
    for column, value in where.items():
        stmt = stmt.where(getattr(model, column) == value)
    with ctx.session() as session:
        return session.scalar(stmt)


class TestSubmit:
    def test_snapshots_and_defaults(self, ctx, submitted):
        assert submitted.status == "submitted"
        assert submitted.attendance == "pending"
        assert submitted.applicant_name == "Jane Doe"
        assert submitted.applicant_email == "vol-1@example.com"
        assert submitted.opportunity_title == "Beach Cleanup"

    def test_notifies_organization(self, ctx, submitted):
        [note] = notification_service.get_notifications_for_user(ctx, "org-1")
        assert note.message == 'New application from Jane Doe for "Beach Cleanup"'
        assert note.link == "/dashboard/organization/applications"
        assert note.is_read is False

    def test_snapshot_survives_title_edit(self, ctx, opportunity, submitted):
        opportunity_service.update_opportunity(ctx, opportunity.id, title="Renamed")
        app = application_service.get_application_by_id(ctx, submitted.id)
        assert app.opportunity_title == "Beach Cleanup"

    def test_missing_opportunity(self, ctx, make_user):
        make_user("vol-1")
        with pytest.raises(NotFoundError):
            application_service.submit_volunteer_application(ctx, "opp-missing", "vol-1")

    def test_missing_volunteer(self, ctx, opportunity):
        with pytest.raises(NotFoundError):
            application_service.submit_volunteer_application(ctx, opportunity.id, "ghost")


class TestStatus:
    def test_accept_notifies_volunteer(self, ctx, submitted):
        app = _accept(ctx, submitted.id)
        assert app.status == "accepted"
        [note] = notification_service.get_notifications_for_user(ctx, "vol-1")
        assert note.message == 'Your application for "Beach Cleanup" has been accepted.'
        assert note.link == "/dashboard/volunteer/applications"

    def test_rejection_notice(self, ctx, submitted):
        application_service.update_application_status(ctx, submitted.id, "rejected")
        [note] = notification_service.get_notifications_for_user(ctx, "vol-1")
        assert note.message == (
            'Unfortunately, your application for "Beach Cleanup" was not accepted at this time.'
        )
        assert note.link == "/dashboard/volunteer"

    @pytest.mark.parametrize(
        ("path", "illegal"),
        [
            ([], "completed"),
            ([], "withdrawn"),
            (["rejected"], "accepted"),
            (["accepted"], "submitted"),
            (["accepted", "withdrawn"], "accepted"),
        ],
    )
    def test_illegal_transitions(self, ctx, submitted, path, illegal):
        for status in path:
            application_service.update_application_status(ctx, submitted.id, status)
        with pytest.raises(ValidationFailedError):
            application_service.update_application_status(ctx, submitted.id, illegal)

    def test_unknown_status(self, ctx, submitted):
        with pytest.raises(ValidationFailedError):
            application_service.update_application_status(ctx, submitted.id, "maybe")

    def test_missing_application(self, ctx):
        with pytest.raises(NotFoundError):
            application_service.update_application_status(ctx, "app-missing", "accepted")


class TestPerformance:
    def test_present_completes_and_credits(self, ctx, submitted):
        _accept(ctx, submitted.id)
        app = application_service.record_volunteer_performance(
            ctx, submitted.id, "present", org_rating=5, hours_logged_by_org=3
        )
        assert (app.status, app.attendance) == ("completed", "present")
        assert (app.org_rating, app.hours_logged_by_org) == (5, 3)

        stats = stats_service.get_volunteer_stats(ctx, "vol-1")
        assert stats.points == 70  # 50 for completing + 20 five-star bonus
        assert stats.hours == 3
        assert "First Timer" in stats.badges

        messages = [n.message for n in notification_service.get_notifications_for_user(ctx, "vol-1")]
        assert len(messages) == 2
        assert any("accepted" in m for m in messages)
        assert any("70 points" in m and "3 hours" in m for m in messages)

    @pytest.mark.parametrize(
        ("rating", "expected_points", "bonus_reason"),
        [
            (5, 70, "Received 5-star rating for: Beach Cleanup"),
            (4, 60, "Received 4-star rating for: Beach Cleanup"),
            (3, 50, None),
            (None, 50, None),
        ],
    )
    def test_rating_bonus(self, ctx, submitted, rating, expected_points, bonus_reason):
        _accept(ctx, submitted.id)
        application_service.record_volunteer_performance(
            ctx, submitted.id, "present", org_rating=rating
        )
        assert stats_service.get_volunteer_stats(ctx, "vol-1").points == expected_points

        reasons = [e.reason for e in stats_service.get_gamification_log(ctx, "vol-1") if e.kind == "points"]
        expected = ["Completed opportunity: Beach Cleanup"]
        if bonus_reason:
            expected.append(bonus_reason)
        assert sorted(reasons) == sorted(expected)

        summary = notification_service.get_notifications_for_user(ctx, "vol-1")[0]
        assert f"earned {expected_points} points" in summary.message

    def test_absent_leaves_status_alone(self, ctx, submitted):
        _accept(ctx, submitted.id)
        app = application_service.record_volunteer_performance(ctx, submitted.id, "absent", org_rating=1)
        assert (app.status, app.attendance, app.org_rating) == ("accepted", "absent", 1)
        assert stats_service.get_volunteer_stats(ctx, "vol-1").points == 0

    def test_present_requires_accepted(self, ctx, submitted):
        with pytest.raises(ValidationFailedError):
            application_service.record_volunteer_performance(ctx, submitted.id, "present")
        app = application_service.get_application_by_id(ctx, submitted.id)
        assert (app.status, app.attendance) == ("submitted", "pending")

    def test_present_twice_rejected(self, ctx, submitted):
        _accept(ctx, submitted.id)
        application_service.record_volunteer_performance(ctx, submitted.id, "present")
        with pytest.raises(ValidationFailedError):
            application_service.record_volunteer_performance(ctx, submitted.id, "present")
        assert stats_service.get_volunteer_stats(ctx, "vol-1").points == 50

    def test_absent_cannot_flip_to_present(self, ctx, submitted):
        _accept(ctx, submitted.id)
        application_service.record_volunteer_performance(ctx, submitted.id, "absent")
        with pytest.raises(ValidationFailedError):
            application_service.record_volunteer_performance(ctx, submitted.id, "present")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"attendance": "late"},
            {"attendance": "present", "org_rating": 0},
            {"attendance": "present", "org_rating": 6},
            {"attendance": "present", "hours_logged_by_org": -1},
        ],
    )
    def test_invalid_input(self, ctx, submitted, kwargs):
        _accept(ctx, submitted.id)
        with pytest.raises(ValidationFailedError):
            application_service.record_volunteer_performance(ctx, submitted.id, **kwargs)

    def test_zero_points_opportunity_skips_points_log(self, ctx, make_opportunity, submitted):
        free = make_opportunity("org-1", "Park Walk")
        app = application_service.submit_volunteer_application(ctx, free.id, "vol-1")
        _accept(ctx, app.id)
        application_service.record_volunteer_performance(ctx, app.id, "present")
        assert _count(ctx, GamificationLog, user_id="vol-1", kind="points") == 0


class TestAtomicity:
    def test_failed_notification_rolls_back_everything(self, ctx, submitted, monkeypatch):
        _accept(ctx, submitted.id)
        notes_before = _count(ctx, Notification, user_id="vol-1")

        def broken(*args, **kwargs):
            raise OperationalError("INSERT INTO notifications", {}, Exception("disk I/O error"))

        monkeypatch.setattr(application_service, "add_notification", broken)

        with pytest.raises(TransactionAbortedError):
            application_service.record_volunteer_performance(
                ctx, submitted.id, "present", hours_logged_by_org=3
            )

        app = application_service.get_application_by_id(ctx, submitted.id)
        assert (app.status, app.attendance, app.hours_logged_by_org) == ("accepted", "pending", None)
        stats = stats_service.get_volunteer_stats(ctx, "vol-1")
        assert (stats.points, stats.hours, stats.badges) == (0, 0.0, [])
        assert _count(ctx, GamificationLog, user_id="vol-1") == 0
        assert _count(ctx, Notification, user_id="vol-1") == notes_before


class TestAcceptWorkflow:
    def test_opens_conversation_and_awards_bonus(self, ctx, submitted):
        app, convo = application_service.accept_volunteer_application(ctx, submitted.id, "org-1")
        assert app.status == "accepted"
        assert (convo.organization_name, convo.volunteer_name) == ("Red Cross", "Jane Doe")
        assert convo.opportunity_title == "Beach Cleanup"
        [msg] = convo.messages
        assert msg.sender_id == "org-1"
        assert msg.text.startswith("Congratulations!")

        assert stats_service.get_volunteer_stats(ctx, "vol-1").points == 10
        [note] = notification_service.get_notifications_for_user(ctx, "vol-1")
        assert note.message == 'Your application for "Beach Cleanup" has been accepted!'
        assert note.link == f"/dashboard/messages/{convo.id}"

    def test_reuses_existing_conversation(self, ctx, opportunity, submitted):
        existing = messaging_service.create_conversation(
            ctx, "org-1", "vol-1", opportunity.id, "Hi there"
        )
        _, convo = application_service.accept_volunteer_application(ctx, submitted.id, "org-1")
        assert convo.id == existing.id
        assert len(convo.messages) == 2
        assert _count(ctx, Conversation) == 1

    def test_other_organization_cannot_accept(self, ctx, make_user, submitted):
        make_user("org-2", role="organization")
        with pytest.raises(NotFoundError):
            application_service.accept_volunteer_application(ctx, submitted.id, "org-2")
        assert application_service.get_application_by_id(ctx, submitted.id).status == "submitted"
        assert _count(ctx, Conversation) == 0

    def test_only_from_submitted(self, ctx, submitted):
        application_service.update_application_status(ctx, submitted.id, "rejected")
        with pytest.raises(ValidationFailedError):
            application_service.accept_volunteer_application(ctx, submitted.id, "org-1")

    def test_bonus_defaults_to_context_setting(self, ctx, submitted):
        ctx.acceptance_bonus_points = 25
        application_service.accept_volunteer_application(ctx, submitted.id, "org-1")
        assert stats_service.get_volunteer_stats(ctx, "vol-1").points == 25

    def test_zero_bonus(self, ctx, submitted):
        application_service.accept_volunteer_application(ctx, submitted.id, "org-1", bonus_points=0)
        assert _count(ctx, GamificationLog, user_id="vol-1") == 0


class TestQueries:
    def test_organization_sees_only_its_applications(self, ctx, make_user, make_opportunity, submitted):
        make_user("org-2", role="organization")
        other = make_opportunity("org-2", "Food Drive")
        application_service.submit_volunteer_application(ctx, other.id, "vol-1")

        org1 = application_service.get_applications_for_organization(ctx, "org-1")
        assert [a.id for a in org1] == [submitted.id]
        assert {a.opportunity_title for a in application_service.get_applications_for_organization(ctx, "org-2")} == {
            "Food Drive"
        }

    def test_organization_without_opportunities(self, ctx, make_user):
        make_user("org-9", role="organization")
        assert application_service.get_applications_for_organization(ctx, "org-9") == []

    def test_volunteer_listing(self, ctx, submitted):
        assert [a.id for a in application_service.get_applications_for_volunteer(ctx, "vol-1")] == [
            submitted.id
        ]
        assert application_service.get_applications_for_volunteer(ctx, "vol-2") == []

    def test_get_missing_is_none(self, ctx):
        assert application_service.get_application_by_id(ctx, "app-missing") is None
