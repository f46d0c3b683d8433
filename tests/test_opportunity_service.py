"""
tests/test_opportunity_service.py — Opportunity Catalog
========================================================
Filtering, partial updates, skill replacement and delete semantics.
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from bazaar.database.models import OpportunitySkill
from bazaar.errors import NotFoundError, TransactionAbortedError, ValidationFailedError
from bazaar.services import application_service, opportunity_service


def _skill_rows(ctx, opportunity_id: str) -> int:
    with ctx.session() as session:
        return session.scalar(
            select(func.count())
            .select_from(OpportunitySkill)
            .where(OpportunitySkill.opportunity_id == opportunity_id)
        )


@pytest.fixture
def catalog(make_user, make_opportunity):
    make_user("org-1", role="organization", name="Red Cross")
    make_user("org-2", role="organization", name="Animal Rescue")
    return {
        "beach": make_opportunity("org-1", "Beach Cleanup", location="Santa Cruz",
                                  category="Environment", commitment="One-time"),
        "blood": make_opportunity("org-1", "Blood Drive", description="Greet donors",
                                  location="San Jose", category="Health", commitment="Weekly"),
        "dogs": make_opportunity("org-2", "Dog Walking", description="Walk shelter dogs by the beach",
                                 location="Santa Clara", category="Animals", commitment="Weekly"),
    }


class TestCreate:
    def test_fields_and_snapshot(self, ctx, catalog):
        opp = catalog["beach"]
        assert opp.organization == "Red Cross"
        assert opp.points_awarded == 0
        assert opp.created_at == opp.updated_at

    def test_required_skills_stored(self, ctx, make_user, make_opportunity):
        make_user("org-1", role="organization")
        opp = make_opportunity("org-1", required_skills=["Lifting", "Driving", "Lifting"])
        assert opp.required_skills == ["Driving", "Lifting"]

    def test_negative_points(self, ctx, make_user, make_opportunity):
        make_user("org-1", role="organization")
        with pytest.raises(ValidationFailedError):
            make_opportunity("org-1", points_awarded=-1)

    def test_empty_title(self, ctx, make_user, make_opportunity):
        make_user("org-1", role="organization")
        with pytest.raises(ValidationFailedError):
            make_opportunity("org-1", "")

    def test_unknown_organization(self, ctx, make_opportunity):
        with pytest.raises(NotFoundError):
            make_opportunity("org-ghost")


class TestFilters:
    def _titles(self, ctx, **filters):
        return sorted(o.title for o in opportunity_service.get_opportunities(ctx, **filters))

    def test_no_filters_returns_all_newest_first(self, ctx, catalog):
        titles = [o.title for o in opportunity_service.get_opportunities(ctx)]
        assert titles == ["Dog Walking", "Blood Drive", "Beach Cleanup"]

    def test_keywords_search_title_and_description(self, ctx, catalog):
        assert self._titles(ctx, keywords="BEACH") == ["Beach Cleanup", "Dog Walking"]

    def test_filters_and_together(self, ctx, catalog):
        assert self._titles(ctx, commitment="Weekly", category="Health") == ["Blood Drive"]
        assert self._titles(ctx, commitment="Weekly", organization_id="org-2") == ["Dog Walking"]

    def test_location_is_substring(self, ctx, catalog):
        assert self._titles(ctx, location="santa") == ["Beach Cleanup", "Dog Walking"]

    def test_empty_string_filters_ignored(self, ctx, catalog):
        assert len(opportunity_service.get_opportunities(ctx, keywords="", category="")) == 3

    def test_keyword_wildcards_are_literal(self, ctx, catalog):
        assert opportunity_service.get_opportunities(ctx, keywords="%") == []

    def test_get_by_id(self, ctx, catalog):
        assert opportunity_service.get_opportunity_by_id(ctx, catalog["dogs"].id).title == "Dog Walking"
        assert opportunity_service.get_opportunity_by_id(ctx, "opp-missing") is None


class TestUpdate:
    def test_partial_update_refreshes_updated_at(self, ctx, catalog):
        before = catalog["beach"]
        after = opportunity_service.update_opportunity(ctx, before.id, title="Harbor Cleanup")
        assert after.title == "Harbor Cleanup"
        assert after.description == before.description
        assert after.created_at == before.created_at
        assert after.updated_at > before.updated_at

    def test_skills_replaced(self, ctx, make_user, make_opportunity):
        make_user("org-1", role="organization")
        opp = make_opportunity("org-1", required_skills=["Lifting"])
        updated = opportunity_service.update_opportunity(ctx, opp.id, required_skills=["Swimming"])
        assert updated.required_skills == ["Swimming"]

    def test_missing(self, ctx):
        with pytest.raises(NotFoundError):
            opportunity_service.update_opportunity(ctx, "opp-missing", title="x")

    def test_unknown_field(self, ctx, catalog):
        with pytest.raises(ValidationFailedError):
            opportunity_service.update_opportunity(ctx, catalog["beach"].id, organization_id="org-2")

    def test_negative_points(self, ctx, catalog):
        with pytest.raises(ValidationFailedError):
            opportunity_service.update_opportunity(ctx, catalog["beach"].id, points_awarded=-5)


class TestDelete:
    def test_removes_opportunity_and_skills(self, ctx, make_user, make_opportunity):
        make_user("org-1", role="organization")
        opp = make_opportunity("org-1", required_skills=["Lifting", "Driving"])
        assert opportunity_service.delete_opportunity(ctx, opp.id) is True
        assert opportunity_service.get_opportunity_by_id(ctx, opp.id) is None
        assert _skill_rows(ctx, opp.id) == 0

    def test_absent_returns_false(self, ctx):
        assert opportunity_service.delete_opportunity(ctx, "opp-missing") is False

    def test_with_applications_aborts_whole_delete(self, ctx, make_user, make_opportunity):
        make_user("org-1", role="organization")
        make_user("vol-1")
        opp = make_opportunity("org-1", required_skills=["Lifting"])
        application_service.submit_volunteer_application(ctx, opp.id, "vol-1")

        with pytest.raises(TransactionAbortedError):
            opportunity_service.delete_opportunity(ctx, opp.id)
        assert opportunity_service.get_opportunity_by_id(ctx, opp.id) is not None
        assert _skill_rows(ctx, opp.id) == 1
