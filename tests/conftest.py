"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import pytest

from bazaar.database.engine import DataContext
from bazaar.records import UserProfile, VolunteerStats
from bazaar.services import opportunity_service, user_service


@pytest.fixture
def ctx():
    """An open in-memory SQLite DataContext with every table created.

    ``sqlite://`` gets a StaticPool, so all sessions (and the worker thread
    used by ``DataContext.run``) share one database.
    """
    context = DataContext("sqlite://").open()
    context.create_schema()
    yield context
    context.close()


@pytest.fixture
def make_user(ctx):
    """Factory: ``make_user("vol-1")`` or ``make_user("org-1", role="organization")``."""

    def _make(
        user_id: str,
        role: str = "volunteer",
        name: str | None = None,
        *,
        stats: VolunteerStats | None = None,
        **fields,
    ) -> UserProfile:
        profile = UserProfile(
            id=user_id,
            email=f"{user_id}@example.com",
            display_name=name or user_id.replace("-", " ").title(),
            role=role,
            stats=stats,
            **fields,
        )
        return user_service.create_user(ctx, profile)

    return _make


@pytest.fixture
def make_opportunity(ctx):
    """Factory for an opportunity owned by *organization_id*."""

    def _make(
        organization_id: str,
        title: str = "Beach Cleanup",
        *,
        description: str = "Pick up litter along the shore",
        location: str = "Santa Cruz",
        commitment: str = "One-time",
        category: str = "Environment",
        **fields,
    ):
        return opportunity_service.create_opportunity(
            ctx,
            organization_id,
            title,
            description,
            location,
            commitment,
            category,
            **fields,
        )

    return _make
