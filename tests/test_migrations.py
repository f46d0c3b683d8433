"""
tests/test_migrations.py — Alembic Baseline vs ORM Metadata
============================================================
The schema built by ``alembic upgrade head`` must match the one
``DataContext.create_schema()`` builds from the models.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from bazaar.database.engine import DataContext

_ALEMBIC_DIR = Path(__file__).resolve().parents[1] / "alembic"


def _columns(url: str) -> dict[str, dict[str, bool]]:
    engine = create_engine(url)
    try:
        insp = inspect(engine)
        return {
            table: {col["name"]: col["nullable"] for col in insp.get_columns(table)}
            for table in insp.get_table_names()
            if table != "alembic_version"
        }
    finally:
        engine.dispose()


@pytest.fixture
def migrated_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    cfg = Config()
    cfg.set_main_option("script_location", str(_ALEMBIC_DIR))
    cfg.set_main_option("sqlalchemy.url", url)
    command.upgrade(cfg, "head")
    return url


@pytest.fixture
def model_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'models.db'}"
    with DataContext(url) as ctx:
        ctx.create_schema()
    return url


def test_baseline_matches_models(migrated_url, model_url):
    assert _columns(migrated_url) == _columns(model_url)


def test_timestamps_and_flags_are_not_null(migrated_url):
    columns = _columns(migrated_url)
    assert columns["users"]["onboarding_completed"] is False
    assert columns["users"]["created_at"] is False
    assert columns["volunteer_badges"]["awarded_at"] is False
    assert columns["gamification_log"]["timestamp"] is False


def test_downgrade_drops_everything(migrated_url):
    cfg = Config()
    cfg.set_main_option("script_location", str(_ALEMBIC_DIR))
    cfg.set_main_option("sqlalchemy.url", migrated_url)
    command.downgrade(cfg, "base")
    assert _columns(migrated_url) == {}
