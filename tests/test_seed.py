"""
tests/test_seed.py — Demo Data Seeder & Bootstrap Entry Point
==============================================================
"""

from __future__ import annotations

from bazaar import __main__ as cli
from bazaar.database.seed import DEMO_CONVERSATIONS, seed_demo_data
from bazaar.services import (
    messaging_service,
    opportunity_service,
    stats_service,
    user_service,
)


class TestSeed:
    def test_first_run_inserts_everything(self, ctx):
        assert seed_demo_data(ctx) == 12
        stats = user_service.get_app_statistics(ctx)
        assert (stats.total_volunteers, stats.total_organizations, stats.total_opportunities) == (3, 3, 3)

    def test_idempotent(self, ctx):
        seed_demo_data(ctx)
        assert seed_demo_data(ctx) == 0
        assert len(opportunity_service.get_opportunities(ctx)) == 3

    def test_does_not_overwrite_user_changes(self, ctx):
        seed_demo_data(ctx)
        user_service.update_user(ctx, "vol_123456", display_name="Johnny")
        stats_service.add_points(ctx, "vol_123456", 5, "Manual")
        seed_demo_data(ctx)
        assert user_service.get_user_by_id(ctx, "vol_123456").display_name == "Johnny"
        assert stats_service.get_volunteer_stats(ctx, "vol_123456").points == 5

    def test_only_last_message_unread(self, ctx):
        seed_demo_data(ctx)
        for convo_id, org_id, vol_id, _, lines in DEMO_CONVERSATIONS:
            reader = vol_id if lines[-1][0] else org_id
            role = "volunteer" if reader == vol_id else "organization"
            [summary] = messaging_service.get_conversations_for_user(ctx, reader, role)
            assert summary.id == convo_id
            assert summary.unread_count == 1
            assert summary.last_message.text == lines[-1][1]

    def test_opportunities_carry_skills(self, ctx):
        seed_demo_data(ctx)
        opp = opportunity_service.get_opportunity_by_id(ctx, "opp-345678")
        assert opp.organization == "Red Cross Chapter"
        assert opp.required_skills == ["First Aid", "Logistics"]


class TestEntryPoint:
    def test_bootstraps_file_database(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(cli, "load_dotenv", lambda: None)
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'bazaar.db'}")
        assert cli.main([]) == 0
        assert (tmp_path / "bazaar.db").exists()
        # Second start finds everything already seeded
        assert cli.main(["--no-seed"]) == 0

    def test_missing_database_url(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(cli, "load_dotenv", lambda: None)
        monkeypatch.delenv("DATABASE_URL", raising=False)
        assert cli.main([]) == 1
