"""
Integration Tests for FactionStatService
========================================

Seeding, overview and the weekly/monthly counter reset.
"""

import logging

import pytest

from projektl.database.models import FactionId, UserFactionStat
from projektl.modules.shared.exceptions import InvalidOperationError
from tests.conftest import OTHER_USER_ID, USER_ID, fetch_all

pytestmark = [pytest.mark.integration, pytest.mark.database]


class TestInitializeUserFactions:
    async def test_creates_all_factions_once(self, seed, faction_service):
        # Act
        first = await faction_service.initialize_user_factions(USER_ID)
        second = await faction_service.initialize_user_factions(USER_ID)

        # Assert
        assert first == len(FactionId)
        assert second == 0
        stats = await fetch_all(UserFactionStat, UserFactionStat.user_id == USER_ID)
        assert sorted(s.faction_id for s in stats) == sorted(FactionId.values())
        assert all(s.level == 1 and s.total_xp == 0 for s in stats)

    async def test_fills_only_missing_rows(self, seed, faction_service):
        await seed.faction_stat("geist", total_xp=500, level=2)

        created = await faction_service.initialize_user_factions(USER_ID)

        assert created == len(FactionId) - 1
        stats = await fetch_all(UserFactionStat, UserFactionStat.faction_id == "geist")
        assert [s.total_xp for s in stats] == [500]

    async def test_logs_at_info_level(self, seed, faction_service, caplog):
        caplog.set_level(logging.INFO)

        created = await faction_service.initialize_user_factions(USER_ID)

        assert created == len(FactionId)
        record = next(
            r for r in caplog.records if r.getMessage() == "initialize_user_factions requested"
        )
        assert record.rows_created == len(FactionId)
        assert record.user_id == USER_ID


class TestFactionOverview:
    async def test_overview_in_canonical_order(self, seed, faction_service):
        # Arrange
        await seed.faction_stat("koerper", total_xp=400, weekly_xp=40, monthly_xp=120, level=2)

        # Act
        overview = await faction_service.get_faction_overview(USER_ID)

        # Assert
        assert [entry["faction_id"] for entry in overview] == FactionId.values()

        body = overview[1]
        assert body["faction_id"] == "koerper"
        assert body["level"] == 2
        assert body["weekly_xp"] == 40
        assert body["monthly_xp"] == 120
        assert body["xp_into_level"] == 18
        assert body["xp_to_next_level"] == 519 - 18
        assert body["progress_percent"] == 3
        assert body["tier"] == "Beginner"
        assert body["tier_color"] == "level-bronze"
        assert body["total_xp_display"] == "400"

    async def test_missing_rows_read_as_level_one(self, seed, faction_service):
        overview = await faction_service.get_faction_overview(USER_ID)

        assert all(entry["level"] == 1 and entry["total_xp"] == 0 for entry in overview)


class TestResetPeriodXp:
    async def test_weekly_reset_keeps_totals(self, seed, faction_service, recorded_events):
        # Arrange
        await seed.faction_stat("karriere", total_xp=900, weekly_xp=90, monthly_xp=300, level=2)
        await seed.faction_stat("geist", weekly_xp=0, monthly_xp=10)
        await seed.faction_stat("karriere", user_id=OTHER_USER_ID, weekly_xp=5)

        # Act
        rows = await faction_service.reset_period_xp("weekly")

        # Assert
        assert rows == 2
        stats = await fetch_all(UserFactionStat)
        assert all(s.weekly_xp == 0 for s in stats)
        career = [s for s in stats if s.user_id == USER_ID and s.faction_id == "karriere"][0]
        assert (career.total_xp, career.monthly_xp, career.level) == (900, 300, 2)
        assert recorded_events.named("faction.period_reset") == [{"period": "weekly", "rows": 2}]

    async def test_monthly_reset(self, seed, faction_service):
        await seed.faction_stat("hobbys", weekly_xp=7, monthly_xp=70)

        rows = await faction_service.reset_period_xp("monthly")

        assert rows == 1
        [stat] = await fetch_all(UserFactionStat, UserFactionStat.faction_id == "hobbys")
        assert (stat.weekly_xp, stat.monthly_xp) == (7, 0)

    @pytest.mark.parametrize("period", ["daily", "", "WEEKLY"])
    async def test_unknown_period(self, seed, faction_service, period):
        with pytest.raises(InvalidOperationError):
            await faction_service.reset_period_xp(period)
