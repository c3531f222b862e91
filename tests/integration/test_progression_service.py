"""
Integration Tests for ProgressionService
========================================

Covers the standalone skill XP award and the activity log read model.
"""

import pytest

from projektl.database.models import (
    ActivityLog,
    Experience,
    UserFactionStat,
    UserProfile,
    UserSkill,
)
from projektl.modules.shared.exceptions import NotFoundError, ValidationError
from tests.conftest import USER_ID, fetch_all, fetch_one

pytestmark = [pytest.mark.integration, pytest.mark.database]


class TestAwardSkillXp:
    async def test_first_award_creates_user_skill(self, seed, progression_service):
        # Arrange
        await seed.profile(total_xp=100)
        skill = await seed.skill()

        # Act
        result = await progression_service.award_skill_xp(USER_ID, skill.id, 40)

        # Assert
        assert result["level"] == 1
        assert result["current_xp"] == 40
        assert result["leveled_up"] is False
        assert result["faction_id"] == "koerper"
        assert result["profile_total_xp"] == 140
        assert result["experience_id"] is None
        assert result["xp_distribution"] == [{"faction_id": "koerper", "xp_distributed": 40}]

        user_skill = await fetch_one(UserSkill, UserSkill.skill_id == skill.id)
        assert user_skill.current_xp == 40
        stat = await fetch_one(UserFactionStat, UserFactionStat.faction_id == "koerper")
        assert stat.total_xp == 40

    async def test_experience_written_only_with_description(self, seed, progression_service):
        skill = await seed.skill()

        await progression_service.award_skill_xp(USER_ID, skill.id, 10)
        result = await progression_service.award_skill_xp(
            USER_ID, skill.id, 15, description="Morning run"
        )

        experiences = await fetch_all(Experience, Experience.skill_id == skill.id)
        assert len(experiences) == 1
        assert experiences[0].id == result["experience_id"]
        assert experiences[0].description == "Morning run"
        assert experiences[0].faction_id == "koerper"

    async def test_level_up_with_carry(self, seed, progression_service):
        # Arrange
        skill = await seed.skill()
        await seed.user_skill(skill.id, level=1, current_xp=200)

        # Act
        result = await progression_service.award_skill_xp(USER_ID, skill.id, 100)

        # Assert
        assert result["leveled_up"] is True
        assert result["levels_gained"] == 1
        assert result["level"] == 2
        assert result["current_xp"] == 18

        titles = [e.title for e in await fetch_all(ActivityLog, ActivityLog.user_id == USER_ID)]
        assert "🏃 +100 XP" in titles
        assert "Level Up! Running is now level 2" in titles

    async def test_faction_level_up_is_logged(self, seed, progression_service):
        skill = await seed.skill()

        result = await progression_service.award_skill_xp(USER_ID, skill.id, 400)

        assert result["faction_level"] == 2
        assert result["faction_leveled_up"] is True
        types = {
            e.activity_type for e in await fetch_all(ActivityLog, ActivityLog.user_id == USER_ID)
        }
        assert types == {"xp_gained", "level_up", "faction_level_up"}

    async def test_faction_override(self, seed, progression_service):
        skill = await seed.skill()

        result = await progression_service.award_skill_xp(
            USER_ID, skill.id, 25, faction_override="Geist"
        )

        assert result["faction_id"] == "geist"
        assert await fetch_one(UserFactionStat, UserFactionStat.faction_id == "koerper") is None

    async def test_skill_without_faction_uses_default(self, seed, progression_service):
        skill = await seed.skill(name="Chess", faction_id=None, icon=None)

        result = await progression_service.award_skill_xp(USER_ID, skill.id, 5)

        assert result["faction_id"] == "karriere"
        entry = await fetch_one(ActivityLog, ActivityLog.user_id == USER_ID)
        assert entry.title == "⭐ +5 XP"
        assert entry.description == "Chess"

    async def test_missing_profile_reports_none(self, seed, progression_service):
        skill = await seed.skill()

        result = await progression_service.award_skill_xp(USER_ID, skill.id, 5)

        assert result["profile_total_xp"] is None
        assert await fetch_one(UserProfile, UserProfile.user_id == USER_ID) is None

    async def test_unknown_skill(self, seed, progression_service):
        with pytest.raises(NotFoundError) as exc_info:
            await progression_service.award_skill_xp(USER_ID, "no-such-skill", 10)

        assert exc_info.value.error_code == "SKILL_NOT_FOUND"
        assert await fetch_all(UserSkill, UserSkill.user_id == USER_ID) == []

    @pytest.mark.parametrize("xp", [0, -5, 2.5, "ten"])
    async def test_invalid_amount(self, seed, progression_service, xp):
        skill = await seed.skill()

        with pytest.raises(ValidationError):
            await progression_service.award_skill_xp(USER_ID, skill.id, xp)

    async def test_unknown_faction_override(self, seed, progression_service):
        skill = await seed.skill()

        with pytest.raises(ValidationError):
            await progression_service.award_skill_xp(
                USER_ID, skill.id, 10, faction_override="atlantis"
            )

    async def test_events(self, seed, progression_service, recorded_events):
        skill = await seed.skill()

        await progression_service.award_skill_xp(USER_ID, skill.id, 400)

        assert recorded_events.named("skill.xp_awarded")[0]["xp"] == 400
        assert recorded_events.named("skill.leveled_up")[0]["new_level"] == 2
        faction_event = recorded_events.named("faction.leveled_up")[0]
        assert (faction_event["old_level"], faction_event["new_level"]) == (1, 2)


class TestActivityLog:
    async def test_newest_first_with_limit(self, seed, progression_service):
        skill = await seed.skill()
        for xp in (1, 2, 3):
            await progression_service.award_skill_xp(USER_ID, skill.id, xp)

        entries = await progression_service.get_activity_log(USER_ID, limit=2)

        assert [e["xp_amount"] for e in entries] == [3, 2]

    async def test_filter_by_type(self, seed, progression_service):
        skill = await seed.skill()
        await progression_service.award_skill_xp(USER_ID, skill.id, 400)

        entries = await progression_service.get_activity_log(USER_ID, activity_type="level_up")

        assert len(entries) == 1
        assert entries[0]["related_entity_id"] == skill.id

    @pytest.mark.parametrize("limit", [0, 101])
    async def test_limit_bounds(self, seed, progression_service, limit):
        with pytest.raises(ValidationError):
            await progression_service.get_activity_log(USER_ID, limit=limit)
