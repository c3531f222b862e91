"""
Progression Service
===================

Purpose
-------
Applies XP to the three progression tracks of a user and keeps the
append-only history in step:

- Profile: a single global ``total_xp`` counter
- Factions: cumulative ``total_xp`` with a derived ``level``
- Skills: remainder ``current_xp`` inside ``level`` with carry on level-up

Domain
------
The building blocks (``add_profile_xp``, ``add_faction_xp``,
``add_skill_xp``, ``record_experience``, ``log_activity``) operate on a
caller-owned session and never commit. The quest workflow composes them
inside its own transaction, one savepoint per step.

``award_skill_xp`` is the standalone operation: it owns its transaction,
runs every step and publishes events once the transaction has committed.

Dependencies
------------
- ConfigManager: default faction for skills without one
- EventBus: ``skill.xp_awarded``, ``skill.leveled_up``, ``faction.leveled_up``
- DatabaseService: transaction management for ``award_skill_xp``
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from projektl.core.database.base import utcnow
from projektl.core.database.service import DatabaseService
from projektl.core.logging.logger import get_logger
from projektl.core.validation.input_validator import InputValidator
from projektl.database.models import (
    ActivityLog,
    ActivityType,
    Experience,
    FactionId,
    Skill,
    UserFactionStat,
    UserProfile,
    UserSkill,
)
from projektl.modules.shared.base_service import BaseService
from projektl.modules.shared.exceptions import NotFoundError
from projektl.modules.shared.formulas import (
    LevelUpResult,
    add_xp_with_level_up,
    level_from_cumulative_xp,
)

from .repository import (
    ActivityLogRepository,
    ExperienceRepository,
    FactionStatRepository,
    SkillRepository,
    SkillStatRepository,
    UserProfileRepository,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from projektl.core.config.config_manager import ConfigManager
    from projektl.core.event.bus import EventBus


DEFAULT_SKILL_ICON = "⭐"
MAX_ACTIVITY_PAGE = 100


class ProgressionService(BaseService):
    """
    XP bookkeeping for profiles, factions and skills.

    Public Methods
    --------------
    - add_profile_xp() -> Add to the global profile counter
    - add_faction_xp() -> Add to a faction and recompute its level
    - add_skill_xp() -> Add to a skill with level carry
    - record_experience() -> Append an experience entry
    - log_activity() -> Append an activity log entry
    - award_skill_xp() -> Full transactional skill XP award
    - get_activity_log() -> Recent activity for a user
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)

        self._profiles = UserProfileRepository(
            UserProfile, get_logger(f"{__name__}.UserProfileRepository")
        )
        self._faction_stats = FactionStatRepository(
            UserFactionStat, get_logger(f"{__name__}.FactionStatRepository")
        )
        self._skills = SkillRepository(Skill, get_logger(f"{__name__}.SkillRepository"))
        self._skill_stats = SkillStatRepository(
            UserSkill, get_logger(f"{__name__}.SkillStatRepository")
        )
        self._experiences = ExperienceRepository(
            Experience, get_logger(f"{__name__}.ExperienceRepository")
        )
        self._activity = ActivityLogRepository(
            ActivityLog, get_logger(f"{__name__}.ActivityLogRepository")
        )

    # ========================================================================
    # BUILDING BLOCKS (caller-owned session)
    # ========================================================================

    async def add_profile_xp(
        self, session: AsyncSession, user_id: str, xp: int
    ) -> Optional[int]:
        """
        Add ``xp`` to the user's global counter.

        Returns:
            The new total, or None when the user has no profile row
            (nothing is created).
        """
        profile = await self._profiles.get_by_user(session, user_id, for_update=True)
        if profile is None:
            self.log.info(
                "Profile missing, global XP not updated",
                extra={"user_id": user_id, "xp": xp},
            )
            return None

        profile.total_xp = (profile.total_xp or 0) + xp
        await self._profiles.flush(session)
        return profile.total_xp

    async def add_faction_xp(
        self, session: AsyncSession, user_id: str, faction_id: str, xp: int
    ) -> Dict[str, Any]:
        """
        Add ``xp`` to a faction's total, weekly and monthly counters.

        A missing row is created at level 1 with zero counters before the
        addition. The level is recomputed from the cumulative total.

        Returns:
            Dict with faction_id, xp_added, total_xp, old_level, new_level
            and leveled_up
        """
        stat = await self._faction_stats.get_for_user_faction(
            session, user_id, faction_id, for_update=True
        )
        if stat is None:
            stat = self._faction_stats.add(
                session,
                UserFactionStat(
                    user_id=user_id,
                    faction_id=faction_id,
                    total_xp=0,
                    weekly_xp=0,
                    monthly_xp=0,
                    level=1,
                ),
            )

        old_level = stat.level or 1
        stat.total_xp = (stat.total_xp or 0) + xp
        stat.weekly_xp = (stat.weekly_xp or 0) + xp
        stat.monthly_xp = (stat.monthly_xp or 0) + xp
        stat.level = level_from_cumulative_xp(stat.total_xp)
        await self._faction_stats.flush(session)

        return {
            "faction_id": faction_id,
            "xp_added": xp,
            "total_xp": stat.total_xp,
            "old_level": old_level,
            "new_level": stat.level,
            "leveled_up": stat.level > old_level,
        }

    async def add_skill_xp(
        self,
        session: AsyncSession,
        user_id: str,
        skill_id: str,
        xp: int,
        create_missing: bool = False,
    ) -> Optional[LevelUpResult]:
        """
        Add ``xp`` to a user's skill, carrying overflow into new levels.

        Args:
            create_missing: Start a new skill at level 1 when the user has
                none; otherwise a missing skill is skipped

        Returns:
            The level-up result, or None when the skill was skipped
        """
        user_skill = await self._skill_stats.get_for_user_skill(
            session, user_id, skill_id, for_update=True
        )
        if user_skill is None:
            if not create_missing:
                self.log.info(
                    "User skill missing, skill XP skipped",
                    extra={"user_id": user_id, "skill_id": skill_id, "xp": xp},
                )
                return None
            user_skill = self._skill_stats.add(
                session,
                UserSkill(user_id=user_id, skill_id=skill_id, current_xp=0, level=1),
            )

        result = add_xp_with_level_up(user_skill.level or 1, user_skill.current_xp or 0, xp)
        user_skill.level = result.new_level
        user_skill.current_xp = result.new_xp
        user_skill.last_used = utcnow()
        await self._skill_stats.flush(session)

        return result

    async def record_experience(
        self,
        session: AsyncSession,
        user_id: str,
        skill_id: str,
        xp: int,
        description: str,
        faction_id: Optional[str] = None,
    ) -> Experience:
        """Append an experience entry dated today (UTC)."""
        experience = self._experiences.add(
            session,
            Experience(
                user_id=user_id,
                skill_id=skill_id,
                description=description,
                xp_gained=xp,
                faction_id=faction_id,
                entry_date=utcnow().date(),
            ),
        )
        await self._experiences.flush(session)
        return experience

    async def log_activity(
        self,
        session: AsyncSession,
        user_id: str,
        activity_type: ActivityType,
        title: str,
        *,
        faction_id: Optional[str] = None,
        description: Optional[str] = None,
        xp_amount: int = 0,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[str] = None,
    ) -> ActivityLog:
        """Append an activity log entry."""
        entry = self._activity.add(
            session,
            ActivityLog(
                user_id=user_id,
                activity_type=ActivityType(activity_type).value,
                faction_id=faction_id,
                title=title,
                description=description,
                xp_amount=xp_amount,
                related_entity_type=related_entity_type,
                related_entity_id=related_entity_id,
                occurred_at=utcnow(),
            ),
        )
        await self._activity.flush(session)
        return entry

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def award_skill_xp(
        self,
        user_id: str,
        skill_id: str,
        xp: int,
        description: Optional[str] = None,
        faction_override: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Award XP to a skill and fan it out to profile and faction.

        The faction is the override if given, else the skill's catalogue
        faction, else the configured default. An experience entry is only
        written when a description is provided.

        Args:
            user_id: Owner of the skill
            skill_id: Skill catalogue id
            xp: Positive XP amount
            description: Optional experience text
            faction_override: Optional faction to credit instead

        Returns:
            Dict containing:
                - skill_id, level, current_xp, leveled_up, levels_gained
                - experience_id: Id of the experience entry or None
                - faction_id, faction_level, faction_leveled_up
                - profile_total_xp: New global total or None
                - xp_distribution: List of {faction_id, xp_distributed}

        Raises:
            ValidationError: Bad ids, amount, description or faction
            NotFoundError: Skill not in the catalogue
        """
        user_id = InputValidator.validate_entity_id(user_id, "user_id")
        skill_id = InputValidator.validate_entity_id(skill_id, "skill_id")
        xp = InputValidator.validate_positive_integer(xp, "xp")
        description = InputValidator.validate_optional_description(description)
        if faction_override is not None:
            faction_override = InputValidator.validate_choice(
                faction_override, "faction_override", FactionId.values()
            )

        self.log_operation(
            "award_skill_xp", user_id=user_id, skill_id=skill_id, xp=xp
        )

        async with DatabaseService.get_transaction() as session:
            skill = await self._skills.get(session, skill_id)
            if skill is None:
                raise NotFoundError("Skill", skill_id)

            skill_result = await self.add_skill_xp(
                session, user_id, skill_id, xp, create_missing=True
            )
            assert skill_result is not None

            faction_id = (
                faction_override
                or skill.faction_id
                or self.get_config("progression.default_skill_faction", FactionId.CAREER.value)
            )

            experience_id = None
            if description:
                experience = await self.record_experience(
                    session, user_id, skill_id, xp, description, faction_id=faction_id
                )
                experience_id = experience.id

            profile_total = await self.add_profile_xp(session, user_id, xp)
            faction_result = await self.add_faction_xp(session, user_id, faction_id, xp)

            skill_name = skill.name or "Skill"
            await self.log_activity(
                session,
                user_id,
                ActivityType.XP_GAINED,
                f"{skill.icon or DEFAULT_SKILL_ICON} +{xp} XP",
                faction_id=faction_id,
                description=skill_name,
                xp_amount=xp,
                related_entity_type="skill",
                related_entity_id=skill_id,
            )

            if skill_result.leveled_up:
                await self.log_activity(
                    session,
                    user_id,
                    ActivityType.LEVEL_UP,
                    f"Level Up! {skill_name} is now level {skill_result.new_level}",
                    faction_id=faction_id,
                    description=f"{skill_name} reached level {skill_result.new_level}!",
                    related_entity_type="skill",
                    related_entity_id=skill_id,
                )

            if faction_result["leveled_up"]:
                await self.log_activity(
                    session,
                    user_id,
                    ActivityType.FACTION_LEVEL_UP,
                    f"Faction Level Up! {faction_id}",
                    faction_id=faction_id,
                    description=(
                        f"Your {faction_id} faction reached level {faction_result['new_level']}!"
                    ),
                    related_entity_type="faction",
                    related_entity_id=faction_id,
                )

        result = {
            "user_id": user_id,
            "skill_id": skill_id,
            "level": skill_result.new_level,
            "current_xp": skill_result.new_xp,
            "leveled_up": skill_result.leveled_up,
            "levels_gained": skill_result.levels_gained,
            "experience_id": experience_id,
            "faction_id": faction_id,
            "faction_level": faction_result["new_level"],
            "faction_leveled_up": faction_result["leveled_up"],
            "profile_total_xp": profile_total,
            "xp_distribution": [{"faction_id": faction_id, "xp_distributed": xp}],
        }

        await self.emit_event(
            "skill.xp_awarded",
            {"user_id": user_id, "skill_id": skill_id, "xp": xp, "faction_id": faction_id},
        )
        if skill_result.leveled_up:
            await self.emit_event(
                "skill.leveled_up",
                {
                    "user_id": user_id,
                    "skill_id": skill_id,
                    "new_level": skill_result.new_level,
                    "levels_gained": skill_result.levels_gained,
                },
            )
        if faction_result["leveled_up"]:
            await self.emit_event(
                "faction.leveled_up",
                {
                    "user_id": user_id,
                    "faction_id": faction_id,
                    "old_level": faction_result["old_level"],
                    "new_level": faction_result["new_level"],
                },
            )

        return result

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_activity_log(
        self,
        user_id: str,
        limit: int = 20,
        activity_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Most recent activity entries for a user, newest first.

        Raises:
            ValidationError: If limit is outside 1..100 or the type is unknown
        """
        user_id = InputValidator.validate_entity_id(user_id, "user_id")
        limit = InputValidator.validate_positive_integer(
            limit, "limit", max_value=MAX_ACTIVITY_PAGE
        )
        if activity_type is not None:
            activity_type = InputValidator.validate_choice(
                activity_type, "activity_type", [t.value for t in ActivityType]
            )

        async with DatabaseService.get_session() as session:
            entries = await self._activity.list_recent(
                session, user_id, limit, activity_type=activity_type
            )

        return [
            {
                "id": entry.id,
                "activity_type": entry.activity_type,
                "faction_id": entry.faction_id,
                "title": entry.title,
                "description": entry.description,
                "xp_amount": entry.xp_amount,
                "related_entity_type": entry.related_entity_type,
                "related_entity_id": entry.related_entity_id,
                "occurred_at": entry.occurred_at,
            }
            for entry in entries
        ]
