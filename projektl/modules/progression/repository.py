"""
Progression repositories.

Thin per-entity subclasses of ``BaseRepository`` with the lookups the
progression and faction services need. No business logic lives here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from projektl.database.models import (
    ActivityLog,
    Experience,
    Skill,
    UserFactionStat,
    UserProfile,
    UserSkill,
)
from projektl.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class UserProfileRepository(BaseRepository[UserProfile]):
    """Repository for UserProfile model."""

    async def get_by_user(
        self, session: AsyncSession, user_id: str, for_update: bool = False
    ) -> Optional[UserProfile]:
        return await self.find_one_where(
            session, UserProfile.user_id == user_id, for_update=for_update
        )


class FactionStatRepository(BaseRepository[UserFactionStat]):
    """Repository for UserFactionStat model."""

    async def get_for_user_faction(
        self,
        session: AsyncSession,
        user_id: str,
        faction_id: str,
        for_update: bool = False,
    ) -> Optional[UserFactionStat]:
        return await self.find_one_where(
            session,
            UserFactionStat.user_id == user_id,
            UserFactionStat.faction_id == faction_id,
            for_update=for_update,
        )

    async def list_for_user(
        self, session: AsyncSession, user_id: str
    ) -> List[UserFactionStat]:
        return await self.find_many_where(
            session,
            UserFactionStat.user_id == user_id,
            order_by=[UserFactionStat.faction_id],
        )


class SkillRepository(BaseRepository[Skill]):
    """Repository for the skill catalogue."""

    pass


class SkillStatRepository(BaseRepository[UserSkill]):
    """Repository for UserSkill model."""

    async def get_for_user_skill(
        self,
        session: AsyncSession,
        user_id: str,
        skill_id: str,
        for_update: bool = False,
    ) -> Optional[UserSkill]:
        return await self.find_one_where(
            session,
            UserSkill.user_id == user_id,
            UserSkill.skill_id == skill_id,
            for_update=for_update,
        )


class ExperienceRepository(BaseRepository[Experience]):
    """Repository for Experience model."""

    pass


class ActivityLogRepository(BaseRepository[ActivityLog]):
    """Repository for ActivityLog model."""

    async def list_recent(
        self,
        session: AsyncSession,
        user_id: str,
        limit: int,
        activity_type: Optional[str] = None,
    ) -> List[ActivityLog]:
        """Newest first."""
        conditions = [ActivityLog.user_id == user_id]
        if activity_type is not None:
            conditions.append(ActivityLog.activity_type == activity_type)

        return await self.find_many_where(
            session,
            *conditions,
            order_by=[ActivityLog.occurred_at.desc()],
            limit=limit,
        )
