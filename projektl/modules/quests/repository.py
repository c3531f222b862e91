"""
Quest repositories.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from projektl.database.models import Quest, QuestAction
from projektl.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class QuestRepository(BaseRepository[Quest]):
    """Repository for Quest model."""

    pass


class QuestActionRepository(BaseRepository[QuestAction]):
    """Repository for the quest action audit trail."""

    async def list_for_quest(
        self, session: AsyncSession, quest_id: str
    ) -> List[QuestAction]:
        """Oldest first."""
        return await self.find_many_where(
            session,
            QuestAction.quest_id == quest_id,
            order_by=[QuestAction.created_at],
        )
