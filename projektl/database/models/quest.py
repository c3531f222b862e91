"""
Quest and QuestAction: quest state and its append-only action audit trail.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from projektl.core.database.base import Base, IdMixin, TimestampMixin, utcnow
from projektl.modules.shared.constants import DEFAULT_QUEST_XP_REWARD

from .enums import QuestStatus

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONList = JSON().with_variant(JSONB(), "postgresql")


class Quest(Base, IdMixin, TimestampMixin):
    """
    A goal with a number of required actions and an XP reward.

    Invariants enforced by the progress workflow:
    - ``0 <= completed_actions <= required_actions``
    - ``status == completed`` exactly when ``completed_actions >= required_actions``

    ``version`` is bumped on every progress write; the final write is
    conditional on the version read at the start of the call.
    """

    __tablename__ = "quests"
    __table_args__ = (
        CheckConstraint("required_actions >= 1", name="ck_quests_required_actions"),
        CheckConstraint("completed_actions >= 0", name="ck_quests_completed_actions"),
        CheckConstraint("xp_reward >= 0", name="ck_quests_xp_reward"),
        Index("ix_quests_user_status", "user_id", "status"),
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QuestStatus.ACTIVE.value
    )
    required_actions: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    completed_actions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_reward: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_QUEST_XP_REWARD
    )

    target_faction_ids: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)
    target_skill_ids: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)

    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Optimistic locking version",
    )


class QuestAction(Base, IdMixin):
    """
    Audit record of one increment/complete call. Never updated or deleted.
    """

    __tablename__ = "quest_actions"
    __table_args__ = (Index("ix_quest_actions_quest_created", "quest_id", "created_at"),)

    quest_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("quests.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    completed_actions: Mapped[int] = mapped_column(Integer, nullable=False)
    habit_log_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
