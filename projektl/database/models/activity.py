"""
ActivityLog: append-only feed of XP-relevant events per user.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from projektl.core.database.base import Base, IdMixin, utcnow


class ActivityLog(Base, IdMixin):
    """
    One entry per XP-relevant event. Written once, never mutated.
    """

    __tablename__ = "activity_log"
    __table_args__ = (Index("ix_activity_log_user_occurred", "user_id", "occurred_at"),)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    activity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    faction_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    xp_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    related_entity_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    related_entity_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
