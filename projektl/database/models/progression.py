"""
Progression rows: faction stats, the skill catalogue, per-user skills and
experience entries.
Schema only.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from projektl.core.database.base import Base, IdMixin, TimestampMixin, utcnow


class UserFactionStat(Base, IdMixin, TimestampMixin):
    """
    Cumulative XP per user and faction.

    ``level`` is a cached projection of ``total_xp`` through the cumulative
    curve and is rewritten whenever ``total_xp`` changes.
    """

    __tablename__ = "user_faction_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "faction_id", name="uq_user_faction_stats_user_faction"),
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    faction_id: Mapped[str] = mapped_column(String(20), nullable=False)
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    weekly_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    monthly_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class Skill(Base, IdMixin):
    """Skill catalogue entry; ``faction_id`` is the faction it trains."""

    __tablename__ = "skills"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    faction_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class UserSkill(Base, IdMixin, TimestampMixin):
    """
    A user's progress in one skill.

    ``current_xp`` is the remainder inside ``level`` (it resets and carries
    on level-up), unlike faction stats which store a cumulative total.
    """

    __tablename__ = "user_skills"
    __table_args__ = (
        UniqueConstraint("user_id", "skill_id", name="uq_user_skills_user_skill"),
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    skill_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("skills.id", ondelete="CASCADE"), nullable=False
    )
    current_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_used: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Experience(Base, IdMixin):
    """Append-only record of XP gained in a skill."""

    __tablename__ = "experiences"
    __table_args__ = (Index("ix_experiences_user_skill", "user_id", "skill_id"),)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    skill_id: Mapped[str] = mapped_column(String(36), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    xp_gained: Mapped[int] = mapped_column(Integer, nullable=False)
    faction_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    entry_date: Mapped[date] = mapped_column(
        "date", Date, nullable=False, default=lambda: utcnow().date()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
