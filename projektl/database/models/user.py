"""
UserProfile: per-user profile with the global XP counter.
Schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from projektl.core.database.base import Base, IdMixin, TimestampMixin


class UserProfile(Base, IdMixin, TimestampMixin):
    """
    One row per user. ``total_xp`` is the sum of every XP award the user
    received, regardless of faction or skill.
    """

    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
