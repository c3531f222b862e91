"""
Database Models Package
========================

SQLAlchemy ORM models for Projekt L progression.

All models:
- Are schema-only, no business logic
- Use Mapped[] syntax with mapped_column()
- Inherit IdMixin (UUID string key) and, where rows are mutable, TimestampMixin
- Store enum columns as their plain string values

Domain Organization:
--------------------
- user: UserProfile (global XP counter)
- quest: Quest, QuestAction
- progression: UserFactionStat, Skill, UserSkill, Experience
- activity: ActivityLog
- enums: QuestStatus, QuestActionType, FactionId, ActivityType
"""

from projektl.core.database.base import Base

from .activity import ActivityLog
from .enums import ActivityType, FactionId, QuestActionType, QuestStatus
from .progression import Experience, Skill, UserFactionStat, UserSkill
from .quest import Quest, QuestAction
from .user import UserProfile

__all__ = [
    "Base",
    # Models
    "UserProfile",
    "Quest",
    "QuestAction",
    "UserFactionStat",
    "Skill",
    "UserSkill",
    "Experience",
    "ActivityLog",
    # Enums
    "QuestStatus",
    "QuestActionType",
    "FactionId",
    "ActivityType",
]
