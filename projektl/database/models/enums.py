"""
Database Model Enums
====================

Lightweight enumerations for categorical columns. Columns store the plain
string value, so every enum subclasses ``str`` and compares equal to it.
"""

from __future__ import annotations

import enum


class QuestStatus(str, enum.Enum):
    """
    Quest lifecycle.

    ACTIVE is the only state that accepts progress actions; COMPLETED,
    FAILED and ARCHIVED are terminal for the progress workflow.
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    ARCHIVED = "archived"


class QuestActionType(str, enum.Enum):
    """Progress actions a user can apply to an active quest."""

    INCREMENT = "increment"
    DECREMENT = "decrement"
    COMPLETE = "complete"


class FactionId(str, enum.Enum):
    """
    Life-domain buckets that accumulate their own XP and level.

    Values are the persisted identifiers.
    """

    CAREER = "karriere"
    BODY = "koerper"
    MIND = "geist"
    FINANCE = "finanzen"
    SOCIAL = "soziales"
    KNOWLEDGE = "weisheit"
    HOBBY = "hobbys"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class ActivityType(str, enum.Enum):
    """Kinds of entries in the append-only activity log."""

    QUEST_COMPLETED = "quest_completed"
    XP_GAINED = "xp_gained"
    LEVEL_UP = "level_up"
    FACTION_LEVEL_UP = "faction_level_up"
