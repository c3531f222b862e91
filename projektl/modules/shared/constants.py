"""
Projekt L Domain Constants

Purpose
-------
Provide domain-level constants for the progression system: the XP curve,
level tiers used for presentation, and the faction catalogue.

IMPORTANT:
The curve constants define how persisted XP maps to levels. Changing them
silently changes every stored ``level`` projection, so they are not exposed
through ConfigManager.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- Grouped by concern (curve, tiers, display, quests)
- No side effects at import time
"""

from __future__ import annotations

from typing import Final, Tuple

# ============================================================================
# XP CURVE
# ============================================================================

XP_CURVE_BASE: Final[int] = 100  # XP required for level 1
XP_CURVE_EXPONENT: Final[float] = 1.5  # requirement(n) = base * n^exponent

MIN_LEVEL: Final[int] = 1

# Cumulative totals are clamped here before a level is derived; +inf maps to it.
MAX_TRACKED_XP: Final[int] = 10**12

# ============================================================================
# LEVEL TIERS (presentation only)
# ============================================================================

# (minimum level, tier name, color token), highest threshold first
LEVEL_TIERS: Final[Tuple[Tuple[int, str, str], ...]] = (
    (100, "Legendary", "level-diamond"),
    (75, "Master", "level-platinum"),
    (50, "Expert", "level-gold"),
    (25, "Advanced", "level-silver"),
    (1, "Beginner", "level-bronze"),
)

# ============================================================================
# DISPLAY
# ============================================================================

XP_COMPACT_THOUSAND: Final[int] = 1_000
XP_COMPACT_MILLION: Final[int] = 1_000_000

# ============================================================================
# QUESTS
# ============================================================================

DEFAULT_QUEST_XP_REWARD: Final[int] = 50
MAX_QUEST_XP_REWARD: Final[int] = 1_000_000
MAX_DESCRIPTION_LENGTH: Final[int] = 500

PERCENT_MAX: Final[int] = 100
