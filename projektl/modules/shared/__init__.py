"""
Projekt L Shared Module

Purpose
-------
Provides domain-level foundations for the progression modules:
- Domain exceptions and error handling
- Base service and repository patterns
- Progression constants and formulas

Architecture
------------
- BaseService: Foundation for service classes (logging, config, events)
- BaseRepository: Type-safe database access patterns
- Domain exceptions: User-facing errors and business rule violations
- Formulas: Pure XP/level calculation functions
- Constants: Curve parameters and tier thresholds

Usage
-----
    from projektl.modules.shared import (
        BaseService,
        BaseRepository,
        NotFoundError,
        add_xp_with_level_up,
    )
"""

from __future__ import annotations

# Base patterns
from .base_repository import BaseRepository
from .base_service import BaseService

# Domain exceptions
from .exceptions import (
    ErrorSeverity,
    ForbiddenError,
    InvalidOperationError,
    InvalidStateError,
    NotFoundError,
    ProjektLDomainException,
    ProjektLError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

# Domain constants
from .constants import (
    DEFAULT_QUEST_XP_REWARD,
    LEVEL_TIERS,
    MAX_TRACKED_XP,
    MIN_LEVEL,
    XP_CURVE_BASE,
    XP_CURVE_EXPONENT,
)

# Formulas
from .formulas import (
    LevelTier,
    LevelUpResult,
    add_xp_with_level_up,
    cumulative_xp_for_level,
    format_xp_compact,
    level_from_cumulative_xp,
    level_tier,
    progress_to_next_level_percent,
    round_half_up,
    split_xp,
    xp_for_next_level,
    xp_into_current_level,
    xp_required_for_level,
)

__all__ = [
    # Base patterns
    "BaseService",
    "BaseRepository",
    # Exceptions
    "ProjektLDomainException",
    "ProjektLError",
    "ErrorSeverity",
    "NotFoundError",
    "ForbiddenError",
    "InvalidStateError",
    "ValidationError",
    "InvalidOperationError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
    # Constants
    "DEFAULT_QUEST_XP_REWARD",
    "LEVEL_TIERS",
    "MAX_TRACKED_XP",
    "MIN_LEVEL",
    "XP_CURVE_BASE",
    "XP_CURVE_EXPONENT",
    # Formulas
    "LevelTier",
    "LevelUpResult",
    "add_xp_with_level_up",
    "cumulative_xp_for_level",
    "format_xp_compact",
    "level_from_cumulative_xp",
    "level_tier",
    "progress_to_next_level_percent",
    "round_half_up",
    "split_xp",
    "xp_for_next_level",
    "xp_into_current_level",
    "xp_required_for_level",
]
