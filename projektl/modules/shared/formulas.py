"""
Projekt L Progression Formulas

Purpose
-------
Pure calculation functions for the XP/level system. Two bookkeeping
conventions coexist and are kept deliberately separate:

- **Cumulative** (faction stats): a row stores its lifetime ``total_xp`` and
  ``level`` is derived from it with ``level_from_cumulative_xp``.
- **Remainder + carry** (skill stats): a row stores ``current_xp`` counted
  from the start of its current level; ``add_xp_with_level_up`` carries
  overflow into new levels.

Both conventions use the same floored curve ``floor(100 * level^1.5)``.
``xp_for_next_level`` is a ceil-rounded variant kept for display code that
shows "XP needed for the next level"; it never drives bookkeeping.

Design Notes
------------
All formulas:
- Accept parameters explicitly and have no side effects
- Never raise: out-of-range input (negative, NaN, infinite) is clamped
- Round halves up, like the rest of the product

Usage
-----
    from projektl.modules.shared.formulas import add_xp_with_level_up

    result = add_xp_with_level_up(level=3, remainder_xp=120, xp_gained=250)
    if result.leveled_up:
        ...
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

from .constants import (
    LEVEL_TIERS,
    MAX_TRACKED_XP,
    MIN_LEVEL,
    PERCENT_MAX,
    XP_COMPACT_MILLION,
    XP_COMPACT_THOUSAND,
    XP_CURVE_BASE,
    XP_CURVE_EXPONENT,
)

Number = Union[int, float]


@dataclass(frozen=True)
class LevelUpResult:
    """Outcome of adding XP to a remainder-based level state."""

    new_level: int
    new_xp: int
    leveled_up: bool
    levels_gained: int


@dataclass(frozen=True)
class LevelTier:
    """Presentation tier for a level range."""

    name: str
    color_token: str


# =============================================================================
# Helpers
# =============================================================================


def _finite_int(value: Number, default: int = 0) -> int:
    """Truncate to int; NaN and infinities become ``default``."""
    try:
        if isinstance(value, float) and not math.isfinite(value):
            return default
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _total_xp(value: Number) -> int:
    """Cumulative total in [0, MAX_TRACKED_XP]; +inf is the ceiling, NaN and -inf are 0."""
    if isinstance(value, float) and value == math.inf:
        return MAX_TRACKED_XP
    return min(MAX_TRACKED_XP, max(0, _finite_int(value)))


def round_half_up(value: Number) -> int:
    """
    Round to the nearest integer, halves toward positive infinity.

    Python's ``round`` uses banker's rounding; XP splits and percentages
    need the classic rule.

    Example:
        >>> round_half_up(2.5)
        3
        >>> round_half_up(33.333)
        33
        >>> round_half_up(-2.5)
        -2
    """
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return int(math.floor(value + 0.5))


# =============================================================================
# Cumulative curve
# =============================================================================


def xp_required_for_level(level: Number) -> int:
    """
    XP needed to complete ``level``: ``floor(100 * level^1.5)``.

    Args:
        level: Level number (values <= 0 yield 0)

    Returns:
        Non-negative integer requirement, strictly increasing for level >= 1

    Example:
        >>> xp_required_for_level(1)
        100
        >>> xp_required_for_level(2)
        282
        >>> xp_required_for_level(-5)
        0
    """
    level = _finite_int(level)
    if level <= 0:
        return 0
    return int(math.floor(XP_CURVE_BASE * math.pow(level, XP_CURVE_EXPONENT)))


def xp_for_next_level(level: Number) -> int:
    """
    Ceil-rounded requirement for ``level``, used only for display.

    Example:
        >>> xp_for_next_level(2)
        283
        >>> xp_for_next_level(1)
        100
    """
    level = _finite_int(level)
    if level <= 0:
        return 0
    return int(math.ceil(XP_CURVE_BASE * math.pow(level, XP_CURVE_EXPONENT)))


def cumulative_xp_for_level(level: Number) -> int:
    """
    Sum of ``xp_required_for_level(1..level)``.

    Example:
        >>> cumulative_xp_for_level(1)
        100
        >>> cumulative_xp_for_level(2)
        382
    """
    level = _finite_int(level)
    if level <= 0:
        return 0
    return sum(xp_required_for_level(i) for i in range(1, level + 1))


def level_from_cumulative_xp(total_xp: Number) -> int:
    """
    Largest level whose cumulative requirement fits in ``total_xp``.

    Returns 1 for empty, negative or NaN totals, so a fresh row reads as
    level 1 even before it has earned the 100 XP that level 1 itself costs.
    Totals above ``MAX_TRACKED_XP``, and +inf, read as that ceiling.

    Example:
        >>> level_from_cumulative_xp(99)
        1
        >>> level_from_cumulative_xp(382)
        2
        >>> level_from_cumulative_xp(-100)
        1
    """
    total = _total_xp(total_xp)
    if total <= 0:
        return MIN_LEVEL

    level = 0
    accumulated = 0
    while True:
        requirement = xp_required_for_level(level + 1)
        if accumulated + requirement > total:
            break
        accumulated += requirement
        level += 1

    return max(MIN_LEVEL, level)


def progress_to_next_level_percent(level: Number, xp_into_level: Number) -> int:
    """
    Percent progress from ``level`` toward ``level + 1``, clamped to [0, 100].

    Args:
        level: Current level (clamped to >= 1)
        xp_into_level: XP earned since reaching ``level``

    Example:
        >>> progress_to_next_level_percent(1, 141)
        50
        >>> progress_to_next_level_percent(1, 10**9)
        100
        >>> progress_to_next_level_percent(1, -100)
        0
    """
    level = max(MIN_LEVEL, _finite_int(level, MIN_LEVEL))
    if isinstance(xp_into_level, float) and math.isnan(xp_into_level):
        return 0

    needed = xp_required_for_level(level + 1)
    if needed <= 0:
        return PERCENT_MAX

    ratio = xp_into_level / needed * PERCENT_MAX
    if ratio >= PERCENT_MAX:
        return PERCENT_MAX
    if ratio <= 0:
        return 0
    return min(PERCENT_MAX, max(0, round_half_up(ratio)))


# =============================================================================
# Remainder + carry
# =============================================================================


def add_xp_with_level_up(
    level: Number,
    remainder_xp: Number,
    xp_gained: Number,
) -> LevelUpResult:
    """
    Add XP to a remainder-based state, carrying overflow into new levels.

    Each iteration subtracts the requirement of the next level, so the loop
    runs once per level gained.

    Args:
        level: Current level (clamped to >= 1)
        remainder_xp: XP already earned inside the current level (>= 0)
        xp_gained: XP to add (>= 0)

    Returns:
        LevelUpResult with the new level and remainder

    Example:
        >>> add_xp_with_level_up(1, 0, 300)
        LevelUpResult(new_level=2, new_xp=18, leveled_up=True, levels_gained=1)
        >>> add_xp_with_level_up(1, 0, 50).leveled_up
        False
    """
    current_level = max(MIN_LEVEL, _finite_int(level, MIN_LEVEL))
    new_xp = max(0, _finite_int(remainder_xp)) + max(0, _finite_int(xp_gained))
    levels_gained = 0

    requirement = xp_required_for_level(current_level + 1)
    while new_xp >= requirement:
        new_xp -= requirement
        current_level += 1
        levels_gained += 1
        requirement = xp_required_for_level(current_level + 1)

    return LevelUpResult(
        new_level=current_level,
        new_xp=new_xp,
        leveled_up=levels_gained > 0,
        levels_gained=levels_gained,
    )


def xp_into_current_level(total_xp: Number) -> int:
    """
    Convert a cumulative total into XP earned inside its derived level.

    Example:
        >>> xp_into_current_level(400)
        18
    """
    total = _total_xp(total_xp)
    level = level_from_cumulative_xp(total)
    return max(0, total - cumulative_xp_for_level(level))


def split_xp(total_xp: Number, target_count: int) -> int:
    """
    Per-target share of a reward split across ``target_count`` targets.

    Each share is rounded independently, so the sum can drift from the
    total by at most ``target_count - 1``.

    Example:
        >>> split_xp(100, 3)
        33
        >>> split_xp(100, 0)
        0
    """
    if target_count <= 0:
        return 0
    return max(0, round_half_up(_finite_int(total_xp) / target_count))


# =============================================================================
# Display
# =============================================================================


def format_xp_compact(xp: Number) -> str:
    """
    Compact XP label with K/M suffixes and one decimal.

    Example:
        >>> format_xp_compact(999)
        '999'
        >>> format_xp_compact(12500)
        '12.5K'
        >>> format_xp_compact(2_500_000)
        '2.5M'
    """
    if xp >= XP_COMPACT_MILLION:
        return f"{xp / XP_COMPACT_MILLION:.1f}M"
    if xp >= XP_COMPACT_THOUSAND:
        return f"{xp / XP_COMPACT_THOUSAND:.1f}K"
    if isinstance(xp, float) and xp.is_integer():
        return str(int(xp))
    return str(xp)


def level_tier(level: Number) -> LevelTier:
    """
    Presentation tier for a level.

    Example:
        >>> level_tier(24).name
        'Beginner'
        >>> level_tier(100).color_token
        'level-diamond'
    """
    value = _finite_int(level)
    for threshold, name, color_token in LEVEL_TIERS:
        if value >= threshold:
            return LevelTier(name=name, color_token=color_token)
    _, name, color_token = LEVEL_TIERS[-1]
    return LevelTier(name=name, color_token=color_token)
