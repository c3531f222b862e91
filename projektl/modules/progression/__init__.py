"""
Progression module: XP bookkeeping for profiles, factions and skills.
"""

from .service import ProgressionService

__all__ = ["ProgressionService"]
