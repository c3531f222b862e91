"""
Faction module: seeding, overview and period resets of faction stats.
"""

from .service import FactionStatService

__all__ = ["FactionStatService"]
