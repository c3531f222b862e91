"""
Quest module: progress actions and the completion XP fan-out.
"""

from .service import QuestProgressService

__all__ = ["QuestProgressService"]
