"""
Projekt L progression engine.

XP curve and level math, the quest progress workflow with its XP fan-out,
and the faction and skill bookkeeping behind them.
"""

__version__ = "0.1.0"
