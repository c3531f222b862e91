"""
Domain modules: shared foundations, progression, quests and factions.
"""
