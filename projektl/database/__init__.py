"""
Persistence schema for Projekt L.
"""
