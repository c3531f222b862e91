"""
Core infrastructure: configuration, logging, database, events, validation
and the service container.
"""
