"""
Database infrastructure: declarative base, mixins and the DatabaseService.
"""

from projektl.core.database.base import Base, IdMixin, TimestampMixin
from projektl.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
