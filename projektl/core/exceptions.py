"""
Infrastructure exceptions for Projekt L.

Configuration and database failures. They share ``ProjektLError`` with the
domain hierarchy in ``projektl.modules.shared.exceptions`` so both
serialize through the same ``to_dict()``.
"""

from __future__ import annotations

from typing import Optional

from projektl.modules.shared.exceptions import ErrorSeverity, ProjektLError


class ProjektLInfrastructureException(ProjektLError):
    """Base for failures outside the business rules (config, engine, driver)."""


class ConfigurationError(ProjektLInfrastructureException):
    """A required setting is missing or out of range."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class DatabaseError(ProjektLInfrastructureException):
    """
    A write the caller depends on failed at the driver level.

    ``original`` keeps the driver or ORM exception; only its type name is
    put into ``details``.
    """

    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        operation: str,
        message: str,
        original: Optional[BaseException] = None,
    ) -> None:
        self.operation = operation
        self.original = original
        super().__init__(
            f"Database operation '{operation}' failed: {message}",
            details={
                "operation": operation,
                "original_error": type(original).__name__ if original else None,
            },
            error_code="DATABASE_ERROR",
        )
