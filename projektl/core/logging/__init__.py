"""
Projekt L Logging Infrastructure

Exports the structured logging subsystem and the progression log context.
"""

from projektl.core.logging.logger import (
    CONTEXT_FIELDS,
    LogContext,
    LoggerConfig,
    RESERVED_RECORD_ATTRS,
    get_log_context,
    get_logger,
    get_logging_health,
    safe_extra,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_health",
    "LogContext",
    "get_log_context",
    "CONTEXT_FIELDS",
    "LoggerConfig",
    "RESERVED_RECORD_ATTRS",
    "safe_extra",
]
