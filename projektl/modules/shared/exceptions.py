"""
Domain exceptions for Projekt L.

Services raise these when a quest, skill or faction operation breaks a
business rule. A caller boundary maps them onto responses:

    ValidationError    400
    ForbiddenError     403
    NotFoundError      404
    InvalidStateError  409

Every error (domain or infrastructure) derives from ``ProjektLError`` and
carries a stable ``error_code``, a ``details`` dict, an ``ErrorSeverity``
and an ``is_retryable`` flag, so logging and serialization treat both
hierarchies alike.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """How loudly an error should be logged."""

    DEBUG = "debug"
    INFO = "info"  # user mistakes: bad input, missing rows
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"  # process cannot continue


class ProjektLError(Exception):
    """
    Root of every structured Projekt L error.

    Subclasses tune ``DEFAULT_SEVERITY`` / ``DEFAULT_RETRYABLE``; either can
    be overridden per instance.
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.severity = severity if severity is not None else self.DEFAULT_SEVERITY
        self.is_retryable = (
            self.DEFAULT_RETRYABLE if is_retryable is None else is_retryable
        )
        self.error_code = error_code or type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        text = f"[{self.error_code}] {self.message}"
        if self.details:
            text += f" | Details: {self.details}"
        return text

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.error_code!r}, {self.message!r}, "
            f"severity={self.severity.value!r}, retryable={self.is_retryable!r})"
        )


class ProjektLDomainException(ProjektLError):
    """
    Base for business rule violations.

    Example:
        >>> raise ProjektLDomainException(
        ...     "Quest update failed", {"reason": "quest archived"}
        ... )
    """


class NotFoundError(ProjektLDomainException):
    """A quest, skill or profile row does not exist."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        message = f"{resource_type} not found"
        if identifier is not None:
            message = f"{message}: {identifier}"
        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ForbiddenError(ProjektLDomainException):
    """The row exists but belongs to another user."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, resource_type: str, identifier: Any, user_id: Any) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        self.user_id = user_id
        super().__init__(
            f"Not allowed to access {resource_type}: {identifier}",
            details={
                "resource_type": resource_type,
                "identifier": identifier,
                "user_id": user_id,
            },
            error_code="FORBIDDEN",
        )


class InvalidStateError(ProjektLDomainException):
    """
    The row is in a state that rules the operation out.

    ``error_code`` defaults to ``<RESOURCE>_INVALID_STATE``; quest guards
    pass their own (``QUEST_NOT_ACTIVE``, ``QUEST_EXPIRED``, ...).
    A lost compare-and-swap is raised with ``is_retryable=True``.
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(
        self,
        resource_type: str,
        state: str,
        reason: str,
        error_code: Optional[str] = None,
        is_retryable: Optional[bool] = None,
    ) -> None:
        self.resource_type = resource_type
        self.state = state
        self.reason = reason
        super().__init__(
            f"{resource_type} is {state}: {reason}",
            details={"resource_type": resource_type, "state": state, "reason": reason},
            error_code=error_code or f"{resource_type.upper()}_INVALID_STATE",
            is_retryable=is_retryable,
        )


class ValidationError(ProjektLDomainException):
    """Input for ``field`` was rejected before touching the database."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class InvalidOperationError(ProjektLDomainException):
    """
    The requested operation is not supported.

    Example:
        >>> raise InvalidOperationError("reset_period_xp", "Unknown period 'daily'")
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code=f"INVALID_{action.upper()}",
        )


# ============================================================================
# Handling helpers
# ============================================================================


def is_transient_error(exc: BaseException) -> bool:
    """True when retrying the same call may succeed."""
    return isinstance(exc, ProjektLError) and exc.is_retryable


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    """Severity for logging; anything unstructured counts as ERROR."""
    if isinstance(exc, ProjektLError):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: BaseException) -> bool:
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
