"""
Input validation for the progression services.

Every caller-supplied value (quest, user and skill ids, the quest action,
XP amounts, free-text descriptions, faction choices) passes through
``InputValidator`` before a service opens a transaction. Validators return
the normalized value (stripped, lowercased, converted to int) or raise
``ValidationError`` whose ``field`` names the offending argument.

Ownership, quest state and other business rules are checked by the
services, not here. Rejections are logged at DEBUG with the field, the
``repr`` of the raw value and the reason.
"""

from __future__ import annotations

from typing import Any, List, NoReturn, Optional, Sequence

from projektl.core.logging.logger import get_logger
from projektl.modules.shared.constants import MAX_DESCRIPTION_LENGTH
from projektl.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

MAX_ID_LENGTH = 64


def _reject(field: str, raw: Any, reason: str) -> NoReturn:
    logger.debug(
        f"Rejected {field}",
        extra={"field": field, "raw_value": repr(raw), "reason": reason},
    )
    raise ValidationError(field, reason)


def _require_text(raw: Any, field: str, kind: str) -> str:
    if raw is None:
        _reject(field, raw, "Value is required")
    if not isinstance(raw, str):
        _reject(field, raw, f"Must be {kind}")
    return raw.strip()


class InputValidator:
    """Stateless validators; each returns the normalized value."""

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> int:
        """
        Whole number within the optional inclusive bounds.

        ``True``/``False`` and floats such as ``2.5`` are rejected; ``"7"``
        and ``7.0`` are accepted as 7.
        """
        if value is None:
            _reject(field_name, value, "Value is required")

        whole = not isinstance(value, bool) and not (
            isinstance(value, float) and not value.is_integer()
        )
        number: Optional[int] = None
        if whole:
            try:
                number = int(value)
            except (ValueError, TypeError, OverflowError):
                number = None
        if number is None:
            _reject(field_name, value, f"Must be a whole number, got '{value}'")

        if min_value is not None and number < min_value:
            _reject(field_name, number, f"Must be at least {min_value}, got {number}")
        if max_value is not None and number > max_value:
            _reject(field_name, number, f"Cannot exceed {max_value}, got {number}")
        return number

    @staticmethod
    def validate_positive_integer(
        value: Any, field_name: str, max_value: Optional[int] = None
    ) -> int:
        return InputValidator.validate_integer(value, field_name, 1, max_value)

    @staticmethod
    def validate_entity_id(value: Any, field_name: str) -> str:
        """Non-empty opaque id (UUID or catalogue slug), at most 64 chars."""
        id_value = _require_text(value, field_name, "a string id")
        if not id_value:
            _reject(field_name, value, "Must not be empty")
        if len(id_value) > MAX_ID_LENGTH:
            _reject(field_name, value, f"Cannot exceed {MAX_ID_LENGTH} characters")
        return id_value

    @staticmethod
    def validate_id_list(
        values: Any, field_name: str, max_count: Optional[int] = None
    ) -> List[str]:
        """
        List of distinct entity ids, e.g. a quest's target skills.

        An item failure is reported against the list field as ``Item <n>: ...``.
        """
        if not isinstance(values, (list, tuple)):
            _reject(field_name, values, "Must be a list")
        if max_count is not None and len(values) > max_count:
            _reject(field_name, values, f"Cannot provide more than {max_count} items")

        ids: List[str] = []
        for position, item in enumerate(values):
            try:
                ids.append(InputValidator.validate_entity_id(item, f"{field_name}[{position}]"))
            except ValidationError as exc:
                _reject(field_name, item, f"Item {position}: {exc.validation_message}")

        if len(set(ids)) < len(ids):
            _reject(field_name, ids, "List contains duplicate ids")
        return ids

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> str:
        text = _require_text(value, field_name, "text")
        if min_length is not None and len(text) < min_length:
            _reject(field_name, text, f"Must be at least {min_length} characters")
        if max_length is not None and len(text) > max_length:
            _reject(field_name, text, f"Cannot exceed {max_length} characters")
        return text

    @staticmethod
    def validate_optional_description(
        value: Any, field_name: str = "description"
    ) -> Optional[str]:
        """None or blank becomes None; otherwise a bounded string."""
        if value is None:
            return None
        return (
            InputValidator.validate_string(
                value, field_name, max_length=MAX_DESCRIPTION_LENGTH
            )
            or None
        )

    @staticmethod
    def validate_choice(value: Any, field_name: str, valid_choices: Sequence[str]) -> str:
        """Case-insensitive membership; returns the lowercased choice."""
        allowed = {choice.lower() for choice in valid_choices}
        choice = value.strip().lower() if isinstance(value, str) else None
        if choice not in allowed:
            _reject(
                field_name,
                value,
                f"Invalid choice '{value}'. Must be one of: {', '.join(sorted(valid_choices))}",
            )
        return choice
