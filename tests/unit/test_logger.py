"""
Unit Tests for the logging subsystem's context and formatting.
"""

import json
import logging
import sys

import pytest

from projektl.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    get_log_context,
    safe_extra,
)

pytestmark = pytest.mark.unit


def _record(message: str = "Quest progress requested", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "projektl.test", logging.INFO, __file__, 42, message, None, None, func="apply"
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_empty_outside_any_scope(self):
        assert get_log_context() == {}

    def test_scope_sets_and_restores(self):
        with LogContext(user_id="u1", operation="award_skill_xp") as ctx:
            assert get_log_context()["user_id"] == "u1"
            assert len(ctx["correlation_id"]) == 8

        assert get_log_context() == {}

    async def test_nested_scope_inherits_outer_fields(self):
        async with LogContext(user_id="u1", operation="apply_quest_action") as outer:
            async with LogContext(faction_id="geist") as inner:
                assert inner["user_id"] == "u1"
                assert inner["faction_id"] == "geist"
                assert inner["correlation_id"] == outer["correlation_id"]

            assert "faction_id" not in get_log_context()

    def test_none_values_are_not_recorded(self):
        with LogContext(user_id="u1", quest_id=None) as ctx:
            assert "quest_id" not in ctx

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            LogContext(guild_id="123")


class TestContextFilter:
    def test_stamps_active_context(self):
        record = _record()

        with LogContext(quest_id="q1"):
            ContextFilter().filter(record)

        assert record.quest_id == "q1"
        assert record.skill_id == "-"

    def test_explicit_record_fields_win(self):
        record = _record(user_id="explicit")

        with LogContext(user_id="scoped"):
            ContextFilter().filter(record)

        assert record.user_id == "explicit"


class TestJSONFormatter:
    def test_payload_shape(self):
        # Arrange
        record = _record(rows=2, period="weekly")
        with LogContext(user_id="u1", operation="reset_period_xp"):
            ContextFilter().filter(record)

        # Act
        payload = json.loads(JSONFormatter().format(record))

        # Assert
        assert payload["level"] == "INFO"
        assert payload["logger"] == "projektl.test"
        assert payload["message"] == "Quest progress requested"
        assert payload["where"].endswith("apply:42")
        assert payload["context"]["user_id"] == "u1"
        assert payload["context"]["operation"] == "reset_period_xp"
        assert "quest_id" not in payload["context"]
        assert payload["extra"] == {"rows": 2, "period": "weekly"}

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()

        payload = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in payload["exception"]

    def test_no_context_no_extra(self):
        payload = json.loads(JSONFormatter().format(_record()))

        assert "context" not in payload
        assert "extra" not in payload


class TestSafeExtra:
    def test_record_attribute_names_are_prefixed(self):
        extra = safe_extra({"created": 6, "module": "factions", "rows": 2})

        assert extra == {"field_created": 6, "field_module": "factions", "rows": 2}

    def test_prefixed_fields_survive_make_record(self):
        logger = logging.getLogger("projektl.test.safe_extra")

        record = logger.makeRecord(
            logger.name, logging.INFO, __file__, 1, "seeded", None, None,
            extra=safe_extra({"name": "geist", "created": 6}),
        )

        assert record.field_name == "geist"
        assert record.field_created == 6
        assert record.name == "projektl.test.safe_extra"

    def test_unprefixed_collision_is_what_it_prevents(self):
        logger = logging.getLogger("projektl.test.safe_extra")

        with pytest.raises(KeyError):
            logger.makeRecord(
                logger.name, logging.INFO, __file__, 1, "seeded", None, None,
                extra={"created": 6},
            )
