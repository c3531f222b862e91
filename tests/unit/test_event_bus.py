"""
Unit tests for the in-process EventBus.
"""

import asyncio

import pytest

from projektl.core.event import EventBus, ListenerPriority, matches

pytestmark = pytest.mark.unit


class TestPatternMatching:
    @pytest.mark.parametrize(
        "event_name, pattern, expected",
        [
            ("quest.completed", "quest.completed", True),
            ("quest.completed", "quest.*", True),
            ("quest.completed", "*", True),
            ("quest.completed", "skill.*", False),
            ("quest.progressed", "quest.completed", False),
        ],
    )
    def test_matches(self, event_name, pattern, expected):
        assert matches(event_name, pattern) is expected


class TestPublish:
    async def test_delivers_to_matching_listeners(self):
        bus = EventBus(listener_timeout_seconds=1.0)
        exact, wildcard, other = [], [], []
        bus.subscribe("quest.completed", exact.append)
        bus.subscribe("quest.*", wildcard.append)
        bus.subscribe("skill.*", other.append)

        await bus.publish("quest.completed", {"quest_id": "q1"})

        assert exact == [{"quest_id": "q1"}]
        assert wildcard == [{"quest_id": "q1"}]
        assert other == []

    async def test_async_listener_results_are_returned(self):
        bus = EventBus(listener_timeout_seconds=1.0)

        async def listener(data):
            return data["xp"] * 2

        bus.subscribe("quest.completed", listener)

        assert await bus.publish("quest.completed", {"xp": 50}) == [100]

    async def test_failing_listener_is_isolated(self):
        bus = EventBus(listener_timeout_seconds=1.0)
        received = []

        def broken(data):
            raise RuntimeError("listener bug")

        bus.subscribe("quest.completed", broken)
        bus.subscribe("quest.completed", received.append)

        await bus.publish("quest.completed", {"quest_id": "q1"})

        assert received == [{"quest_id": "q1"}]
        assert bus.get_metrics()["listener_errors"] == 1

    async def test_slow_listener_times_out(self):
        bus = EventBus(listener_timeout_seconds=0.05)

        async def slow(data):
            await asyncio.sleep(1)

        bus.subscribe("quest.completed", slow)

        assert await bus.publish("quest.completed", {}) == []
        assert bus.get_metrics()["listener_timeouts"] == 1

    async def test_high_priority_runs_first(self):
        bus = EventBus(listener_timeout_seconds=1.0)
        order = []
        bus.subscribe("e", lambda data: order.append("normal"))
        bus.subscribe("e", lambda data: order.append("critical"), priority=ListenerPriority.CRITICAL)

        await bus.publish("e", {})

        assert order == ["critical", "normal"]

    async def test_low_priority_runs_in_background(self):
        bus = EventBus(listener_timeout_seconds=1.0)
        received = []
        bus.subscribe("e", received.append, priority=ListenerPriority.LOW)

        await bus.publish("e", {"n": 1})
        await bus.drain()

        assert received == [{"n": 1}]

    async def test_once_listener_fires_once(self):
        bus = EventBus(listener_timeout_seconds=1.0)
        received = []
        bus.subscribe("e", received.append, once=True)

        await bus.publish("e", {"n": 1})
        await bus.publish("e", {"n": 2})

        assert received == [{"n": 1}]


class TestSubscriptions:
    def test_rejects_wrong_signature(self):
        bus = EventBus(listener_timeout_seconds=1.0)

        with pytest.raises(ValueError):
            bus.subscribe("e", lambda: None)

    def test_unsubscribe(self):
        bus = EventBus(listener_timeout_seconds=1.0)
        listener_id = bus.subscribe("e", lambda data: None)

        assert bus.unsubscribe("e", listener_id)
        assert bus.listener_count() == 0
        assert not bus.unsubscribe("e", listener_id)

    def test_timeout_from_config(self, mocker):
        config = mocker.MagicMock()
        config.get.return_value = 2.5

        bus = EventBus(config)

        config.get.assert_called_once_with("core.event.listener_timeout_seconds", 5.0)
        assert bus._timeout == 2.5
