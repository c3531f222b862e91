"""
Projekt L EventBus: async in-process pub/sub with tiered execution.

Purpose
-------
Decouple progression side effects (notifications, streak tracking, analytics)
from the services that award XP. Services publish after their transaction
commits; listeners never run inside a database transaction.

Responsibilities
----------------
- Register/unregister listeners with priorities
- Publish events to all matching listeners (exact + wildcard)
- Execute listeners according to tier:
  * CRITICAL / HIGH: sequential, ordered, awaited with timeout
  * NORMAL: concurrent (gather), awaited with timeout
  * LOW: fire-and-forget background tasks
- Error isolation: one failing listener never blocks the others, and a
  failing listener never fails the publisher

Event Names
-----------
- quest.progressed, quest.completed
- skill.xp_awarded, skill.leveled_up
- faction.leveled_up
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from projektl.core.logging.logger import get_logger

if TYPE_CHECKING:
    from projektl.core.config.config_manager import ConfigManager

logger = get_logger(__name__)

EventPayload = Dict[str, Any]
CallbackType = Union[
    Callable[[EventPayload], Awaitable[Any]],
    Callable[[EventPayload], Any],
]


class ListenerPriority(Enum):
    """Lower value runs earlier."""

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


_listener_ids = itertools.count(1)


@dataclass(slots=True)
class EventListener:
    pattern: str
    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False
    sequence: int = field(default_factory=lambda: next(_listener_ids))

    @property
    def name(self) -> str:
        return getattr(self.callback, "__qualname__", None) or repr(self.callback)


def matches(event_name: str, pattern: str) -> bool:
    """
    Wildcard match where ``*`` spans any run of characters.

    Examples
    --------
    >>> matches("quest.completed", "quest.*")
    True
    >>> matches("quest.completed", "*.completed")
    True
    >>> matches("skill.leveled_up", "quest.*")
    False
    """
    if pattern == "*":
        return True
    if "*" not in pattern:
        return event_name == pattern

    parts = pattern.split("*")
    if not event_name.startswith(parts[0]) or not event_name.endswith(parts[-1]):
        return False
    if len(event_name) < len(parts[0]) + len(parts[-1]):
        return False

    idx = len(parts[0])
    limit = len(event_name) - len(parts[-1])
    for mid in parts[1:-1]:
        if not mid:
            continue
        found = event_name.find(mid, idx, limit)
        if found == -1:
            return False
        idx = found + len(mid)
    return True


class EventBus:
    """
    Instance-based event bus (tests create their own).

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("quest.completed", on_quest_completed)
    >>> await bus.publish("quest.completed", {"quest_id": "q1", "xp_awarded": 100})
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        *,
        listener_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._listeners: List[EventListener] = []
        self._background: Set[asyncio.Task] = set()
        self._metrics: Dict[str, int] = {
            "published": 0,
            "delivered": 0,
            "listener_errors": 0,
            "listener_timeouts": 0,
        }

        if listener_timeout_seconds is not None:
            self._timeout = float(listener_timeout_seconds)
        elif config_manager is not None:
            self._timeout = float(
                config_manager.get("core.event.listener_timeout_seconds", 5.0)
            )
        else:
            self._timeout = 5.0

        logger.debug(
            "EventBus initialized",
            extra={"listener_timeout_seconds": self._timeout},
        )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """
        Raises
        ------
        ValueError:
            If the callback does not take exactly one positional parameter.
        """
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        if len(sig.parameters) != 1:
            raise ValueError(
                "Event listener must accept exactly 1 parameter (payload), "
                f"got {len(sig.parameters)} for "
                f"'{getattr(callback, '__qualname__', repr(callback))}'"
            )

    def subscribe(
        self,
        pattern: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns
        -------
        str:
            Listener identifier for ``unsubscribe``.
        """
        self._validate_callback_signature(callback)
        listener = EventListener(
            pattern=pattern,
            callback=callback,
            priority=priority,
            identifier=identifier or f"listener-{next(_listener_ids)}",
            once=once,
        )
        self._listeners.append(listener)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "pattern": pattern,
                "listener_id": listener.identifier,
                "priority": priority.name,
            },
        )
        return listener.identifier

    def unsubscribe(self, pattern: str, identifier: str) -> bool:
        before = len(self._listeners)
        self._listeners = [
            listener
            for listener in self._listeners
            if not (listener.pattern == pattern and listener.identifier == identifier)
        ]
        return len(self._listeners) < before

    def clear(self) -> None:
        """Remove all listeners (tests and full reinit)."""
        self._listeners.clear()

    def listener_count(self) -> int:
        return len(self._listeners)

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> List[Any]:
        """
        Publish an event to all matching listeners.

        Returns
        -------
        list:
            Results from awaited (non-LOW) listeners that succeeded.
        """
        self._metrics["published"] += 1

        matching = sorted(
            (lst for lst in self._listeners if matches(event_name, lst.pattern)),
            key=lambda lst: (lst.priority.value, lst.sequence),
        )
        if not matching:
            logger.debug("EventBus: no listeners for event", extra={"event_name": event_name})
            return []

        once_ids = {id(lst) for lst in matching if lst.once}
        if once_ids:
            self._listeners = [lst for lst in self._listeners if id(lst) not in once_ids]

        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "listener_count": len(matching),
                "payload_keys": sorted(data.keys()),
            },
        )

        results: List[Any] = []
        sequential = [
            lst
            for lst in matching
            if lst.priority in (ListenerPriority.CRITICAL, ListenerPriority.HIGH)
        ]
        concurrent = [lst for lst in matching if lst.priority is ListenerPriority.NORMAL]
        background = [lst for lst in matching if lst.priority is ListenerPriority.LOW]

        for listener in sequential:
            ok, value = await self._run_listener(event_name, listener, data)
            if ok:
                results.append(value)

        if concurrent:
            outcomes = await asyncio.gather(
                *(self._run_listener(event_name, lst, data) for lst in concurrent)
            )
            results.extend(value for ok, value in outcomes if ok)

        for listener in background:
            task = asyncio.create_task(self._run_listener(event_name, listener, data))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

        return results

    async def _run_listener(
        self, event_name: str, listener: EventListener, data: EventPayload
    ) -> tuple[bool, Any]:
        """Run one listener; failures and timeouts are logged, never raised."""
        try:
            result = listener.callback(data)
            if inspect.isawaitable(result):
                result = await asyncio.wait_for(result, timeout=self._timeout)
        except asyncio.TimeoutError:
            self._metrics["listener_timeouts"] += 1
            logger.warning(
                "EventBus: listener timed out",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "listener": listener.name,
                    "timeout_seconds": self._timeout,
                },
            )
            return False, None
        except Exception as exc:
            self._metrics["listener_errors"] += 1
            logger.error(
                "EventBus: listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "listener": listener.name,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
                exc_info=True,
            )
            return False, None

        self._metrics["delivered"] += 1
        return True, result

    async def drain(self) -> None:
        """Wait for fire-and-forget listeners (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def get_metrics(self) -> Dict[str, int]:
        return {**self._metrics, "listeners": len(self._listeners)}
