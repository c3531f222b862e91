"""
In-process event bus for cross-module notifications.
"""

from projektl.core.event.bus import (
    CallbackType,
    EventBus,
    EventListener,
    EventPayload,
    ListenerPriority,
    matches,
)

__all__ = [
    "EventBus",
    "EventListener",
    "EventPayload",
    "CallbackType",
    "ListenerPriority",
    "matches",
]
