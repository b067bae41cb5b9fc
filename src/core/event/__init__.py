"""
Event subsystem: async pub/sub used by services to announce committed
state changes.
"""

from src.core.event.bus import EventBus
from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventListener",
    "EventPayload",
    "CallbackType",
    "ListenerPriority",
]
