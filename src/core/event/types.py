"""
Core Event Types for the EventBus.

Priority Levels
---------------
- CRITICAL (0): Sequential, awaited, timeout-protected.
- HIGH (10): Sequential, awaited, timeout-protected.
- NORMAL (50): Concurrent, awaited.
- LOW (100): Fire-and-forget.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# Should stay JSON-serializable for observability
EventPayload = dict[str, Any]


class ListenerPriority(Enum):
    """
    Priority levels for event listeners (lower value runs earlier).

    CRITICAL / HIGH listeners run one at a time in registration order;
    NORMAL listeners run concurrently; LOW listeners are scheduled as
    background tasks and never delay ``publish``.
    """

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


@dataclass(frozen=True)
class EventListener:
    """
    A registered event listener.

    Attributes
    ----------
    callback:
        Async or sync callable invoked with the event payload.
    priority:
        Determines execution order and concurrency.
    identifier:
        Unique string used for deduplication and unsubscription.
    once:
        If True, removed from the registry before its first execution.
    """

    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> EventListener:
        """
        Build a listener, deriving ``identifier`` from the callback when absent.

        >>> listener = EventListener.from_callback(
        ...     "mission.completed", on_done, ListenerPriority.NORMAL, None, False
        ... )
        >>> listener.identifier
        'mymodule.on_done@mission.completed'
        """
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(
                callback, "__qualname__", getattr(callback, "__name__", "callback")
            )
            identifier = f"{module}.{qualname}@{event_name}"

        return cls(
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )
