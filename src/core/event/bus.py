"""
EventBus: async pub/sub with tiered concurrency.

Purpose
-------
Decouples the progression services from whatever reacts to their state
changes (notifications, analytics, the mission tracker listening to match
results). Services publish after their transaction commits.

Responsibilities
----------------
- Register/unregister listeners with priorities
- Publish events to all matching listeners (exact + wildcard)
- Execute listeners by tier:
  * CRITICAL / HIGH: sequential, awaited, timeout-protected
  * NORMAL: concurrent (gather), awaited
  * LOW: fire-and-forget background tasks
- Error isolation (one failing listener never blocks others or the publisher)

Design Decisions
----------------
- **Instance-based**: tests build their own bus
- **Wildcard support**: ``"mission.*"``, ``"*.completed"``, ``"*"``
- **Config-driven timeouts**: ``core.event.listener_timeout.*`` from ConfigManager
"""

from __future__ import annotations

import asyncio
import inspect
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Optional

from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from src.core.exceptions import EventBusError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class EventBus:
    """
    Async EventBus with tiered listener execution.

    Thread Safety
    -------------
    Designed for single-threaded asyncio usage. Registry mutations happen
    between awaits and are therefore atomic.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("progression.level_up", on_level_up, priority=ListenerPriority.HIGH)
    >>> await bus.publish("progression.level_up", {"character_id": 1, "new_level": 3})
    """

    def __init__(
        self,
        config_manager: Any = None,
        *,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._config_manager = config_manager
        self._listeners: Dict[str, List[EventListener]] = {}
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._published: Dict[str, int] = {}
        self._errors: Dict[str, int] = {}

        self._critical_timeout = self._load_timeout(
            "core.event.listener_timeout.critical_seconds", critical_timeout_seconds, 5.0
        )
        self._high_timeout = self._load_timeout(
            "core.event.listener_timeout.high_seconds", high_timeout_seconds, 5.0
        )

    def _load_timeout(self, key: str, override: Optional[float], default: float) -> float:
        """Resolve a timeout: override, then config, then default."""
        if override is not None:
            return float(override)
        if self._config_manager is None:
            return float(default)
        try:
            return float(self._config_manager.get(key, default))
        except (TypeError, ValueError) as exc:
            logger.warning(
                "Invalid listener timeout in config, using default",
                extra={"config_key": key, "default_value": default, "error": str(exc)},
            )
            return float(default)

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(event_name: str, callback: CallbackType) -> None:
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            # Builtins may not expose a signature
            return

        required = [
            p
            for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        if len(required) != 1:
            raise EventBusError(
                event_name,
                f"listener must accept exactly 1 parameter, got {len(required)}",
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns:
            The listener identifier (for unsubscribing later).

        Raises:
            EventBusError: If the callback does not take exactly one argument.
        """
        self._validate_callback_signature(event_name, callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        bucket = self._listeners.setdefault(event_name, [])
        if any(existing.identifier == listener.identifier for existing in bucket):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        bucket.append(listener)
        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
                "once": once,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        bucket = self._listeners.get(event_name, [])
        remaining = [lst for lst in bucket if lst.identifier != identifier]
        removed = len(remaining) != len(bucket)
        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)
        return removed

    def clear(self) -> None:
        """Remove all listeners (tests, full reinit)."""
        self._listeners.clear()

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return sum(len(bucket) for bucket in self._listeners.values())
        return len(self._match(event_name, prune_once=False))

    # ------------------------------------------------------------------ #
    # Routing
    # ------------------------------------------------------------------ #

    def _match(self, event_name: str, *, prune_once: bool) -> List[EventListener]:
        matched: List[EventListener] = []
        for pattern, bucket in list(self._listeners.items()):
            if pattern != event_name and not fnmatchcase(event_name, pattern):
                continue
            matched.extend(bucket)
            if prune_once:
                kept = [lst for lst in bucket if not lst.once]
                if kept:
                    self._listeners[pattern] = kept
                else:
                    self._listeners.pop(pattern, None)

        # Stable sort keeps registration order within a tier.
        return sorted(matched, key=lambda lst: lst.priority.value)

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> List[Any]:
        """
        Publish an event to all subscribed listeners.

        Returns:
            Results from CRITICAL/HIGH/NORMAL listeners (None for listeners
            that failed or timed out). LOW-tier results are not collected.
        """
        self._published[event_name] = self._published.get(event_name, 0) + 1

        listeners = self._match(event_name, prune_once=True)
        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": sorted(data.keys()),
                "listener_count": len(listeners),
            },
        )
        if not listeners:
            return []

        results: List[Any] = []

        for listener in listeners:
            if listener.priority is ListenerPriority.CRITICAL:
                results.append(
                    await self._run_with_timeout(listener, event_name, data, self._critical_timeout)
                )
        for listener in listeners:
            if listener.priority is ListenerPriority.HIGH:
                results.append(
                    await self._run_with_timeout(listener, event_name, data, self._high_timeout)
                )

        normal = [lst for lst in listeners if lst.priority is ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(
                    *(self._run_listener(lst, event_name, data) for lst in normal)
                )
            )

        for listener in listeners:
            if listener.priority is ListenerPriority.LOW:
                task = asyncio.get_running_loop().create_task(
                    self._run_listener(listener, event_name, data),
                    name=f"eventbus-low-{event_name}-{listener.identifier}",
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def drain(self) -> None:
        """Await all outstanding LOW-tier tasks (shutdown, tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def _run_with_timeout(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        timeout: Optional[float],
    ) -> Any:
        if timeout is None or timeout <= 0:
            return await self._run_listener(listener, event_name, payload)
        try:
            return await asyncio.wait_for(
                self._run_listener(listener, event_name, payload), timeout=timeout
            )
        except asyncio.TimeoutError:
            self._errors[event_name] = self._errors.get(event_name, 0) + 1
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "timeout_seconds": timeout,
                },
            )
            return None

    async def _run_listener(
        self, listener: EventListener, event_name: str, payload: EventPayload
    ) -> Any:
        try:
            if inspect.iscoroutinefunction(listener.callback):
                return await listener.callback(payload)
            result = listener.callback(payload)
            if inspect.isawaitable(result):
                return await result
            return result
        except Exception as exc:
            # Listener failures never propagate to the publisher.
            self._errors[event_name] = self._errors.get(event_name, 0) + 1
            logger.error(
                "EventBus listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_metrics_summary(self) -> Dict[str, Any]:
        total = sum(self._published.values())
        errors = sum(self._errors.values())
        return {
            "total_events_published": total,
            "events_by_type": dict(self._published),
            "total_errors": errors,
            "errors_by_event": dict(self._errors),
            "total_listeners": self.get_listener_count(),
        }
