"""
Base Service Foundation

Purpose
-------
Common base for the progression services. Services own their transactions,
enforce game rules, and publish domain events after commit.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Config access with required-key enforcement
- Event emission after commit

It does NOT manage sessions; each service opens its own transaction through
``DatabaseService.get_transaction()`` or accepts one from a caller.

Usage
-----
    class SettlementEngine(BaseService):
        def __init__(self, config_manager, event_bus, logger, level_curve):
            super().__init__(config_manager, event_bus, logger)
            self.level_curve = level_curve
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Configuration manager (class or instance exposing ``get``)
        event_bus: Event bus for publishing committed state changes
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: type[ConfigManager] | ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
        return value

    def get_config_int(self, key: str, default: int) -> int:
        value = self.get_config(key, default)
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(key, f"expected an integer, got {value!r}") from exc

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Publish a domain event. Call only after the transaction committed.

        Args:
            event_type: Event name (e.g. ``progression.level_up``)
            data: Event payload data
            context: Optional additional context merged into the payload
        """
        payload = {**data, **(context or {})}
        self.log.debug(
            f"Emitting event: {event_type}",
            extra={"event_type": event_type, "payload_keys": sorted(payload)},
        )
        await self._events.publish(event_type, payload)

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )
