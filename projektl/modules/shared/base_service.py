"""
Base class for the progression services.

A service owns its transactions (through ``DatabaseService``), reads
tunables from ``ConfigManager`` and publishes domain events on the
``EventBus`` once its transaction has committed.

    class FactionStatService(BaseService):
        def __init__(self, config_manager, event_bus, logger):
            super().__init__(config_manager, event_bus, logger)
            self._stats = FactionStatRepository(UserFactionStat, logger)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from projektl.core.logging.logger import safe_extra

if TYPE_CHECKING:
    from logging import Logger

    from projektl.core.config.config_manager import ConfigManager
    from projektl.core.event.bus import EventBus


class BaseService:
    """Shared wiring: config, events and a per-service logger."""

    def __init__(
        self,
        config_manager: ConfigManager,
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
        Read a dot-notation tunable such as ``quests.default_xp_reward``.

        Raises:
            ConfigurationError: ``required`` is set and the key resolves to None
        """
        from projektl.core.exceptions import ConfigurationError

        value = self._config.get(key, default)
        if value is None and required:
            raise ConfigurationError(key, "required key is not set")
        return value

    async def emit_event(self, event_type: str, data: Dict[str, Any]) -> None:
        # Listeners never see rolled-back state: call only after commit.
        self.log.debug(f"Publishing {event_type}", extra={"event_type": event_type})
        await self._events.publish(event_type, data)

    def log_operation(self, operation: str, **fields: Any) -> None:
        self.log.info(
            f"{operation} requested",
            extra=safe_extra({"operation": operation, **fields}),
        )

    def log_error(
        self,
        operation: str,
        error: Exception,
        exc_info: bool = False,
        **fields: Any,
    ) -> None:
        """Log a caught failure with its type, message and call fields."""
        self.log.error(
            f"{operation} failed: {error}",
            extra=safe_extra(
                {
                    "operation": operation,
                    "error_type": type(error).__name__,
                    "error_code": getattr(error, "error_code", None),
                    **fields,
                }
            ),
            exc_info=exc_info,
        )
