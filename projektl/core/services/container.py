"""
Service Container

Builds the three domain services once and hands out the shared instances:

    progression     ProgressionService
    quest_progress  QuestProgressService (uses ``progression``)
    faction_stats   FactionStatService

Every service is constructed as ``cls(config_manager=, event_bus=,
logger=, **deps)`` with a logger named after its class. Infrastructure
start-up order (config, database, event bus) belongs to ``projektl.app``.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from projektl.core.logging.logger import get_logger
from projektl.modules.factions import FactionStatService
from projektl.modules.progression import ProgressionService
from projektl.modules.quests import QuestProgressService

if TYPE_CHECKING:
    from logging import Logger

    from projektl.core.config.config_manager import ConfigManager
    from projektl.core.event.bus import EventBus

# (name, class, {constructor kwarg: name of an already-built service})
_BUILD_PLAN: Tuple[Tuple[str, type, Dict[str, str]], ...] = (
    ("progression", ProgressionService, {}),
    ("quest_progress", QuestProgressService, {"progression_service": "progression"}),
    ("faction_stats", FactionStatService, {}),
)
SERVICE_COUNT = len(_BUILD_PLAN)


class ServiceContainer:
    """
    >>> container = ServiceContainer(config_manager, event_bus, logger)
    >>> await container.initialize()
    >>> await container.quest_progress.apply_quest_action(quest_id, user_id, "increment")
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._services: Dict[str, Any] = {}
        self._build_seconds: Dict[str, float] = {}
        self._total_seconds: Optional[float] = None

    async def initialize(self) -> None:
        if self._services:
            self._logger.warning("ServiceContainer already initialized")
            return

        started = time.perf_counter()
        built: Dict[str, Any] = {}
        for name, cls, deps in _BUILD_PLAN:
            built[name] = self._build(name, cls, {arg: built[dep] for arg, dep in deps.items()})

        self._services = built
        self._total_seconds = time.perf_counter() - started
        self._logger.info(
            "Service container ready",
            extra={
                "services": sorted(built),
                "duration_ms": round(self._total_seconds * 1000.0, 2),
            },
        )

    def _build(self, name: str, cls: type, deps: Dict[str, Any]) -> Any:
        started = time.perf_counter()
        try:
            service = cls(
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **deps,
            )
        except Exception:
            self._logger.error(f"Could not build {name}", exc_info=True)
            raise
        self._build_seconds[name] = time.perf_counter() - started
        return service

    async def shutdown(self) -> None:
        """Drop service references; safe to call twice."""
        if self._services:
            self._services = {}
            self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, Any]:
        return {
            "initialized": self.is_initialized,
            "service_count": len(self._build_seconds),
            "total_init_time_seconds": (
                round(self._total_seconds, 3) if self._total_seconds is not None else None
            ),
            "all_services_available": len(self._services) == SERVICE_COUNT,
        }

    def _get(self, name: str) -> Any:
        try:
            return self._services[name]
        except KeyError:
            raise RuntimeError(
                "ServiceContainer not initialized. Call initialize() first."
            ) from None

    @property
    def progression(self) -> ProgressionService:
        return self._get("progression")

    @property
    def quest_progress(self) -> QuestProgressService:
        return self._get("quest_progress")

    @property
    def faction_stats(self) -> FactionStatService:
        return self._get("faction_stats")

    @property
    def is_initialized(self) -> bool:
        return bool(self._services)


# ============================================================================
# Process-wide instance
# ============================================================================

_container: Optional[ServiceContainer] = None


def initialize_service_container(
    config_manager: ConfigManager,
    event_bus: EventBus,
    logger: Logger,
) -> ServiceContainer:
    """Create the process-wide container; ``initialize()`` it next."""
    global _container
    _container = ServiceContainer(config_manager, event_bus, logger)
    return _container


def get_service_container() -> ServiceContainer:
    if _container is None:
        raise RuntimeError("Service container has not been created")
    return _container


async def shutdown_service_container() -> None:
    global _container
    if _container is not None:
        await _container.shutdown()
        _container = None
