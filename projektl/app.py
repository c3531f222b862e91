"""
Projekt L application bootstrap.

``initialize_application()`` brings the stack up in order (logging,
configuration, database, event bus, service container) and
``shutdown_application()`` takes it down in reverse. A failing start-up
stage is logged as CRITICAL and re-raised; shutdown stages log their
errors and carry on so every resource still gets released.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from projektl.core.config import Config, ConfigManager
from projektl.core.database.service import DatabaseService
from projektl.core.event import EventBus
from projektl.core.logging.logger import get_logger, setup_logging, shutdown_logging
from projektl.core.services.container import (
    ServiceContainer,
    initialize_service_container,
    shutdown_service_container,
)

logger = get_logger(__name__)

_event_bus: Optional[EventBus] = None


@asynccontextmanager
async def _startup_stage(name: str) -> AsyncIterator[None]:
    try:
        yield
    except Exception as exc:
        logger.critical(f"Start-up failed at {name}: {exc}", exc_info=True)
        raise
    logger.info(f"✓ {name}")


@asynccontextmanager
async def _shutdown_stage(name: str) -> AsyncIterator[None]:
    try:
        yield
    except Exception as exc:
        logger.error(f"Shutdown of {name} failed: {exc}", exc_info=True)
    else:
        logger.info(f"✓ {name} stopped")


async def initialize_application(
    *,
    database_url: Optional[str] = None,
    config_dir: Optional[Path] = None,
    create_schema: bool = False,
    file_logging: bool = True,
) -> ServiceContainer:
    """
    Start every component and return the initialized service container.

    Args:
        database_url: Use this URL instead of ``Config.DATABASE_URL``; the
            environment check in ``Config.validate()`` is skipped then
        config_dir: YAML tunables directory instead of ``Config.CONFIG_DIR``
        create_schema: Create missing tables once connected
        file_logging: Also write the daily JSON log file
    """
    global _event_bus

    setup_logging(file_output=file_logging)
    logger.info(f"Starting {Config.APP_NAME} {Config.APP_VERSION}")

    async with _startup_stage("configuration"):
        if database_url is None:
            Config.validate()
        ConfigManager.initialize(config_dir)
        logger.debug("Configuration summary", extra=Config.get_config_summary())

    async with _startup_stage("database"):
        await DatabaseService.initialize(database_url)
        if create_schema:
            await DatabaseService.create_all()

    async with _startup_stage("event bus"):
        _event_bus = EventBus(ConfigManager)

    async with _startup_stage("service container"):
        container = initialize_service_container(
            config_manager=ConfigManager,
            event_bus=_event_bus,
            logger=get_logger("projektl.core.services.container"),
        )
        await container.initialize()

    return container


async def shutdown_application() -> None:
    """Stop services, let pending background listeners finish, close the pool."""
    global _event_bus

    async with _shutdown_stage("service container"):
        await shutdown_service_container()

    if _event_bus is not None:
        async with _shutdown_stage("event bus"):
            await _event_bus.drain()
            _event_bus.clear()
        _event_bus = None

    async with _shutdown_stage("database"):
        await DatabaseService.shutdown()

    shutdown_logging()
