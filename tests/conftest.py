"""
Pytest Configuration and Fixtures for Projekt L Tests
=====================================================

Purpose
-------
Centralized fixtures for the test suite: a real async database per test,
the event bus, the domain services and small seeding helpers.

Database
--------
Integration tests run against ``sqlite+aiosqlite`` with a fresh file per
test by default. Setting ``PROJEKTL_TEST_DATABASE=postgres`` runs the same
tests against a PostgreSQL testcontainer (schema dropped and recreated per
test).

Architecture Notes
------------------
- Unit tests use pure functions or mocks (fast, isolated)
- Integration tests go through DatabaseService like production code
- ConfigManager is reset around every test so overrides never leak
"""

from __future__ import annotations

import os

os.environ.setdefault("TESTING", "true")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, AsyncGenerator, Dict, Generator, List, Optional, Tuple

import pytest
import pytest_asyncio
from sqlalchemy import select

from projektl.core.config import ConfigManager
from projektl.core.database.base import utcnow
from projektl.core.database.service import DatabaseService
from projektl.core.event import EventBus
from projektl.core.logging.logger import get_logger
from projektl.database.models import (
    Quest,
    QuestStatus,
    Skill,
    UserFactionStat,
    UserProfile,
    UserSkill,
)
from projektl.modules.factions import FactionStatService
from projektl.modules.progression import ProgressionService
from projektl.modules.quests import QuestProgressService

logger = get_logger(__name__)

USE_POSTGRES = os.environ.get("PROJEKTL_TEST_DATABASE", "").lower() == "postgres"

USER_ID = "user-alice"
OTHER_USER_ID = "user-bob"


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def reset_config_manager() -> Generator[None, None, None]:
    """Every test starts from built-in defaults plus config/*.yaml."""
    ConfigManager.reset()
    yield
    ConfigManager.reset()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_url() -> Generator[Optional[str], None, None]:
    """
    Start a PostgreSQL testcontainer when requested.

    Scope: session (container persists across all tests)
    """
    if not USE_POSTGRES:
        yield None
        return

    from testcontainers.postgres import PostgresContainer

    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:16-alpine", driver="asyncpg")
    container.start()
    try:
        yield container.get_connection_url()
    finally:
        logger.info("Stopping PostgreSQL testcontainer...")
        container.stop()


@pytest.fixture
def database_url(tmp_path, postgres_url: Optional[str]) -> str:
    if postgres_url is not None:
        return postgres_url
    return f"sqlite+aiosqlite:///{tmp_path / 'projektl-test.db'}"


@pytest_asyncio.fixture
async def database(database_url: str) -> AsyncGenerator[None, None]:
    """
    Initialized DatabaseService with an empty schema.

    Scope: function (clean slate per test)
    """
    await DatabaseService.initialize(database_url)
    if USE_POSTGRES:
        await DatabaseService.drop_all()
    await DatabaseService.create_all()
    try:
        yield
    finally:
        if USE_POSTGRES and DatabaseService.is_initialized():
            await DatabaseService.drop_all()
        await DatabaseService.shutdown()


# ============================================================================
# EVENT FIXTURES
# ============================================================================


@dataclass
class RecordedEvents:
    """Collects published payloads per event name."""

    bus: EventBus
    received: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)

    def watch(self, *event_names: str) -> None:
        for name in event_names:
            self.bus.subscribe(name, self._recorder(name))

    def _recorder(self, name: str):
        def record(data: Dict[str, Any]) -> None:
            self.received.append((name, data))

        return record

    def named(self, name: str) -> List[Dict[str, Any]]:
        return [data for event_name, data in self.received if event_name == name]


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(listener_timeout_seconds=1.0)


@pytest.fixture
def recorded_events(event_bus: EventBus) -> RecordedEvents:
    recorder = RecordedEvents(event_bus)
    recorder.watch(
        "quest.progressed",
        "quest.completed",
        "skill.xp_awarded",
        "skill.leveled_up",
        "faction.leveled_up",
        "faction.period_reset",
    )
    return recorder


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def progression_service(event_bus: EventBus) -> ProgressionService:
    return ProgressionService(
        config_manager=ConfigManager,
        event_bus=event_bus,
        logger=get_logger("tests.ProgressionService"),
    )


@pytest.fixture
def quest_service(
    event_bus: EventBus, progression_service: ProgressionService
) -> QuestProgressService:
    return QuestProgressService(
        config_manager=ConfigManager,
        event_bus=event_bus,
        logger=get_logger("tests.QuestProgressService"),
        progression_service=progression_service,
    )


@pytest.fixture
def faction_service(event_bus: EventBus) -> FactionStatService:
    return FactionStatService(
        config_manager=ConfigManager,
        event_bus=event_bus,
        logger=get_logger("tests.FactionStatService"),
    )


# ============================================================================
# SEEDING HELPERS
# ============================================================================


class Seeder:
    """Writes fixture rows in their own committed transaction."""

    async def add(self, *instances: Any) -> None:
        async with DatabaseService.get_transaction() as session:
            session.add_all(instances)

    async def quest(self, **overrides: Any) -> Quest:
        values: Dict[str, Any] = {
            "user_id": USER_ID,
            "title": "Read ten books",
            "status": QuestStatus.ACTIVE.value,
            "required_actions": 4,
            "completed_actions": 0,
            "progress": 0,
            "xp_reward": 100,
            "target_faction_ids": [],
            "target_skill_ids": [],
            "version": 1,
        }
        values.update(overrides)
        quest = Quest(**values)
        await self.add(quest)
        return quest

    async def profile(self, user_id: str = USER_ID, total_xp: int = 0) -> UserProfile:
        profile = UserProfile(user_id=user_id, display_name=user_id, total_xp=total_xp)
        await self.add(profile)
        return profile

    async def faction_stat(
        self, faction_id: str, user_id: str = USER_ID, total_xp: int = 0, **overrides: Any
    ) -> UserFactionStat:
        values: Dict[str, Any] = {
            "user_id": user_id,
            "faction_id": faction_id,
            "total_xp": total_xp,
            "weekly_xp": 0,
            "monthly_xp": 0,
            "level": 1,
        }
        values.update(overrides)
        stat = UserFactionStat(**values)
        await self.add(stat)
        return stat

    async def skill(
        self, name: str = "Running", faction_id: Optional[str] = "koerper", icon: str = "🏃"
    ) -> Skill:
        skill = Skill(name=name, faction_id=faction_id, icon=icon)
        await self.add(skill)
        return skill

    async def user_skill(
        self, skill_id: str, user_id: str = USER_ID, level: int = 1, current_xp: int = 0
    ) -> UserSkill:
        user_skill = UserSkill(
            user_id=user_id, skill_id=skill_id, level=level, current_xp=current_xp
        )
        await self.add(user_skill)
        return user_skill


@pytest.fixture
def seed(database) -> Seeder:
    return Seeder()


async def fetch_one(model: Any, *conditions: Any) -> Any:
    async with DatabaseService.get_session() as session:
        result = await session.execute(select(model).where(*conditions))
        return result.scalar_one_or_none()


async def fetch_all(model: Any, *conditions: Any) -> List[Any]:
    async with DatabaseService.get_session() as session:
        result = await session.execute(select(model).where(*conditions))
        return list(result.scalars().all())


def hours_from_now(hours: float) -> datetime:
    return utcnow() + timedelta(hours=hours)
