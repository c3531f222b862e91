"""
Integration Tests for DatabaseService
=====================================

Purpose
-------
Exercise the engine and session layer the services are built on, against
the same database the rest of the integration suite uses.

Test Coverage
-------------
- Lifecycle: initialize, health check, shutdown
- Schema creation
- Transaction commit and rollback
- SAVEPOINT isolation inside a transaction
- Constraint violations surface as IntegrityError
- Operational driver failures surface as a retryable DatabaseError
- Generic repository count and conditional update
"""

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError, OperationalError

from projektl.core.database.service import DatabaseNotInitializedError, DatabaseService
from projektl.core.exceptions import DatabaseError
from projektl.core.logging.logger import get_logger
from projektl.database.models import UserFactionStat, UserProfile
from projektl.modules.shared.base_repository import BaseRepository
from tests.conftest import OTHER_USER_ID, USER_ID, fetch_all, fetch_one

pytestmark = [pytest.mark.integration, pytest.mark.database]


# ============================================================================
# LIFECYCLE TESTS
# ============================================================================


class TestLifecycle:
    async def test_health_check(self, database):
        assert DatabaseService.is_initialized()
        assert await DatabaseService.health_check() is True

    async def test_initialize_is_idempotent(self, database, database_url):
        engine = DatabaseService._engine

        await DatabaseService.initialize(database_url)

        assert DatabaseService._engine is engine

    async def test_use_before_initialize(self):
        assert await DatabaseService.health_check() is False

        with pytest.raises(DatabaseNotInitializedError):
            async with DatabaseService.get_session():
                pass

    async def test_schema_created(self, database):
        # Arrange
        async with DatabaseService.get_session() as session:
            conn = await session.connection()

            # Act
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

        # Assert
        for table in (
            "quests",
            "quest_actions",
            "user_profiles",
            "user_faction_stats",
            "skills",
            "user_skills",
            "experiences",
            "activity_log",
        ):
            assert table in tables


# ============================================================================
# TRANSACTION TESTS
# ============================================================================


class TestTransactions:
    async def test_commit_on_success(self, database):
        # Act
        async with DatabaseService.get_transaction() as session:
            session.add(UserProfile(user_id=USER_ID, display_name="Alice", total_xp=5))

        # Assert
        profile = await fetch_one(UserProfile, UserProfile.user_id == USER_ID)
        assert profile is not None
        assert profile.total_xp == 5

    async def test_rollback_on_exception(self, database):
        # Act
        with pytest.raises(RuntimeError):
            async with DatabaseService.get_transaction() as session:
                session.add(UserProfile(user_id=USER_ID, display_name="Alice", total_xp=5))
                await session.flush()
                raise RuntimeError("abort")

        # Assert
        assert await fetch_one(UserProfile, UserProfile.user_id == USER_ID) is None

    async def test_savepoint_rolls_back_only_its_step(self, database):
        # Act
        async with DatabaseService.get_transaction() as session:
            session.add(UserFactionStat(user_id=USER_ID, faction_id="geist", total_xp=10))
            await session.flush()

            with pytest.raises(RuntimeError):
                async with session.begin_nested():
                    session.add(
                        UserFactionStat(user_id=USER_ID, faction_id="koerper", total_xp=20)
                    )
                    await session.flush()
                    raise RuntimeError("step failed")

            session.add(UserFactionStat(user_id=USER_ID, faction_id="hobbys", total_xp=30))

        # Assert
        stats = await fetch_all(UserFactionStat, UserFactionStat.user_id == USER_ID)
        assert sorted(s.faction_id for s in stats) == ["geist", "hobbys"]

    async def test_read_session_does_not_commit(self, database):
        async with DatabaseService.get_session() as session:
            session.add(UserProfile(user_id=USER_ID, display_name="Alice", total_xp=0))
            await session.flush()

        assert await fetch_one(UserProfile, UserProfile.user_id == USER_ID) is None


# ============================================================================
# ERROR HANDLING TESTS
# ============================================================================


class TestErrorHandling:
    async def test_unique_constraint_violation(self, database):
        with pytest.raises(IntegrityError):
            async with DatabaseService.get_transaction() as session:
                session.add(UserFactionStat(user_id=USER_ID, faction_id="geist"))
                session.add(UserFactionStat(user_id=USER_ID, faction_id="geist"))

        assert await fetch_all(UserFactionStat) == []

    async def test_invalid_sql(self, database):
        with pytest.raises(Exception):
            async with DatabaseService.get_session() as session:
                await session.execute(text("SELECT * FROM nonexistent_table"))

    async def test_operational_failure_becomes_database_error(self, database):
        # Act
        with pytest.raises(DatabaseError) as exc_info:
            async with DatabaseService.get_transaction() as session:
                session.add(UserProfile(user_id=USER_ID, display_name="Alice", total_xp=5))
                await session.flush()
                raise OperationalError("UPDATE quests", {}, Exception("connection reset"))

        # Assert
        error = exc_info.value
        assert error.error_code == "DATABASE_ERROR"
        assert error.is_retryable
        assert error.operation == "transaction"
        assert error.details["original_error"] == "OperationalError"
        assert isinstance(error.__cause__, OperationalError)
        assert await fetch_one(UserProfile, UserProfile.user_id == USER_ID) is None

    async def test_read_scope_failure_names_session(self, database):
        with pytest.raises(DatabaseError) as exc_info:
            async with DatabaseService.get_session():
                raise OperationalError("SELECT 1", {}, Exception("server closed"))

        assert exc_info.value.operation == "session"
        assert "server closed" in str(exc_info.value)



# ============================================================================
# REPOSITORY TESTS
# ============================================================================


class TestBaseRepository:
    @pytest.fixture
    def stats(self):
        return BaseRepository(UserFactionStat, get_logger("tests.BaseRepository"))

    async def test_count(self, seed, stats):
        # Arrange
        await seed.faction_stat("geist", total_xp=10)
        await seed.faction_stat("koerper", total_xp=0)
        await seed.faction_stat("geist", user_id=OTHER_USER_ID)

        # Act
        async with DatabaseService.get_session() as session:
            everything = await stats.count(session)
            mine = await stats.count(session, UserFactionStat.user_id == USER_ID)
            earning = await stats.count(
                session,
                UserFactionStat.user_id == USER_ID,
                UserFactionStat.total_xp > 0,
            )

        # Assert
        assert (everything, mine, earning) == (3, 2, 1)

    async def test_count_empty_table(self, database, stats):
        async with DatabaseService.get_session() as session:
            assert await stats.count(session) == 0

    async def test_update_where_reports_matched_rows(self, seed, stats):
        await seed.faction_stat("geist", weekly_xp=30)

        async with DatabaseService.get_transaction() as session:
            hit = await stats.update_where(
                session, UserFactionStat.faction_id == "geist", values={"weekly_xp": 0}
            )
            miss = await stats.update_where(
                session, UserFactionStat.faction_id == "hobbys", values={"weekly_xp": 0}
            )

        assert (hit, miss) == (1, 0)
        stored = await fetch_one(UserFactionStat, UserFactionStat.faction_id == "geist")
        assert stored.weekly_xp == 0
