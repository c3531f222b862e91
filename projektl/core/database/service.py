"""
Database Service

One process-wide async engine for the progression store, plus the two
session scopes every service uses:

- ``get_transaction()``: commit on clean exit, roll back on any exception.
  All quest progress, XP awards and period resets run inside one of these.
- ``get_session()``: reads only; nothing is committed.

Operational driver failures (lost connection, lock timeout) leave either
scope as a retryable ``DatabaseError``; constraint violations propagate
unchanged as ``IntegrityError``.

Inside a transaction, ``session.begin_nested()`` opens a SAVEPOINT so a
single fan-out step can fail without losing the rest. SQLite needs the
driver's implicit transaction handling switched off for that to work,
which ``initialize()`` does for ``sqlite`` URLs.

PostgreSQL sessions get ``SET LOCAL statement_timeout`` from
``Config.DATABASE_STATEMENT_TIMEOUT_MS``.

>>> async with DatabaseService.get_transaction() as session:
...     quest = await quests.get(session, quest_id, for_update=True)
...     quest.completed_actions += 1
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from projektl.core.config.config import Config
from projektl.core.exceptions import DatabaseError, ProjektLInfrastructureException
from projektl.core.logging.logger import get_logger
from projektl.modules.shared.exceptions import ErrorSeverity

logger = get_logger(__name__)


class DatabaseInitializationError(ProjektLInfrastructureException):
    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="DATABASE_INIT_FAILED")


class DatabaseNotInitializedError(ProjektLInfrastructureException):
    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self) -> None:
        super().__init__(
            "DatabaseService.initialize() has not been called",
            error_code="DATABASE_NOT_INITIALIZED",
        )


@dataclass(frozen=True)
class EngineSettings:
    """Engine options resolved once from ``Config`` at initialize time."""

    url: str
    echo: bool
    pooled: bool
    statement_timeout_ms: int

    @classmethod
    def resolve(cls, database_url: Optional[str]) -> "EngineSettings":
        url = database_url or Config.DATABASE_URL
        if not isinstance(url, str) or not url:
            raise DatabaseInitializationError("DATABASE_URL is not set")
        return cls(
            url=url,
            echo=Config.DATABASE_ECHO,
            # SQLite files and test runs get a fresh connection per checkout.
            pooled=not (url.startswith("sqlite") or Config.is_testing()),
            statement_timeout_ms=Config.DATABASE_STATEMENT_TIMEOUT_MS,
        )

    @property
    def dialect(self) -> str:
        return self.url.split(":", 1)[0].split("+", 1)[0]

    def engine_kwargs(self) -> Dict[str, Any]:
        if not self.pooled:
            return {"echo": self.echo, "poolclass": NullPool}
        return {
            "echo": self.echo,
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": Config.DATABASE_POOL_SIZE,
            "max_overflow": Config.DATABASE_MAX_OVERFLOW,
            "pool_recycle": Config.DATABASE_POOL_RECYCLE,
            "pool_timeout": Config.DATABASE_POOL_TIMEOUT,
            "pool_pre_ping": True,
        }


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    # Take the write lock at BEGIN: concurrent writers then wait on the busy
    # timeout; a deferred BEGIN deadlocks when both upgrade their lock.
    @event.listens_for(engine.sync_engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class DatabaseService:
    """
    Class-level holder of the engine and session factory.

    Lifecycle: ``initialize`` / ``shutdown`` / ``is_initialized``.
    Schema (dev and tests): ``create_all`` / ``drop_all``.
    Sessions: ``get_transaction`` / ``get_session``. Health: ``health_check``.
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _settings: Optional[EngineSettings] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    @classmethod
    async def initialize(cls, database_url: Optional[str] = None) -> None:
        """
        Create the engine; a no-op when one already exists.

        Raises:
            DatabaseInitializationError: No URL, or the engine could not be built
        """
        async with cls._init_lock:
            if cls._engine is not None:
                return

            settings = EngineSettings.resolve(database_url)
            try:
                engine = create_async_engine(settings.url, **settings.engine_kwargs())
            except Exception as exc:
                logger.error(
                    "Could not create database engine",
                    extra={"dialect": settings.dialect},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            if settings.dialect == "sqlite":
                _enable_sqlite_savepoints(engine)

            cls._engine = engine
            cls._settings = settings
            cls._session_factory = async_sessionmaker(engine, expire_on_commit=False)
            logger.info(
                "Database engine ready",
                extra={"dialect": settings.dialect, "pooled": settings.pooled},
            )

    @classmethod
    async def shutdown(cls) -> None:
        async with cls._init_lock:
            engine, cls._engine = cls._engine, None
            cls._session_factory = None
            cls._settings = None
            if engine is not None:
                await engine.dispose()
                logger.info("Database engine disposed")

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    def _require_engine(cls) -> AsyncEngine:
        if cls._engine is None or cls._session_factory is None:
            raise DatabaseNotInitializedError()
        return cls._engine

    @classmethod
    async def create_all(cls) -> None:
        """Create every mapped table. Production schemas come from migrations."""
        from projektl.core.database.base import Base
        import projektl.database.models  # noqa: F401  (registers tables)

        async with cls._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Database schema created",
            extra={"tables": sorted(Base.metadata.tables)},
        )

    @classmethod
    async def drop_all(cls) -> None:
        from projektl.core.database.base import Base

        async with cls._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    @classmethod
    async def health_check(cls) -> bool:
        """``SELECT 1``; False when uninitialized or unreachable."""
        if cls._engine is None:
            return False
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error_type": type(exc).__name__, "error": str(exc)},
            )
            return False
        return True

    # ========================================================================
    # Sessions
    # ========================================================================

    @classmethod
    @asynccontextmanager
    async def _scope(cls, *, commit: bool) -> AsyncGenerator[AsyncSession, None]:
        cls._require_engine()
        assert cls._session_factory is not None

        started = time.perf_counter()
        async with cls._session_factory() as session:
            settings = cls._settings
            if settings is not None and settings.dialect == "postgresql":
                await session.execute(
                    text(f"SET LOCAL statement_timeout = {int(settings.statement_timeout_ms)}")
                )
            try:
                yield session
                if commit:
                    await session.commit()
            except Exception as exc:
                await session.rollback()
                # Driver failures are unexpected; domain errors are routine.
                level = "error" if isinstance(exc, DBAPIError) else "debug"
                getattr(logger, level)(
                    "Transaction rolled back",
                    extra={
                        "error_type": type(exc).__name__,
                        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
                    },
                    exc_info=level == "error",
                )
                if isinstance(exc, OperationalError):
                    raise DatabaseError(
                        "transaction" if commit else "session",
                        str(exc.orig or exc),
                        original=exc,
                    ) from exc
                raise

    @classmethod
    def get_transaction(cls):
        """
        Atomic write scope: commit on success, roll back and re-raise on error.

        Raises:
            DatabaseNotInitializedError: ``initialize()`` was not called
            DatabaseError: the driver reported an operational failure (lost
                connection, lock wait timeout); the original is chained
        """
        return cls._scope(commit=True)

    @classmethod
    def get_session(cls):
        """Read scope; pending changes are discarded on exit."""
        return cls._scope(commit=False)
