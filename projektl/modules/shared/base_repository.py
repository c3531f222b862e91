"""
Base Repository

Generic async data access over one mapped model. Each table the
progression services touch (quests, quest actions, profiles, faction
stats, user skills, experiences, activity log) gets a thin subclass with
named finders; services never build ``select()`` against the session
themselves.

Transactions belong to the caller: repositories only ``execute``,
``add`` and ``flush`` on the session they are handed.

    class QuestActionRepository(BaseRepository[QuestAction]):
        async def list_for_quest(self, session, quest_id):
            return await self.find_many_where(
                session,
                QuestAction.quest_id == quest_id,
                order_by=[QuestAction.created_at],
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select, update

from projektl.core.logging.logger import safe_extra

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Typed finders and writes for ``model_class``."""

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    def _trace(self, op: str, **fields: Any) -> None:
        self.log.debug(
            f"{self.model_class.__name__}.{op}",
            extra=safe_extra({"model": self.model_class.__name__, **fields}),
        )

    def _select(
        self, conditions: Sequence[ColumnElement[bool]], for_update: bool
    ) -> Select:
        stmt = select(self.model_class).where(*conditions)
        # Row lock; SQLite ignores it and serializes writers instead.
        return stmt.with_for_update() if for_update else stmt

    # ========================================================================
    # Reads
    # ========================================================================

    async def get(
        self, session: AsyncSession, id_value: Any, for_update: bool = False
    ) -> Optional[T]:
        """Row by primary key, or None."""
        condition = self.model_class.id == id_value  # type: ignore[attr-defined]
        row = (await session.execute(self._select([condition], for_update))).scalar_one_or_none()
        self._trace("get", id=id_value, found=row is not None, locked=for_update)
        return row

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        The single row matching ``conditions``, or None.

        Raises:
            sqlalchemy.exc.MultipleResultsFound: More than one row matched
        """
        row = (await session.execute(self._select(conditions, for_update))).scalar_one_or_none()
        self._trace("find_one_where", found=row is not None, locked=for_update)
        return row

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        stmt = self._select(conditions, for_update=False)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        rows = list((await session.execute(stmt)).scalars())
        self._trace("find_many_where", rows=len(rows), limit=limit)
        return rows

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """Rows matching ``conditions``; all rows when none are given."""
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        total = (await session.execute(stmt)).scalar_one()
        self._trace("count", rows=total)
        return total

    # ========================================================================
    # Writes
    # ========================================================================

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        self._trace("add")
        return instance

    def add_many(self, session: AsyncSession, instances: Sequence[T]) -> List[T]:
        session.add_all(instances)
        self._trace("add_many", rows=len(instances))
        return list(instances)

    async def update_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        values: dict,
    ) -> int:
        """
        Conditional UPDATE; returns how many rows matched.

        A zero return is how a compare-and-swap reports a lost race. Loaded
        instances are not synchronized, so ``refresh`` them afterwards.
        """
        stmt = (
            update(self.model_class)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        rowcount = (await session.execute(stmt)).rowcount
        self._trace("update_where", columns=sorted(values), rowcount=rowcount)
        return rowcount

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()
        self._trace("flush")

    async def refresh(
        self,
        session: AsyncSession,
        instance: T,
        attribute_names: Optional[List[str]] = None,
    ) -> T:
        await session.refresh(instance, attribute_names=attribute_names)
        self._trace("refresh", attributes=attribute_names)
        return instance
