"""
Base Repository Pattern

Purpose
-------
Type-safe generic repository over SQLAlchemy 2.0 async sessions. Repositories
hold the query shapes; services own transactions and rules.

Design Notes
------------
- Primary-key lookups go through ``session.get`` so composite and string
  keys (``SettlementRecord.event_id``) work the same as integer ids.
- ``for_update=True`` issues SELECT ... FOR UPDATE. SQLite ignores it; there
  the single writer lock serializes transactions instead.
- Every call logs at DEBUG with the model name.

Usage
-----
    class CharacterRepository(BaseRepository[Character]):
        async def find_by_nickname(self, session, nickname):
            return await self.find_one_where(session, Character.nickname == nickname)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    def _trace(self, op: str, **extra: Any) -> None:
        name = self.model_class.__name__
        self.log.debug(f"Repository.{op}: {name}", extra={"model": name, **extra})

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def get(
        self,
        session: AsyncSession,
        id_value: Any,
        *,
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Get a single record by primary key.

        Args:
            session: Database session
            id_value: Primary key value
            for_update: If True, lock the row (SELECT FOR UPDATE)

        Returns:
            Model instance or None if not found
        """
        instance = await session.get(
            self.model_class,
            id_value,
            with_for_update=for_update or None,
            populate_existing=for_update,
        )
        self._trace("get", id=id_value, found=instance is not None, locked=for_update)
        return instance

    async def get_for_update(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        return await self.get(session, id_value, for_update=True)

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Raises:
            sqlalchemy.exc.MultipleResultsFound: If more than one row matches
        """
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()
        self._trace("find_one_where", found=instance is not None, locked=for_update)
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        for_update: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ORDER BY clauses, applied in sequence
            for_update: If True, use SELECT FOR UPDATE
            limit: Optional maximum number of results

        Returns:
            List of model instances
        """
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if for_update:
            stmt = stmt.with_for_update()
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())
        self._trace("find_many_where", found_count=len(instances), locked=for_update, limit=limit)
        return instances

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        found = await self.count(session, *conditions) > 0
        self._trace("exists", exists=found)
        return found

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        total = int(result.scalar_one())
        self._trace("count", count=total)
        return total

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        self._trace("add")
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)
        self._trace("delete")

    async def flush(self, session: AsyncSession) -> None:
        """Flush pending changes so generated ids and constraints are resolved."""
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
