"""TableRepository — schema-typed CRUD over one SQLModel table."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import delete, func, update
from sqlmodel import SQLModel, select

from quarry.exceptions import StorageError
from quarry.store.filters import compile_sql

if TYPE_CHECKING:
    from collections.abc import Sequence

    from quarry.store.database import Database
    from quarry.store.filters import FilterExpression

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)


class TableRepository(Generic[ModelT]):
    """Insert, predicate-filtered update/delete, scans, and compaction.

    Receives the concrete table model at construction so callers can use
    custom SQLModel subclasses.  Each call runs in its own session; no
    lock is held across awaits.
    """

    def __init__(self, db: Database, model: type[ModelT]) -> None:
        self._db = db
        self._model = model

    @property
    def model(self) -> type[ModelT]:
        return self._model

    @property
    def table_name(self) -> str:
        return self._model.__tablename__  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, rows: Sequence[ModelT]) -> int:
        """Append *rows*.  Empty batches are a no-op; rows are not deduplicated."""
        if not rows:
            return 0
        async with self._db.session() as session:
            session.add_all(rows)
            await session.flush()
        return len(rows)

    async def update_where(self, predicate: FilterExpression, **assignments: Any) -> int:
        """Assign *assignments* on every row matching *predicate*. Returns the match count."""
        if not assignments:
            return 0
        self._check_columns(assignments)
        stmt = (
            update(self._model)
            .where(compile_sql(self._model, predicate))
            .values(**assignments)
            .execution_options(synchronize_session=False)
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def delete_where(self, predicate: FilterExpression) -> int:
        """Remove every row matching *predicate*. Returns the count removed."""
        stmt = (
            delete(self._model)
            .where(compile_sql(self._model, predicate))
            .execution_options(synchronize_session=False)
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def scan(self, limit: int | None = None) -> list[ModelT]:
        """Return up to *limit* rows in storage order."""
        query = select(self._model)
        if limit is not None:
            query = query.limit(limit)
        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def scan_where(
        self,
        predicate: FilterExpression,
        limit: int | None = None,
    ) -> list[ModelT]:
        """Return up to *limit* rows matching *predicate*."""
        query = select(self._model).where(compile_sql(self._model, predicate))
        if limit is not None:
            query = query.limit(limit)
        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def count(self, predicate: FilterExpression | None = None) -> int:
        """Count rows, optionally restricted to *predicate*."""
        query = select(func.count()).select_from(self._model)
        if predicate is not None:
            query = query.where(compile_sql(self._model, predicate))
        async with self._db.session() as session:
            result = await session.execute(query)
            return int(result.scalar_one())

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def compact(self) -> None:
        """Reclaim storage for this table."""
        await self._db.compact(self.table_name)
        logger.info("Compacted %s", self.table_name)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_columns(self, assignments: dict[str, Any]) -> None:
        unknown = [name for name in assignments if name not in self._model.model_fields]
        if unknown:
            msg = f"{self._model.__name__} has no column(s) {', '.join(sorted(unknown))}"
            raise StorageError(msg)
