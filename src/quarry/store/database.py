"""Database — async SQLite engine, session lifecycle, and table maintenance."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from quarry.exceptions import StorageError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from pathlib import Path

    from sqlmodel import SQLModel

logger = logging.getLogger(__name__)


class Database:
    """Owns the async engine and session factory for the catalog database.

    Tables are created with ``checkfirst=True`` on :meth:`open`, so opening
    an existing database is non-destructive.  Every SQLAlchemy failure that
    escapes :meth:`session` is re-raised as :class:`StorageError`, and so
    is an ``OSError`` from the driver.
    """

    def __init__(self, url: str, *, data_dir: Path | None = None) -> None:
        self.url = url
        self._data_dir = data_dir
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._init_lock = asyncio.Lock()

    @property
    def engine(self) -> AsyncEngine | None:
        """The async engine, available after ``open()``."""
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._session_factory is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, models: Iterable[type[SQLModel]]) -> None:
        """Create the engine and ensure the tables for *models* exist."""
        if self._session_factory is not None:
            return
        async with self._init_lock:
            if self._session_factory is not None:
                return

            if self._data_dir is not None:
                try:
                    await asyncio.to_thread(self._data_dir.mkdir, parents=True, exist_ok=True)
                except OSError as exc:
                    raise StorageError(f"Cannot create data directory {self._data_dir}") from exc

            engine = create_async_engine(self.url, echo=False)

            @event.listens_for(engine.sync_engine, "connect")
            def _set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
                cursor = dbapi_connection.cursor()  # type: ignore[union-attr]
                cursor.execute("PRAGMA journal_mode=WAL")
                result = cursor.fetchone()
                if result is not None and result[0].lower() != "wal":
                    logger.debug("WAL mode not active, got: %s", result[0])
                cursor.execute("PRAGMA busy_timeout=5000")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.close()

            try:
                async with engine.begin() as conn:
                    for model in models:
                        table = model.__table__  # type: ignore[attr-defined]
                        await conn.run_sync(lambda c, t=table: t.create(c, checkfirst=True))
            except (SQLAlchemyError, OSError) as exc:
                await engine.dispose()
                raise StorageError(f"Cannot open database {self.url}: {exc}") from exc

            self._engine = engine
            self._session_factory = async_sessionmaker(
                engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            logger.info("Opened database %s", self.url)

    async def close(self) -> None:
        """Dispose the engine and release connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Closed database %s", self.url)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session that commits on success and rolls back on error."""
        if self._session_factory is None:
            raise StorageError("Database is not open")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except (SQLAlchemyError, OSError) as exc:
                await session.rollback()
                raise StorageError(str(exc)) from exc
            except BaseException:
                await session.rollback()
                raise

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def compact(self, table_name: str) -> None:
        """Refresh planner statistics for *table_name* and reclaim free pages.

        ``VACUUM`` cannot run inside a transaction, so this uses an
        autocommit connection.  Readers on other connections keep working
        under WAL; the vacuum waits on ``busy_timeout`` for writers.
        """
        if self._engine is None:
            raise StorageError("Database is not open")
        try:
            async with self._engine.connect() as conn:
                conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
                await conn.execute(text(f'ANALYZE "{table_name}"'))
                await conn.execute(text("VACUUM"))
                await conn.execute(text("PRAGMA optimize"))
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Compaction of {table_name} failed: {exc}") from exc
