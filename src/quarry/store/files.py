"""FilesRepo — the catalog of paths submitted for indexing."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from sqlmodel import select

from quarry.models.files import (
    PROGRESS_COMPLETE,
    PROGRESS_PENDING,
    FileRecord,
    FileRecordBase,
    epoch_seconds,
)
from quarry.store._repository import TableRepository
from quarry.store.filters import and_, eq, not_in

if TYPE_CHECKING:
    from collections.abc import Iterable

    from quarry.store.database import Database

logger = logging.getLogger(__name__)


def describe_path(path: str) -> tuple[str, str | None]:
    """Return ``(name, file_type)`` for *path*.

    ``file_type`` is the extension without the dot for regular files and
    ``None`` for directories, missing paths, and extension-less files.
    """
    p = Path(path)
    name = p.name or path
    if not p.is_file():
        return name, None
    suffix = p.suffix
    return name, suffix[1:] if suffix else None


class FilesRepo(TableRepository[FileRecordBase]):
    """Catalog rows keyed by unique ``file_path``."""

    def __init__(self, db: Database, *, model: type[FileRecordBase] | None = None) -> None:
        super().__init__(db, model or FileRecord)

    async def add_paths(self, paths: Iterable[str | os.PathLike[str]]) -> list[FileRecordBase]:
        """Register *paths* as pending.  Already-catalogued paths are skipped.

        Returns the rows actually inserted.
        """
        wanted = list(dict.fromkeys(os.fspath(p) for p in paths))
        if not wanted:
            return []

        model = self._model
        async with self._db.session() as session:
            result = await session.execute(
                select(model.file_path).where(model.file_path.in_(wanted))  # type: ignore[attr-defined]
            )
            existing = set(result.scalars().all())
        fresh = [p for p in wanted if p not in existing]
        if existing:
            logger.debug("Skipping %d already catalogued path(s)", len(existing))
        if not fresh:
            return []

        described = await asyncio.to_thread(lambda: [describe_path(p) for p in fresh])
        now = epoch_seconds()
        rows = [
            model(
                name=name,
                file_path=path,
                file_type=file_type,
                add_time=now,
                sync_time=0,
                progress=PROGRESS_PENDING,
            )
            for path, (name, file_type) in zip(fresh, described, strict=True)
        ]
        await self.insert(rows)
        logger.info("Catalogued %d new path(s)", len(rows))
        return rows

    async def query_all(self) -> list[FileRecordBase]:
        return await self.scan()

    async def get(self, file_path: str) -> FileRecordBase | None:
        rows = await self.scan_where(eq("file_path", file_path), limit=1)
        return rows[0] if rows else None

    async def query_pending(
        self,
        limit: int = 10,
        *,
        exclude: Iterable[str] = (),
    ) -> list[FileRecordBase]:
        """Return up to *limit* files with ``progress = 0`` not listed in *exclude*."""
        skipped = list(exclude)
        predicate = eq("progress", PROGRESS_PENDING)
        if skipped:
            predicate = and_(predicate, not_in("file_path", skipped))
        return await self.scan_where(predicate, limit=limit)

    async def mark_synced(self, file_path: str, progress: int = PROGRESS_COMPLETE) -> int:
        """Set *progress* and stamp ``sync_time`` for *file_path*."""
        return await self.update_where(
            eq("file_path", file_path),
            progress=progress,
            sync_time=epoch_seconds(),
        )

    async def reset_progress(self, file_path: str) -> int:
        """Return *file_path* to the pending state."""
        return await self.update_where(
            eq("file_path", file_path),
            progress=PROGRESS_PENDING,
            sync_time=0,
        )

    async def delete_by_path(self, file_path: str) -> int:
        return await self.delete_where(eq("file_path", file_path))
