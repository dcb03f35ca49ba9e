"""FileContentsRepo — chunk rows plus the nearest-neighbour index over them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete
from sqlmodel import select

from quarry.exceptions import EmbeddingError, StorageError
from quarry.models.contents import (
    FileContentRecord,
    FileContentRecordBase,
    decode_vector,
    encode_vector,
)
from quarry.models.files import epoch_seconds
from quarry.store._repository import TableRepository
from quarry.store.filters import compile_sql, eq, in_
from quarry.store.index import VectorIndex

if TYPE_CHECKING:
    from collections.abc import Sequence

    from quarry.embed.types import EmbeddedChunk
    from quarry.store.database import Database
    from quarry.store.filters import FilterExpression

logger = logging.getLogger(__name__)

_LOAD_BATCH = 2048


@dataclass(frozen=True, slots=True)
class NearestResult:
    """A chunk row and its distance from the query vector.

    Attributes:
        record: The matched content row.
        distance: Distance under the requested metric (lower is closer).
    """

    record: FileContentRecordBase
    distance: float


class FileContentsRepo(TableRepository[FileContentRecordBase]):
    """Content chunks with embeddings.

    SQLite holds the rows; a :class:`VectorIndex` mirrors their vectors in
    memory and is rebuilt from the table on :meth:`load_index` and
    :meth:`compact`.  Chunks are never updated in place.
    """

    def __init__(
        self,
        db: Database,
        *,
        dimension: int,
        metric: str = "cosine",
        model: type[FileContentRecordBase] | None = None,
    ) -> None:
        super().__init__(db, model or FileContentRecord)
        self._dimension = dimension
        self._index = VectorIndex(dimension=dimension, metric=metric)
        # Index mutations recorded while load_index() rebuilds
        self._pending: list[tuple[str, list[int], list[Any]]] | None = None
        # One rebuild at a time; each owns _pending while it runs
        self._rebuild_lock = asyncio.Lock()

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def index(self) -> VectorIndex:
        return self._index

    # ------------------------------------------------------------------
    # Index lifecycle
    # ------------------------------------------------------------------

    async def load_index(self) -> int:
        """Rebuild the vector index from the table. Returns the vector count.

        The replacement index is built off to the side and swapped in once
        complete, so searches keep using the old one meanwhile.  Index
        mutations made during the rebuild are replayed onto the new index
        before the swap.
        """
        async with self._rebuild_lock:
            return await self._rebuild_index()

    async def _rebuild_index(self) -> int:
        model = self._model
        fresh = VectorIndex(dimension=self._dimension, metric=self._index.metric)
        self._pending = []
        loaded = 0
        last_id = 0
        try:
            while True:
                query = (
                    select(model.id, model.embedding)
                    .where(model.id > last_id)  # type: ignore[operator]
                    .order_by(model.id)  # type: ignore[arg-type]
                    .limit(_LOAD_BATCH)
                )
                async with self._db.session() as session:
                    rows = (await session.execute(query)).all()
                if not rows:
                    break
                keys: list[int] = []
                vectors: list[Any] = []
                for row_id, blob in rows:
                    vector = decode_vector(blob)
                    if vector.shape[0] != self._dimension:
                        logger.warning(
                            "Skipping chunk %s: dimension %d != %d",
                            row_id,
                            vector.shape[0],
                            self._dimension,
                        )
                        continue
                    keys.append(row_id)
                    vectors.append(vector)
                if keys:
                    await asyncio.to_thread(fresh.add, keys, vectors)
                    loaded += len(keys)
                last_id = rows[-1][0]

            # No awaits from here to the swap.
            for op, keys, vectors in self._pending:
                if op == "add":
                    missing = [i for i, key in enumerate(keys) if not fresh.contains(key)]
                    fresh.add([keys[i] for i in missing], [vectors[i] for i in missing])
                else:
                    fresh.remove(keys)
            self._index = fresh
        finally:
            self._pending = None
        logger.info("Loaded %d vectors into the %s index", loaded, self.table_name)
        return loaded

    def _index_add(self, keys: list[int], vectors: list[Any]) -> None:
        self._index.add(keys, vectors)
        if self._pending is not None:
            self._pending.append(("add", keys, vectors))

    def _index_remove(self, keys: list[int]) -> None:
        self._index.remove(keys)
        if self._pending is not None:
            self._pending.append(("remove", keys, []))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, rows: Sequence[FileContentRecordBase]) -> int:
        """Persist *rows*, then add their vectors to the index.

        Rows with blank text are dropped.  A vector of the wrong length
        fails the whole batch with :class:`StorageError` before anything
        is written.
        """
        kept = [row for row in rows if row.text and row.text.strip()]
        if not kept:
            return 0
        for row in kept:
            if row.dimension != self._dimension:
                msg = (
                    f"Embedding for {row.file_path!r} has dimension {row.dimension}, "
                    f"expected {self._dimension}"
                )
                raise StorageError(msg)

        await super().insert(kept)
        self._index_add(
            [row.id for row in kept],  # type: ignore[misc]
            [decode_vector(row.embedding) for row in kept],
        )
        return len(kept)

    async def insert_chunks(self, file_path: str, chunks: Sequence[EmbeddedChunk]) -> int:
        """Build rows for *file_path* from embedder output and insert them.

        Returns the number of rows stored; blank chunks are skipped.  Raises
        :class:`EmbeddingError` when a vector cannot be packed as floats.
        """
        now = epoch_seconds()
        rows = []
        for chunk in chunks:
            if not (chunk.text and chunk.text.strip()):
                continue
            try:
                embedding = encode_vector(chunk.vector)
            except (TypeError, ValueError) as exc:
                msg = f"Chunk of {file_path!r} has a non-numeric embedding"
                raise EmbeddingError(msg) from exc
            rows.append(
                self._model(file_path=file_path, text=chunk.text, embedding=embedding, add_time=now)
            )
        return await self.insert(rows)

    async def update_where(self, predicate: FilterExpression, **assignments: Any) -> int:
        if "embedding" in assignments or "id" in assignments:
            raise StorageError("Content chunks are immutable; delete and re-insert instead")
        return await super().update_where(predicate, **assignments)

    async def delete_where(self, predicate: FilterExpression) -> int:
        """Remove matching rows and their vectors."""
        model = self._model
        stmt = (
            delete(model)
            .where(compile_sql(model, predicate))
            .returning(model.id)  # type: ignore[arg-type]
            .execution_options(synchronize_session=False)
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            ids = [row_id for (row_id,) in result.all()]
        if ids:
            self._index_remove(ids)
        return len(ids)

    async def delete_by_path(self, file_path: str) -> int:
        """Remove every chunk of *file_path*."""
        return await self.delete_where(eq("file_path", file_path))

    async def dedupe(self, file_path: str | None = None) -> int:
        """Drop repeated ``(file_path, text)`` rows, keeping the oldest. Returns the count removed."""
        model = self._model
        query = select(model.id, model.file_path, model.text).order_by(model.id)  # type: ignore[arg-type]
        if file_path is not None:
            query = query.where(model.file_path == file_path)
        async with self._db.session() as session:
            rows = (await session.execute(query)).all()

        seen: set[tuple[str, str]] = set()
        duplicates: list[int] = []
        for row_id, path, chunk_text in rows:
            key = (path, chunk_text)
            if key in seen:
                duplicates.append(row_id)
            else:
                seen.add(key)
        if not duplicates:
            return 0
        removed = await super().delete_where(in_("id", duplicates))
        self._index_remove(duplicates)
        logger.info("Removed %d duplicate chunks", removed)
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def query_by_path(self, file_path: str) -> list[FileContentRecordBase]:
        return await self.scan_where(eq("file_path", file_path))

    async def nearest(
        self,
        vector: Sequence[float],
        k: int = 5,
        *,
        metric: str = "cosine",
        max_distance: float | None = None,
    ) -> list[NearestResult]:
        """Return up to *k* chunks nearest to *vector*, closest first.

        Chunks farther than *max_distance* are excluded; an empty list is
        returned when nothing qualifies.
        """
        if metric != self._index.metric:
            msg = f"Index uses {self._index.metric!r} distance, not {metric!r}"
            raise StorageError(msg)
        pairs = self._index.search(vector, k)
        if max_distance is not None:
            pairs = [(key, dist) for key, dist in pairs if dist <= max_distance]
        if not pairs:
            return []

        model = self._model
        async with self._db.session() as session:
            result = await session.execute(
                select(model).where(model.id.in_([key for key, _ in pairs]))  # type: ignore[union-attr]
            )
            by_id = {row.id: row for row in result.scalars().all()}

        return [
            NearestResult(record=by_id[key], distance=dist)
            for key, dist in pairs
            if key in by_id
        ]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def compact(self) -> None:
        """Compact the table and rebuild the index without tombstones."""
        await super().compact()
        await self.load_index()
