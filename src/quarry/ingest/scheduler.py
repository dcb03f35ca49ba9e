"""IngestionScheduler — embeds pending files and records them as complete.

A producer task polls the catalog for files with ``progress = 0``, embeds
them, and puts ``(file_path, chunks)`` on a bounded :class:`asyncio.Queue`.
A consumer task drains the queue, inserts the chunks, then marks the file
complete.  Empty output leaves the file pending.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from quarry._tasks import cancel_task, track_task
from quarry.config import Settings
from quarry.exceptions import EmbeddingError, StorageError

if TYPE_CHECKING:
    from collections.abc import Callable

    from quarry.embed.protocols import TextEmbedder
    from quarry.embed.types import EmbeddedChunk
    from quarry.store.contents import FileContentsRepo
    from quarry.store.files import FilesRepo

logger = logging.getLogger(__name__)

Outcome = Literal["completed", "empty", "failed"]


@dataclass(frozen=True, slots=True)
class CycleReport:
    """Counts from one :meth:`IngestionScheduler.run_cycle`.

    Attributes:
        dispatched: Pending files handed to the embedder.
        completed: Files whose chunks were stored and progress set to 100.
        empty: Files with no chunks; they stay pending.
        failed: Files whose chunks were malformed or where a store write failed.
    """

    dispatched: int = 0
    completed: int = 0
    empty: int = 0
    failed: int = 0


class IngestionScheduler:
    """Producer/consumer pipeline from the file catalog to the content table."""

    def __init__(
        self,
        files: FilesRepo,
        contents: FileContentsRepo,
        embedder: TextEmbedder,
        settings: Settings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._files = files
        self._contents = contents
        self._embedder = embedder
        self._settings = settings or Settings()
        self._clock = clock
        self._queue: asyncio.Queue[tuple[str, list[EmbeddedChunk]]] = asyncio.Queue(
            maxsize=self._settings.channel_capacity
        )
        self._semaphore = asyncio.Semaphore(self._settings.embed_concurrency)
        # Dispatched but not yet acknowledged by the consumer
        self._in_flight: set[str] = set()
        # path -> clock time before which an empty file is not retried
        self._cooldown: dict[str, float] = {}
        self._producer: asyncio.Task[None] | None = None
        self._consumer: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._producer is not None and not self._producer.done()

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    async def _embed_one(self, path: str) -> list[EmbeddedChunk]:
        async with self._semaphore:
            try:
                return list(await self._embedder.embed_text(path))
            except Exception:
                logger.warning("Embedding %s failed", path, exc_info=True)
                return []

    async def _collect(self) -> list[tuple[str, list[EmbeddedChunk]]]:
        """Embed up to ``pending_batch_size`` pending files; one entry per file."""
        now = self._clock()
        self._cooldown = {path: until for path, until in self._cooldown.items() if until > now}
        exclude = self._in_flight.union(self._cooldown)

        pending = await self._files.query_pending(self._settings.pending_batch_size, exclude=exclude)
        paths = [record.file_path for record in pending]
        if not paths:
            return []

        self._in_flight.update(paths)
        try:
            results = await asyncio.gather(*(self._embed_one(path) for path in paths))
        except BaseException:
            self._in_flight.difference_update(paths)
            raise
        logger.debug("Embedded %d pending file(s)", len(paths))
        return list(zip(paths, results, strict=True))

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    async def _consume(self, path: str, chunks: list[EmbeddedChunk]) -> Outcome:
        """Persist *chunks* for *path*, then mark it complete.

        Both writes are attempted even if the first fails.  Output that
        stores no rows (all chunks blank) is treated as empty, and a chunk
        with a malformed vector fails the file without completing it.
        """
        try:
            if not chunks:
                self._defer(path)
                logger.debug("No chunks for %s; leaving it pending", path)
                return "empty"

            failed = False
            stored = 0
            try:
                stored = await self._contents.insert_chunks(path, chunks)
            except EmbeddingError:
                self._defer(path)
                logger.warning("Discarding malformed chunks for %s", path, exc_info=True)
                return "failed"
            except StorageError:
                failed = True
                logger.warning("Storing chunks for %s failed", path, exc_info=True)
            if not failed and stored == 0:
                self._defer(path)
                logger.debug("Only blank chunks for %s; leaving it pending", path)
                return "empty"
            try:
                await self._files.mark_synced(path)
            except StorageError:
                failed = True
                logger.warning("Updating progress for %s failed", path, exc_info=True)
            if failed:
                return "failed"
            logger.debug("Stored %d chunk(s) for %s", stored, path)
            return "completed"
        finally:
            self._in_flight.discard(path)

    async def _consume_safely(self, path: str, chunks: list[EmbeddedChunk]) -> Outcome:
        try:
            return await self._consume(path, chunks)
        except Exception:
            self._defer(path)
            logger.error("Unexpected error consuming %s", path, exc_info=True)
            return "failed"

    def _defer(self, path: str) -> None:
        self._cooldown[path] = self._clock() + self._settings.empty_retry_interval

    # ------------------------------------------------------------------
    # One-shot cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleReport:
        """Run one producer sweep and persist its output directly.

        Not to be combined with :meth:`start`; the background tasks own
        the queue while running.
        """
        if self.is_running:
            msg = "run_cycle() cannot be used while the background tasks are running"
            raise RuntimeError(msg)
        try:
            batch = await self._collect()
        except StorageError:
            logger.warning("Querying pending files failed", exc_info=True)
            return CycleReport()

        counts = {"completed": 0, "empty": 0, "failed": 0}
        try:
            for path, chunks in batch:
                counts[await self._consume_safely(path, chunks)] += 1
        finally:
            self._in_flight.difference_update(path for path, _ in batch)
        report = CycleReport(dispatched=len(batch), **counts)
        if batch:
            logger.info(
                "Ingestion cycle: %d dispatched, %d completed, %d empty, %d failed",
                report.dispatched,
                report.completed,
                report.empty,
                report.failed,
            )
        return report

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    async def _produce_forever(self) -> None:
        backoff = self._settings.idle_backoff
        while True:
            try:
                batch = await self._collect()
            except StorageError:
                logger.warning("Querying pending files failed", exc_info=True)
                batch = []
            if not batch:
                await asyncio.sleep(backoff)
                continue
            for item in batch:
                # Blocks while the queue is full
                await self._queue.put(item)

    async def _consume_forever(self) -> None:
        while True:
            path, chunks = await self._queue.get()
            try:
                await self._consume_safely(path, chunks)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        """Start the producer and consumer tasks on the running loop."""
        if self.is_running:
            return
        self._producer = asyncio.create_task(self._produce_forever(), name="quarry-ingest-producer")
        self._consumer = asyncio.create_task(self._consume_forever(), name="quarry-ingest-consumer")
        track_task(self._producer, "ingest-producer")
        track_task(self._consumer, "ingest-consumer")
        logger.info("Ingestion scheduler started")

    async def stop(self) -> None:
        """Cancel both tasks.  Queued but unconsumed files stay pending."""
        if self._producer is None and self._consumer is None:
            return
        await cancel_task(self._producer)
        await cancel_task(self._consumer)
        self._producer = None
        self._consumer = None
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        self._in_flight.clear()
        logger.info("Ingestion scheduler stopped")

    async def drain(self) -> None:
        """Wait until every queued item has been consumed."""
        await self._queue.join()
