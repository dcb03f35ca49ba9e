"""QuarryAsync — primary async class wiring store, ingestion, query and maintenance."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from quarry.config import Settings
from quarry.embed.embedder import DocumentEmbedder
from quarry.exceptions import QuarryError, StorageError
from quarry.ingest.scheduler import IngestionScheduler
from quarry.maintenance import MaintenanceLoop
from quarry.models import FileContentRecord, FileRecord, LanguageModelEndpoint
from quarry.query.orchestrator import QueryOrchestrator
from quarry.store import Database, EndpointRepo, FileContentsRepo, FilesRepo

if TYPE_CHECKING:
    from collections.abc import Iterable

    from quarry.embed.protocols import EmbeddingProvider
    from quarry.ingest.scheduler import CycleReport
    from quarry.models import FileRecordBase
    from quarry.query.orchestrator import LlmFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EndpointConfig:
    """Stored language-model endpoint credentials.

    Attributes:
        url: Base URL of the OpenAI-compatible API, or ``""`` when unset.
        token: API token, or ``""`` when unset.
    """

    url: str = ""
    token: str = ""


class QuarryAsync:
    """Async facade over a local document index.

    Usage::

        async with QuarryAsync(Settings(data_dir="/tmp/q")) as q:
            await q.submit_paths(["/home/me/notes"])
            await q.run_ingestion_cycle()
            print(await q.answer("What did I write about usearch?"))

    ``embedding_provider`` defaults to the provider named by
    ``settings.embedding_provider`` (see :func:`build_provider`);
    ``llm_factory`` defaults to an :class:`OpenAIChatModel` built from the
    stored endpoint.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        embedding_provider: EmbeddingProvider | None = None,
        llm_factory: LlmFactory | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._provider = embedding_provider
        self._llm_factory = llm_factory
        self._db: Database | None = None
        self._files: FilesRepo | None = None
        self._contents: FileContentsRepo | None = None
        self._endpoints: EndpointRepo | None = None
        self._scheduler: IngestionScheduler | None = None
        self._orchestrator: QueryOrchestrator | None = None
        self._maintenance: MaintenanceLoop | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Open the database, create tables, and load the vector index."""
        if self._db is not None:
            return
        settings = self._settings
        provider = self._provider
        if provider is None:
            provider = build_provider(settings)

        db = Database(settings.db_url, data_dir=settings.data_dir)
        await db.open([FileRecord, FileContentRecord, LanguageModelEndpoint])

        files = FilesRepo(db)
        contents = FileContentsRepo(db, dimension=settings.embedding_dim)
        endpoints = EndpointRepo(db)
        try:
            await contents.load_index()
        except BaseException:
            await db.close()
            raise

        embedder = DocumentEmbedder(
            provider,
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
            concurrency=settings.embed_concurrency,
        )
        self._db = db
        self._files = files
        self._contents = contents
        self._endpoints = endpoints
        self._scheduler = IngestionScheduler(files, contents, embedder, settings)
        self._orchestrator = QueryOrchestrator(
            contents, endpoints, embedder, self._llm_factory, settings
        )
        self._maintenance = MaintenanceLoop(
            [files, contents], interval=settings.maintenance_interval
        )
        logger.info("Quarry opened at %s", settings.db_path)

    async def close(self) -> None:
        """Stop background work and dispose of the database engine."""
        if self._db is None:
            return
        try:
            await self.stop_background()
            if self._orchestrator is not None:
                await self._orchestrator.close()
        finally:
            await self._db.close()
            self._db = None
            logger.info("Quarry closed")

    async def __aenter__(self) -> QuarryAsync:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._db is not None

    def _require_open(self) -> None:
        if self._db is None:
            msg = "QuarryAsync is not open; call open() or use 'async with'"
            raise QuarryError(msg)

    # ------------------------------------------------------------------
    # Catalog commands
    # ------------------------------------------------------------------

    async def submit_paths(self, paths: Iterable[str | os.PathLike[str]]) -> list[FileRecordBase]:
        """Add *paths* to the catalog as pending.  Returns the new rows."""
        self._require_open()
        assert self._files is not None
        return await self._files.add_paths(paths)

    async def list_catalog(self) -> list[FileRecordBase]:
        self._require_open()
        assert self._files is not None
        return await self._files.query_all()

    async def delete_path(self, path: str | os.PathLike[str]) -> None:
        """Remove *path*'s chunks, then its catalog row.

        Both deletes are attempted; the first ``StorageError`` is re-raised.
        """
        self._require_open()
        assert self._files is not None and self._contents is not None
        path = os.fspath(path)
        error: StorageError | None = None
        try:
            removed = await self._contents.delete_by_path(path)
            logger.debug("Deleted %d chunk(s) of %s", removed, path)
        except StorageError as exc:
            logger.warning("Deleting chunks of %s failed", path, exc_info=True)
            error = exc
        try:
            await self._files.delete_by_path(path)
        except StorageError as exc:
            logger.warning("Deleting catalog entry %s failed", path, exc_info=True)
            error = error or exc
        if error is not None:
            raise error

    async def reindex_path(self, path: str | os.PathLike[str]) -> bool:
        """Drop *path*'s chunks and mark it pending again.

        Returns ``False`` when *path* is not in the catalog.
        """
        self._require_open()
        assert self._files is not None and self._contents is not None
        path = os.fspath(path)
        if await self._files.get(path) is None:
            return False
        await self._contents.delete_by_path(path)
        await self._files.reset_progress(path)
        logger.info("Queued %s for re-embedding", path)
        return True

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    async def answer(self, question: str) -> str:
        self._require_open()
        assert self._orchestrator is not None
        return await self._orchestrator.answer(question)

    async def ask_general(self, prompt: str) -> str:
        self._require_open()
        assert self._orchestrator is not None
        return await self._orchestrator.ask_general(prompt)

    # ------------------------------------------------------------------
    # Endpoint configuration
    # ------------------------------------------------------------------

    async def get_endpoint_config(self) -> EndpointConfig:
        self._require_open()
        assert self._endpoints is not None
        endpoint = await self._endpoints.get()
        if endpoint is None:
            return EndpointConfig()
        return EndpointConfig(url=endpoint.url, token=endpoint.token)

    async def save_endpoint_config(self, url: str, token: str) -> None:
        """Store credentials and re-enable the endpoint."""
        self._require_open()
        assert self._endpoints is not None
        await self._endpoints.save_credentials(url, token)

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    async def start_background(self) -> None:
        """Start the ingestion producer/consumer and the maintenance loop."""
        self._require_open()
        assert self._scheduler is not None and self._maintenance is not None
        self._scheduler.start()
        self._maintenance.start()

    async def stop_background(self) -> None:
        if self._scheduler is not None:
            await self._scheduler.stop()
        if self._maintenance is not None:
            await self._maintenance.stop()

    async def run_ingestion_cycle(self) -> CycleReport:
        """Embed one batch of pending files and store the results."""
        self._require_open()
        assert self._scheduler is not None
        return await self._scheduler.run_cycle()

    async def compact(self) -> int:
        """Deduplicate and compact the tables now.  Returns the count compacted."""
        self._require_open()
        assert self._maintenance is not None
        return await self._maintenance.run_once()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def files(self) -> FilesRepo:
        self._require_open()
        assert self._files is not None
        return self._files

    @property
    def contents(self) -> FileContentsRepo:
        self._require_open()
        assert self._contents is not None
        return self._contents

    @property
    def endpoints(self) -> EndpointRepo:
        self._require_open()
        assert self._endpoints is not None
        return self._endpoints


def build_provider(settings: Settings) -> EmbeddingProvider:
    """Construct the embedding provider named by ``settings.embedding_provider``."""
    if settings.embedding_provider == "openai":
        from quarry.embed.providers.openai import OpenAIEmbedding

        return OpenAIEmbedding.from_settings(settings)
    from quarry.embed.providers.sentence_transformers import SentenceTransformerEmbedding

    return SentenceTransformerEmbedding(settings.embedding_model)
