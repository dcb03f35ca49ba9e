"""Quarry — synchronous wrapper around QuarryAsync."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from quarry._quarry_async import EndpointConfig, QuarryAsync

if TYPE_CHECKING:
    import os
    from collections.abc import Iterable

    from quarry.config import Settings
    from quarry.embed.protocols import EmbeddingProvider
    from quarry.ingest.scheduler import CycleReport
    from quarry.models import FileRecordBase
    from quarry.query.orchestrator import LlmFactory

logger = logging.getLogger(__name__)


class Quarry:
    """Synchronous facade backed by a private event loop in a daemon thread.

    Background ingestion and maintenance run on that loop, so they keep
    working between calls.  Usable from plain scripts, notebooks, or from
    inside another running event loop.

    Usage::

        with Quarry(Settings(data_dir="/tmp/q")) as q:
            q.submit_paths(["/home/me/notes"])
            q.start_background()
            print(q.answer("Where is the deployment checklist?"))
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        embedding_provider: EmbeddingProvider | None = None,
        llm_factory: LlmFactory | None = None,
    ) -> None:
        self._closed = False
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name="quarry-loop", daemon=True
        )
        self._thread.start()
        self._async = QuarryAsync(
            settings,
            embedding_provider=embedding_provider,
            llm_factory=llm_factory,
        )
        try:
            self._run(self._async.open())
        except BaseException:
            self._stop_loop()
            raise

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def _stop_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        if not self._thread.is_alive():
            self._loop.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop background work, close the database, and join the loop thread."""
        if self._closed:
            return
        self._closed = True
        try:
            self._run(self._async.close())
        finally:
            self._stop_loop()

    def __enter__(self) -> Quarry:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def submit_paths(self, paths: Iterable[str | os.PathLike[str]]) -> list[FileRecordBase]:
        return self._run(self._async.submit_paths(list(paths)))

    def list_catalog(self) -> list[FileRecordBase]:
        return self._run(self._async.list_catalog())

    def delete_path(self, path: str | os.PathLike[str]) -> None:
        self._run(self._async.delete_path(path))

    def reindex_path(self, path: str | os.PathLike[str]) -> bool:
        return self._run(self._async.reindex_path(path))

    def answer(self, question: str) -> str:
        return self._run(self._async.answer(question))

    def ask_general(self, prompt: str) -> str:
        return self._run(self._async.ask_general(prompt))

    def get_endpoint_config(self) -> EndpointConfig:
        return self._run(self._async.get_endpoint_config())

    def save_endpoint_config(self, url: str, token: str) -> None:
        self._run(self._async.save_endpoint_config(url, token))

    def start_background(self) -> None:
        self._run(self._async.start_background())

    def stop_background(self) -> None:
        self._run(self._async.stop_background())

    def run_ingestion_cycle(self) -> CycleReport:
        return self._run(self._async.run_ingestion_cycle())

    def compact(self) -> int:
        return self._run(self._async.compact())
