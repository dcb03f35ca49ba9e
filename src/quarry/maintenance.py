"""MaintenanceLoop — periodic table compaction."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from quarry._tasks import cancel_task, track_task
from quarry.exceptions import StorageError
from quarry.store.contents import FileContentsRepo

if TYPE_CHECKING:
    from collections.abc import Sequence

    from quarry.store._repository import TableRepository

logger = logging.getLogger(__name__)


class MaintenanceLoop:
    """Compacts each repository once per *interval* seconds.

    Content repositories are deduplicated before compaction.  Failures are
    logged per repository and never stop the loop.
    """

    def __init__(self, repos: Sequence[TableRepository], interval: float = 3600.0) -> None:
        self._repos = list(repos)
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Compact every repository.  Returns how many succeeded."""
        compacted = 0
        for repo in self._repos:
            try:
                if isinstance(repo, FileContentsRepo):
                    await repo.dedupe()
                await repo.compact()
            except StorageError:
                logger.warning("Compacting %s failed", repo.table_name, exc_info=True)
                continue
            except Exception:
                logger.error("Unexpected error compacting %s", repo.table_name, exc_info=True)
                continue
            compacted += 1
        return compacted

    async def _run_forever(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run_forever(), name="quarry-maintenance")
        track_task(self._task, "maintenance")
        logger.info("Maintenance loop started (every %.0fs)", self._interval)

    async def stop(self) -> None:
        await cancel_task(self._task)
        self._task = None
