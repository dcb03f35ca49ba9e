"""EndpointRepo — the singleton language-model endpoint row."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from quarry.models.endpoints import ENDPOINT_ID, LanguageModelEndpoint
from quarry.models.files import epoch_seconds
from quarry.store._repository import TableRepository
from quarry.store.filters import and_, eq

if TYPE_CHECKING:
    from quarry.store.database import Database

logger = logging.getLogger(__name__)


class EndpointRepo(TableRepository[LanguageModelEndpoint]):
    """Credentials and circuit-breaker flag, stored under ``id = 1``.

    Writes are last-write-wins.  :meth:`set_state` accepts an *expected*
    previous value for a compare-and-swap transition.
    """

    def __init__(self, db: Database) -> None:
        super().__init__(db, LanguageModelEndpoint)

    async def get(self) -> LanguageModelEndpoint | None:
        rows = await self.scan_where(eq("id", ENDPOINT_ID), limit=1)
        return rows[0] if rows else None

    async def query_available(self, limit: int = 10) -> list[LanguageModelEndpoint]:
        return await self.scan_where(eq("state", True), limit=limit)

    async def save_credentials(self, url: str, token: str) -> LanguageModelEndpoint:
        """Insert or replace the endpoint credentials and close the breaker."""
        now = epoch_seconds()
        updated = await self.update_where(
            eq("id", ENDPOINT_ID),
            url=url,
            token=token,
            state=True,
            time=now,
        )
        if not updated:
            await self.insert([LanguageModelEndpoint(id=ENDPOINT_ID, url=url, token=token, state=True, time=now)])
            logger.info("Saved language-model endpoint %s", url)
        else:
            logger.info("Updated language-model endpoint %s", url)
        return LanguageModelEndpoint(id=ENDPOINT_ID, url=url, token=token, state=True, time=now)

    async def set_state(self, state: bool, *, expected: bool | None = None) -> bool:
        """Write the availability flag.  Returns whether a row changed.

        With *expected*, the write only applies when the stored flag equals
        it (compare-and-swap); otherwise it is a blind overwrite.
        """
        predicate = eq("id", ENDPOINT_ID)
        if expected is not None:
            predicate = and_(predicate, eq("state", expected))
        changed = await self.update_where(predicate, state=state, time=epoch_seconds())
        return changed > 0
