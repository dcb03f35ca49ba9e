"""FileRecord model — one catalog row per path submitted for indexing.

Provides ``FileRecordBase`` (non-table base) and ``FileRecord`` (concrete
table).  Subclass ``FileRecordBase`` with ``table=True`` and a custom
``__tablename__`` to use a different table name.
"""

from __future__ import annotations

import time
import uuid

from sqlmodel import Field, SQLModel

PROGRESS_PENDING: int = 0
"""Progress of a file that has not been embedded yet."""

PROGRESS_COMPLETE: int = 100
"""Progress of a file whose chunks are persisted."""


def epoch_seconds() -> int:
    """Current wall-clock time as integer seconds since the epoch."""
    return int(time.time())


class FileRecordBase(SQLModel):
    """Base fields for a catalog entry. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(default="")
    file_path: str = Field(index=True, unique=True)
    # None for directories and extension-less files
    file_type: str | None = Field(default=None)
    add_time: int = Field(default_factory=epoch_seconds)
    sync_time: int = Field(default=0)
    progress: int = Field(default=PROGRESS_PENDING, index=True, ge=0, le=100)

    @property
    def is_complete(self) -> bool:
        return self.progress >= PROGRESS_COMPLETE


class FileRecord(FileRecordBase, table=True):
    """Default catalog table — ``quarry_files``."""

    __tablename__ = "quarry_files"
