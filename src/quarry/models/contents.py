"""FileContentRecord model — one row per embedded text chunk.

Vectors are stored as little-endian float32 blobs; ``vector`` decodes them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from sqlalchemy import LargeBinary
from sqlmodel import Field, SQLModel

from quarry.models.files import epoch_seconds

if TYPE_CHECKING:
    from collections.abc import Sequence

_DTYPE = np.dtype("<f4")


def encode_vector(vector: Sequence[float]) -> bytes:
    """Pack *vector* into a float32 blob."""
    return np.asarray(vector, dtype=_DTYPE).tobytes()


def decode_vector(blob: bytes) -> np.ndarray:
    """Unpack a float32 blob written by :func:`encode_vector`."""
    return np.frombuffer(blob, dtype=_DTYPE)


class FileContentRecordBase(SQLModel):
    """Base fields for a content chunk. Subclass with ``table=True`` for a concrete table."""

    # Integer keys double as usearch labels.
    id: int | None = Field(default=None, primary_key=True)
    file_path: str = Field(index=True)
    text: str = Field(default="")
    embedding: bytes = Field(default=b"", sa_type=LargeBinary)
    add_time: int = Field(default_factory=epoch_seconds)

    @property
    def vector(self) -> list[float]:
        return decode_vector(self.embedding).tolist()

    @property
    def dimension(self) -> int:
        return len(self.embedding) // _DTYPE.itemsize


class FileContentRecord(FileContentRecordBase, table=True):
    """Default content table — ``quarry_file_contents``."""

    __tablename__ = "quarry_file_contents"
