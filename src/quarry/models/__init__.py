"""SQLModel database models for Quarry."""

from quarry.models.contents import (
    FileContentRecord,
    FileContentRecordBase,
    decode_vector,
    encode_vector,
)
from quarry.models.endpoints import ENDPOINT_ID, LanguageModelEndpoint
from quarry.models.files import (
    PROGRESS_COMPLETE,
    PROGRESS_PENDING,
    FileRecord,
    FileRecordBase,
    epoch_seconds,
)

__all__ = [
    "ENDPOINT_ID",
    "PROGRESS_COMPLETE",
    "PROGRESS_PENDING",
    "FileContentRecord",
    "FileContentRecordBase",
    "FileRecord",
    "FileRecordBase",
    "LanguageModelEndpoint",
    "decode_vector",
    "encode_vector",
    "epoch_seconds",
]
