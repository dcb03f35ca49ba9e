"""Quarry: a local document index.

Ingests files into vector embeddings and answers questions from the most
relevant passages, optionally summarised by a remote language model.
"""

__version__ = "0.1.0"

from quarry._quarry import Quarry
from quarry._quarry_async import EndpointConfig, QuarryAsync
from quarry.config import Settings
from quarry.embed import DocumentEmbedder, EmbeddedChunk, EmbeddingProvider, extract_text, split_text
from quarry.exceptions import (
    ConfigError,
    DocumentNotFoundError,
    EmbeddingError,
    IoError,
    LlmAuthError,
    LlmError,
    LlmNetworkError,
    QuarryError,
    StorageError,
    UnsupportedFormatError,
)
from quarry.ingest import CycleReport, IngestionScheduler
from quarry.maintenance import MaintenanceLoop
from quarry.query import (
    LLM_UNAVAILABLE,
    NO_DATA_FOUND,
    PROMPT_FOR_INPUT,
    LanguageModel,
    OpenAIChatModel,
    QueryOrchestrator,
    render_markdown,
)
from quarry.store import (
    Database,
    EndpointRepo,
    FileContentsRepo,
    FilesRepo,
    FilterExpression,
    NearestResult,
    and_,
    eq,
    in_,
    ne,
    not_in,
    or_,
)
from quarry.walk import iter_files

__all__ = [
    "LLM_UNAVAILABLE",
    "NO_DATA_FOUND",
    "PROMPT_FOR_INPUT",
    "ConfigError",
    "CycleReport",
    "Database",
    "DocumentEmbedder",
    "DocumentNotFoundError",
    "EmbeddedChunk",
    "EmbeddingError",
    "EmbeddingProvider",
    "EndpointConfig",
    "EndpointRepo",
    "FileContentsRepo",
    "FilesRepo",
    "FilterExpression",
    "IngestionScheduler",
    "IoError",
    "LanguageModel",
    "LlmAuthError",
    "LlmError",
    "LlmNetworkError",
    "MaintenanceLoop",
    "NearestResult",
    "OpenAIChatModel",
    "Quarry",
    "QuarryAsync",
    "QuarryError",
    "QueryOrchestrator",
    "Settings",
    "StorageError",
    "UnsupportedFormatError",
    "__version__",
    "and_",
    "eq",
    "extract_text",
    "in_",
    "iter_files",
    "ne",
    "not_in",
    "or_",
    "render_markdown",
    "split_text",
]
