"""Embedding protocols."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import os

    from quarry.embed.types import EmbeddedChunk


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding providers.

    Implementations convert text into fixed-dimension float vectors.
    ``embed`` and ``embed_batch`` may be plain or ``async`` methods.
    """

    def embed(self, text: str) -> list[float]:
        """Embed a single text string into a vector."""
        ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed multiple texts into vectors."""
        ...

    @property
    def dimensions(self) -> int:
        """Number of dimensions in the embedding vectors."""
        ...

    @property
    def model_name(self) -> str:
        """Name of the embedding model."""
        ...


@runtime_checkable
class TextEmbedder(Protocol):
    """Turns a path or raw text into embedded chunks.

    Failures yield an empty list rather than an exception.
    """

    async def embed_text(self, source: str | os.PathLike[str]) -> list[EmbeddedChunk]: ...

    async def embed_query(self, text: str) -> list[float] | None: ...
