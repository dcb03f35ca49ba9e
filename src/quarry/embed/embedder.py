"""DocumentEmbedder — files and directories in, embedded chunks out."""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from typing import TYPE_CHECKING

from quarry.embed.chunking import split_text
from quarry.embed.extractors import extract_text, is_supported
from quarry.embed.types import EmbeddedChunk
from quarry.exceptions import EmbeddingError, QuarryError
from quarry.walk import iter_files

if TYPE_CHECKING:
    from quarry.embed.protocols import EmbeddingProvider

logger = logging.getLogger(__name__)


def _file_metadata(path: str) -> dict[str, object]:
    resolved = os.path.realpath(path)
    st = os.stat(resolved)
    created = getattr(st, "st_birthtime", st.st_ctime)
    return {
        "file_name": resolved,
        "created": int(created),
        "modified": int(st.st_mtime),
    }


class DocumentEmbedder:
    """Extract, split and embed documents with an :class:`EmbeddingProvider`.

    :meth:`embed_text` follows the "zero chunks on failure" convention and
    never raises for a bad file; :meth:`embed_file_strict` surfaces the
    error instead.  At most *concurrency* files are processed at once.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        *,
        chunk_size: int = 1000,
        overlap: int = 200,
        concurrency: int = 4,
    ) -> None:
        self._provider = provider
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._semaphore = asyncio.Semaphore(concurrency)

    @property
    def provider(self) -> EmbeddingProvider:
        return self._provider

    # ------------------------------------------------------------------
    # Provider calls (sync or async providers)
    # ------------------------------------------------------------------

    async def _embed(self, text: str) -> list[float]:
        result = self._provider.embed(text)
        if inspect.isawaitable(result):
            return await result
        return result

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        result = self._provider.embed_batch(texts)
        if inspect.isawaitable(result):
            return await result
        return result

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed_query(self, text: str) -> list[float] | None:
        """Embed raw *text*.  Returns ``None`` for blank input or on failure."""
        if not text or not text.strip():
            return None
        try:
            vector = await self._embed(text.strip())
        except Exception:
            logger.warning("Query embedding failed", exc_info=True)
            return None
        return list(vector) if len(vector) else None

    async def embed_text(self, source: str | os.PathLike[str]) -> list[EmbeddedChunk]:
        """Embed a file, or every supported file under a directory.

        Any failure is logged and produces an empty list.
        """
        path = os.fspath(source)
        try:
            if await asyncio.to_thread(os.path.isdir, path):
                return await self._embed_directory(path)
            return await self.embed_file_strict(path)
        except QuarryError as exc:
            logger.warning("Could not embed %s: %s", path, exc)
        except Exception:
            logger.warning("Could not embed %s", path, exc_info=True)
        return []

    async def embed_file_strict(self, path: str | os.PathLike[str]) -> list[EmbeddedChunk]:
        """Embed one file, raising on failure.

        Raises:
            IoError: the file is missing, unsupported, or unreadable.
            EmbeddingError: the provider failed or returned a mismatched batch.
        """
        path = os.fspath(path)
        async with self._semaphore:
            text = await asyncio.to_thread(extract_text, path)
            pieces = split_text(text, self._chunk_size, self._overlap)
            if not pieces:
                logger.debug("No text in %s", path)
                return []
            try:
                vectors = await self._embed_batch(pieces)
            except Exception as exc:
                msg = f"Embedding failed for {path}: {exc}"
                raise EmbeddingError(msg) from exc
            if len(vectors) != len(pieces):
                msg = f"Provider returned {len(vectors)} vectors for {len(pieces)} chunks of {path}"
                raise EmbeddingError(msg)
            metadata = await asyncio.to_thread(_file_metadata, path)

        return [
            EmbeddedChunk(text=piece, vector=list(vector), metadata=dict(metadata))
            for piece, vector in zip(pieces, vectors, strict=True)
        ]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _embed_directory(self, root: str) -> list[EmbeddedChunk]:
        paths = await asyncio.to_thread(lambda: [p for p in iter_files(root) if is_supported(p)])
        logger.debug("Embedding %d file(s) under %s", len(paths), root)
        results = await asyncio.gather(
            *(self.embed_file_strict(p) for p in paths),
            return_exceptions=True,
        )
        chunks: list[EmbeddedChunk] = []
        for p, result in zip(paths, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("Could not embed %s: %s", p, result)
                continue
            chunks.extend(result)
        return chunks
