"""OpenAIEmbedding — remote embedding provider for OpenAI-compatible servers."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI, OpenAIError

from quarry.exceptions import ConfigError, EmbeddingError

if TYPE_CHECKING:
    from quarry.config import Settings

logger = logging.getLogger(__name__)

# Native output length of the hosted models; self-hosted models need dimensions=.
_NATIVE_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

# Only the text-embedding-3 family accepts a shortened output length.
_SHORTENABLE = frozenset({"text-embedding-3-small", "text-embedding-3-large"})


class OpenAIEmbedding:
    """Embeds text through an ``/embeddings`` endpoint.

    Points at api.openai.com by default; *base_url* selects a self-hosted
    server such as Ollama or vLLM, in which case *api_key* may be any
    placeholder the server accepts.  Requests carry at most *batch_size*
    texts.  Every returned vector is checked against :attr:`dimensions`.
    Client errors surface as :class:`EmbeddingError`.
    """

    def __init__(
        self,
        *,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        max_retries: int = 2,
        timeout: float = 60.0,
        batch_size: int = 256,
    ) -> None:
        key = api_key or os.environ.get("OPENAI_API_KEY")
        if not key:
            msg = "The openai embedding provider needs an API key (api_key= or OPENAI_API_KEY)"
            raise ConfigError(msg)
        if dimensions is None and model not in _NATIVE_DIMENSIONS:
            msg = f"Embedding dimensions for model {model!r} are unknown; pass dimensions="
            raise ConfigError(msg)
        if batch_size <= 0:
            msg = f"batch_size must be positive, got {batch_size}"
            raise ConfigError(msg)

        self._model = model
        self._dimensions = dimensions if dimensions is not None else _NATIVE_DIMENSIONS[model]
        self._send_dimensions = (
            model in _SHORTENABLE and self._dimensions != _NATIVE_DIMENSIONS[model]
        )
        self._batch_size = batch_size
        self._client = AsyncOpenAI(
            api_key=key,
            base_url=base_url or None,
            max_retries=max_retries,
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAIEmbedding:
        """Build the provider described by ``settings.embedding_*``."""
        return cls(
            model=settings.embedding_model,
            dimensions=settings.embedding_dim,
            api_key=settings.embedding_api_key or None,
            base_url=settings.embedding_base_url or None,
        )

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model

    async def embed(self, text: str) -> list[float]:
        [vector] = await self._request([text])
        return vector

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            vectors.extend(await self._request(texts[start : start + self._batch_size]))
        return vectors

    async def close(self) -> None:
        await self._client.close()

    async def _request(self, texts: list[str]) -> list[list[float]]:
        params: dict[str, Any] = {"input": texts, "model": self._model}
        if self._send_dimensions:
            params["dimensions"] = self._dimensions
        try:
            response = await self._client.embeddings.create(**params)
        except OpenAIError as exc:
            raise EmbeddingError(f"Embedding request to {self._model!r} failed: {exc}") from exc

        items = sorted(response.data, key=lambda item: item.index)
        if len(items) != len(texts):
            msg = f"Requested {len(texts)} embeddings, received {len(items)}"
            raise EmbeddingError(msg)
        vectors = [list(item.embedding) for item in items]
        for vector in vectors:
            if len(vector) != self._dimensions:
                msg = f"{self._model!r} returned {len(vector)} dimensions, expected {self._dimensions}"
                raise EmbeddingError(msg)
        logger.debug("Embedded %d text(s) with %s", len(texts), self._model)
        return vectors
