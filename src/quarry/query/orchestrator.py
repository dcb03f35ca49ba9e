"""QueryOrchestrator — retrieval plus optional LLM synthesis behind a circuit breaker."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING

from quarry.config import Settings
from quarry.exceptions import StorageError
from quarry.query.llm import OpenAIChatModel
from quarry.query.render import render_markdown

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from quarry.embed.protocols import TextEmbedder
    from quarry.models.contents import FileContentRecordBase
    from quarry.models.endpoints import LanguageModelEndpoint
    from quarry.query.llm import LanguageModel
    from quarry.store.contents import FileContentsRepo
    from quarry.store.endpoints import EndpointRepo

    LlmFactory = Callable[[LanguageModelEndpoint], LanguageModel]

logger = logging.getLogger(__name__)

PROMPT_FOR_INPUT = "Please enter some content or a question."
NO_DATA_FOUND = "No relevant local data was found."
LLM_UNAVAILABLE = (
    "The language model is unavailable. Save the endpoint configuration again to re-enable it."
)


def openai_llm_factory(settings: Settings) -> LlmFactory:
    """Return a factory building :class:`OpenAIChatModel` clients from an endpoint row."""

    def factory(endpoint: LanguageModelEndpoint) -> LanguageModel:
        return OpenAIChatModel(
            base_url=endpoint.url,
            api_key=endpoint.token,
            model=settings.llm_model,
            timeout=settings.llm_timeout,
            max_retries=settings.llm_max_retries,
        )

    return factory


class QueryOrchestrator:
    """Answers questions from the content table.

    :meth:`answer` never raises.  With no usable endpoint the retrieved
    chunks are rendered as Markdown; an LLM failure opens the breaker by
    writing ``state = False`` and falls back to the same rendering.  The
    breaker stays open until the credentials are saved again.
    """

    def __init__(
        self,
        contents: FileContentsRepo,
        endpoints: EndpointRepo,
        embedder: TextEmbedder,
        llm_factory: LlmFactory | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._contents = contents
        self._endpoints = endpoints
        self._embedder = embedder
        self._llm_factory = llm_factory or openai_llm_factory(self._settings)
        self._llm: LanguageModel | None = None
        self._llm_key: tuple[str, str] | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def answer(self, question: str) -> str:
        """Answer *question* from the most similar stored chunks."""
        try:
            return await self._answer(question)
        except Exception:
            logger.error("Answering failed unexpectedly", exc_info=True)
            return NO_DATA_FOUND

    async def ask_general(self, prompt: str) -> str:
        """Ask the endpoint *prompt* without local context."""
        if not prompt or not prompt.strip():
            return PROMPT_FOR_INPUT
        try:
            endpoint = await self._load_endpoint()
            if endpoint is None or not endpoint.state:
                return LLM_UNAVAILABLE
            try:
                return await self._model_for(endpoint).general(prompt.strip())
            except Exception:
                logger.warning("General query failed; disabling endpoint", exc_info=True)
                await self._open_breaker()
                return LLM_UNAVAILABLE
        except Exception:
            logger.error("General query failed unexpectedly", exc_info=True)
            return LLM_UNAVAILABLE

    async def close(self) -> None:
        """Release the cached model client."""
        model, self._llm, self._llm_key = self._llm, None, None
        await _close_model(model)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _answer(self, question: str) -> str:
        if not question or not question.strip():
            return PROMPT_FOR_INPUT
        question = question.strip()
        vector = await self._embedder.embed_query(question)
        if not vector:
            return PROMPT_FOR_INPUT

        hits = await self._retrieve(vector)
        if not hits:
            return NO_DATA_FOUND
        fallback = render_markdown(hits)

        endpoint = await self._load_endpoint()
        if endpoint is None or not endpoint.state:
            return fallback

        try:
            return await self._model_for(endpoint).complete(hits, question)
        except Exception:
            logger.warning("Language model call failed; disabling endpoint", exc_info=True)
            await self._open_breaker()
            return fallback

    async def _retrieve(self, vector: Sequence[float]) -> list[FileContentRecordBase]:
        try:
            results = await self._contents.nearest(
                vector,
                self._settings.top_k,
                metric="cosine",
                max_distance=self._settings.max_distance,
            )
        except StorageError:
            logger.warning("Nearest-neighbour search failed", exc_info=True)
            return []
        return [result.record for result in results]

    async def _load_endpoint(self) -> LanguageModelEndpoint | None:
        try:
            return await self._endpoints.get()
        except StorageError:
            logger.warning("Reading the endpoint configuration failed", exc_info=True)
            return None

    async def _open_breaker(self) -> None:
        try:
            await self._endpoints.set_state(False)
        except StorageError:
            logger.warning("Could not persist endpoint state", exc_info=True)

    def _model_for(self, endpoint: LanguageModelEndpoint) -> LanguageModel:
        key = (endpoint.url, endpoint.token)
        if self._llm is None or self._llm_key != key:
            # Superseded clients are left for garbage collection
            self._llm = self._llm_factory(endpoint)
            self._llm_key = key
        return self._llm


async def _close_model(model: object | None) -> None:
    close = getattr(model, "close", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result
