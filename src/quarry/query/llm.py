"""Language-model collaborator — protocol and OpenAI-compatible chat client."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import openai
from openai import AsyncOpenAI

from quarry.exceptions import LlmAuthError, LlmError, LlmNetworkError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from quarry.models.contents import FileContentRecordBase

logger = logging.getLogger(__name__)

RAG_PREAMBLE = """\
You are a retrieval-augmented question answering assistant. Answer the \
user's question using only the document excerpts supplied below.

Output:
1. An accurate, complete answer grounded in the excerpts. Do not invent facts \
that the excerpts do not support.
2. Cite the source path of the excerpts you relied on when applicable.
3. Format the answer as Markdown.

Keep the answer concise and relevant to the question. If the excerpts do \
not contain the answer, say so.
"""

GENERAL_PREAMBLE = """\
You are an assistant that answers from local knowledge and general knowledge. \
No local content matched this request: tell the user politely that nothing \
relevant was found locally, then answer from general knowledge and keep the \
answer helpful and relevant. Format the answer as Markdown.
"""


@runtime_checkable
class LanguageModel(Protocol):
    """A remote chat model.

    Implementations raise :class:`LlmError` subclasses on failure.
    """

    async def complete(self, context: Sequence[FileContentRecordBase], question: str) -> str:
        """Answer *question* from *context* chunks."""
        ...

    async def general(self, prompt: str) -> str:
        """Answer *prompt* without local context."""
        ...


def format_context(context: Sequence[FileContentRecordBase]) -> str:
    """Render chunks as ``[source: path]`` blocks separated by blank lines."""
    return "\n\n".join(f"[source: {chunk.file_path}]\n{chunk.text}" for chunk in context)


class OpenAIChatModel:
    """:class:`LanguageModel` over an OpenAI-compatible chat completions API.

    *base_url* and *api_key* come from the stored endpoint configuration,
    so any compatible server (DashScope, Ollama, vLLM, ...) works.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        model: str = "deepseek-r1",
        timeout: float = 60.0,
        max_retries: int = 2,
    ) -> None:
        self._model = model
        self._client = AsyncOpenAI(
            base_url=base_url or None,
            api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
        )

    @property
    def model_name(self) -> str:
        return self._model

    async def complete(self, context: Sequence[FileContentRecordBase], question: str) -> str:
        system = f"{RAG_PREAMBLE}\n### Local knowledge\n\n{format_context(context)}"
        return await self._chat(system, question)

    async def general(self, prompt: str) -> str:
        return await self._chat(GENERAL_PREAMBLE, prompt)

    async def close(self) -> None:
        await self._client.close()

    async def _chat(self, system: str, user: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise LlmAuthError(f"Language model rejected credentials: {exc}") from exc
        except openai.APIConnectionError as exc:
            raise LlmNetworkError(f"Language model unreachable: {exc}") from exc
        except openai.OpenAIError as exc:
            raise LlmError(f"Language model request failed: {exc}") from exc

        if not response.choices or not response.choices[0].message.content:
            msg = "Language model returned an empty response"
            raise LlmError(msg)
        return response.choices[0].message.content
