"""Query path — retrieval, rendering, and the language-model collaborator."""

from quarry.query.llm import LanguageModel, OpenAIChatModel, format_context
from quarry.query.orchestrator import (
    LLM_UNAVAILABLE,
    NO_DATA_FOUND,
    PROMPT_FOR_INPUT,
    QueryOrchestrator,
    openai_llm_factory,
)
from quarry.query.render import render_markdown

__all__ = [
    "LLM_UNAVAILABLE",
    "NO_DATA_FOUND",
    "PROMPT_FOR_INPUT",
    "LanguageModel",
    "OpenAIChatModel",
    "QueryOrchestrator",
    "format_context",
    "openai_llm_factory",
    "render_markdown",
]
