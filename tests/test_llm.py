"""Tests for the OpenAI-compatible chat client."""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from quarry.exceptions import LlmAuthError, LlmError, LlmNetworkError
from quarry.models import FileContentRecord
from quarry.query.llm import RAG_PREAMBLE, LanguageModel, OpenAIChatModel, format_context

_REQUEST = httpx.Request("POST", "https://llm.example/v1/chat/completions")


def _completion(content: str | None):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeCompletions:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


def _model(completions: FakeCompletions) -> OpenAIChatModel:
    model = OpenAIChatModel(base_url="https://llm.example/v1", api_key="sk-test", model="deepseek-r1")
    model._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))  # type: ignore[assignment]
    return model


def test_format_context():
    rows = [FileContentRecord(file_path="a.txt", text="alpha"), FileContentRecord(file_path="b.md", text="beta")]
    assert format_context(rows) == "[source: a.txt]\nalpha\n\n[source: b.md]\nbeta"


def test_satisfies_protocol():
    model = OpenAIChatModel(base_url="https://llm.example/v1", api_key="sk-test")
    assert isinstance(model, LanguageModel)
    assert model.model_name == "deepseek-r1"


@pytest.mark.asyncio
class TestChat:
    async def test_complete_sends_context_and_question(self):
        completions = FakeCompletions(result=_completion("**Answer**"))
        model = _model(completions)
        rows = [FileContentRecord(file_path="a.txt", text="alpha fact")]

        assert await model.complete(rows, "What is alpha?") == "**Answer**"
        [call] = completions.calls
        assert call["model"] == "deepseek-r1"
        system, user = call["messages"]
        assert system["role"] == "system"
        assert system["content"].startswith(RAG_PREAMBLE)
        assert "[source: a.txt]\nalpha fact" in system["content"]
        assert user == {"role": "user", "content": "What is alpha?"}

    async def test_general(self):
        completions = FakeCompletions(result=_completion("Paris"))
        model = _model(completions)
        assert await model.general("Capital of France?") == "Paris"
        assert "general knowledge" in completions.calls[0]["messages"][0]["content"]

    async def test_empty_response(self):
        model = _model(FakeCompletions(result=_completion(None)))
        with pytest.raises(LlmError):
            await model.general("hi")


@pytest.mark.asyncio
class TestErrorMapping:
    async def test_auth_error(self):
        response = httpx.Response(401, request=_REQUEST)
        error = openai.AuthenticationError("bad key", response=response, body=None)
        model = _model(FakeCompletions(error=error))
        with pytest.raises(LlmAuthError) as info:
            await model.general("hi")
        assert info.value.__cause__ is error

    async def test_connection_error(self):
        error = openai.APIConnectionError(request=_REQUEST)
        model = _model(FakeCompletions(error=error))
        with pytest.raises(LlmNetworkError):
            await model.general("hi")

    async def test_timeout_is_network_error(self):
        error = openai.APITimeoutError(request=_REQUEST)
        model = _model(FakeCompletions(error=error))
        with pytest.raises(LlmNetworkError):
            await model.general("hi")

    async def test_other_api_error(self):
        response = httpx.Response(500, request=_REQUEST)
        error = openai.InternalServerError("boom", response=response, body=None)
        model = _model(FakeCompletions(error=error))
        with pytest.raises(LlmError) as info:
            await model.general("hi")
        assert not isinstance(info.value, (LlmAuthError, LlmNetworkError))


def test_error_hierarchy():
    assert issubclass(LlmAuthError, LlmError)
    assert issubclass(LlmNetworkError, LlmError)
