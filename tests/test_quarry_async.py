"""Tests for the QuarryAsync facade."""

from __future__ import annotations

import asyncio
import hashlib
import math
from typing import TYPE_CHECKING

import pytest

from quarry import QuarryAsync
from quarry._quarry_async import EndpointConfig
from quarry.exceptions import LlmAuthError, QuarryError, StorageError
from quarry.models import PROGRESS_COMPLETE, PROGRESS_PENDING
from quarry.query.orchestrator import NO_DATA_FOUND

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from quarry.config import Settings

_FAKE_DIM = 32


class FakeProvider:
    """Deterministic embedding provider for testing.

    Components span [-1, 1] so unrelated texts land near cosine distance 1.
    """

    def embed(self, text: str) -> list[float]:
        return self._hash_to_vector(text)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self._hash_to_vector(t) for t in texts]

    @property
    def dimensions(self) -> int:
        return _FAKE_DIM

    @property
    def model_name(self) -> str:
        return "fake-test-model"

    @staticmethod
    def _hash_to_vector(text: str) -> list[float]:
        h = hashlib.sha256(text.encode()).digest()
        raw = [b / 127.5 - 1.0 for b in h]
        norm = math.sqrt(sum(x * x for x in raw))
        return [x / norm for x in raw]


class FakeLLM:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.questions: list[str] = []

    async def complete(self, context, question: str) -> str:
        self.questions.append(question)
        if self.error is not None:
            raise self.error
        return f"answer from {len(context)} chunk(s)"

    async def general(self, prompt: str) -> str:
        if self.error is not None:
            raise self.error
        return "general answer"


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    ws = tmp_path / "workspace"
    ws.mkdir()
    (ws / "a.txt").write_text("Quarry stores vectors in SQLite.")
    (ws / "b.md").write_text("The maintenance loop compacts tables hourly.")
    (ws / "empty.txt").write_text("   ")
    return ws


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
async def quarry(settings: Settings, llm: FakeLLM) -> AsyncIterator[QuarryAsync]:
    q = QuarryAsync(settings, embedding_provider=FakeProvider(), llm_factory=lambda endpoint: llm)
    await q.open()
    yield q
    await q.close()


@pytest.mark.asyncio
class TestLifecycle:
    async def test_context_manager(self, settings: Settings):
        async with QuarryAsync(settings, embedding_provider=FakeProvider()) as q:
            assert q.is_open
            assert settings.db_path.exists()
        assert not q.is_open

    async def test_commands_require_open(self, settings: Settings):
        q = QuarryAsync(settings, embedding_provider=FakeProvider())
        with pytest.raises(QuarryError):
            await q.list_catalog()

    async def test_close_twice(self, settings: Settings):
        q = QuarryAsync(settings, embedding_provider=FakeProvider())
        await q.open()
        await q.close()
        await q.close()

    async def test_index_reloaded_on_open(self, settings: Settings, workspace: Path):
        async with QuarryAsync(settings, embedding_provider=FakeProvider()) as q:
            await q.submit_paths([workspace / "a.txt"])
            await q.run_ingestion_cycle()

        async with QuarryAsync(settings, embedding_provider=FakeProvider()) as q:
            assert len(q.contents.index) == 1
            answer = await q.answer("Quarry stores vectors in SQLite.")
            assert "- Quarry stores vectors in SQLite." in answer


@pytest.mark.asyncio
class TestCatalog:
    async def test_submit_and_list(self, quarry: QuarryAsync, workspace: Path):
        rows = await quarry.submit_paths([workspace / "a.txt", str(workspace / "b.md")])
        assert len(rows) == 2
        catalog = await quarry.list_catalog()
        assert {r.name for r in catalog} == {"a.txt", "b.md"}
        assert {r.file_type for r in catalog} == {"txt", "md"}
        assert all(r.progress == PROGRESS_PENDING for r in catalog)

    async def test_ingestion_cycle(self, quarry: QuarryAsync, workspace: Path):
        await quarry.submit_paths([workspace / "a.txt", workspace / "b.md", workspace / "empty.txt"])
        report = await quarry.run_ingestion_cycle()

        assert report.completed == 2
        assert report.empty == 1
        progress = {r.name: r.progress for r in await quarry.list_catalog()}
        assert progress == {"a.txt": PROGRESS_COMPLETE, "b.md": PROGRESS_COMPLETE, "empty.txt": PROGRESS_PENDING}

    async def test_directory_submission(self, quarry: QuarryAsync, workspace: Path):
        await quarry.submit_paths([workspace])
        report = await quarry.run_ingestion_cycle()
        assert report.completed == 1
        [row] = await quarry.list_catalog()
        assert row.file_type is None
        assert await quarry.contents.count() == 2

    async def test_delete_cascades(self, quarry: QuarryAsync, workspace: Path):
        a = str(workspace / "a.txt")
        await quarry.submit_paths([a, workspace / "b.md"])
        await quarry.run_ingestion_cycle()

        await quarry.delete_path(a)

        assert [r.name for r in await quarry.list_catalog()] == ["b.md"]
        assert await quarry.contents.query_by_path(a) == []
        assert await quarry.contents.count() == 1

    async def test_delete_attempts_both_and_reraises(self, quarry: QuarryAsync, workspace: Path, monkeypatch):
        a = str(workspace / "a.txt")
        await quarry.submit_paths([a])
        await quarry.run_ingestion_cycle()

        async def broken(path):
            raise StorageError("locked")

        monkeypatch.setattr(quarry.contents, "delete_by_path", broken)
        with pytest.raises(StorageError, match="locked"):
            await quarry.delete_path(a)
        assert await quarry.list_catalog() == []

    async def test_reindex_path(self, quarry: QuarryAsync, workspace: Path):
        a = workspace / "a.txt"
        await quarry.submit_paths([a])
        await quarry.run_ingestion_cycle()

        a.write_text("Completely new content.")
        assert await quarry.reindex_path(a) is True
        assert await quarry.contents.count() == 0
        [row] = await quarry.list_catalog()
        assert row.progress == PROGRESS_PENDING

        await quarry.run_ingestion_cycle()
        [chunk] = await quarry.contents.scan()
        assert chunk.text == "Completely new content."

    async def test_reindex_unknown(self, quarry: QuarryAsync):
        assert await quarry.reindex_path("nope.txt") is False


@pytest.mark.asyncio
class TestAnswers:
    async def test_markdown_without_endpoint(self, quarry: QuarryAsync, workspace: Path):
        a = str(workspace / "a.txt")
        await quarry.submit_paths([a])
        await quarry.run_ingestion_cycle()

        answer = await quarry.answer("Quarry stores vectors in SQLite.")
        assert answer.startswith(f"## {a}\n\n- Quarry stores vectors in SQLite.")

    async def test_nothing_indexed(self, quarry: QuarryAsync):
        assert await quarry.answer("anything?") == NO_DATA_FOUND

    async def test_llm_answer_and_breaker(self, quarry: QuarryAsync, workspace: Path, llm: FakeLLM):
        await quarry.submit_paths([workspace / "a.txt"])
        await quarry.run_ingestion_cycle()
        await quarry.save_endpoint_config("https://llm.example/v1", "tok")

        assert await quarry.answer("Quarry stores vectors in SQLite.") == "answer from 1 chunk(s)"

        llm.error = LlmAuthError("401")
        fallback = await quarry.answer("Quarry stores vectors in SQLite.")
        assert fallback.startswith("## ")
        endpoint = await quarry.endpoints.get()
        assert endpoint is not None
        assert endpoint.state is False

    async def test_ask_general(self, quarry: QuarryAsync):
        await quarry.save_endpoint_config("https://llm.example/v1", "tok")
        assert await quarry.ask_general("hello") == "general answer"


@pytest.mark.asyncio
class TestEndpointConfig:
    async def test_unset(self, quarry: QuarryAsync):
        assert await quarry.get_endpoint_config() == EndpointConfig(url="", token="")

    async def test_round_trip(self, quarry: QuarryAsync):
        await quarry.save_endpoint_config("https://llm.example/v1", "tok")
        assert await quarry.get_endpoint_config() == EndpointConfig("https://llm.example/v1", "tok")


@pytest.mark.asyncio
class TestBackgroundWork:
    async def test_background_ingestion(self, quarry: QuarryAsync, workspace: Path):
        await quarry.submit_paths([workspace / "a.txt"])
        await quarry.start_background()
        try:
            for _ in range(500):
                rows = await quarry.list_catalog()
                if rows[0].is_complete:
                    break
                await asyncio.sleep(0.01)
            assert rows[0].is_complete
        finally:
            await quarry.stop_background()

    async def test_compact(self, quarry: QuarryAsync, workspace: Path):
        await quarry.submit_paths([workspace / "a.txt"])
        await quarry.run_ingestion_cycle()
        assert await quarry.compact() == 2
        assert await quarry.contents.count() == 1

    async def test_compact_while_maintenance_runs(self, quarry: QuarryAsync, workspace: Path):
        await quarry.submit_paths([workspace / "a.txt"])
        await quarry.run_ingestion_cycle()
        await quarry.start_background()
        try:
            results = await asyncio.gather(quarry.compact(), quarry.compact())
        finally:
            await quarry.stop_background()
        assert all(isinstance(n, int) for n in results)
        assert len(quarry.contents.index) == 1
