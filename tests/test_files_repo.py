"""Tests for FilesRepo — the file catalog."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from quarry.exceptions import StorageError
from quarry.models import PROGRESS_COMPLETE, PROGRESS_PENDING
from quarry.store.files import describe_path
from quarry.store.filters import eq

if TYPE_CHECKING:
    from pathlib import Path

    from quarry.store import FilesRepo


class TestDescribePath:
    def test_regular_file(self, tmp_path: Path):
        f = tmp_path / "notes.md"
        f.write_text("x")
        assert describe_path(str(f)) == ("notes.md", "md")

    def test_directory_has_no_type(self, tmp_path: Path):
        d = tmp_path / "docs.v2"
        d.mkdir()
        assert describe_path(str(d)) == ("docs.v2", None)

    def test_extensionless_file(self, tmp_path: Path):
        f = tmp_path / "README"
        f.write_text("x")
        assert describe_path(str(f)) == ("README", None)

    def test_missing_path(self):
        assert describe_path("a.txt") == ("a.txt", None)


@pytest.mark.asyncio
class TestAddPaths:
    async def test_new_rows_are_pending(self, files_repo: FilesRepo, tmp_path: Path):
        f = tmp_path / "a.txt"
        f.write_text("hello")
        rows = await files_repo.add_paths([str(f), tmp_path])

        assert len(rows) == 2
        by_path = {r.file_path: r for r in await files_repo.query_all()}
        file_row = by_path[str(f)]
        assert file_row.name == "a.txt"
        assert file_row.file_type == "txt"
        assert file_row.progress == PROGRESS_PENDING
        assert file_row.sync_time == 0
        assert file_row.add_time > 0
        assert by_path[str(tmp_path)].file_type is None

    async def test_existing_paths_skipped(self, files_repo: FilesRepo):
        await files_repo.add_paths(["a.txt"])
        rows = await files_repo.add_paths(["a.txt", "b.txt"])
        assert [r.file_path for r in rows] == ["b.txt"]
        assert await files_repo.count() == 2

    async def test_duplicates_in_one_call_collapse(self, files_repo: FilesRepo):
        rows = await files_repo.add_paths(["a.txt", "a.txt"])
        assert len(rows) == 1
        assert await files_repo.count() == 1

    async def test_empty_input(self, files_repo: FilesRepo):
        assert await files_repo.add_paths([]) == []


@pytest.mark.asyncio
class TestProgress:
    async def test_query_pending(self, files_repo: FilesRepo):
        await files_repo.add_paths(["a.txt", "b.txt", "c.txt"])
        await files_repo.mark_synced("b.txt")
        pending = await files_repo.query_pending(10)
        assert sorted(r.file_path for r in pending) == ["a.txt", "c.txt"]

    async def test_query_pending_limit(self, files_repo: FilesRepo):
        await files_repo.add_paths([f"{i}.txt" for i in range(5)])
        assert len(await files_repo.query_pending(2)) == 2

    async def test_query_pending_exclude(self, files_repo: FilesRepo):
        await files_repo.add_paths(["a.txt", "b.txt"])
        pending = await files_repo.query_pending(10, exclude={"a.txt"})
        assert [r.file_path for r in pending] == ["b.txt"]

    async def test_mark_synced_sets_sync_time(self, files_repo: FilesRepo):
        await files_repo.add_paths(["a.txt"])
        assert await files_repo.mark_synced("a.txt") == 1
        row = await files_repo.get("a.txt")
        assert row is not None
        assert row.progress == PROGRESS_COMPLETE
        assert row.sync_time > 0
        assert row.is_complete

    async def test_mark_synced_unknown_path(self, files_repo: FilesRepo):
        assert await files_repo.mark_synced("nope.txt") == 0

    async def test_reset_progress(self, files_repo: FilesRepo):
        await files_repo.add_paths(["a.txt"])
        await files_repo.mark_synced("a.txt")
        await files_repo.reset_progress("a.txt")
        row = await files_repo.get("a.txt")
        assert row is not None
        assert row.progress == PROGRESS_PENDING
        assert row.sync_time == 0


@pytest.mark.asyncio
class TestDelete:
    async def test_delete_by_path(self, files_repo: FilesRepo):
        await files_repo.add_paths(["a.txt", "b.txt"])
        assert await files_repo.delete_by_path("a.txt") == 1
        assert await files_repo.get("a.txt") is None
        assert await files_repo.count() == 1

    async def test_delete_where(self, files_repo: FilesRepo):
        await files_repo.add_paths(["a.txt", "b.txt"])
        await files_repo.mark_synced("a.txt")
        assert await files_repo.delete_where(eq("progress", PROGRESS_COMPLETE)) == 1


@pytest.mark.asyncio
class TestGeneric:
    async def test_insert_empty_batch(self, files_repo: FilesRepo):
        assert await files_repo.insert([]) == 0

    async def test_update_unknown_column(self, files_repo: FilesRepo):
        with pytest.raises(StorageError):
            await files_repo.update_where(eq("file_path", "a.txt"), bogus=1)

    async def test_scan_limit(self, files_repo: FilesRepo):
        await files_repo.add_paths([f"{i}.txt" for i in range(4)])
        assert len(await files_repo.scan(3)) == 3
        assert len(await files_repo.scan()) == 4

    async def test_compact(self, files_repo: FilesRepo):
        await files_repo.add_paths(["a.txt"])
        await files_repo.compact()
        assert await files_repo.count() == 1
