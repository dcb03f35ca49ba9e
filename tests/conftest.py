"""Shared fixtures for Quarry tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from quarry.config import Settings
from quarry.models import FileContentRecord, FileRecord, LanguageModelEndpoint
from quarry.store import Database, EndpointRepo, FileContentsRepo, FilesRepo

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

TEST_DIM = 32


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Small, fast settings rooted in a temporary data directory."""
    return Settings(
        data_dir=tmp_path / "data",
        embedding_dim=TEST_DIM,
        chunk_size=200,
        chunk_overlap=40,
        idle_backoff=0.01,
        empty_retry_interval=0.0,
    )


@pytest.fixture
async def db(settings: Settings) -> AsyncIterator[Database]:
    """Opened SQLite database with all Quarry tables."""
    database = Database(settings.db_url, data_dir=settings.data_dir)
    await database.open([FileRecord, FileContentRecord, LanguageModelEndpoint])
    yield database
    await database.close()


@pytest.fixture
def files_repo(db: Database) -> FilesRepo:
    return FilesRepo(db)


@pytest.fixture
def contents_repo(db: Database) -> FileContentsRepo:
    return FileContentsRepo(db, dimension=TEST_DIM)


@pytest.fixture
def endpoint_repo(db: Database) -> EndpointRepo:
    return EndpointRepo(db)
