"""Shared fixtures for volindex tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest

from volindex.config import Config
from volindex.data.db import Database
from volindex.data.derived_cache import DerivedCache
from volindex.data.finalizer import Finalizer
from volindex.data.reconciler import EligibilityRules, Reconciler
from volindex.data.repositories import RecordRepository
from volindex.data.session_store import SessionStore
from volindex.models.errors import VolumeAccessError
from volindex.models.volumes import EntryKind, ListingPage, VolumeEntry
from volindex.services.indexing_service import IndexingService


class MemoryLister:
    """Lister over fixed in-memory entry lists, one per volume."""

    def __init__(self, volumes: dict[str, list[VolumeEntry]]) -> None:
        self.volumes = volumes
        self.calls: list[tuple[str, int, int]] = []
        self.fail_next: Exception | None = None

    def has_volume(self, volume_id: str) -> bool:
        return volume_id in self.volumes

    async def list(self, volume_id: str, cursor: int, limit: int) -> ListingPage:
        self.calls.append((volume_id, cursor, limit))
        if self.fail_next is not None:
            exc, self.fail_next = self.fail_next, None
            raise exc
        if volume_id not in self.volumes:
            raise VolumeAccessError(f"Unknown volume {volume_id!r}")
        entries = self.volumes[volume_id]
        page = entries[cursor : cursor + limit]
        next_cursor = cursor + len(page) if cursor + limit < len(entries) else None
        return ListingPage(entries=page, next_cursor=next_cursor)


def file_entry(path: str, size: int = 10, mtime: int = 1_700_000_000) -> VolumeEntry:
    return VolumeEntry(path=path, kind=EntryKind.FILE, size=size, mtime=mtime)


def folder_entry(path: str) -> VolumeEntry:
    return VolumeEntry(path=path, kind=EntryKind.FOLDER)


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Config with small pages and a temporary data directory."""
    return Config(data_dir=tmp_path / "data", batch_size=2)


@pytest.fixture
async def test_db(tmp_path: Path) -> AsyncGenerator[Database]:
    """A fresh on-disk test database."""
    db = Database(tmp_path / "test.db")
    await db.__aenter__()
    yield db  # type: ignore[misc]
    await db.__aexit__(None, None, None)


@pytest.fixture
async def in_memory_db() -> AsyncGenerator[Database]:
    """SQLite in-memory database for fast unit/integration tests."""
    db = Database(Path(":memory:"))
    await db.__aenter__()
    yield db  # type: ignore[misc]
    await db.__aexit__(None, None, None)


@pytest.fixture
def records(in_memory_db: Database) -> RecordRepository:
    return RecordRepository(in_memory_db)


@pytest.fixture
def store(in_memory_db: Database) -> SessionStore:
    return SessionStore(in_memory_db)


@pytest.fixture
def derived_cache(in_memory_db: Database) -> DerivedCache:
    return DerivedCache(in_memory_db)


@pytest.fixture
def make_service(
    in_memory_db: Database,
    records: RecordRepository,
    store: SessionStore,
    derived_cache: DerivedCache,
    test_config: Config,
) -> Callable[[MemoryLister], IndexingService]:
    """Build an IndexingService over the in-memory database and a given lister."""

    def _make(lister: MemoryLister) -> IndexingService:
        return IndexingService(
            store=store,
            lister=lister,
            repository=records,
            reconciler=Reconciler(
                records, EligibilityRules.from_config(test_config), derived_cache
            ),
            finalizer=Finalizer(records, derived_cache),
            config=test_config,
        )

    return _make
