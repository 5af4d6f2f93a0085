"""Shared test fixtures."""

import pytest

from src.blobs import LocalBlobStore
from src.memories.service import MemoryService
from src.memories.store import MemoryStore


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("src.config.settings.turso_database_url", "")


@pytest.fixture
def blobs(tmp_path) -> LocalBlobStore:
    """A LocalBlobStore rooted in a temporary directory."""
    return LocalBlobStore(root=tmp_path / "blobs", base_url="http://test.local")


@pytest.fixture
def memory_store(tmp_path, _no_turso) -> MemoryStore:
    """A MemoryStore backed by a temp database."""
    return MemoryStore(db_path=tmp_path / "test.db")


@pytest.fixture
def service(memory_store: MemoryStore, blobs: LocalBlobStore) -> MemoryService:
    return MemoryService(store=memory_store, blobs=blobs)
