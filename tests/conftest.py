"""Common test fixtures for notesflow."""

import pytest

from notesflow.config import config
from notesflow.observability import metrics
from notesflow.services.notes_service import NotesService
from notesflow.storage.folder_repository import FolderRepository
from notesflow.storage.kv_store import MemoryStore, SqliteStore
from notesflow.storage.note_repository import NoteRepository
from tests.fakes import FailingStore, FakeClock, FakeScheduler, RecordingNotifier


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Each test starts with empty operation metrics."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def test_config(tmp_path, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    monkeypatch.setattr(config, "base_dir", tmp_path)
    monkeypatch.setattr(config, "database_path", tmp_path / "db" / "test_notesflow.db")
    monkeypatch.setattr(config, "in_memory_db", False)
    monkeypatch.setattr(config, "autosave_delay_ms", 300)
    monkeypatch.setattr(config, "default_sort_by", "updatedAt")
    monkeypatch.setattr(config, "default_sort_order", "desc")
    yield config


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def sqlite_store(test_config):
    """A durable store on a temporary SQLite file."""
    store = SqliteStore(db_url=test_config.get_db_url())
    yield store
    store.close()


@pytest.fixture
def note_repository(test_config, memory_store, clock):
    """Create a test note repository on an in-memory store."""
    return NoteRepository(memory_store, clock=clock)


@pytest.fixture
def folder_repository(test_config, memory_store):
    return FolderRepository(memory_store)


@pytest.fixture
def notes_service(test_config, memory_store, clock, scheduler, notifier):
    """Create a test NotesService wired to fakes."""
    return NotesService(
        store=memory_store,
        repository=NoteRepository(memory_store, clock=clock),
        notifier=notifier,
        scheduler=scheduler,
    )
