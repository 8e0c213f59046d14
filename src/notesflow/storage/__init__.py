"""Storage layer for notesflow."""

from notesflow.storage.base import Repository
from notesflow.storage.folder_repository import FolderRepository
from notesflow.storage.kv_store import (
    KeyValueStore,
    MemoryStore,
    SqliteStore,
    open_store,
)
from notesflow.storage.note_repository import NoteRepository

__all__ = [
    "Repository",
    "NoteRepository",
    "FolderRepository",
    "KeyValueStore",
    "MemoryStore",
    "SqliteStore",
    "open_store",
]
