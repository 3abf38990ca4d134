"""Local persistence backends."""

from tracker_sync.storage.base import CursorStore, LocalStore
from tracker_sync.storage.memory_store import InMemoryStore
from tracker_sync.storage.sqlite_store import SQLiteStore

__all__ = ["CursorStore", "InMemoryStore", "LocalStore", "SQLiteStore"]
