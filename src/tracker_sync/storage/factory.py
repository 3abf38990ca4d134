"""Local store factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tracker_sync.storage.sqlite_store import SQLiteStore

if TYPE_CHECKING:
    from tracker_sync.config import SyncConfig


async def open_store(config: SyncConfig) -> SQLiteStore:
    """Open (and migrate) the SQLite store configured in ``config``."""
    store = SQLiteStore(config.db_path)
    await store.initialize()
    return store
