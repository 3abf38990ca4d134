"""SQLite storage backend for the local store."""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

from tracker_sync.storage.base import CursorStore, LocalStore
from tracker_sync.storage.sqlite_cursors import SQLiteCursorMixin
from tracker_sync.storage.sqlite_queue import SQLiteQueueMixin
from tracker_sync.storage.sqlite_records import SQLiteRecordMixin
from tracker_sync.storage.sqlite_schema import SCHEMA, SCHEMA_VERSION, run_migrations

logger = logging.getLogger(__name__)


class SQLiteStore(
    SQLiteRecordMixin,
    SQLiteQueueMixin,
    SQLiteCursorMixin,
    LocalStore,
    CursorStore,
):
    """SQLite-based local store.

    Every write commits before returning so queue progress and record
    updates survive a crash mid-cycle.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path).resolve()
        self._conn: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        """Initialize database connection and schema.

        Existing databases run pending migrations first, then the full
        schema is applied (CREATE ... IF NOT EXISTS is idempotent).
        """
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA synchronous=NORMAL")

        await self._conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)"
        )
        await self._conn.commit()

        async with self._conn.execute("SELECT version FROM schema_version") as cursor:
            row = await cursor.fetchone()

        if row is not None and row["version"] < SCHEMA_VERSION:
            await run_migrations(self._conn, row["version"])

        await self._conn.executescript(SCHEMA)

        # Stamp version for brand-new databases
        if row is None:
            await self._conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            await self._conn.commit()

        logger.debug("Opened local store at %s", self._db_path)

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _ensure_conn(self) -> aiosqlite.Connection:
        """Ensure the connection is available."""
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn
