"""SQLite schema definition for the local store."""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import aiosqlite

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 2

# Each entry maps (from_version -> to_version) with a list of SQL statements.
# Migrations run sequentially in initialize() when db version < SCHEMA_VERSION.
MIGRATIONS: dict[tuple[int, int], list[str]] = {
    (1, 2): [
        # Deletes carry the remote id forward once the local record is gone
        "ALTER TABLE sync_queue ADD COLUMN remote_id TEXT",
    ],
}


async def run_migrations(conn: aiosqlite.Connection, current_version: int) -> int:
    """Apply all pending migrations from current_version to SCHEMA_VERSION.

    Returns the final schema version after all migrations.
    """
    version = current_version

    while version < SCHEMA_VERSION:
        next_version = version + 1
        for sql in MIGRATIONS.get((version, next_version), []):
            try:
                await conn.execute(sql)
            except sqlite3.OperationalError as e:
                # Column/index may already exist (partial migration or manual fix)
                message = str(e).lower()
                if "duplicate column" in message or "already exists" in message:
                    logger.debug("Migration already applied: %s", e)
                else:
                    logger.warning("Migration statement failed: %s - %s", sql[:80], e)
        version = next_version

    await conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))
    await conn.commit()

    return version


SCHEMA = """
-- Entity records (one row per business object)
CREATE TABLE IF NOT EXISTS records (
    entity_type TEXT NOT NULL,
    id TEXT NOT NULL,
    remote_id TEXT,
    synced INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL,
    fields TEXT NOT NULL DEFAULT '{}',  -- JSON payload
    PRIMARY KEY (entity_type, id)
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_records_remote
    ON records(entity_type, remote_id) WHERE remote_id IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_records_synced ON records(entity_type, synced);

-- Durable operation queue (entries removed on completion)
CREATE TABLE IF NOT EXISTS sync_queue (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,  -- create, update, delete
    entity_type TEXT NOT NULL,
    record_id TEXT NOT NULL,
    data TEXT NOT NULL DEFAULT '{}',  -- JSON payload snapshot
    status TEXT NOT NULL DEFAULT 'pending',  -- pending, failed
    retry_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    last_attempt TEXT,
    error TEXT,
    remote_id TEXT
);
CREATE INDEX IF NOT EXISTS idx_sync_queue_status ON sync_queue(status, created_at);
CREATE INDEX IF NOT EXISTS idx_sync_queue_record ON sync_queue(entity_type, record_id);

-- Pull watermarks, one per entity type
CREATE TABLE IF NOT EXISTS sync_cursors (
    entity_type TEXT PRIMARY KEY,
    cursor TEXT NOT NULL  -- ISO timestamp
);

-- Key/value sync bookkeeping (last_sync_at, ...)
CREATE TABLE IF NOT EXISTS sync_meta (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""
