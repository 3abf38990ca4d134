"""SQLite mixin for pull cursors and sync bookkeeping."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from tracker_sync.utils.timeutils import parse_iso, to_iso

if TYPE_CHECKING:
    import aiosqlite

logger = logging.getLogger(__name__)

_LAST_SYNC_KEY = "last_sync_at"


class SQLiteCursorMixin:
    """Mixin: persist and retrieve per-entity-type pull watermarks."""

    def _ensure_conn(self) -> aiosqlite.Connection:
        raise NotImplementedError

    async def get_cursor(self, entity_type: str) -> datetime | None:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT cursor FROM sync_cursors WHERE entity_type = ?", (entity_type,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        value = parse_iso(row["cursor"])
        if value is None:
            logger.warning("Corrupt cursor for %s: %r", entity_type, row["cursor"])
        return value

    async def set_cursor(self, entity_type: str, cursor: datetime) -> None:
        conn = self._ensure_conn()
        await conn.execute(
            "INSERT OR REPLACE INTO sync_cursors (entity_type, cursor) VALUES (?, ?)",
            (entity_type, to_iso(cursor)),
        )
        await conn.commit()

    async def get_last_sync(self) -> datetime | None:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT value FROM sync_meta WHERE key = ?", (_LAST_SYNC_KEY,)
        ) as cursor:
            row = await cursor.fetchone()
        return parse_iso(row["value"]) if row else None

    async def set_last_sync(self, at: datetime) -> None:
        conn = self._ensure_conn()
        await conn.execute(
            "INSERT OR REPLACE INTO sync_meta (key, value) VALUES (?, ?)",
            (_LAST_SYNC_KEY, to_iso(at)),
        )
        await conn.commit()
