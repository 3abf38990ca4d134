"""SQLite record operations mixin."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

from tracker_sync.core.record import EntityRecord
from tracker_sync.utils.timeutils import parse_iso, to_iso, utcnow

if TYPE_CHECKING:
    import aiosqlite

logger = logging.getLogger(__name__)


def _row_to_record(row: aiosqlite.Row) -> EntityRecord:
    fields: dict[str, Any] = {}
    if row["fields"]:
        try:
            fields = json.loads(row["fields"])
        except (json.JSONDecodeError, TypeError):
            logger.warning("Corrupt fields JSON for %s/%s", row["entity_type"], row["id"])
    return EntityRecord(
        id=row["id"],
        entity_type=row["entity_type"],
        fields=fields,
        remote_id=row["remote_id"],
        synced=bool(row["synced"]),
        updated_at=parse_iso(row["updated_at"]) or utcnow(),
    )


class SQLiteRecordMixin:
    """Mixin: entity record CRUD."""

    def _ensure_conn(self) -> aiosqlite.Connection:
        raise NotImplementedError

    async def get(self, entity_type: str, record_id: str) -> EntityRecord | None:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT * FROM records WHERE entity_type = ? AND id = ?",
            (entity_type, record_id),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def get_all(self, entity_type: str) -> list[EntityRecord]:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT * FROM records WHERE entity_type = ? ORDER BY rowid",
            (entity_type,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def get_by_remote_id(self, entity_type: str, remote_id: str) -> EntityRecord | None:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT * FROM records WHERE entity_type = ? AND remote_id = ?",
            (entity_type, remote_id),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def put(self, record: EntityRecord) -> None:
        conn = self._ensure_conn()
        try:
            await conn.execute(
                """INSERT INTO records (entity_type, id, remote_id, synced, updated_at, fields)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(entity_type, id) DO UPDATE SET
                       remote_id = excluded.remote_id,
                       synced = excluded.synced,
                       updated_at = excluded.updated_at,
                       fields = excluded.fields""",
                (
                    record.entity_type,
                    record.id,
                    record.remote_id,
                    1 if record.synced else 0,
                    to_iso(record.updated_at),
                    json.dumps(record.fields),
                ),
            )
        except sqlite3.IntegrityError as e:
            await conn.rollback()
            raise ValueError(
                f"Remote id {record.remote_id} already belongs to another {record.entity_type}"
            ) from e
        await conn.commit()

    async def delete(self, entity_type: str, record_id: str) -> bool:
        conn = self._ensure_conn()
        cursor = await conn.execute(
            "DELETE FROM records WHERE entity_type = ? AND id = ?",
            (entity_type, record_id),
        )
        await conn.commit()
        return cursor.rowcount > 0
