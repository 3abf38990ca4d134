"""SQLite operation queue mixin."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from tracker_sync.core.operation import Operation, OperationStatus

if TYPE_CHECKING:
    import aiosqlite

logger = logging.getLogger(__name__)


def _row_to_operation(row: aiosqlite.Row) -> Operation:
    data: dict[str, Any] = {}
    if row["data"]:
        try:
            data = json.loads(row["data"])
        except (json.JSONDecodeError, TypeError):
            logger.warning("Corrupt data JSON in sync_queue entry %s", row["id"])
    return Operation.from_dict({**dict(row), "data": data})


class SQLiteQueueMixin:
    """Mixin: durable operation queue persistence."""

    def _ensure_conn(self) -> aiosqlite.Connection:
        raise NotImplementedError

    async def put_operation(self, operation: Operation) -> None:
        conn = self._ensure_conn()
        row = operation.to_dict()
        await conn.execute(
            """INSERT OR REPLACE INTO sync_queue
               (id, type, entity_type, record_id, data, status, retry_count,
                created_at, last_attempt, error, remote_id)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                row["id"],
                row["type"],
                row["entity_type"],
                row["record_id"],
                json.dumps(row["data"]),
                row["status"],
                row["retry_count"],
                row["created_at"],
                row["last_attempt"],
                row["error"],
                row["remote_id"],
            ),
        )
        await conn.commit()

    async def get_operation(self, operation_id: str) -> Operation | None:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT * FROM sync_queue WHERE id = ?", (operation_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_operation(row) if row else None

    async def delete_operation(self, operation_id: str) -> bool:
        conn = self._ensure_conn()
        cursor = await conn.execute("DELETE FROM sync_queue WHERE id = ?", (operation_id,))
        await conn.commit()
        return cursor.rowcount > 0

    async def list_operations(self, status: OperationStatus | None = None) -> list[Operation]:
        conn = self._ensure_conn()
        if status is None:
            sql = "SELECT * FROM sync_queue ORDER BY created_at, rowid"
            params: tuple[Any, ...] = ()
        else:
            sql = "SELECT * FROM sync_queue WHERE status = ? ORDER BY created_at, rowid"
            params = (status.value,)
        async with conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_operation(row) for row in rows]
