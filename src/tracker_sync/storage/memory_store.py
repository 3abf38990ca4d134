"""In-memory storage backend."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from tracker_sync.core.operation import Operation, OperationStatus
from tracker_sync.core.record import EntityRecord
from tracker_sync.storage.base import CursorStore, LocalStore


class InMemoryStore(LocalStore, CursorStore):
    """Dict-based storage for tests and embedding.

    Data is lost when the process exits.
    """

    def __init__(self) -> None:
        self._records: dict[str, dict[str, EntityRecord]] = defaultdict(dict)
        self._operations: dict[str, Operation] = {}
        self._cursors: dict[str, datetime] = {}
        self._last_sync: datetime | None = None

    # ========== Records ==========

    async def get(self, entity_type: str, record_id: str) -> EntityRecord | None:
        return self._records[entity_type].get(record_id)

    async def get_all(self, entity_type: str) -> list[EntityRecord]:
        return list(self._records[entity_type].values())

    async def get_by_remote_id(self, entity_type: str, remote_id: str) -> EntityRecord | None:
        for record in self._records[entity_type].values():
            if record.remote_id == remote_id:
                return record
        return None

    async def put(self, record: EntityRecord) -> None:
        if record.remote_id is not None:
            existing = await self.get_by_remote_id(record.entity_type, record.remote_id)
            if existing is not None and existing.id != record.id:
                raise ValueError(
                    f"Remote id {record.remote_id} already belongs to "
                    f"{record.entity_type}/{existing.id}"
                )
        self._records[record.entity_type][record.id] = record

    async def delete(self, entity_type: str, record_id: str) -> bool:
        return self._records[entity_type].pop(record_id, None) is not None

    # ========== Operation queue ==========

    async def put_operation(self, operation: Operation) -> None:
        self._operations[operation.id] = operation

    async def get_operation(self, operation_id: str) -> Operation | None:
        return self._operations.get(operation_id)

    async def delete_operation(self, operation_id: str) -> bool:
        return self._operations.pop(operation_id, None) is not None

    async def list_operations(self, status: OperationStatus | None = None) -> list[Operation]:
        ops = [op for op in self._operations.values() if status is None or op.status == status]
        return sorted(ops, key=lambda op: op.created_at)

    # ========== Cursors ==========

    async def get_cursor(self, entity_type: str) -> datetime | None:
        return self._cursors.get(entity_type)

    async def set_cursor(self, entity_type: str, cursor: datetime) -> None:
        self._cursors[entity_type] = cursor

    async def get_last_sync(self) -> datetime | None:
        return self._last_sync

    async def set_last_sync(self, at: datetime) -> None:
        self._last_sync = at
