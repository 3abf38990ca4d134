"""Local mutation API: write the store and queue the matching operation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tracker_sync.core.operation import Operation, OperationType
from tracker_sync.core.record import EntityRecord
from tracker_sync.sync.queue import OperationQueue
from tracker_sync.utils.timeutils import utcnow

if TYPE_CHECKING:
    from tracker_sync.core.schema import SchemaRegistry
    from tracker_sync.storage.base import LocalStore

logger = logging.getLogger(__name__)


class RecordWriter:
    """Create, edit and delete records while offline.

    Every call is an independent local write plus one enqueue; nothing
    here talks to the remote API.
    """

    def __init__(
        self,
        store: LocalStore,
        registry: SchemaRegistry,
        queue: OperationQueue | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._queue = queue or OperationQueue(store)

    @property
    def queue(self) -> OperationQueue:
        return self._queue

    async def create(
        self,
        entity_type: str,
        fields: dict[str, Any],
        record_id: str | None = None,
    ) -> EntityRecord:
        schema = self._registry.get(entity_type)
        record = EntityRecord.create(entity_type, fields, record_id=record_id)
        await self._store.put(record)
        await self._queue.enqueue(
            Operation.new(
                OperationType.CREATE,
                entity_type,
                record.id,
                data=schema.synced_payload(record.fields),
            )
        )
        logger.debug("Created local %s/%s", entity_type, record.id)
        return record

    async def update(
        self, entity_type: str, record_id: str, changes: dict[str, Any]
    ) -> EntityRecord:
        """Apply ``changes`` locally and queue them for push.

        Raises:
            KeyError: If the record does not exist.
        """
        schema = self._registry.get(entity_type)
        record = await self._store.get(entity_type, record_id)
        if record is None:
            raise KeyError(f"{entity_type}/{record_id} not found")

        payload = schema.synced_payload(changes)
        updated = record.with_fields(
            changes,
            updated_at=utcnow(),
            synced=False if payload else None,
        )
        await self._store.put(updated)
        if payload:
            await self._queue.enqueue(
                Operation.new(OperationType.UPDATE, entity_type, record_id, data=payload)
            )
        return updated

    async def delete(self, entity_type: str, record_id: str) -> bool:
        """Delete locally and queue the remote archive (if it ever synced).

        Returns:
            False if the record did not exist.
        """
        self._registry.get(entity_type)
        record = await self._store.get(entity_type, record_id)
        if record is None:
            return False
        await self._queue.enqueue(
            Operation.new(
                OperationType.DELETE,
                entity_type,
                record_id,
                remote_id=record.remote_id,
            )
        )
        await self._store.delete(entity_type, record_id)
        logger.debug("Deleted local %s/%s", entity_type, record_id)
        return True
