"""Durable operation queue with per-record compaction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from tracker_sync.core.operation import Operation, OperationStatus, OperationType

if TYPE_CHECKING:
    from tracker_sync.storage.base import LocalStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueCounts:
    """Queue totals for status surfaces."""

    pending: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.failed


class OperationQueue:
    """Mutation intents waiting to be pushed.

    Every method persists its result through the store before returning,
    so a crash never loses an accepted intent. At most one active entry
    exists per ``(entity_type, record_id)``: new intents are folded into
    the existing one by ``enqueue``.
    """

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    # ========== Reads ==========

    async def get(self, operation_id: str) -> Operation | None:
        return await self._store.get_operation(operation_id)

    async def pending(self) -> list[Operation]:
        return await self._store.list_operations(OperationStatus.PENDING)

    async def failed(self) -> list[Operation]:
        return await self._store.list_operations(OperationStatus.FAILED)

    async def all(self) -> list[Operation]:
        return await self._store.list_operations()

    async def active_for(self, entity_type: str, record_id: str) -> list[Operation]:
        """Active entries for one record, oldest first."""
        return [
            op
            for op in await self._store.list_operations()
            if op.is_active and op.entity_type == entity_type and op.record_id == record_id
        ]

    async def active_delete_for_remote(
        self, entity_type: str, remote_id: str
    ) -> Operation | None:
        """The unsent delete that will archive ``remote_id``, if any."""
        for op in await self._store.list_operations():
            if (
                op.is_active
                and op.type == OperationType.DELETE
                and op.entity_type == entity_type
                and op.remote_id == remote_id
            ):
                return op
        return None

    async def counts(self) -> QueueCounts:
        ops = await self._store.list_operations()
        return QueueCounts(
            pending=sum(1 for op in ops if op.status == OperationStatus.PENDING),
            failed=sum(1 for op in ops if op.status == OperationStatus.FAILED),
        )

    # ========== Enqueue / compaction ==========

    async def enqueue(self, operation: Operation) -> Operation | None:
        """Accept a new intent, compacting it against active entries.

        Returns:
            The entry actually stored (possibly an existing entry with the
            new payload merged in), or None if the intent cancelled out.
        """
        existing = await self.active_for(operation.entity_type, operation.record_id)

        if operation.type == OperationType.DELETE:
            return await self._enqueue_delete(operation, existing)

        latest = existing[-1] if existing else None
        # Stray duplicates left by older queue versions
        for stale in existing[:-1]:
            await self._store.delete_operation(stale.id)

        if latest is None:
            await self._store.put_operation(operation)
            return operation

        if latest.type == OperationType.DELETE:
            if operation.type == OperationType.UPDATE:
                logger.debug(
                    "Dropping update for %s/%s: delete already queued",
                    operation.entity_type,
                    operation.record_id,
                )
                return None
            return await self._recreate_over_delete(operation, latest)

        merged = latest.merged(operation.data)
        await self._store.put_operation(merged)
        return merged

    async def convert_create(
        self, entity_type: str, record_id: str, remote_id: str, data: dict[str, Any]
    ) -> Operation | None:
        """Turn an unsent create into an update against ``remote_id``.

        Used when a local record is linked to an existing remote record,
        so ``data`` (the record's synced fields) still reaches the remote.
        """
        for op in await self.active_for(entity_type, record_id):
            if op.type == OperationType.CREATE:
                converted = replace(
                    op.merged(data, type=OperationType.UPDATE), remote_id=remote_id
                )
                await self._store.put_operation(converted)
                return converted
        return None

    async def _recreate_over_delete(self, operation: Operation, delete: Operation) -> Operation:
        await self._store.delete_operation(delete.id)

        if delete.remote_id is None:
            await self._store.put_operation(operation)
            return operation

        # The remote record was never archived: keep using it
        converted = replace(operation, type=OperationType.UPDATE, remote_id=delete.remote_id)
        record = await self._store.get(operation.entity_type, operation.record_id)
        if record is not None and record.remote_id is None:
            await self._store.put(record.with_remote_id(delete.remote_id))
        await self._store.put_operation(converted)
        return converted

    async def _enqueue_delete(
        self, operation: Operation, existing: list[Operation]
    ) -> Operation | None:
        remote_id = operation.remote_id
        if remote_id is None:
            record = await self._store.get(operation.entity_type, operation.record_id)
            if record is not None:
                remote_id = record.remote_id
        if remote_id is None:
            remote_id = next((op.remote_id for op in existing if op.remote_id), None)

        for op in existing:
            await self._store.delete_operation(op.id)

        if remote_id is None:
            logger.debug(
                "Delete of never-synced %s/%s cancelled %d queued operation(s)",
                operation.entity_type,
                operation.record_id,
                len(existing),
            )
            return None

        stored = replace(operation, remote_id=remote_id)
        await self._store.put_operation(stored)
        return stored

    # ========== Outcomes ==========

    async def complete(self, operation: Operation) -> None:
        """Remove a successfully pushed entry."""
        await self._store.delete_operation(operation.id)

    async def mark_failed(self, operation: Operation, error: str) -> Operation:
        updated = operation.with_failure(error)
        await self._store.put_operation(updated)
        return updated

    async def mark_retry(self, operation: Operation, error: str, max_retries: int) -> Operation:
        """Consume one retry; the entry fails once the budget is spent."""
        updated = operation.with_retry(error)
        if updated.retry_count >= max_retries:
            updated = updated.with_failure(error)
        await self._store.put_operation(updated)
        return updated

    async def mark_waiting(self, operation: Operation, error: str) -> Operation:
        """Leave the entry pending without touching the retry budget."""
        updated = operation.with_dependency_wait(error)
        await self._store.put_operation(updated)
        return updated

    # ========== User actions ==========

    async def retry(self, operation_id: str) -> Operation | None:
        """Put a failed entry back to pending with a fresh retry budget."""
        operation = await self._store.get_operation(operation_id)
        if operation is None:
            return None
        updated = operation.reset()
        await self._store.put_operation(updated)
        return updated

    async def retry_all_failed(self) -> int:
        failed = await self.failed()
        for operation in failed:
            await self._store.put_operation(operation.reset())
        return len(failed)

    async def discard(self, operation_id: str) -> bool:
        """Drop an entry without sending it."""
        return await self._store.delete_operation(operation_id)
