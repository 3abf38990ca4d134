"""Tests for the operation queue and its compaction rules."""

from __future__ import annotations

from datetime import timedelta

import pytest

from tracker_sync.core.operation import Operation, OperationStatus, OperationType
from tracker_sync.core.record import EntityRecord
from tracker_sync.entities import PETS
from tracker_sync.storage.memory_store import InMemoryStore
from tracker_sync.sync.queue import OperationQueue
from tracker_sync.utils.timeutils import utcnow


@pytest.fixture
def queue(store: InMemoryStore) -> OperationQueue:
    return OperationQueue(store)


def _op(
    type: OperationType,
    record_id: str = "pet-1",
    data: dict | None = None,
    remote_id: str | None = None,
) -> Operation:
    return Operation.new(type, PETS, record_id, data=data, remote_id=remote_id)


# ── Basic enqueue ────────────────────────────────────────────────────────────


class TestEnqueue:
    """Intents with nothing to compact against."""

    async def test_stores_new_operation(self, queue: OperationQueue) -> None:
        op = _op(OperationType.CREATE, data={"name": "Luna"})
        stored = await queue.enqueue(op)

        assert stored == op
        assert await queue.pending() == [op]

    async def test_records_are_compacted_independently(self, queue: OperationQueue) -> None:
        await queue.enqueue(_op(OperationType.CREATE, "pet-1", {"name": "Luna"}))
        await queue.enqueue(_op(OperationType.CREATE, "pet-2", {"name": "Milo"}))

        assert len(await queue.pending()) == 2
        assert len(await queue.active_for(PETS, "pet-1")) == 1


# ── Update compaction ────────────────────────────────────────────────────────


class TestUpdateCompaction:
    """New update intents folding into existing entries."""

    async def test_update_merges_into_create(self, queue: OperationQueue) -> None:
        create = await queue.enqueue(_op(OperationType.CREATE, data={"name": "Luna"}))
        merged = await queue.enqueue(_op(OperationType.UPDATE, data={"breed": "Husky"}))

        assert merged is not None
        assert create is not None
        assert merged.id == create.id
        assert merged.type == OperationType.CREATE
        assert merged.data == {"name": "Luna", "breed": "Husky"}
        assert len(await queue.all()) == 1

    async def test_update_merges_into_update(self, queue: OperationQueue) -> None:
        await queue.enqueue(_op(OperationType.UPDATE, data={"name": "Luna", "breed": "Lab"}))
        merged = await queue.enqueue(_op(OperationType.UPDATE, data={"breed": "Husky"}))

        assert merged is not None
        assert merged.type == OperationType.UPDATE
        assert merged.data == {"name": "Luna", "breed": "Husky"}
        assert len(await queue.all()) == 1

    async def test_update_resets_failed_entry_to_pending(self, queue: OperationQueue) -> None:
        stored = await queue.enqueue(_op(OperationType.UPDATE, data={"name": "Luna"}))
        assert stored is not None
        await queue.mark_failed(stored, "boom")

        merged = await queue.enqueue(_op(OperationType.UPDATE, data={"name": "Luna B"}))

        assert merged is not None
        assert merged.status == OperationStatus.PENDING
        assert merged.error is None

    async def test_update_after_delete_is_dropped(self, queue: OperationQueue) -> None:
        delete = await queue.enqueue(_op(OperationType.DELETE, remote_id="r1"))
        result = await queue.enqueue(_op(OperationType.UPDATE, data={"name": "Luna"}))

        assert result is None
        assert await queue.all() == [delete]


# ── Create compaction ────────────────────────────────────────────────────────


class TestCreateCompaction:
    """New create intents over existing entries."""

    async def test_create_over_unsynced_delete_drops_delete(
        self, queue: OperationQueue, store: InMemoryStore
    ) -> None:
        # A stray delete without a remote id (never sent anywhere)
        stray = _op(OperationType.DELETE)
        await store.put_operation(stray)

        create = _op(OperationType.CREATE, data={"name": "Luna"})
        stored = await queue.enqueue(create)

        assert stored == create
        assert await queue.all() == [create]

    async def test_create_over_synced_delete_becomes_update(
        self, queue: OperationQueue, store: InMemoryStore
    ) -> None:
        await queue.enqueue(_op(OperationType.DELETE, remote_id="r1"))
        await store.put(EntityRecord.create(PETS, {"name": "Luna"}, record_id="pet-1"))

        stored = await queue.enqueue(_op(OperationType.CREATE, data={"name": "Luna"}))

        assert stored is not None
        assert stored.type == OperationType.UPDATE
        assert stored.remote_id == "r1"
        assert stored.data == {"name": "Luna"}
        ops = await queue.all()
        assert [op.type for op in ops] == [OperationType.UPDATE]
        record = await store.get(PETS, "pet-1")
        assert record is not None
        assert record.remote_id == "r1"

    async def test_create_merges_into_existing_create(self, queue: OperationQueue) -> None:
        await queue.enqueue(_op(OperationType.CREATE, data={"name": "Luna"}))
        merged = await queue.enqueue(_op(OperationType.CREATE, data={"species": "Dog"}))

        assert merged is not None
        assert merged.data == {"name": "Luna", "species": "Dog"}
        assert len(await queue.all()) == 1


# ── Delete compaction ────────────────────────────────────────────────────────


class TestDeleteCompaction:
    """New delete intents."""

    async def test_delete_of_never_synced_record_cancels_everything(
        self, queue: OperationQueue, store: InMemoryStore
    ) -> None:
        await store.put(EntityRecord.create(PETS, {"name": "Luna"}, record_id="pet-1"))
        await queue.enqueue(_op(OperationType.CREATE, data={"name": "Luna"}))
        await queue.enqueue(_op(OperationType.UPDATE, data={"breed": "Husky"}))

        result = await queue.enqueue(_op(OperationType.DELETE))

        assert result is None
        assert await queue.all() == []

    async def test_delete_carries_record_remote_id(
        self, queue: OperationQueue, store: InMemoryStore
    ) -> None:
        record = EntityRecord.create(PETS, {"name": "Luna"}, record_id="pet-1")
        await store.put(record.with_remote_id("r1").mark_synced())
        await queue.enqueue(_op(OperationType.UPDATE, data={"breed": "Husky"}))

        stored = await queue.enqueue(_op(OperationType.DELETE))

        assert stored is not None
        assert stored.type == OperationType.DELETE
        assert stored.remote_id == "r1"
        assert await queue.all() == [stored]

    async def test_delete_replaces_prior_delete(self, queue: OperationQueue) -> None:
        await queue.enqueue(_op(OperationType.DELETE, remote_id="r1"))
        second = await queue.enqueue(_op(OperationType.DELETE))

        assert second is not None
        assert second.remote_id == "r1"
        assert await queue.all() == [second]

    async def test_delete_uses_remote_id_from_converted_update(
        self, queue: OperationQueue
    ) -> None:
        await queue.enqueue(_op(OperationType.UPDATE, data={"name": "x"}, remote_id="r9"))
        stored = await queue.enqueue(_op(OperationType.DELETE))

        assert stored is not None
        assert stored.remote_id == "r9"


# ── Linking to remote records ────────────────────────────────────────────────


class TestRemoteLookups:
    """Queue queries used while reconciling pulled records."""

    async def test_active_delete_found_by_remote_id(self, queue: OperationQueue) -> None:
        delete = await queue.enqueue(_op(OperationType.DELETE, remote_id="r-1"))

        assert await queue.active_delete_for_remote(PETS, "r-1") == delete
        assert await queue.active_delete_for_remote(PETS, "r-2") is None
        assert await queue.active_delete_for_remote("contacts", "r-1") is None

    async def test_convert_create_targets_linked_remote(self, queue: OperationQueue) -> None:
        create = await queue.enqueue(_op(OperationType.CREATE, data={"name": "Luna"}))
        assert create is not None
        await queue.mark_failed(create, "boom")

        converted = await queue.convert_create(PETS, "pet-1", "r-5", {"breed": "Lab"})

        assert converted is not None
        assert converted.id == create.id
        assert converted.type == OperationType.UPDATE
        assert converted.remote_id == "r-5"
        assert converted.data == {"name": "Luna", "breed": "Lab"}
        assert converted.status == OperationStatus.PENDING
        assert await queue.all() == [converted]

    async def test_convert_create_leaves_updates_alone(self, queue: OperationQueue) -> None:
        update = await queue.enqueue(_op(OperationType.UPDATE, data={"name": "Luna"}))

        assert await queue.convert_create(PETS, "pet-1", "r-5", {}) is None
        assert await queue.all() == [update]


# ── Outcomes and user actions ────────────────────────────────────────────────


class TestOutcomes:
    """Bookkeeping after push attempts."""

    async def test_complete_removes_entry(self, queue: OperationQueue) -> None:
        op = await queue.enqueue(_op(OperationType.CREATE))
        assert op is not None
        await queue.complete(op)
        assert await queue.all() == []

    async def test_mark_retry_consumes_budget_then_fails(self, queue: OperationQueue) -> None:
        op = await queue.enqueue(_op(OperationType.CREATE))
        assert op is not None

        op = await queue.mark_retry(op, "timeout", max_retries=2)
        assert op.status == OperationStatus.PENDING
        assert op.retry_count == 1

        op = await queue.mark_retry(op, "timeout", max_retries=2)
        assert op.status == OperationStatus.FAILED
        assert op.retry_count == 2
        assert await queue.failed() == [op]

    async def test_mark_waiting_keeps_budget(self, queue: OperationQueue) -> None:
        op = await queue.enqueue(_op(OperationType.CREATE))
        assert op is not None
        for _ in range(10):
            op = await queue.mark_waiting(op, "waiting for pets")

        assert op.retry_count == 0
        assert op.status == OperationStatus.PENDING
        assert op.error == "waiting for pets"
        assert op.last_attempt is not None

    async def test_retry_resets_failed_entry(self, queue: OperationQueue) -> None:
        op = await queue.enqueue(_op(OperationType.CREATE))
        assert op is not None
        failed = await queue.mark_retry(op, "timeout", max_retries=1)
        assert failed.status == OperationStatus.FAILED

        retried = await queue.retry(op.id)

        assert retried is not None
        assert retried.status == OperationStatus.PENDING
        assert retried.retry_count == 0
        assert retried.error is None

    async def test_retry_unknown_returns_none(self, queue: OperationQueue) -> None:
        assert await queue.retry("missing") is None

    async def test_retry_all_failed(self, queue: OperationQueue) -> None:
        for record_id in ("pet-1", "pet-2"):
            op = await queue.enqueue(_op(OperationType.CREATE, record_id))
            assert op is not None
            await queue.mark_failed(op, "auth")
        await queue.enqueue(_op(OperationType.CREATE, "pet-3"))

        assert await queue.retry_all_failed() == 2
        assert await queue.failed() == []
        assert len(await queue.pending()) == 3

    async def test_discard(self, queue: OperationQueue) -> None:
        op = await queue.enqueue(_op(OperationType.CREATE))
        assert op is not None
        assert await queue.discard(op.id) is True
        assert await queue.discard(op.id) is False

    async def test_counts(self, queue: OperationQueue) -> None:
        a = await queue.enqueue(_op(OperationType.CREATE, "pet-1"))
        await queue.enqueue(_op(OperationType.CREATE, "pet-2"))
        assert a is not None
        await queue.mark_failed(a, "auth")

        counts = await queue.counts()

        assert counts.pending == 1
        assert counts.failed == 1
        assert counts.total == 2

    async def test_pending_is_oldest_first(
        self, queue: OperationQueue, store: InMemoryStore
    ) -> None:
        now = utcnow()
        newer = Operation.new(OperationType.CREATE, PETS, "pet-2", created_at=now)
        older = Operation.new(
            OperationType.CREATE, PETS, "pet-1", created_at=now - timedelta(minutes=1)
        )
        await queue.enqueue(newer)
        await queue.enqueue(older)

        assert [op.record_id for op in await queue.pending()] == ["pet-1", "pet-2"]
