"""Tests for the record envelope and queued operations."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from tracker_sync.core.operation import Operation, OperationStatus, OperationType
from tracker_sync.core.record import EntityRecord
from tracker_sync.entities import PETS


class TestEntityRecord:
    """Record envelope behaviour."""

    def test_new_record_is_unsynced(self) -> None:
        record = EntityRecord.create(PETS, {"name": "Luna"})
        assert record.remote_id is None
        assert record.synced is False
        assert len(record.id) == 32

    def test_remote_id_cannot_change(self) -> None:
        record = EntityRecord.create(PETS).with_remote_id("r-1")

        assert record.with_remote_id("r-1").remote_id == "r-1"
        with pytest.raises(ValueError, match="refusing"):
            record.with_remote_id("r-2")

    def test_with_fields_keeps_timestamp_unless_given(self) -> None:
        stamp = datetime(2026, 1, 1)
        record = EntityRecord.create(PETS, {"name": "Luna"}, updated_at=stamp)

        assert record.with_fields({"breed": "Lab"}).updated_at == stamp
        later = stamp + timedelta(hours=1)
        assert record.with_fields({}, updated_at=later).updated_at == later

    def test_dict_round_trip(self) -> None:
        record = EntityRecord.create(PETS, {"name": "Luna"}).with_remote_id("r-1").mark_synced()
        assert EntityRecord.from_dict(record.to_dict()) == record


class TestOperation:
    """Queue entry transitions."""

    def test_sort_key_orders_by_dependency_then_type_then_age(self) -> None:
        now = datetime(2026, 1, 1)
        old_update = Operation.new(OperationType.UPDATE, PETS, "a", created_at=now)
        new_create = Operation.new(
            OperationType.CREATE, PETS, "b", created_at=now + timedelta(seconds=1)
        )
        parent = Operation.new(
            OperationType.DELETE, "scales", "c", created_at=now + timedelta(seconds=2)
        )

        ordered = sorted(
            [old_update, new_create, parent],
            key=lambda op: op.sort_key(0 if op.entity_type == "scales" else 1),
        )

        assert ordered == [parent, new_create, old_update]

    def test_merged_resets_failure(self) -> None:
        op = Operation.new(OperationType.UPDATE, PETS, "a", data={"x": 1}).with_failure("boom")

        merged = op.merged({"y": 2})

        assert merged.data == {"x": 1, "y": 2}
        assert merged.status == OperationStatus.PENDING
        assert merged.error is None
        assert merged.id == op.id

    def test_retry_and_wait_accounting(self) -> None:
        op = Operation.new(OperationType.CREATE, PETS, "a")

        assert op.with_retry("t").retry_count == 1
        assert op.with_dependency_wait("w").retry_count == 0
        assert op.with_retry("t").with_failure("t").reset().retry_count == 0

    def test_is_active(self) -> None:
        op = Operation.new(OperationType.CREATE, PETS, "a")
        assert op.is_active
        assert op.with_failure("x").is_active
