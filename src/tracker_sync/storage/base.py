"""Abstract interfaces for local persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tracker_sync.core.operation import Operation, OperationStatus
    from tracker_sync.core.record import EntityRecord

RecordPredicate = Callable[["EntityRecord"], bool]


class LocalStore(ABC):
    """
    Keyed persistent storage for entity records and the operation queue.

    Every write must be durable when the awaited call returns; the sync
    engine relies on that to keep partial progress across failures.
    """

    # ========== Lifecycle ==========

    async def initialize(self) -> None:  # noqa: B027
        """Open connections / create schema. No-op by default."""

    async def close(self) -> None:  # noqa: B027
        """Release resources. No-op by default."""

    # ========== Records ==========

    @abstractmethod
    async def get(self, entity_type: str, record_id: str) -> EntityRecord | None:
        """Get a record by local id."""
        ...

    @abstractmethod
    async def get_all(self, entity_type: str) -> list[EntityRecord]:
        """Get every record of an entity type."""
        ...

    @abstractmethod
    async def get_by_remote_id(self, entity_type: str, remote_id: str) -> EntityRecord | None:
        """Get the record carrying ``remote_id``, if any."""
        ...

    async def query(self, entity_type: str, predicate: RecordPredicate) -> list[EntityRecord]:
        """Records of ``entity_type`` for which ``predicate`` is true.

        Default implementation filters ``get_all``.
        """
        return [record for record in await self.get_all(entity_type) if predicate(record)]

    @abstractmethod
    async def put(self, record: EntityRecord) -> None:
        """Insert or replace a record (atomic per record).

        Raises:
            ValueError: If another record of the same type already carries
                the same remote id.
        """
        ...

    @abstractmethod
    async def delete(self, entity_type: str, record_id: str) -> bool:
        """Delete a record. Returns False if it did not exist."""
        ...

    # ========== Operation queue ==========

    @abstractmethod
    async def put_operation(self, operation: Operation) -> None:
        """Insert or replace a queue entry."""
        ...

    @abstractmethod
    async def get_operation(self, operation_id: str) -> Operation | None:
        """Get a queue entry by id."""
        ...

    @abstractmethod
    async def delete_operation(self, operation_id: str) -> bool:
        """Remove a queue entry. Returns False if it did not exist."""
        ...

    @abstractmethod
    async def list_operations(self, status: OperationStatus | None = None) -> list[Operation]:
        """Queue entries (optionally filtered by status), oldest first."""
        ...


class CursorStore(ABC):
    """Per-entity-type pull cursors and sync bookkeeping."""

    @abstractmethod
    async def get_cursor(self, entity_type: str) -> datetime | None:
        """Last pull watermark for an entity type."""
        ...

    @abstractmethod
    async def set_cursor(self, entity_type: str, cursor: datetime) -> None:
        """Persist the pull watermark for an entity type."""
        ...

    @abstractmethod
    async def get_last_sync(self) -> datetime | None:
        """When the last full sync cycle completed."""
        ...

    @abstractmethod
    async def set_last_sync(self, at: datetime) -> None:
        """Record completion of a full sync cycle."""
        ...
