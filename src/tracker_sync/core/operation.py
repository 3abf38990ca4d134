"""Queued mutation intents."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from tracker_sync.core.record import generate_id
from tracker_sync.utils.timeutils import parse_iso, to_iso, utcnow


class OperationType(StrEnum):
    """Kind of mutation. Declaration order is the push order within a type."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class OperationStatus(StrEnum):
    """Queue entry status. Completed entries are removed, not kept."""

    PENDING = "pending"
    FAILED = "failed"


OPERATION_TYPE_ORDER: dict[OperationType, int] = {
    OperationType.CREATE: 0,
    OperationType.UPDATE: 1,
    OperationType.DELETE: 2,
}


@dataclass(frozen=True)
class Operation:
    """One queued mutation intent for a single local record.

    Attributes:
        id: Queue entry identifier
        type: create, update or delete
        entity_type: Entity type of the affected record
        record_id: Local id of the affected record
        data: Payload snapshot taken at enqueue time
        status: pending or failed
        retry_count: Attempts consumed from the bounded retry budget
        created_at: When the intent was first queued
        last_attempt: When push last tried this entry
        error: Last error message, if any
        remote_id: Remote id carried forward by deletes
    """

    id: str
    type: OperationType
    entity_type: str
    record_id: str
    data: dict[str, Any] = field(default_factory=dict)
    status: OperationStatus = OperationStatus.PENDING
    retry_count: int = 0
    created_at: datetime = field(default_factory=utcnow)
    last_attempt: datetime | None = None
    error: str | None = None
    remote_id: str | None = None

    @classmethod
    def new(
        cls,
        type: OperationType | str,
        entity_type: str,
        record_id: str,
        data: dict[str, Any] | None = None,
        remote_id: str | None = None,
        created_at: datetime | None = None,
    ) -> Operation:
        """Factory for a fresh pending operation."""
        return cls(
            id=generate_id(),
            type=OperationType(type),
            entity_type=entity_type,
            record_id=record_id,
            data=dict(data or {}),
            remote_id=remote_id,
            created_at=created_at or utcnow(),
        )

    @property
    def is_active(self) -> bool:
        return self.status in (OperationStatus.PENDING, OperationStatus.FAILED)

    def sort_key(self, dependency_index: int) -> tuple[int, int, datetime]:
        """Push ordering: dependency order, then type, then age."""
        return (dependency_index, OPERATION_TYPE_ORDER[self.type], self.created_at)

    def merged(self, data: dict[str, Any], *, type: OperationType | None = None) -> Operation:
        """Fold newer payload into this entry and reset it to pending."""
        return replace(
            self,
            type=type or self.type,
            data={**self.data, **data},
            status=OperationStatus.PENDING,
            error=None,
        )

    def with_failure(self, error: str) -> Operation:
        """Terminal failure, surfaced to the user."""
        return replace(
            self,
            status=OperationStatus.FAILED,
            error=error,
            last_attempt=utcnow(),
        )

    def with_retry(self, error: str) -> Operation:
        """Retryable failure that consumes one unit of the retry budget."""
        return replace(
            self,
            status=OperationStatus.PENDING,
            retry_count=self.retry_count + 1,
            error=error,
            last_attempt=utcnow(),
        )

    def with_dependency_wait(self, error: str) -> Operation:
        """Retryable failure that does not count against the budget."""
        return replace(
            self,
            status=OperationStatus.PENDING,
            error=error,
            last_attempt=utcnow(),
        )

    def reset(self) -> Operation:
        """User-initiated retry of a failed entry."""
        return replace(self, status=OperationStatus.PENDING, retry_count=0, error=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "entity_type": self.entity_type,
            "record_id": self.record_id,
            "data": self.data,
            "status": self.status.value,
            "retry_count": self.retry_count,
            "created_at": to_iso(self.created_at),
            "last_attempt": to_iso(self.last_attempt) if self.last_attempt else None,
            "error": self.error,
            "remote_id": self.remote_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Operation:
        return cls(
            id=data["id"],
            type=OperationType(data["type"]),
            entity_type=data["entity_type"],
            record_id=data["record_id"],
            data=dict(data.get("data") or {}),
            status=OperationStatus(data.get("status", "pending")),
            retry_count=int(data.get("retry_count") or 0),
            created_at=parse_iso(data.get("created_at")) or utcnow(),
            last_attempt=parse_iso(data.get("last_attempt")),
            error=data.get("error"),
            remote_id=data.get("remote_id"),
        )
