"""Entity record envelope shared by every entity type."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any
from uuid import uuid4

from tracker_sync.utils.timeutils import parse_iso, to_iso, utcnow


def generate_id() -> str:
    """Generate a new local record identifier."""
    return uuid4().hex


@dataclass(frozen=True)
class EntityRecord:
    """A locally stored business object (a pet, an event, a contact...).

    The sync engine only reads the envelope (``id``, ``remote_id``,
    ``synced``, ``updated_at``) and the relation fields named by the
    entity's schema. Everything else in ``fields`` is opaque payload.

    Attributes:
        id: Local identifier, immutable primary key
        entity_type: Name of the entity type (e.g. "pets")
        fields: Type-specific payload including relation fields
        remote_id: Identifier assigned by the remote API on first create
        synced: True once the last known local state has been pushed
        updated_at: Time of the last local mutation (naive UTC)
    """

    id: str
    entity_type: str
    fields: dict[str, Any] = field(default_factory=dict)
    remote_id: str | None = None
    synced: bool = False
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        entity_type: str,
        fields: dict[str, Any] | None = None,
        record_id: str | None = None,
        updated_at: datetime | None = None,
    ) -> EntityRecord:
        """Factory for a new, never-synced local record."""
        return cls(
            id=record_id or generate_id(),
            entity_type=entity_type,
            fields=dict(fields or {}),
            remote_id=None,
            synced=False,
            updated_at=updated_at or utcnow(),
        )

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def with_fields(
        self,
        fields: dict[str, Any],
        *,
        updated_at: datetime | None = None,
        synced: bool | None = None,
    ) -> EntityRecord:
        """Return a copy with ``fields`` merged over the current payload."""
        return replace(
            self,
            fields={**self.fields, **fields},
            updated_at=updated_at or self.updated_at,
            synced=self.synced if synced is None else synced,
        )

    def with_remote_id(self, remote_id: str) -> EntityRecord:
        """Attach a remote id.

        Raises:
            ValueError: If a different remote id is already attached.
        """
        if self.remote_id is not None and self.remote_id != remote_id:
            raise ValueError(
                f"Record {self.id} already has remote id {self.remote_id}, refusing {remote_id}"
            )
        return replace(self, remote_id=remote_id)

    def mark_synced(self, synced: bool = True) -> EntityRecord:
        return replace(self, synced=synced)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "fields": self.fields,
            "remote_id": self.remote_id,
            "synced": self.synced,
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EntityRecord:
        return cls(
            id=data["id"],
            entity_type=data["entity_type"],
            fields=dict(data.get("fields") or {}),
            remote_id=data.get("remote_id"),
            synced=bool(data.get("synced", False)),
            updated_at=parse_iso(data.get("updated_at")) or utcnow(),
        )
