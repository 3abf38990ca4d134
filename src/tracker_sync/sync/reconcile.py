"""Merge incoming remote records into the local store (last write wins)."""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from tracker_sync.core.record import EntityRecord, generate_id
from tracker_sync.sync.push import queue_relation_fixups

if TYPE_CHECKING:
    from tracker_sync.core.schema import EntitySchema
    from tracker_sync.remote.base import RemoteRecord
    from tracker_sync.sync.context import SyncContext

logger = logging.getLogger(__name__)


class ReconcileOutcome(StrEnum):
    """What reconciling one remote record did locally."""

    INSERTED = "inserted"
    UPDATED = "updated"
    LINKED = "linked"  # local newer, remote id attached only
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    SKIPPED = "skipped"  # archived remotely, nothing local


class Reconciler:
    """Apply remote records to the local store.

    Matching goes by remote id first, then by the entity's heuristic
    matcher over local records that have no remote id yet. A remote copy
    overwrites the local one only when its last-edited time is strictly
    newer; ties keep the local copy.

    Records whose relations referenced remote ids that are not local yet
    are collected in ``suspects`` for the relation repair pass.
    """

    def __init__(self, context: SyncContext) -> None:
        self._ctx = context
        self.suspects: set[tuple[str, str]] = set()

    async def reconcile_record(
        self, entity_type: str, remote: RemoteRecord
    ) -> ReconcileOutcome:
        ctx = self._ctx
        schema = ctx.registry.get(entity_type)
        local = await ctx.store.get_by_remote_id(entity_type, remote.remote_id)

        if remote.archived:
            if local is None:
                return ReconcileOutcome.SKIPPED
            await ctx.store.delete(entity_type, local.id)
            self.suspects.discard((entity_type, local.id))
            logger.debug("Deleted %s/%s (archived remotely)", entity_type, local.id)
            return ReconcileOutcome.DELETED

        if local is None:
            pending_delete = await ctx.queue.active_delete_for_remote(
                entity_type, remote.remote_id
            )
            if pending_delete is not None:
                logger.debug(
                    "Skipping remote %s: local delete %s not pushed yet",
                    remote.remote_id,
                    pending_delete.id,
                )
                return ReconcileOutcome.SKIPPED

        fields, unresolved = await ctx.normalizer.normalize_incoming(
            schema, schema.from_remote(remote)
        )

        if local is None:
            local = await self._heuristic_match(schema, fields)
            if local is not None:
                logger.debug(
                    "Heuristic match: remote %s is local %s/%s",
                    remote.remote_id,
                    entity_type,
                    local.id,
                )

        if local is None:
            record = EntityRecord(
                id=generate_id(),
                entity_type=entity_type,
                fields=fields,
                remote_id=remote.remote_id,
                synced=True,
                updated_at=remote.last_edited_time,
            )
            await ctx.store.put(record)
            self._track(record, unresolved)
            return ReconcileOutcome.INSERTED

        newly_linked = local.remote_id is None
        if remote.last_edited_time > local.updated_at:
            kept = {k: local.fields[k] for k in schema.local_only_fields if k in local.fields}
            updated = replace(
                local.with_remote_id(remote.remote_id),
                fields={**fields, **kept},
                synced=True,
                updated_at=remote.last_edited_time,
            )
            await ctx.store.put(updated)
            self._track(updated, unresolved)
            if newly_linked:
                await queue_relation_fixups(ctx, updated)
            return ReconcileOutcome.UPDATED

        if newly_linked:
            linked = local.with_remote_id(remote.remote_id)
            await ctx.store.put(linked)
            # Local edits are newer: send them to the matched remote record
            await ctx.queue.convert_create(
                entity_type, linked.id, remote.remote_id, schema.synced_payload(linked.fields)
            )
            await queue_relation_fixups(ctx, linked)
            return ReconcileOutcome.LINKED

        return ReconcileOutcome.UNCHANGED

    async def _heuristic_match(
        self, schema: EntitySchema, fields: dict[str, Any]
    ) -> EntityRecord | None:
        candidates = await self._ctx.store.query(schema.name, lambda r: r.remote_id is None)
        for candidate in candidates:
            if schema.matcher(candidate.fields, fields):
                return candidate
        return None

    def _track(self, record: EntityRecord, unresolved: dict[str, tuple[str, ...]]) -> None:
        if unresolved:
            logger.debug(
                "%s/%s has unresolved relations: %s",
                record.entity_type,
                record.id,
                ", ".join(sorted(unresolved)),
            )
            self.suspects.add((record.entity_type, record.id))
