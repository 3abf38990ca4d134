"""Relation repair pass run after every full pull."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING

from tracker_sync.core.errors import RemoteUnavailableError

if TYPE_CHECKING:
    from tracker_sync.sync.context import SyncContext

logger = logging.getLogger(__name__)


@dataclass
class RepairResult:
    """Outcome counters of one repair pass."""

    checked: int = 0
    repaired: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    aborted: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "checked": self.checked,
            "repaired": self.repaired,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "failed": self.failed,
            "aborted": self.aborted,
        }


class RelationRepairer:
    """Re-resolve relations that pointed at records not pulled yet.

    Pull walks entity types in a fixed order, so a record can reference
    something that only arrives later in the same run. Each candidate is
    re-fetched by remote id and only its changed relation fields are
    written back; ``updated_at`` is left alone.
    """

    def __init__(self, context: SyncContext) -> None:
        self._ctx = context

    async def find_candidates(
        self, suspects: Iterable[tuple[str, str]] = ()
    ) -> list[tuple[str, str]]:
        """Suspects from this pull plus synced records with an empty required relation."""
        candidates: dict[tuple[str, str], None] = dict.fromkeys(sorted(suspects))
        for schema in self._ctx.registry:
            required = [rel for rel in schema.relations if rel.required]
            if not required:
                continue
            broken = await self._ctx.store.query(
                schema.name,
                lambda r, required=required: r.synced
                and r.remote_id is not None
                and any(rel.is_empty(r.fields) for rel in required),
            )
            for record in broken:
                candidates.setdefault((schema.name, record.id), None)
        return list(candidates)

    async def repair_broken_relations(
        self, suspects: Iterable[tuple[str, str]] = ()
    ) -> RepairResult:
        ctx = self._ctx
        result = RepairResult()

        for entity_type, record_id in await self.find_candidates(suspects):
            record = await ctx.store.get(entity_type, record_id)
            if record is None or record.remote_id is None:
                continue
            # Local intent wins until it has been pushed
            if await ctx.queue.active_for(entity_type, record_id):
                result.skipped += 1
                continue

            result.checked += 1
            schema = ctx.registry.get(entity_type)
            try:
                remote = await ctx.call_remote(partial(ctx.remote.get_record, record.remote_id))
                if remote.archived:
                    result.skipped += 1
                    continue
                fields, _ = await ctx.normalizer.normalize_incoming(
                    schema, schema.from_remote(remote)
                )
                changes = {
                    rel.name: fields.get(rel.name)
                    for rel in schema.relations
                    if rel.values(fields) != rel.values(record.fields)
                }
                if not changes:
                    result.unchanged += 1
                    continue
                await ctx.store.put(record.with_fields(changes))
                result.repaired += 1
                logger.debug(
                    "Repaired %s/%s relations: %s", entity_type, record_id, ", ".join(changes)
                )
            except RemoteUnavailableError as e:
                logger.warning("Remote unavailable, stopping relation repair: %s", e)
                result.aborted = True
                break
            except Exception:
                logger.warning(
                    "Relation repair failed for %s/%s", entity_type, record_id, exc_info=True
                )
                result.failed += 1

        if result.checked:
            logger.info(
                "Relation repair: %d checked, %d repaired", result.checked, result.repaired
            )
        return result
