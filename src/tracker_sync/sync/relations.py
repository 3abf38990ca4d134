"""Translate relation fields between local ids and remote ids."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tracker_sync.core.errors import DependencyNotReadyError

if TYPE_CHECKING:
    from tracker_sync.core.schema import EntitySchema
    from tracker_sync.storage.base import LocalStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelationResolution:
    """Remote -> local translation.

    Attributes:
        ids: Resolved local ids, in input order
        unresolved: Remote ids with no local counterpart yet
    """

    ids: tuple[str, ...] = ()
    unresolved: tuple[str, ...] = ()


@dataclass(frozen=True)
class RemoteResolution:
    """Local -> remote translation.

    Attributes:
        ids: Remote ids, in input order
        missing: Local ids whose record exists but has no remote id yet
    """

    ids: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()


class RelationNormalizer:
    """Pure lookups over the local store. Never writes."""

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    async def to_local_ids(self, entity_type: str, remote_ids: list[str]) -> RelationResolution:
        if not remote_ids:
            return RelationResolution()

        records = await self._store.get_all(entity_type)
        by_remote = {r.remote_id: r.id for r in records if r.remote_id}
        local_ids = {r.id for r in records}

        ids: list[str] = []
        unresolved: list[str] = []
        for remote_id in remote_ids:
            if remote_id in by_remote:
                ids.append(by_remote[remote_id])
            elif remote_id in local_ids:
                ids.append(remote_id)
            else:
                unresolved.append(remote_id)
        return RelationResolution(ids=tuple(ids), unresolved=tuple(unresolved))

    async def to_remote_ids(self, entity_type: str, local_ids: list[str]) -> RemoteResolution:
        ids: list[str] = []
        missing: list[str] = []
        for local_id in local_ids:
            record = await self._store.get(entity_type, local_id)
            if record is None:
                logger.debug("Dropping reference to unknown %s/%s", entity_type, local_id)
                continue
            if record.remote_id:
                ids.append(record.remote_id)
            else:
                missing.append(local_id)
        return RemoteResolution(ids=tuple(ids), missing=tuple(missing))

    async def normalize_incoming(
        self, schema: EntitySchema, fields: dict[str, Any]
    ) -> tuple[dict[str, Any], dict[str, tuple[str, ...]]]:
        """Rewrite relation fields of an incoming payload to local ids.

        Returns:
            The rewritten payload and, per relation field, the remote ids
            that could not be resolved yet.
        """
        result = dict(fields)
        unresolved: dict[str, tuple[str, ...]] = {}
        for rel in schema.relations:
            if rel.name not in fields:
                continue
            resolution = await self.to_local_ids(rel.target, rel.values(fields))
            result[rel.name] = rel.assign(list(resolution.ids))
            if resolution.unresolved:
                unresolved[rel.name] = resolution.unresolved
        return result, unresolved

    async def resolve_outgoing(
        self, schema: EntitySchema, fields: dict[str, Any]
    ) -> dict[str, Any]:
        """Rewrite relation fields of an outgoing payload to remote ids.

        Optional relations whose targets are not synced yet are omitted
        (the secondary-dependency fix-up sends them later).

        Raises:
            DependencyNotReadyError: A required relation target has no
                remote id yet.
        """
        result = dict(fields)
        for rel in schema.relations:
            if rel.name not in fields:
                continue
            resolution = await self.to_remote_ids(rel.target, rel.values(fields))
            if resolution.missing:
                if rel.required:
                    raise DependencyNotReadyError(
                        f"{schema.name}.{rel.name} waits for {rel.target} "
                        f"{', '.join(resolution.missing)}",
                        entity_type=rel.target,
                        record_ids=resolution.missing,
                    )
                if not resolution.ids:
                    del result[rel.name]
                    continue
            result[rel.name] = rel.assign(list(resolution.ids))
        return result
