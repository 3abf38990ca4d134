"""Push engine: drain the operation queue to the remote API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from tracker_sync.core.errors import (
    DependencyNotReadyError,
    PermanentRemoteError,
    RateLimitedError,
    RemoteUnavailableError,
    SyncError,
)
from tracker_sync.core.operation import Operation, OperationStatus, OperationType

if TYPE_CHECKING:
    from tracker_sync.core.record import EntityRecord
    from tracker_sync.core.schema import EntitySchema
    from tracker_sync.sync.context import SyncContext

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    """Outcome counters of one push call."""

    pushed: int = 0
    failed: int = 0
    retried: int = 0
    deferred: int = 0
    rate_limited: int = 0
    fixups: int = 0
    passes: int = 0
    aborted: bool = False
    error: str | None = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "pushed": self.pushed,
            "failed": self.failed,
            "retried": self.retried,
            "deferred": self.deferred,
            "rate_limited": self.rate_limited,
            "fixups": self.fixups,
            "passes": self.passes,
            "aborted": self.aborted,
            "error": self.error,
        }


class _Outcome(StrEnum):
    DONE = "done"
    WAITING = "waiting"  # may succeed later in this call
    BACKED_OFF = "backed_off"  # slept after a rate limit, try again next pass
    BENCHED = "benched"  # sits out the rest of this call
    ABORT = "abort"


class PushEngine:
    """Send pending operations in dependency order.

    Pending entries are sorted by entity dependency order, then
    create < update < delete, then age. Failures are isolated per
    operation; only an unreachable remote aborts the run. Extra passes
    run while progress is made so a child waiting on a sibling create
    goes out in the same call.
    """

    def __init__(self, context: SyncContext) -> None:
        self._ctx = context
        self._result = PushResult()

    async def push_pending(self) -> PushResult:
        self._result = result = PushResult()
        registry = self._ctx.registry
        max_passes = self._ctx.settings.max_passes or max(len(registry), 1)
        benched: set[str] = set()

        for _ in range(max_passes):
            ops = [op for op in await self._ctx.queue.pending() if op.id not in benched]
            if not ops:
                break
            ops.sort(key=lambda op: op.sort_key(registry.index_of(op.entity_type)))
            result.passes += 1
            logger.debug("Push pass %d: %d pending operation(s)", result.passes, len(ops))

            progress = False
            for op in ops:
                # Earlier operations in this pass may have compacted this one
                current = await self._ctx.queue.get(op.id)
                if current is None or current.status != OperationStatus.PENDING:
                    continue
                outcome = await self._push_one(current)
                if outcome == _Outcome.ABORT:
                    return result
                if outcome in (_Outcome.DONE, _Outcome.BACKED_OFF):
                    progress = True
                elif outcome == _Outcome.BENCHED:
                    benched.add(current.id)
            if not progress:
                break

        logger.info(
            "Push finished: %d pushed, %d failed, %d retrying, %d waiting",
            result.pushed,
            result.failed,
            result.retried,
            result.deferred,
        )
        return result

    async def _push_one(self, op: Operation) -> _Outcome:
        """Execute one operation and book the outcome."""
        ctx = self._ctx
        result = self._result
        try:
            await self._execute(op)
        except RemoteUnavailableError as e:
            logger.warning("Remote unavailable, aborting push: %s", e)
            result.aborted = True
            result.error = str(e)
            return _Outcome.ABORT
        except DependencyNotReadyError as e:
            logger.debug("Operation %s deferred: %s", op.id, e)
            await ctx.queue.mark_waiting(op, str(e))
            result.deferred += 1
            return _Outcome.WAITING
        except RateLimitedError as e:
            delay = await ctx.backoff(e)
            logger.warning("Rate limited on %s, backed off %.1fs", op.id, delay)
            await ctx.queue.mark_waiting(op, str(e))
            result.rate_limited += 1
            return _Outcome.BACKED_OFF
        except SyncError as e:
            if e.retryable:
                await self._retry_or_fail(op, e)
            else:
                failed = await ctx.queue.mark_failed(op, str(e))
                self._book_failure(failed, e)
            return _Outcome.BENCHED
        except Exception as e:
            logger.error("Unexpected error pushing operation %s", op.id, exc_info=True)
            await self._retry_or_fail(op, e)
            return _Outcome.BENCHED

        await ctx.queue.complete(op)
        result.pushed += 1
        ctx.observer.on_operation_complete(op)
        return _Outcome.DONE

    async def _retry_or_fail(self, op: Operation, error: Exception) -> None:
        updated = await self._ctx.queue.mark_retry(op, str(error), self._ctx.settings.max_retries)
        if updated.status == OperationStatus.FAILED:
            self._book_failure(updated, error)
        else:
            logger.info(
                "Operation %s will retry (%d/%d): %s",
                op.id,
                updated.retry_count,
                self._ctx.settings.max_retries,
                error,
            )
            self._result.retried += 1

    def _book_failure(self, op: Operation, error: Exception) -> None:
        self._result.failed += 1
        self._result.errors.append(f"{op.entity_type}/{op.record_id}: {error}")
        self._ctx.observer.on_operation_failed(op, error)

    # ========== Execution ==========

    async def _execute(self, op: Operation) -> None:
        schema = self._ctx.registry.get(op.entity_type)
        if op.type == OperationType.CREATE:
            await self._push_create(schema, op)
        elif op.type == OperationType.UPDATE:
            await self._push_update(schema, op)
        else:
            await self._push_delete(op)

    async def _push_create(self, schema: EntitySchema, op: Operation) -> str | None:
        ctx = self._ctx
        record = await ctx.store.get(op.entity_type, op.record_id)
        if record is None:
            logger.debug("Create for vanished %s/%s skipped", op.entity_type, op.record_id)
            return None
        if record.remote_id:
            logger.debug(
                "%s/%s already synced as %s", op.entity_type, op.record_id, record.remote_id
            )
            return record.remote_id

        container = ctx.require_container(op.entity_type)
        payload = schema.synced_payload({**record.fields, **op.data})
        properties = schema.to_properties(await ctx.normalizer.resolve_outgoing(schema, payload))

        await ctx.rate_limiter.wait_for_slot()
        remote_id = await ctx.remote.create_record(container, properties)

        fresh = await ctx.store.get(op.entity_type, op.record_id) or record
        synced = fresh.with_remote_id(remote_id).mark_synced()
        await ctx.store.put(synced)
        logger.debug("Created %s/%s as %s", op.entity_type, op.record_id, remote_id)
        self._result.fixups += await queue_relation_fixups(ctx, synced)
        return remote_id

    async def _push_update(self, schema: EntitySchema, op: Operation) -> None:
        ctx = self._ctx
        record = await ctx.store.get(op.entity_type, op.record_id)
        if record is None:
            logger.debug("Update for vanished %s/%s skipped", op.entity_type, op.record_id)
            return
        remote_id = record.remote_id or op.remote_id
        if not remote_id:
            raise DependencyNotReadyError(
                f"{op.entity_type}/{op.record_id} has no remote id yet",
                entity_type=op.entity_type,
                record_ids=(op.record_id,),
            )

        payload = schema.synced_payload(op.data)
        if payload:
            properties = schema.to_properties(
                await ctx.normalizer.resolve_outgoing(schema, payload)
            )
            await ctx.rate_limiter.wait_for_slot()
            await ctx.remote.update_record(remote_id, properties)

        fresh = await ctx.store.get(op.entity_type, op.record_id) or record
        await ctx.store.put(fresh.with_remote_id(remote_id).mark_synced())

    async def _push_delete(self, op: Operation) -> None:
        ctx = self._ctx
        record = await ctx.store.get(op.entity_type, op.record_id)
        remote_id = op.remote_id or (record.remote_id if record else None)
        if not remote_id:
            creates = [
                o
                for o in await ctx.queue.active_for(op.entity_type, op.record_id)
                if o.type == OperationType.CREATE
            ]
            if creates:
                raise DependencyNotReadyError(
                    f"Delete of {op.entity_type}/{op.record_id} waits for its create",
                    entity_type=op.entity_type,
                    record_ids=(op.record_id,),
                )
            logger.debug("Delete of never-synced %s/%s skipped", op.entity_type, op.record_id)
            return

        await ctx.rate_limiter.wait_for_slot()
        try:
            await ctx.remote.archive_record(remote_id)
        except PermanentRemoteError as e:
            if e.status_code != 404:
                raise
            logger.debug("Remote %s already gone", remote_id)

        if record is not None:
            await ctx.store.delete(op.entity_type, op.record_id)


async def queue_relation_fixups(ctx: SyncContext, record: EntityRecord) -> int:
    """Re-send synced dependents that referenced ``record`` before it had a remote id.

    Called whenever ``record`` is given a remote id, by its create or by a
    pull that linked it to an existing remote record.

    Returns:
        Number of update operations queued.
    """
    queued = 0
    for dep_schema, rel in ctx.registry.dependents_of(record.entity_type):
        dependents = await ctx.store.query(
            dep_schema.name,
            lambda r, rel=rel: r.synced
            and r.remote_id is not None
            and record.id in rel.values(r.fields),
        )
        for dependent in dependents:
            fixup = Operation.new(
                OperationType.UPDATE,
                dep_schema.name,
                dependent.id,
                data={rel.name: dependent.fields.get(rel.name)},
            )
            if await ctx.queue.enqueue(fixup) is not None:
                queued += 1
                logger.debug(
                    "Queued %s.%s fix-up for %s after %s/%s got remote id %s",
                    dep_schema.name,
                    rel.name,
                    dependent.id,
                    record.entity_type,
                    record.id,
                    record.remote_id,
                )
    return queued
