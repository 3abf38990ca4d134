"""Pull engine: fetch remote changes per entity type and reconcile them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import partial
from typing import TYPE_CHECKING

from tracker_sync.core.errors import RemoteUnavailableError
from tracker_sync.sync.reconcile import ReconcileOutcome, Reconciler
from tracker_sync.sync.repair import RelationRepairer, RepairResult
from tracker_sync.utils.timeutils import utcnow

if TYPE_CHECKING:
    from tracker_sync.core.schema import EntitySchema
    from tracker_sync.sync.context import SyncContext

logger = logging.getLogger(__name__)


@dataclass
class PullResult:
    """Outcome counters of one pull call."""

    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    linked: int = 0
    unchanged: int = 0
    deleted: int = 0
    failed: int = 0
    pages: int = 0
    types_pulled: list[str] = field(default_factory=list)
    types_failed: list[str] = field(default_factory=list)
    repair: RepairResult | None = None
    aborted: bool = False
    error: str | None = None

    def count(self, outcome: ReconcileOutcome) -> None:
        if outcome == ReconcileOutcome.INSERTED:
            self.inserted += 1
        elif outcome == ReconcileOutcome.UPDATED:
            self.updated += 1
        elif outcome == ReconcileOutcome.LINKED:
            self.linked += 1
        elif outcome == ReconcileOutcome.DELETED:
            self.deleted += 1
        else:
            self.unchanged += 1

    def to_dict(self) -> dict[str, object]:
        return {
            "fetched": self.fetched,
            "inserted": self.inserted,
            "updated": self.updated,
            "linked": self.linked,
            "unchanged": self.unchanged,
            "deleted": self.deleted,
            "failed": self.failed,
            "pages": self.pages,
            "types_pulled": list(self.types_pulled),
            "types_failed": list(self.types_failed),
            "repair": self.repair.to_dict() if self.repair else None,
            "aborted": self.aborted,
            "error": self.error,
        }


class PullEngine:
    """Incremental pull of every configured entity type in dependency order.

    Each type is fetched newest-first from ``cursor - overlap`` (or in
    full when no cursor exists). Every record on a page is reconciled
    before the next page is requested. The cursor then advances to
    ``max(previous cursor, sync start, newest edit seen)`` so it never
    moves backwards. The relation repair pass runs last.
    """

    def __init__(self, context: SyncContext) -> None:
        self._ctx = context

    async def pull_remote_updates(self, sync_start: datetime | None = None) -> PullResult:
        ctx = self._ctx
        sync_start = sync_start or utcnow()
        result = PullResult()
        reconciler = Reconciler(ctx)

        for schema in ctx.registry:
            container = ctx.container_for(schema.name)
            if container is None:
                logger.debug("No container configured for %s, skipping pull", schema.name)
                continue
            try:
                await self._pull_type(schema, container, sync_start, reconciler, result)
            except RemoteUnavailableError as e:
                logger.warning("Remote unavailable, aborting pull: %s", e)
                result.aborted = True
                result.error = str(e)
                return result
            except Exception:
                logger.warning("Pull of %s failed, cursor kept", schema.name, exc_info=True)
                result.types_failed.append(schema.name)
                continue
            result.types_pulled.append(schema.name)

        result.repair = await RelationRepairer(ctx).repair_broken_relations(reconciler.suspects)

        logger.info(
            "Pull finished: %d fetched, %d inserted, %d updated, %d deleted",
            result.fetched,
            result.inserted,
            result.updated,
            result.deleted,
        )
        return result

    async def _pull_type(
        self,
        schema: EntitySchema,
        container: str,
        sync_start: datetime,
        reconciler: Reconciler,
        result: PullResult,
    ) -> None:
        ctx = self._ctx
        previous = await ctx.cursors.get_cursor(schema.name)
        edited_since = None
        if previous is not None:
            edited_since = previous - timedelta(minutes=ctx.settings.overlap_minutes)

        newest: datetime | None = None
        page_cursor: str | None = None
        while True:
            page = await ctx.call_remote(
                partial(
                    ctx.remote.query_records,
                    container,
                    edited_since=edited_since,
                    sort_desc=True,
                    page_cursor=page_cursor,
                )
            )
            result.pages += 1

            for remote in page.results:
                result.fetched += 1
                if newest is None or remote.last_edited_time > newest:
                    newest = remote.last_edited_time
                try:
                    result.count(await reconciler.reconcile_record(schema.name, remote))
                except Exception:
                    logger.warning(
                        "Failed to reconcile %s %s",
                        schema.name,
                        remote.remote_id,
                        exc_info=True,
                    )
                    result.failed += 1

            if not page.has_more or not page.next_cursor:
                break
            page_cursor = page.next_cursor

        cursor = max(c for c in (previous, sync_start, newest) if c is not None)
        await ctx.cursors.set_cursor(schema.name, cursor)
        logger.debug("Cursor for %s advanced to %s", schema.name, cursor.isoformat())
