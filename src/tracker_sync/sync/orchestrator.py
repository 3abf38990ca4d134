"""Sync cycle driver: single-flight runs, triggers and the periodic loop.

One cycle is push then pull (pull ends with the relation repair pass).
At most one cycle runs at a time; a trigger that arrives while a cycle is
running is dropped, not queued. A running cycle is never cancelled
mid-flight: ``stop()`` lets it finish before the loop exits.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from tracker_sync.core.errors import RemoteUnavailableError
from tracker_sync.sync.pull import PullEngine, PullResult
from tracker_sync.sync.push import PushEngine, PushResult
from tracker_sync.utils.timeutils import to_iso, utcnow

if TYPE_CHECKING:
    from tracker_sync.sync.context import SyncContext

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """What one sync cycle did."""

    trigger: str
    started_at: datetime
    finished_at: datetime | None = None
    push: PushResult | None = None
    pull: PullResult | None = None
    skipped: str | None = None  # "offline" or "not_configured"
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.skipped is None and self.error is None

    def summary(self) -> str:
        if self.skipped:
            return f"skipped ({self.skipped})"
        parts = []
        if self.push is not None:
            parts.append(f"pushed {self.push.pushed}, failed {self.push.failed}")
        if self.pull is not None:
            parts.append(
                f"pulled {self.pull.fetched} "
                f"(+{self.pull.inserted} ~{self.pull.updated} -{self.pull.deleted})"
            )
        if self.error:
            parts.append(f"error: {self.error}")
        return "; ".join(parts) or "nothing to do"

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger,
            "started_at": to_iso(self.started_at),
            "finished_at": to_iso(self.finished_at) if self.finished_at else None,
            "push": self.push.to_dict() if self.push else None,
            "pull": self.pull.to_dict() if self.pull else None,
            "skipped": self.skipped,
            "error": self.error,
        }


@dataclass(frozen=True)
class SyncStatusSummary:
    """Overall status for UI surfaces."""

    pending: int
    failed: int
    syncing: bool
    last_sync_at: datetime | None
    last_error: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "pending": self.pending,
            "failed": self.failed,
            "syncing": self.syncing,
            "last_sync_at": to_iso(self.last_sync_at) if self.last_sync_at else None,
            "last_error": self.last_error,
        }


def _always_true() -> bool:
    return True


class SyncOrchestrator:
    """Run sync cycles against one ``SyncContext``.

    Usage:
        orchestrator = SyncOrchestrator(context, is_online=probe)
        report = await orchestrator.run("manual")

        orchestrator.start_periodic(300)
        ...
        await orchestrator.stop()
    """

    def __init__(
        self,
        context: SyncContext,
        *,
        is_online: Callable[[], bool] | None = None,
        is_configured: Callable[[], bool] | None = None,
    ) -> None:
        self._ctx = context
        self._is_online = is_online or _always_true
        self._is_configured = is_configured or (lambda: bool(context.containers))
        self._running = False
        self._last_error: str | None = None
        self._periodic_task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self._triggered: set[asyncio.Task[SyncReport | None]] = set()

    @property
    def context(self) -> SyncContext:
        return self._ctx

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_error(self) -> str | None:
        return self._last_error

    async def run(self, trigger: str = "manual") -> SyncReport | None:
        """Run one full cycle.

        Returns:
            The cycle report, or None if another cycle was already running.
        """
        if self._running:
            logger.debug("Sync already running, dropping %s trigger", trigger)
            return None

        self._running = True
        report = SyncReport(trigger=trigger, started_at=utcnow())
        try:
            if not self._is_online():
                logger.info("Offline, skipping sync")
                report.skipped = "offline"
            elif not self._is_configured():
                logger.info("Sync not configured, skipping")
                report.skipped = "not_configured"
            else:
                await self._cycle(report)
        except Exception as e:
            logger.error("Sync cycle failed", exc_info=True)
            report.error = str(e)
            self._last_error = str(e)
            self._ctx.observer.on_error(e)
        finally:
            self._running = False
            report.finished_at = utcnow()

        self._ctx.observer.on_cycle_finished(report)
        return report

    async def _cycle(self, report: SyncReport) -> None:
        ctx = self._ctx
        report.push = await PushEngine(ctx).push_pending()
        if report.push.aborted:
            raise RemoteUnavailableError(report.push.error or "Remote API unreachable")

        report.pull = await PullEngine(ctx).pull_remote_updates(sync_start=report.started_at)
        if report.pull.aborted:
            raise RemoteUnavailableError(report.pull.error or "Remote API unreachable")

        await ctx.cursors.set_last_sync(utcnow())
        self._last_error = None

    def trigger(self, reason: str = "manual") -> asyncio.Task[SyncReport | None] | None:
        """Schedule a background cycle. Dropped if one is already running."""
        if self._running:
            logger.debug("Sync already running, dropping %s trigger", reason)
            return None
        task = asyncio.create_task(self.run(reason))
        self._triggered.add(task)
        task.add_done_callback(self._triggered.discard)
        task.add_done_callback(_log_task_exception)
        return task

    def start_periodic(self, interval_seconds: float | None = None) -> asyncio.Task[None]:
        """Start the periodic sync loop. Guards against double-start."""
        if self._periodic_task is not None and not self._periodic_task.done():
            return self._periodic_task

        interval = interval_seconds or self._ctx.settings.interval_minutes * 60
        self._stop_event = asyncio.Event()
        task = asyncio.create_task(self._periodic_loop(interval, self._stop_event))
        task.add_done_callback(_log_task_exception)
        self._periodic_task = task
        logger.info("Periodic sync started: every %.0fs", interval)
        return task

    async def _periodic_loop(self, interval: float, stop: asyncio.Event) -> None:
        """Run a cycle, then wait ``interval`` or until stopped."""
        while not stop.is_set():
            await self.run("periodic")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except TimeoutError:
                continue

    async def stop(self) -> None:
        """Stop the periodic loop and wait for in-flight cycles to finish."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._periodic_task is not None:
            await self._periodic_task
            self._periodic_task = None
            logger.debug("Periodic sync stopped")
        if self._triggered:
            await asyncio.gather(*self._triggered, return_exceptions=True)

    async def status(self) -> SyncStatusSummary:
        counts = await self._ctx.queue.counts()
        return SyncStatusSummary(
            pending=counts.pending,
            failed=counts.failed,
            syncing=self._running,
            last_sync_at=await self._ctx.cursors.get_last_sync(),
            last_error=self._last_error,
        )


def _log_task_exception(task: asyncio.Task[Any]) -> None:
    """Log unhandled exceptions from background sync tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background sync task raised unhandled exception: %s", exc)
