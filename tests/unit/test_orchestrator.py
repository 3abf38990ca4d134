"""Tests for sync cycles, single-flight runs and the periodic loop."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from tracker_sync.core.errors import RemoteUnavailableError, TransientError
from tracker_sync.core.operation import OperationType
from tracker_sync.entities import PETS
from tracker_sync.storage.memory_store import InMemoryStore
from tracker_sync.sync.context import SyncContext
from tracker_sync.sync.orchestrator import SyncOrchestrator
from tracker_sync.sync.writer import RecordWriter

if TYPE_CHECKING:
    from conftest import FakeRemote, RecordingObserver


# ── Single cycle ─────────────────────────────────────────────────────────────


class TestRun:
    """One push-then-pull cycle."""

    async def test_cycle_pushes_then_pulls(
        self,
        context: SyncContext,
        writer: RecordWriter,
        remote: FakeRemote,
        store: InMemoryStore,
        observer: RecordingObserver,
    ) -> None:
        await writer.create(PETS, {"name": "Luna"})

        report = await SyncOrchestrator(context).run("manual")

        assert report is not None
        assert report.ok
        assert report.trigger == "manual"
        assert report.push is not None and report.push.pushed == 1
        assert report.pull is not None and report.pull.fetched == 1
        # The pulled copy of the pushed pet is matched by remote id
        assert len(await store.get_all(PETS)) == 1
        assert remote.calls[0][0] == "create"
        assert await store.get_last_sync() is not None
        assert observer.cycles == [report]
        assert report.finished_at is not None

    async def test_unarchived_delete_is_not_pulled_back(
        self,
        context: SyncContext,
        writer: RecordWriter,
        remote: FakeRemote,
        store: InMemoryStore,
    ) -> None:
        record = await writer.create(PETS, {"name": "Luna"})
        orchestrator = SyncOrchestrator(context)
        await orchestrator.run()
        await writer.delete(PETS, record.id)
        remote.fail_next("archive", TransientError("Bad gateway", status_code=502))

        report = await orchestrator.run()

        assert report is not None
        assert report.push is not None and report.push.retried == 1
        assert report.pull is not None and report.pull.fetched == 1
        assert await store.get_all(PETS) == []
        (pending,) = await context.queue.all()
        assert pending.type == OperationType.DELETE
        assert pending.remote_id == "r1"

        await orchestrator.run()

        assert await store.get_all(PETS) == []
        assert await context.queue.all() == []
        assert remote.records["r1"].archived is True

    async def test_offline_skips_without_remote_calls(
        self,
        context: SyncContext,
        remote: FakeRemote,
        store: InMemoryStore,
        observer: RecordingObserver,
    ) -> None:
        report = await SyncOrchestrator(context, is_online=lambda: False).run("timer")

        assert report is not None
        assert report.skipped == "offline"
        assert not report.ok
        assert remote.calls == []
        assert await store.get_last_sync() is None
        assert observer.cycles == [report]

    async def test_not_configured_skips(self, context: SyncContext, remote: FakeRemote) -> None:
        context.containers.clear()

        report = await SyncOrchestrator(context).run()

        assert report is not None
        assert report.skipped == "not_configured"
        assert remote.calls == []

    async def test_remote_unavailable_during_push_stops_cycle(
        self,
        context: SyncContext,
        writer: RecordWriter,
        remote: FakeRemote,
        store: InMemoryStore,
        observer: RecordingObserver,
    ) -> None:
        await writer.create(PETS, {"name": "Luna"})
        remote.fail_next("create", RemoteUnavailableError("Cannot connect"))
        orchestrator = SyncOrchestrator(context)

        report = await orchestrator.run()

        assert report is not None
        assert report.error == "Cannot connect"
        assert report.pull is None
        assert remote.calls_of("query") == []
        assert await store.get_last_sync() is None
        assert orchestrator.last_error == "Cannot connect"
        assert len(observer.errors) == 1
        assert observer.cycles == [report]
        assert len(await context.queue.pending()) == 1

    async def test_remote_unavailable_during_pull_reports_error(
        self, context: SyncContext, remote: FakeRemote, store: InMemoryStore
    ) -> None:
        remote.fail_next("query", RemoteUnavailableError("Cannot connect"))

        report = await SyncOrchestrator(context).run()

        assert report is not None
        assert report.error == "Cannot connect"
        assert report.pull is not None and report.pull.aborted
        assert await store.get_last_sync() is None

    async def test_successful_cycle_clears_last_error(
        self, context: SyncContext, remote: FakeRemote
    ) -> None:
        orchestrator = SyncOrchestrator(context)
        remote.fail_next("query", RemoteUnavailableError("Cannot connect"))
        await orchestrator.run()
        assert orchestrator.last_error == "Cannot connect"

        await orchestrator.run()

        assert orchestrator.last_error is None

    async def test_report_serializes(self, context: SyncContext) -> None:
        report = await SyncOrchestrator(context).run("manual")

        assert report is not None
        data = report.to_dict()
        assert data["trigger"] == "manual"
        assert data["push"]["pushed"] == 0
        assert data["pull"]["types_pulled"]
        assert "pushed 0" in report.summary()


# ── Single flight ────────────────────────────────────────────────────────────


class TestSingleFlight:
    """At most one cycle at a time; overlapping triggers are dropped."""

    async def test_second_run_while_running_is_dropped(
        self, context: SyncContext, remote: FakeRemote
    ) -> None:
        remote.gate = asyncio.Event()
        orchestrator = SyncOrchestrator(context)

        first = asyncio.create_task(orchestrator.run("timer"))
        while not remote.calls_of("query"):
            await asyncio.sleep(0)
        assert orchestrator.is_running

        second = await orchestrator.run("visibility")
        assert second is None
        assert orchestrator.trigger("connectivity") is None

        remote.gate.set()
        report = await first
        assert report is not None
        assert report.ok
        assert not orchestrator.is_running

    async def test_trigger_runs_in_background(
        self, context: SyncContext, observer: RecordingObserver
    ) -> None:
        orchestrator = SyncOrchestrator(context)

        task = orchestrator.trigger("connectivity")

        assert task is not None
        report = await task
        assert report is not None
        assert report.trigger == "connectivity"
        assert observer.cycles == [report]


# ── Periodic loop ────────────────────────────────────────────────────────────


class TestPeriodic:
    """The timer-driven loop."""

    async def test_runs_immediately_and_stops_cleanly(
        self, context: SyncContext, observer: RecordingObserver
    ) -> None:
        orchestrator = SyncOrchestrator(context)

        task = orchestrator.start_periodic(3600)
        while not observer.cycles:
            await asyncio.sleep(0)
        await orchestrator.stop()

        assert task.done()
        assert len(observer.cycles) == 1
        assert observer.cycles[0].trigger == "periodic"

    async def test_repeats_every_interval(
        self, context: SyncContext, observer: RecordingObserver
    ) -> None:
        orchestrator = SyncOrchestrator(context)

        orchestrator.start_periodic(0.01)
        while len(observer.cycles) < 3:
            await asyncio.sleep(0.005)
        await orchestrator.stop()

        assert len(observer.cycles) >= 3

    async def test_double_start_returns_same_task(self, context: SyncContext) -> None:
        orchestrator = SyncOrchestrator(context)

        first = orchestrator.start_periodic(3600)
        second = orchestrator.start_periodic(3600)

        assert first is second
        await orchestrator.stop()

    async def test_stop_without_start_is_noop(self, context: SyncContext) -> None:
        await SyncOrchestrator(context).stop()


# ── Status ───────────────────────────────────────────────────────────────────


class TestStatus:
    """Status summary for UI surfaces."""

    async def test_status_counts_queue(
        self, context: SyncContext, writer: RecordWriter, remote: FakeRemote
    ) -> None:
        await writer.create(PETS, {"name": "Luna"})
        orchestrator = SyncOrchestrator(context)

        status = await orchestrator.status()

        assert status.pending == 1
        assert status.failed == 0
        assert status.syncing is False
        assert status.last_sync_at is None
        assert status.to_dict()["pending"] == 1

    async def test_status_after_cycle(self, context: SyncContext) -> None:
        orchestrator = SyncOrchestrator(context)
        await orchestrator.run()

        status = await orchestrator.status()

        assert status.last_sync_at is not None
        assert status.last_error is None
