"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Any

import pytest

from tracker_sync.config import SyncSettings
from tracker_sync.core.schema import SchemaRegistry
from tracker_sync.entities import DEPENDENCY_ORDER, build_registry
from tracker_sync.remote.base import QueryPage, RemoteApi, RemoteRecord
from tracker_sync.storage.memory_store import InMemoryStore
from tracker_sync.sync.context import SyncContext, SyncObserver
from tracker_sync.sync.rate_limiter import RateLimiter
from tracker_sync.sync.writer import RecordWriter
from tracker_sync.utils.timeutils import utcnow


class FakeRemote(RemoteApi):
    """In-memory remote API that records every call.

    ``fail_next(method, *errors)`` makes the next calls of ``method`` raise
    the given exceptions in order. ``gate`` (an asyncio.Event) blocks
    ``query_records`` until set.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.records: dict[str, RemoteRecord] = {}
        self.container_of: dict[str, str] = {}
        self.errors: dict[str, list[Exception]] = defaultdict(list)
        self.page_size = 100
        self.gate: asyncio.Event | None = None
        self._counter = 0

    def fail_next(self, method: str, *errors: Exception) -> None:
        self.errors[method].extend(errors)

    def _maybe_fail(self, method: str) -> None:
        if self.errors[method]:
            raise self.errors[method].pop(0)

    def calls_of(self, kind: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == kind]

    def seed(
        self,
        container_id: str,
        properties: dict[str, Any],
        *,
        remote_id: str | None = None,
        last_edited_time: datetime | None = None,
        archived: bool = False,
    ) -> RemoteRecord:
        if remote_id is None:
            self._counter += 1
            remote_id = f"seed-{self._counter}"
        record = RemoteRecord(
            remote_id=remote_id,
            last_edited_time=last_edited_time or utcnow(),
            archived=archived,
            properties=properties,
        )
        self.records[remote_id] = record
        self.container_of[remote_id] = container_id
        return record

    async def create_record(self, container_id: str, properties: dict[str, Any]) -> str:
        self.calls.append(("create", container_id, properties))
        self._maybe_fail("create")
        self._counter += 1
        remote_id = f"r{self._counter}"
        self.seed(container_id, properties, remote_id=remote_id)
        return remote_id

    async def update_record(self, remote_id: str, properties: dict[str, Any]) -> None:
        self.calls.append(("update", remote_id, properties))
        self._maybe_fail("update")
        record = self.records.get(remote_id)
        if record is not None:
            self.records[remote_id] = replace(
                record,
                properties={**record.properties, **properties},
                last_edited_time=utcnow(),
            )

    async def archive_record(self, remote_id: str) -> None:
        self.calls.append(("archive", remote_id))
        self._maybe_fail("archive")
        record = self.records.get(remote_id)
        if record is not None:
            self.records[remote_id] = replace(record, archived=True, last_edited_time=utcnow())

    async def query_records(
        self,
        container_id: str,
        edited_since: datetime | None = None,
        sort_desc: bool = True,
        page_cursor: str | None = None,
    ) -> QueryPage:
        self.calls.append(("query", container_id, edited_since, page_cursor))
        if self.gate is not None:
            await self.gate.wait()
        self._maybe_fail("query")
        items = [
            r
            for rid, r in self.records.items()
            if self.container_of.get(rid) == container_id
            and (edited_since is None or r.last_edited_time >= edited_since)
        ]
        items.sort(key=lambda r: r.last_edited_time, reverse=sort_desc)
        start = int(page_cursor or 0)
        end = start + self.page_size
        has_more = end < len(items)
        return QueryPage(
            results=tuple(items[start:end]),
            has_more=has_more,
            next_cursor=str(end) if has_more else None,
        )

    async def get_record(self, remote_id: str) -> RemoteRecord:
        self.calls.append(("get", remote_id))
        self._maybe_fail("get")
        record = self.records.get(remote_id)
        if record is None:
            return RemoteRecord(remote_id=remote_id, last_edited_time=utcnow(), archived=True)
        return record


class RecordingObserver(SyncObserver):
    """Observer that keeps every event for assertions."""

    def __init__(self) -> None:
        self.completed: list[Any] = []
        self.failed: list[tuple[Any, Exception]] = []
        self.cycles: list[Any] = []
        self.errors: list[Exception] = []

    def on_operation_complete(self, operation: Any) -> None:
        self.completed.append(operation)

    def on_operation_failed(self, operation: Any, error: Exception) -> None:
        self.failed.append((operation, error))

    def on_cycle_finished(self, report: Any) -> None:
        self.cycles.append(report)

    def on_error(self, error: Exception) -> None:
        self.errors.append(error)


class SleepRecorder:
    """Awaitable sleep replacement that returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def registry() -> SchemaRegistry:
    return build_registry()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def limiter() -> RateLimiter:
    """Rate limiter that never waits."""
    return RateLimiter(0)


@pytest.fixture
def containers() -> dict[str, str]:
    return {entity_type: f"ds-{entity_type}" for entity_type in DEPENDENCY_ORDER}


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def settings() -> SyncSettings:
    return SyncSettings(rate_limit_ms=0, default_backoff_seconds=1.0)


@pytest.fixture
def context(
    store: InMemoryStore,
    remote: FakeRemote,
    registry: SchemaRegistry,
    containers: dict[str, str],
    settings: SyncSettings,
    limiter: RateLimiter,
    observer: RecordingObserver,
    sleep: SleepRecorder,
) -> SyncContext:
    return SyncContext(
        store=store,
        cursors=store,
        remote=remote,
        registry=registry,
        containers=containers,
        settings=settings,
        limiter=limiter,
        observer=observer,
        sleep=sleep,
    )


@pytest.fixture
def writer(store: InMemoryStore, registry: SchemaRegistry, context: SyncContext) -> RecordWriter:
    return RecordWriter(store, registry, context.queue)
