"""Sync engine: queue, push, pull, reconciliation and orchestration."""

from tracker_sync.sync.context import LoggingObserver, SyncContext, SyncObserver
from tracker_sync.sync.orchestrator import SyncOrchestrator, SyncReport, SyncStatusSummary
from tracker_sync.sync.pull import PullEngine, PullResult
from tracker_sync.sync.push import PushEngine, PushResult
from tracker_sync.sync.queue import OperationQueue, QueueCounts
from tracker_sync.sync.rate_limiter import RateLimiter
from tracker_sync.sync.reconcile import ReconcileOutcome, Reconciler
from tracker_sync.sync.relations import RelationNormalizer, RelationResolution, RemoteResolution
from tracker_sync.sync.repair import RelationRepairer, RepairResult
from tracker_sync.sync.writer import RecordWriter

__all__ = [
    "LoggingObserver",
    "OperationQueue",
    "PullEngine",
    "PullResult",
    "PushEngine",
    "PushResult",
    "QueueCounts",
    "RateLimiter",
    "ReconcileOutcome",
    "Reconciler",
    "RecordWriter",
    "RelationNormalizer",
    "RelationRepairer",
    "RelationResolution",
    "RemoteResolution",
    "RepairResult",
    "SyncContext",
    "SyncObserver",
    "SyncOrchestrator",
    "SyncReport",
    "SyncStatusSummary",
]
