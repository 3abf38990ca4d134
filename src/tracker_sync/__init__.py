"""tracker-sync: offline-first two-way sync between a local store and Notion."""

from tracker_sync.core.errors import SyncError
from tracker_sync.core.operation import Operation, OperationStatus, OperationType
from tracker_sync.core.record import EntityRecord
from tracker_sync.entities import DEPENDENCY_ORDER, build_registry
from tracker_sync.sync.context import SyncContext, SyncObserver
from tracker_sync.sync.orchestrator import SyncOrchestrator, SyncReport
from tracker_sync.sync.writer import RecordWriter

__version__ = "0.4.0"

__all__ = [
    "DEPENDENCY_ORDER",
    "EntityRecord",
    "Operation",
    "OperationStatus",
    "OperationType",
    "RecordWriter",
    "SyncContext",
    "SyncError",
    "SyncObserver",
    "SyncOrchestrator",
    "SyncReport",
    "__version__",
    "build_registry",
]
