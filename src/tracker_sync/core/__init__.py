"""Core data model: records, operations, schemas and errors."""

from tracker_sync.core.errors import (
    AuthError,
    ConfigurationError,
    DependencyNotReadyError,
    PermanentRemoteError,
    RateLimitedError,
    RemoteUnavailableError,
    SyncError,
    TransientError,
)
from tracker_sync.core.operation import Operation, OperationStatus, OperationType
from tracker_sync.core.record import EntityRecord, generate_id
from tracker_sync.core.schema import EntitySchema, FieldSpec, RelationSpec, SchemaRegistry

__all__ = [
    "AuthError",
    "ConfigurationError",
    "DependencyNotReadyError",
    "EntityRecord",
    "EntitySchema",
    "FieldSpec",
    "Operation",
    "OperationStatus",
    "OperationType",
    "PermanentRemoteError",
    "RateLimitedError",
    "RelationSpec",
    "RemoteUnavailableError",
    "SchemaRegistry",
    "SyncError",
    "TransientError",
    "generate_id",
]
