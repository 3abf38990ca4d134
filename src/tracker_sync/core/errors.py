"""Error taxonomy for the sync engine.

Push classifies every failure into one of these classes to decide whether an
operation is retried, parked as failed, or aborts the whole cycle.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync engine errors."""

    retryable: bool = False

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(SyncError):
    """Missing container id, credentials, or other required setting."""


class DependencyNotReadyError(SyncError):
    """A required relation target has no remote id yet.

    Retried without consuming the bounded retry budget.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        entity_type: str = "",
        record_ids: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        self.entity_type = entity_type
        self.record_ids = record_ids


class RateLimitedError(SyncError):
    """The remote API signaled that throughput was exceeded."""

    retryable = True

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class AuthError(SyncError):
    """Authentication or authorization failure. Never retried automatically."""


class TransientError(SyncError):
    """Network or server error, retried up to the configured budget."""

    retryable = True


class RemoteUnavailableError(TransientError):
    """The remote API cannot be reached at all; aborts the current cycle."""


class PermanentRemoteError(SyncError):
    """The remote API rejected the request (validation, not found, ...)."""
