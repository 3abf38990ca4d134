"""Per-run wiring shared by the push, pull and repair engines."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from tracker_sync.config import SyncSettings
from tracker_sync.core.errors import ConfigurationError, RateLimitedError
from tracker_sync.sync.queue import OperationQueue
from tracker_sync.sync.rate_limiter import RateLimiter
from tracker_sync.sync.relations import RelationNormalizer

if TYPE_CHECKING:
    from tracker_sync.config import SyncConfig
    from tracker_sync.core.operation import Operation
    from tracker_sync.core.schema import SchemaRegistry
    from tracker_sync.remote.base import RemoteApi
    from tracker_sync.storage.base import CursorStore, LocalStore
    from tracker_sync.sync.orchestrator import SyncReport

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Tries per remote read before a rate limit is treated as a failure
MAX_RATE_LIMIT_ATTEMPTS = 5


class SyncObserver:
    """Callbacks fired by the engine. Every hook is a no-op by default.

    UI layers subclass this to show toasts, refresh views, and so on.
    """

    def on_operation_complete(self, operation: Operation) -> None:
        """An operation was pushed (or resolved as a no-op)."""

    def on_operation_failed(self, operation: Operation, error: Exception) -> None:
        """An operation was parked as failed."""

    def on_cycle_finished(self, report: SyncReport) -> None:
        """A sync cycle ended, successfully or not."""

    def on_error(self, error: Exception) -> None:
        """A cycle-level error aborted the current cycle."""


class LoggingObserver(SyncObserver):
    """Observer that writes every event to the module logger."""

    def on_operation_complete(self, operation: Operation) -> None:
        logger.debug(
            "Pushed %s %s/%s", operation.type, operation.entity_type, operation.record_id
        )

    def on_operation_failed(self, operation: Operation, error: Exception) -> None:
        logger.warning(
            "Operation %s (%s %s/%s) failed: %s",
            operation.id,
            operation.type,
            operation.entity_type,
            operation.record_id,
            error,
        )

    def on_cycle_finished(self, report: SyncReport) -> None:
        logger.info("Sync cycle finished: %s", report.summary())

    def on_error(self, error: Exception) -> None:
        logger.error("Sync cycle aborted: %s", error)


@dataclass
class SyncContext:
    """Everything one sync run needs, passed explicitly to each engine.

    Attributes:
        store: Local record store and queue persistence
        cursors: Pull cursor / bookkeeping store
        remote: Remote API client
        registry: Entity schemas in dependency order
        containers: Entity type -> remote container id
        settings: Engine tuning
        limiter: Shared rate limiter (built from settings when omitted)
        observer: Event sink
        sleep: Awaitable sleep used for rate-limit backoff
    """

    store: LocalStore
    cursors: CursorStore
    remote: RemoteApi
    registry: SchemaRegistry
    containers: dict[str, str] = field(default_factory=dict)
    settings: SyncSettings = field(default_factory=SyncSettings)
    limiter: RateLimiter | None = None
    observer: SyncObserver = field(default_factory=SyncObserver)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    queue: OperationQueue = field(init=False)
    normalizer: RelationNormalizer = field(init=False)

    def __post_init__(self) -> None:
        if self.limiter is None:
            self.limiter = RateLimiter(self.settings.rate_limit_ms)
        self.queue = OperationQueue(self.store)
        self.normalizer = RelationNormalizer(self.store)

    @property
    def rate_limiter(self) -> RateLimiter:
        assert self.limiter is not None
        return self.limiter

    def container_for(self, entity_type: str) -> str | None:
        return self.containers.get(entity_type) or None

    def require_container(self, entity_type: str) -> str:
        container = self.container_for(entity_type)
        if container is None:
            raise ConfigurationError(f"No remote container configured for {entity_type}")
        return container

    async def backoff(self, error: RateLimitedError) -> float:
        """Sleep for the server-indicated backoff, or the configured default."""
        delay = error.retry_after
        if delay is None:
            delay = self.settings.default_backoff_seconds
        await self.sleep(delay)
        return delay

    async def call_remote(self, request: Callable[[], Awaitable[T]]) -> T:
        """Run one remote read in a limiter slot, backing off on rate limits.

        The request is repeated after each backoff, up to
        ``MAX_RATE_LIMIT_ATTEMPTS`` tries.

        Raises:
            RateLimitedError: Still rate limited on the last try.
        """
        attempt = 0
        while True:
            await self.rate_limiter.wait_for_slot()
            try:
                return await request()
            except RateLimitedError as e:
                attempt += 1
                if attempt >= MAX_RATE_LIMIT_ATTEMPTS:
                    raise
                delay = await self.backoff(e)
                logger.warning(
                    "Rate limited, backed off %.1fs before retry %d/%d",
                    delay,
                    attempt,
                    MAX_RATE_LIMIT_ATTEMPTS,
                )

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        *,
        store: LocalStore,
        cursors: CursorStore,
        remote: RemoteApi,
        registry: SchemaRegistry,
        observer: SyncObserver | None = None,
    ) -> SyncContext:
        return cls(
            store=store,
            cursors=cursors,
            remote=remote,
            registry=registry,
            containers=dict(config.containers),
            settings=config.sync,
            observer=observer or LoggingObserver(),
        )
