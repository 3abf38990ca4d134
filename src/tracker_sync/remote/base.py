"""Abstract interface for the remote relation-based database."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class RemoteRecord:
    """A record as returned by the remote API.

    Attributes:
        remote_id: Identifier assigned by the remote system
        last_edited_time: Remote last-edited timestamp (naive UTC)
        archived: True if the record was archived or deleted remotely
        properties: Raw remote properties keyed by remote property name
    """

    remote_id: str
    last_edited_time: datetime
    archived: bool = False
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class QueryPage:
    """One page of query results."""

    results: tuple[RemoteRecord, ...] = ()
    has_more: bool = False
    next_cursor: str | None = None


class RemoteApi(ABC):
    """Minimal remote operations consumed by the push and pull engines.

    Implementations raise the exceptions of ``tracker_sync.core.errors``
    so the engines can classify failures.
    """

    @abstractmethod
    async def create_record(self, container_id: str, properties: dict[str, Any]) -> str:
        """Create a record in a container and return its remote id."""
        ...

    @abstractmethod
    async def update_record(self, remote_id: str, properties: dict[str, Any]) -> None:
        """Overwrite the given properties of an existing record."""
        ...

    @abstractmethod
    async def archive_record(self, remote_id: str) -> None:
        """Archive (soft-delete) a record."""
        ...

    @abstractmethod
    async def query_records(
        self,
        container_id: str,
        edited_since: datetime | None = None,
        sort_desc: bool = True,
        page_cursor: str | None = None,
    ) -> QueryPage:
        """Fetch one page of records from a container.

        Args:
            container_id: Remote container (table) id
            edited_since: Only records edited at or after this time
            sort_desc: Sort by last-edited time, most recent first
            page_cursor: Cursor returned by the previous page

        Returns:
            The requested page
        """
        ...

    @abstractmethod
    async def get_record(self, remote_id: str) -> RemoteRecord:
        """Fetch a single record by remote id."""
        ...

    async def close(self) -> None:  # noqa: B027
        """Release network resources. No-op by default."""
