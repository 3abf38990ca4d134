"""Remote API layer: abstract interface, Notion client and property codec."""

from tracker_sync.remote.base import QueryPage, RemoteApi, RemoteRecord
from tracker_sync.remote.notion import NotionClient

__all__ = ["NotionClient", "QueryPage", "RemoteApi", "RemoteRecord"]
