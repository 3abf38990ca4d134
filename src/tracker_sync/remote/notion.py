"""Notion data source client over HTTP."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

import aiohttp

from tracker_sync.core.errors import (
    AuthError,
    ConfigurationError,
    PermanentRemoteError,
    RateLimitedError,
    RemoteUnavailableError,
    SyncError,
    TransientError,
)
from tracker_sync.remote.base import QueryPage, RemoteApi, RemoteRecord
from tracker_sync.utils.timeutils import parse_iso, to_remote_iso, utcnow

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.notion.com/v1"
DEFAULT_API_VERSION = "2025-09-03"


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _error_message(status: int, payload: Any, text: str) -> str:
    if isinstance(payload, dict):
        message = payload.get("message")
        if not message and isinstance(payload.get("error"), dict):
            message = payload["error"].get("message")
        if message:
            return f"API Error {status}: {message}"
    if text and len(text) < 200:
        return f"API Error {status}: {text}"
    return f"API Error {status}"


def page_to_record(page: dict[str, Any]) -> RemoteRecord:
    """Convert a raw page object into a RemoteRecord."""
    return RemoteRecord(
        remote_id=page["id"],
        last_edited_time=parse_iso(page.get("last_edited_time")) or utcnow(),
        archived=bool(page.get("archived") or page.get("in_trash")),
        properties=dict(page.get("properties") or {}),
    )


class NotionClient(RemoteApi):
    """
    Async client for Notion data sources.

    All calls can be routed through a CORS/auth proxy: when ``proxy_url`` is
    set, the real target is passed as ``?url=<target>&token=<proxy token>``.

    Usage:
        async with NotionClient(token="secret_...") as client:
            page = await client.query_records("ds-123")
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        api_version: str = DEFAULT_API_VERSION,
        proxy_url: str | None = None,
        proxy_token: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the client.

        Args:
            token: Integration token sent as a Bearer credential
            base_url: Notion API root
            api_version: Value of the Notion-Version header
            proxy_url: Optional proxy worker URL
            proxy_token: Optional shared secret for the proxy
            timeout: Request timeout in seconds
        """
        if not token:
            raise ConfigurationError("Notion token not configured")
        self._token = token.strip()
        self._base_url = base_url.rstrip("/")
        self._api_version = api_version
        self._proxy_url = proxy_url.strip().rstrip("/") if proxy_url else None
        self._proxy_token = proxy_token.strip() if proxy_token else None
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def connect(self) -> None:
        """Create the HTTP session if needed."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> NotionClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Notion-Version": self._api_version,
            "Content-Type": "application/json",
        }

    def _build_target(self, path: str) -> tuple[str, dict[str, str] | None]:
        """Resolve the request URL and query params (proxy-aware)."""
        target = f"{self._base_url}{path}"
        if not self._proxy_url:
            return target, None
        params = {"url": target}
        if self._proxy_token:
            params["token"] = self._proxy_token
        return self._proxy_url, params

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an HTTP request and classify failures into sync errors."""
        if not self._session:
            await self.connect()

        assert self._session is not None

        url, params = self._build_target(path)

        try:
            async with self._session.request(
                method,
                url,
                json=json_data,
                params=params,
                headers=self._get_headers(),
            ) as response:
                if response.status == 429:
                    retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                    raise RateLimitedError(
                        f"Rate limited. Retry after {retry_after or 'default'}s",
                        retry_after=retry_after,
                    )
                if response.status >= 400:
                    text = await response.text()
                    try:
                        payload = await response.json(content_type=None)
                    except ValueError:
                        payload = None
                    message = _error_message(response.status, payload, text)
                    if response.status in (401, 403):
                        raise AuthError(message, status_code=response.status)
                    if response.status >= 500:
                        raise TransientError(message, status_code=response.status)
                    raise PermanentRemoteError(message, status_code=response.status)
                return await response.json()
        except SyncError:
            raise
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise RemoteUnavailableError(f"Connection error: {e}") from e
        except aiohttp.ClientError as e:
            raise TransientError(f"Request failed: {e}") from e

    # ========== Records ==========

    async def create_record(self, container_id: str, properties: dict[str, Any]) -> str:
        body = {
            "parent": {"type": "data_source_id", "data_source_id": container_id},
            "properties": properties,
        }
        result = await self._request("POST", "/pages", json_data=body)
        remote_id = result.get("id")
        if not remote_id:
            raise PermanentRemoteError("Create response did not include a page id")
        return str(remote_id)

    async def update_record(self, remote_id: str, properties: dict[str, Any]) -> None:
        await self._request("PATCH", f"/pages/{remote_id}", json_data={"properties": properties})

    async def archive_record(self, remote_id: str) -> None:
        await self._request("PATCH", f"/pages/{remote_id}", json_data={"archived": True})

    async def query_records(
        self,
        container_id: str,
        edited_since: datetime | None = None,
        sort_desc: bool = True,
        page_cursor: str | None = None,
    ) -> QueryPage:
        body: dict[str, Any] = {
            "sorts": [
                {
                    "timestamp": "last_edited_time",
                    "direction": "descending" if sort_desc else "ascending",
                }
            ],
        }
        if edited_since is not None:
            body["filter"] = {
                "timestamp": "last_edited_time",
                "last_edited_time": {"on_or_after": to_remote_iso(edited_since)},
            }
        if page_cursor:
            body["start_cursor"] = page_cursor

        result = await self._request("POST", f"/data_sources/{container_id}/query", json_data=body)
        return QueryPage(
            results=tuple(
                page_to_record(page) for page in result.get("results", []) if page.get("id")
            ),
            has_more=bool(result.get("has_more")),
            next_cursor=result.get("next_cursor"),
        )

    async def get_record(self, remote_id: str) -> RemoteRecord:
        """Fetch one page. A page that no longer exists comes back archived."""
        try:
            result = await self._request("GET", f"/pages/{remote_id}")
        except PermanentRemoteError as e:
            if e.status_code == 404:
                logger.debug("Page %s not found, treating as archived", remote_id)
                return RemoteRecord(remote_id=remote_id, last_edited_time=utcnow(), archived=True)
            raise
        return page_to_record(result)

    async def verify_connection(self) -> dict[str, Any]:
        """Check the token by fetching the integration's bot user."""
        return await self._request("GET", "/users/me")
