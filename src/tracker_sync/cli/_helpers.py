"""Shared CLI helpers for configuration, storage and output formatting."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Coroutine
from typing import Any, TypeVar

import typer
from rich.console import Console

from tracker_sync.config import SyncConfig
from tracker_sync.entities import build_registry
from tracker_sync.remote.notion import NotionClient
from tracker_sync.storage.factory import open_store
from tracker_sync.storage.sqlite_store import SQLiteStore
from tracker_sync.sync.context import LoggingObserver, SyncContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

console = Console()

# Resources opened during a CLI command, closed before the event loop
# shuts down (aiosqlite's worker thread and aiohttp sessions need the loop).
_active_resources: list[Any] = []


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def get_config() -> SyncConfig:
    """Get CLI configuration."""
    return SyncConfig.load()


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async CLI command, closing stores and sessions afterwards."""

    async def _with_cleanup() -> T:
        try:
            return await coro
        finally:
            for resource in reversed(_active_resources):
                try:
                    await resource.close()
                except Exception:
                    logger.debug("Failed to close resource during cleanup", exc_info=True)
            _active_resources.clear()
            # Drain pending aiosqlite callbacks before the loop closes
            await asyncio.sleep(0)

    return asyncio.run(_with_cleanup())


async def get_store(config: SyncConfig) -> SQLiteStore:
    store = await open_store(config)
    _active_resources.append(store)
    return store


def get_remote(config: SyncConfig) -> NotionClient:
    """Build the Notion client, exiting with a hint when no token is set."""
    if not config.remote.configured:
        typer.secho(
            "No API token configured. Use 'tsync config set-remote --token ...' "
            "or set TRACKER_SYNC_TOKEN.",
            fg=typer.colors.RED,
        )
        raise typer.Exit(1)
    client = NotionClient(
        config.remote.token or "",
        base_url=config.remote.base_url,
        api_version=config.remote.api_version,
        proxy_url=config.remote.proxy_url,
        proxy_token=config.remote.proxy_token,
        timeout=config.remote.timeout,
    )
    _active_resources.append(client)
    return client


async def build_context(config: SyncConfig) -> SyncContext:
    store = await get_store(config)
    return SyncContext.from_config(
        config,
        store=store,
        cursors=store,
        remote=get_remote(config),
        registry=build_registry(config.sync.heuristic_window_seconds),
        observer=LoggingObserver(),
    )


def output_json(data: dict[str, Any]) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def mask(secret: str | None) -> str:
    if not secret:
        return "not set"
    if len(secret) <= 8:
        return "****"
    return f"{'*' * 8}...{secret[-4:]}"
