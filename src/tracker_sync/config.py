"""Configuration for tracker-sync.

Configuration is stored in ~/.tracker-sync/config.toml and the local store
in ~/.tracker-sync/tracker.db. The data directory can be moved with the
TRACKER_SYNC_DIR environment variable, and TRACKER_SYNC_TOKEN overrides the
API token so it never has to be written to disk.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tracker_sync.remote.notion import DEFAULT_API_VERSION, DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

# Entity type / container keys written as bare TOML keys
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")


def get_data_dir() -> Path:
    """Get tracker-sync data directory.

    Priority:
    1. TRACKER_SYNC_DIR environment variable
    2. ~/.tracker-sync/
    """
    env_dir = os.environ.get("TRACKER_SYNC_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".tracker-sync"


def _clamp_int(value: Any, default: int, low: int, high: int) -> int:
    try:
        return max(low, min(int(value), high))
    except (ValueError, TypeError):
        return default


def _clamp_float(value: Any, default: float, low: float, high: float) -> float:
    try:
        return max(low, min(float(value), high))
    except (ValueError, TypeError):
        return default


def _toml_str(value: str) -> str:
    # JSON string escaping is valid for TOML basic strings
    return json.dumps(value)


@dataclass(frozen=True)
class RemoteSettings:
    """Remote API connection settings."""

    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    token: str | None = None
    proxy_url: str | None = None
    proxy_token: str | None = None
    timeout: float = 30.0

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "base_url": self.base_url,
            "api_version": self.api_version,
            "timeout": self.timeout,
        }
        if self.token:
            result["token"] = self.token
        if self.proxy_url:
            result["proxy_url"] = self.proxy_url
        if self.proxy_token:
            result["proxy_token"] = self.proxy_token
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteSettings:
        return cls(
            base_url=str(data.get("base_url") or DEFAULT_BASE_URL).rstrip("/"),
            api_version=str(data.get("api_version") or DEFAULT_API_VERSION),
            token=data.get("token") or None,
            proxy_url=(data.get("proxy_url") or "").strip() or None,
            proxy_token=(data.get("proxy_token") or "").strip() or None,
            timeout=_clamp_float(data.get("timeout", 30.0), 30.0, 1.0, 300.0),
        )


@dataclass(frozen=True)
class SyncSettings:
    """Tuning knobs for the sync engine."""

    rate_limit_ms: int = 350  # ~3 requests/second
    overlap_minutes: int = 5
    max_retries: int = 3
    interval_minutes: int = 5
    default_backoff_seconds: float = 1.0
    heuristic_window_seconds: float = 120.0
    max_passes: int | None = None  # None = one pass per entity type

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "rate_limit_ms": self.rate_limit_ms,
            "overlap_minutes": self.overlap_minutes,
            "max_retries": self.max_retries,
            "interval_minutes": self.interval_minutes,
            "default_backoff_seconds": self.default_backoff_seconds,
            "heuristic_window_seconds": self.heuristic_window_seconds,
        }
        if self.max_passes is not None:
            result["max_passes"] = self.max_passes
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncSettings:
        raw_passes = data.get("max_passes")
        return cls(
            rate_limit_ms=_clamp_int(data.get("rate_limit_ms", 350), 350, 0, 60_000),
            overlap_minutes=_clamp_int(data.get("overlap_minutes", 5), 5, 0, 1440),
            max_retries=_clamp_int(data.get("max_retries", 3), 3, 1, 100),
            interval_minutes=_clamp_int(data.get("interval_minutes", 5), 5, 1, 1440),
            default_backoff_seconds=_clamp_float(
                data.get("default_backoff_seconds", 1.0), 1.0, 0.0, 300.0
            ),
            heuristic_window_seconds=_clamp_float(
                data.get("heuristic_window_seconds", 120.0), 120.0, 0.0, 86_400.0
            ),
            max_passes=_clamp_int(raw_passes, 1, 1, 50) if raw_passes is not None else None,
        )


@dataclass
class SyncConfig:
    """Top-level configuration.

    Storage location: ~/.tracker-sync/config.toml
    """

    data_dir: Path = field(default_factory=get_data_dir)
    remote: RemoteSettings = field(default_factory=RemoteSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    # entity type -> remote container (data source) id
    containers: dict[str, str] = field(default_factory=dict)

    @property
    def config_path(self) -> Path:
        return self.data_dir / "config.toml"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "tracker.db"

    @property
    def configured(self) -> bool:
        """Credentials and at least one container are set."""
        return self.remote.configured and bool(self.containers)

    def container_for(self, entity_type: str) -> str | None:
        return self.containers.get(entity_type) or None

    @classmethod
    def load(cls, config_path: Path | None = None) -> SyncConfig:
        """Load configuration from file, or defaults if it doesn't exist."""
        if config_path is None:
            data_dir = get_data_dir()
            config_path = data_dir / "config.toml"
        else:
            data_dir = config_path.parent

        data: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path, "rb") as f:
                data = tomllib.load(f)

        remote = RemoteSettings.from_dict(data.get("remote", {}))
        env_token = os.environ.get("TRACKER_SYNC_TOKEN")
        if env_token:
            remote = RemoteSettings.from_dict({**remote.to_dict(), "token": env_token.strip()})

        containers: dict[str, str] = {}
        for key, value in (data.get("containers") or {}).items():
            if not _KEY_PATTERN.match(str(key)) or not value:
                logger.warning("Ignoring invalid container entry %r", key)
                continue
            containers[str(key)] = str(value).strip()

        return cls(
            data_dir=data_dir,
            remote=remote,
            sync=SyncSettings.from_dict(data.get("sync", {})),
            containers=containers,
        )

    def save(self) -> None:
        """Save configuration to TOML file (atomic write via temp+rename).

        A token supplied through TRACKER_SYNC_TOKEN is not persisted.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)

        for key in self.containers:
            if not _KEY_PATTERN.match(key):
                raise ValueError(f"Invalid entity type for config save: {key!r}")

        remote = self.remote.to_dict()
        if os.environ.get("TRACKER_SYNC_TOKEN"):
            remote.pop("token", None)

        # Build TOML content manually (no toml write dependency)
        lines = [
            "# tracker-sync configuration",
            "",
            "[remote]",
        ]
        for key, value in remote.items():
            if isinstance(value, str):
                lines.append(f"{key} = {_toml_str(value)}")
            else:
                lines.append(f"{key} = {value}")

        lines += ["", "# Entity type -> remote container id", "[containers]"]
        for key, value in sorted(self.containers.items()):
            lines.append(f"{key} = {_toml_str(value)}")

        lines += ["", "[sync]"]
        for key, value in self.sync.to_dict().items():
            lines.append(f"{key} = {value}")

        content = "\n".join(lines) + "\n"
        fd, tmp_path = tempfile.mkstemp(dir=str(self.data_dir), suffix=".toml.tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            Path(tmp_path).replace(self.config_path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
