"""tracker-sync CLI.

Usage:
    tsync run                   Run one sync cycle
    tsync status                Queue counts, last sync, cursors
    tsync watch                 Sync periodically
    tsync queue list            List queued operations
    tsync config show           Show configuration
"""

from tracker_sync.cli.main import app, main

__all__ = ["app", "main"]
