"""Configuration utilities for the streamsync CLI.

This module provides the paths and the scheduler factory shared by commands.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from streamsync.scheduler.facade import BackgroundSyncScheduler
from streamsync.scheduler.host import InlineHost
from streamsync.scheduler.store import SyncStore

if TYPE_CHECKING:
    from streamsync.handlers.base import HandlerRegistry

# Keep-alive granted to foreground runs, in seconds
CLI_KEEP_ALIVE_GRANT = 30.0


def get_config_dir() -> Path:
    """Get the configuration directory for streamsync.

    Returns:
        Path from STREAMSYNC_HOME, else ~/.streamsync.
    """
    home = os.environ.get("STREAMSYNC_HOME")
    if home:
        return Path(home).expanduser()
    return Path.home() / ".streamsync"


def get_database_path() -> Path:
    """Get the path to the scheduler database."""
    return get_config_dir() / "sync.db"


def get_cache_dir() -> Path:
    """Get the thumbnail cache directory."""
    return get_config_dir() / "thumbnails"


def open_scheduler(handlers: HandlerRegistry | None = None) -> BackgroundSyncScheduler:
    """Open the scheduler on the local database.

    Runs never start on their own; commands call run_once() explicitly.
    """
    db_path = get_database_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return BackgroundSyncScheduler(
        handlers=handlers,
        store=SyncStore(db_path),
        host=InlineHost(keep_alive_grant=CLI_KEEP_ALIVE_GRANT),
        autostart=False,
    )
