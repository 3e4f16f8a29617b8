"""SQLite persistence for the sync scheduler.

This module provides:
- SyncStore: Durable storage of the pending queue, statistics and configuration

The queue is written as a full snapshot on every mutation (write-through).
Queue sizes are small (tens of items) so there is no write-behind buffer.

Durability is best-effort: callers log persistence failures and carry on
scheduling. SQLite WAL mode keeps committed snapshots across crashes.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

from streamsync.core.config import SyncConfiguration
from streamsync.scheduler.errors import DataCorruptedError
from streamsync.scheduler.types import SyncItem

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

STATISTICS_KEY = "sync_statistics"
CONFIGURATION_KEY = "sync_configuration"


class SyncStore:
    """SQLite-backed store for queue snapshots and scheduler state."""

    def __init__(self, db_path: Path | str) -> None:
        """Open (or create) the store database.

        Args:
            db_path: Path to the SQLite file, or ":memory:".
        """
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode, explicit transactions below
        )
        self._conn.row_factory = sqlite3.Row

        if self._db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()
        logger.debug("Opened sync store at %s", self._db_path)

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS sync_queue (
                id TEXT PRIMARY KEY,
                position INTEGER NOT NULL,
                item TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS sync_state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    # === Queue ===

    def save_queue(self, items: Iterable[SyncItem]) -> None:
        """Replace the stored queue with a snapshot.

        Args:
            items: Pending items in queue order.
        """
        rows = [
            (item.id, position, json.dumps(item.to_dict()))
            for position, item in enumerate(items)
        ]
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                self._conn.execute("DELETE FROM sync_queue")
                self._conn.executemany(
                    "INSERT INTO sync_queue (id, position, item) VALUES (?, ?, ?)",
                    rows,
                )
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")
        logger.debug("Saved queue snapshot (%d items)", len(rows))

    def load_queue(self) -> list[SyncItem]:
        """Load the stored queue in its saved order.

        Rows that can't be decoded are skipped with a warning.
        """
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, item FROM sync_queue ORDER BY position"
            ).fetchall()

        items: list[SyncItem] = []
        for row in rows:
            try:
                items.append(SyncItem.from_dict(json.loads(row["item"])))
            except (ValueError, DataCorruptedError) as e:
                logger.warning("Dropping unreadable queued item %s: %s", row["id"], e)
        return items

    # === Key-value state ===

    def _set_value(self, key: str, value: dict[str, Any]) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO sync_state (key, value) VALUES (?, ?)",
                (key, json.dumps(value)),
            )

    def _get_value(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM sync_state WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        try:
            return dict(json.loads(row["value"]))
        except (ValueError, TypeError) as e:
            logger.warning("Ignoring unreadable %s: %s", key, e)
            return None

    def save_statistics(self, data: dict[str, Any]) -> None:
        """Save serialized statistics."""
        self._set_value(STATISTICS_KEY, data)

    def load_statistics(self) -> dict[str, Any] | None:
        """Load serialized statistics, or None if never saved."""
        return self._get_value(STATISTICS_KEY)

    def save_configuration(self, config: SyncConfiguration) -> None:
        """Save the scheduler configuration."""
        self._set_value(CONFIGURATION_KEY, config.to_dict())

    def load_configuration(self) -> SyncConfiguration | None:
        """Load the scheduler configuration, or None if never saved."""
        data = self._get_value(CONFIGURATION_KEY)
        if data is None:
            return None
        try:
            return SyncConfiguration.from_dict(data)
        except (ValueError, TypeError) as e:
            logger.warning("Ignoring invalid stored configuration: %s", e)
            return None
