"""Running statistics for sync attempts.

This module provides:
- SyncStatistics: Cumulative counters, averages and breakdowns
- StatisticsTracker: Thread-safe recorder that persists after every update

Statistics are loaded once when the tracker is created and are never reset
automatically; reset() exists for explicit user action only.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import asdict, dataclass, field, replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from streamsync.scheduler.errors import SyncError
    from streamsync.scheduler.store import SyncStore
    from streamsync.scheduler.types import RunResult, SyncItem

logger = logging.getLogger(__name__)


@dataclass
class SyncStatistics:
    """Cumulative sync statistics.

    Attributes:
        total_syncs: Attempts made (successful or not).
        successful_syncs: Attempts that succeeded.
        failed_syncs: Attempts that failed.
        average_sync_duration: Mean attempt duration in seconds.
        last_sync_time: Unix time of the last finished attempt.
        runs: Executor runs completed.
        terminal_failures: Jobs dropped after exhausting their retries.
        syncs_by_type: Attempts per sync type.
        errors_by_type: Failures per error kind.
    """

    total_syncs: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    average_sync_duration: float = 0.0
    last_sync_time: float | None = None
    runs: int = 0
    terminal_failures: int = 0
    syncs_by_type: dict[str, int] = field(default_factory=dict)
    errors_by_type: dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        """Get the fraction of attempts that succeeded."""
        if self.total_syncs == 0:
            return 0.0
        return self.successful_syncs / self.total_syncs

    def copy(self) -> SyncStatistics:
        """Get an independent copy."""
        return replace(
            self,
            syncs_by_type=dict(self.syncs_by_type),
            errors_by_type=dict(self.errors_by_type),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncStatistics:
        """Create from a dictionary produced by to_dict()."""
        return cls(
            total_syncs=int(data.get("total_syncs", 0)),
            successful_syncs=int(data.get("successful_syncs", 0)),
            failed_syncs=int(data.get("failed_syncs", 0)),
            average_sync_duration=float(data.get("average_sync_duration", 0.0)),
            last_sync_time=data.get("last_sync_time"),
            runs=int(data.get("runs", 0)),
            terminal_failures=int(data.get("terminal_failures", 0)),
            syncs_by_type={str(k): int(v) for k, v in data.get("syncs_by_type", {}).items()},
            errors_by_type={str(k): int(v) for k, v in data.get("errors_by_type", {}).items()},
        )


class StatisticsTracker:
    """Records attempt outcomes into SyncStatistics.

    Every update is persisted through the optional store. Reads return
    copies so callers never hold a reference to the live counters.
    """

    def __init__(self, store: SyncStore | None = None) -> None:
        """Initialize the tracker, loading saved statistics if any.

        Args:
            store: Optional store for persistence.
        """
        self._lock = threading.Lock()
        self._store = store
        self._stats = SyncStatistics()

        if store is not None:
            try:
                data = store.load_statistics()
            except sqlite3.Error:
                logger.exception("Failed to load sync statistics")
                data = None
            if data:
                try:
                    self._stats = SyncStatistics.from_dict(data)
                except (TypeError, ValueError, AttributeError) as e:
                    logger.warning("Ignoring unreadable sync statistics: %s", e)

    def _persist(self) -> None:
        if self._store is None:
            return
        try:
            self._store.save_statistics(self._stats.to_dict())
        except sqlite3.Error:
            logger.exception("Failed to persist sync statistics")

    def _record_attempt(self, item: SyncItem, duration: float, now: float) -> None:
        stats = self._stats
        stats.total_syncs += 1
        # Running mean over all attempts
        stats.average_sync_duration += (
            duration - stats.average_sync_duration
        ) / stats.total_syncs
        stats.last_sync_time = now
        key = item.type.value
        stats.syncs_by_type[key] = stats.syncs_by_type.get(key, 0) + 1

    def record_success(self, item: SyncItem, duration: float, now: float) -> None:
        """Record a successful attempt."""
        with self._lock:
            self._record_attempt(item, duration, now)
            self._stats.successful_syncs += 1
            self._persist()

    def record_failure(
        self,
        item: SyncItem,
        error: SyncError,
        duration: float,
        now: float,
        terminal: bool = False,
    ) -> None:
        """Record a failed attempt.

        Args:
            item: The item whose attempt failed.
            error: The classified failure.
            duration: Attempt duration in seconds.
            now: Current Unix time.
            terminal: Whether the job was dropped for good.
        """
        with self._lock:
            self._record_attempt(item, duration, now)
            self._stats.failed_syncs += 1
            kind = error.kind.value
            self._stats.errors_by_type[kind] = self._stats.errors_by_type.get(kind, 0) + 1
            if terminal:
                self._stats.terminal_failures += 1
            self._persist()

    def record_run(self, result: RunResult) -> None:
        """Record the end of an executor run."""
        with self._lock:
            self._stats.runs += 1
            self._persist()
        logger.info(
            "Sync run finished in %.2fs: %d dispatched, %d succeeded, %d failed (%s)",
            result.duration,
            result.dispatched,
            result.succeeded,
            result.failed,
            result.halt_reason.value if result.halt_reason else "unknown",
        )

    def snapshot(self) -> SyncStatistics:
        """Get a copy of the current statistics."""
        with self._lock:
            return self._stats.copy()

    def reset(self) -> None:
        """Reset all statistics to zero (explicit user action only)."""
        with self._lock:
            self._stats = SyncStatistics()
            self._persist()
        logger.info("Sync statistics reset")
