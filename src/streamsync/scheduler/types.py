"""Shared types for the sync scheduler.

This module provides:
- SyncItem: One schedulable unit of work
- SchedulerState, HaltReason, RunResult: Executor state and run outcome
- The error taxonomy (re-exported from errors.py)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum, auto
from typing import Any

from streamsync.core.types import SyncPriority, SyncType
from streamsync.scheduler.errors import (
    AuthenticationFailedError,
    DataCorruptedError,
    ErrorKind,
    ExecutionTimeExpiredError,
    NetworkUnavailableError,
    PermanentSyncError,
    RateLimitedError,
    ServerError,
    SyncError,
    UnknownSyncError,
)
from streamsync.scheduler.payloads import (
    EmptyPayload,
    SyncPayload,
    dump_payload,
    load_payload,
)

# Items scheduled more than this many seconds ago are dropped unrun
EXPIRY_WINDOW = 3600.0


@dataclass(frozen=True)
class SyncItem:
    """A sync job waiting in the queue.

    Items are immutable: a retry produces a new item with the same id.

    Attributes:
        id: Stable identity; scheduling an existing id replaces the pending item
        type: Job category, selects the handler
        priority: Higher priorities run first
        scheduled_time: Earliest Unix time the item may run (None = now)
        retry_count: Number of failed attempts so far
        max_retries: Retry budget (None = use the configuration default)
        requires_network: Whether the item needs network access
        estimated_duration: Expected run time in seconds (informational)
        dependencies: Ids that must not be in flight when this item starts
        payload: Handler-specific typed data
        last_sync_time: When this job last completed, if known
        created_at: Unix time the item was created
    """

    id: str
    type: SyncType
    priority: SyncPriority = SyncPriority.NORMAL
    scheduled_time: float | None = None
    retry_count: int = 0
    max_retries: int | None = None
    requires_network: bool = False
    estimated_duration: float = 5.0
    dependencies: frozenset[str] = frozenset()
    payload: SyncPayload = field(default_factory=EmptyPayload)
    last_sync_time: float | None = None
    created_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        """Coerce enum and set fields."""
        object.__setattr__(self, "type", SyncType(self.type))
        object.__setattr__(self, "priority", SyncPriority(self.priority))
        object.__setattr__(self, "dependencies", frozenset(self.dependencies))
        if self.retry_count < 0:
            raise ValueError("retry_count must not be negative")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError("max_retries must not be negative")

    def is_expired(self, now: float | None = None) -> bool:
        """Check if the item is more than an hour past its scheduled time."""
        if self.scheduled_time is None:
            return False
        if now is None:
            now = time.time()
        return now - self.scheduled_time > EXPIRY_WINDOW

    def effective_max_retries(self, default: int) -> int:
        """Get the retry budget, falling back to the configuration default."""
        return default if self.max_retries is None else self.max_retries

    def can_retry(self, default_max_retries: int) -> bool:
        """Check if another attempt is allowed after a failure."""
        return self.retry_count < self.effective_max_retries(default_max_retries)

    def with_retry(self, scheduled_time: float) -> SyncItem:
        """Create the next attempt of this job."""
        return replace(
            self,
            retry_count=self.retry_count + 1,
            scheduled_time=scheduled_time,
        )

    @property
    def sort_time(self) -> float:
        """Time used for queue ordering (creation time when unscheduled)."""
        return self.created_at if self.scheduled_time is None else self.scheduled_time

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "type": self.type.value,
            "priority": int(self.priority),
            "scheduled_time": self.scheduled_time,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "requires_network": self.requires_network,
            "estimated_duration": self.estimated_duration,
            "dependencies": sorted(self.dependencies),
            "payload": dump_payload(self.payload),
            "last_sync_time": self.last_sync_time,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncItem:
        """Create from a dictionary produced by to_dict().

        Raises:
            DataCorruptedError: If the data is incomplete or invalid.
        """
        try:
            return cls(
                id=str(data["id"]),
                type=SyncType(data["type"]),
                priority=SyncPriority(data["priority"]),
                scheduled_time=data.get("scheduled_time"),
                retry_count=int(data.get("retry_count", 0)),
                max_retries=data.get("max_retries"),
                requires_network=bool(data.get("requires_network", False)),
                estimated_duration=float(data.get("estimated_duration", 5.0)),
                dependencies=frozenset(data.get("dependencies", ())),
                payload=load_payload(data.get("payload")),
                last_sync_time=data.get("last_sync_time"),
                created_at=float(data.get("created_at", time.time())),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DataCorruptedError(f"Invalid sync item: {e}") from e

    def __repr__(self) -> str:
        """Human-readable representation."""
        return (
            f"SyncItem({self.id!r}, type={self.type.value}, "
            f"priority={self.priority.name}, retry={self.retry_count})"
        )


class SchedulerState(IntEnum):
    """State of the executor."""

    IDLE = auto()
    RUNNING = auto()


class HaltReason(str, Enum):
    """Why a run ended."""

    EXHAUSTED = "exhausted"  # Nothing eligible left
    BUDGET = "budget"  # max_sync_duration reached
    KEEP_ALIVE = "keep_alive"  # Host keep-alive expiring or revoked
    BATCH_LIMIT = "batch_limit"  # batch_size items dispatched
    STOPPED = "stopped"  # stop() was called
    ERROR = "error"  # Unexpected scheduler failure


@dataclass
class RunResult:
    """Outcome of one executor run."""

    started_at: float
    finished_at: float | None = None
    dispatched: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0
    dropped: list[str] = field(default_factory=list)
    halt_reason: HaltReason | None = None

    @property
    def duration(self) -> float:
        """Get run duration in seconds."""
        if self.finished_at is None:
            return 0.0
        return self.finished_at - self.started_at


__all__ = [
    "EXPIRY_WINDOW",
    "AuthenticationFailedError",
    "DataCorruptedError",
    "ErrorKind",
    "ExecutionTimeExpiredError",
    "HaltReason",
    "NetworkUnavailableError",
    "PermanentSyncError",
    "RateLimitedError",
    "RunResult",
    "SchedulerState",
    "ServerError",
    "SyncError",
    "SyncItem",
    "UnknownSyncError",
]
