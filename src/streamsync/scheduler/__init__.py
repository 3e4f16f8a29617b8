"""Background synchronization scheduler.

Architecture:
    schedule() → SyncQueue → Executor → handlers (one per SyncType)

Components:
- **SyncQueue**: Priority-ordered pending items, upsert by id, lazy expiry
- **can_process**: Admission rules (network, wifi, power, dependencies, time)
- **Executor**: Sequential run loop under a wall-clock budget
- **RetryPolicy**: Re-enqueues failed items until their retries run out
- **StatisticsTracker**: Running counters, persisted after every update
- **SyncStore**: SQLite persistence of queue, statistics and configuration
- **BackgroundSyncScheduler**: Public facade

All public symbols are re-exported here.
"""

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
from streamsync.scheduler.executor import Executor
from streamsync.scheduler.facade import BackgroundSyncScheduler
from streamsync.scheduler.factory import (
    create_item,
    create_live_status_item,
    create_stream_item,
    create_thumbnail_item,
    new_item_id,
)
from streamsync.scheduler.gate import GateConditions, can_process, rejection_reason
from streamsync.scheduler.host import (
    APSchedulerHost,
    BackgroundHost,
    InlineHost,
    KeepAlive,
    TimedKeepAlive,
)
from streamsync.scheduler.monitors import NetworkMonitor, PowerMonitor
from streamsync.scheduler.payloads import (
    AnalyticsPayload,
    EmptyPayload,
    GenericPayload,
    LiveStatusPayload,
    SyncPayload,
    ThumbnailsPayload,
)
from streamsync.scheduler.queue import SyncQueue
from streamsync.scheduler.retry import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    RetryPolicy,
    classify_error,
)
from streamsync.scheduler.statistics import StatisticsTracker, SyncStatistics
from streamsync.scheduler.store import SyncStore
from streamsync.scheduler.types import (
    EXPIRY_WINDOW,
    HaltReason,
    RunResult,
    SchedulerState,
    SyncItem,
)

__all__ = [
    # Errors
    "AuthenticationFailedError",
    "DataCorruptedError",
    "ErrorKind",
    "ExecutionTimeExpiredError",
    "NetworkUnavailableError",
    "PermanentSyncError",
    "RateLimitedError",
    "ServerError",
    "SyncError",
    "UnknownSyncError",
    # Items and payloads
    "EXPIRY_WINDOW",
    "SyncItem",
    "SyncPayload",
    "AnalyticsPayload",
    "EmptyPayload",
    "GenericPayload",
    "LiveStatusPayload",
    "ThumbnailsPayload",
    "create_item",
    "create_live_status_item",
    "create_stream_item",
    "create_thumbnail_item",
    "new_item_id",
    # Queue, gating, retries
    "SyncQueue",
    "GateConditions",
    "can_process",
    "rejection_reason",
    "DEFAULT_BACKOFF_MULTIPLIER",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_DELAY",
    "RetryPolicy",
    "classify_error",
    # Execution
    "Executor",
    "HaltReason",
    "RunResult",
    "SchedulerState",
    "BackgroundSyncScheduler",
    # Statistics and persistence
    "StatisticsTracker",
    "SyncStatistics",
    "SyncStore",
    # Collaborators
    "APSchedulerHost",
    "BackgroundHost",
    "InlineHost",
    "KeepAlive",
    "TimedKeepAlive",
    "NetworkMonitor",
    "PowerMonitor",
]
