"""Shared types for streamsync.

This module defines the enums used by the scheduler, the handlers and the CLI.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class SyncType(str, Enum):
    """Category of a sync job.

    Each type is served by exactly one registered handler.
    """

    STREAMS = "streams"
    FAVORITES = "favorites"
    SUBSCRIPTIONS = "subscriptions"
    USER_SETTINGS = "user_settings"
    NOTIFICATIONS = "notifications"
    ANALYTICS = "analytics"
    THUMBNAILS = "thumbnails"
    LIVE_STATUS = "live_status"


class SyncPriority(IntEnum):
    """Priority of a sync job (higher value runs first)."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


class SchedulerStatus(str, Enum):
    """User-facing status of the scheduler.

    Reported by BackgroundSyncScheduler.status for the UI layer.
    """

    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
