"""Core module - Shared configuration and types."""

from streamsync.core.config import (
    SyncConfiguration,
    load_configuration,
    parse_field_value,
    save_configuration,
)
from streamsync.core.types import SchedulerStatus, SyncPriority, SyncType

__all__ = [
    # Config
    "SyncConfiguration",
    "load_configuration",
    "parse_field_value",
    "save_configuration",
    # Types
    "SchedulerStatus",
    "SyncPriority",
    "SyncType",
]
