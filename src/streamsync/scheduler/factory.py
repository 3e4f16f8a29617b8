"""Factory helpers for common sync items."""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

from streamsync.core.config import SyncConfiguration
from streamsync.core.types import SyncPriority, SyncType
from streamsync.scheduler.payloads import (
    EmptyPayload,
    LiveStatusPayload,
    ThumbnailsPayload,
)
from streamsync.scheduler.types import SyncItem

if TYPE_CHECKING:
    from collections.abc import Iterable

    from streamsync.scheduler.payloads import SyncPayload

# Expected handler durations, in seconds
DEFAULT_ESTIMATED_DURATIONS: dict[SyncType, float] = {
    SyncType.STREAMS: 10.0,
    SyncType.LIVE_STATUS: 5.0,
    SyncType.THUMBNAILS: 15.0,
}


def new_item_id(sync_type: SyncType, tag: str | None = None) -> str:
    """Generate a unique item id such as ``streams_<uuid>``."""
    prefix = sync_type.value if tag is None else f"{sync_type.value}_{tag}"
    return f"{prefix}_{uuid.uuid4()}"


def create_item(
    sync_type: SyncType,
    *,
    item_id: str | None = None,
    priority: SyncPriority = SyncPriority.NORMAL,
    delay: float = 0.0,
    max_retries: int | None = None,
    payload: SyncPayload | None = None,
    requires_network: bool | None = None,
    estimated_duration: float | None = None,
    dependencies: Iterable[str] = (),
    configuration: SyncConfiguration | None = None,
    now: float | None = None,
) -> SyncItem:
    """Create a sync item scheduled `delay` seconds from now.

    Args:
        sync_type: Job category.
        item_id: Stable id (generated if omitted).
        priority: Job priority.
        delay: Seconds before the item becomes eligible.
        max_retries: Retry budget (None = configuration default at failure time).
        payload: Handler data.
        requires_network: Defaults to membership of network_required_types.
        estimated_duration: Defaults to a per-type estimate.
        dependencies: Ids that must not be in flight when the item starts.
        configuration: Used for the requires_network default.
        now: Current Unix time.
    """
    if now is None:
        now = time.time()
    if requires_network is None:
        config = configuration or SyncConfiguration()
        requires_network = sync_type in config.network_required_types
    if estimated_duration is None:
        estimated_duration = DEFAULT_ESTIMATED_DURATIONS.get(sync_type, 5.0)

    return SyncItem(
        id=item_id or new_item_id(sync_type),
        type=sync_type,
        priority=priority,
        scheduled_time=now + delay,
        max_retries=max_retries,
        requires_network=requires_network,
        estimated_duration=estimated_duration,
        dependencies=frozenset(dependencies),
        payload=payload or EmptyPayload(),
        created_at=now,
    )


def create_stream_item(priority: SyncPriority = SyncPriority.NORMAL) -> SyncItem:
    """Create an item refreshing the stream list."""
    return create_item(
        SyncType.STREAMS,
        priority=priority,
        max_retries=3,
        requires_network=True,
    )


def create_live_status_item(
    streamer_ids: Iterable[str],
    priority: SyncPriority = SyncPriority.HIGH,
) -> SyncItem:
    """Create an item checking whether some streamers are live."""
    return create_item(
        SyncType.LIVE_STATUS,
        priority=priority,
        max_retries=2,
        payload=LiveStatusPayload(streamer_ids=tuple(streamer_ids)),
        requires_network=True,
    )


def create_thumbnail_item(
    urls: Iterable[str],
    priority: SyncPriority = SyncPriority.LOW,
) -> SyncItem:
    """Create an item downloading thumbnails into the cache."""
    return create_item(
        SyncType.THUMBNAILS,
        priority=priority,
        max_retries=2,
        payload=ThumbnailsPayload(urls=tuple(urls)),
        requires_network=True,
    )
