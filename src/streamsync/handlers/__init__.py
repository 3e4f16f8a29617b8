"""Sync handlers - Per-type workers executing sync items.

This module provides:
- HandlerRegistry: Strategy table mapping sync types to handlers
- HTTP handlers for backend resources (httpx)
- ThumbnailHandler: Image cache filler
- default_handlers: Registry wired for the standard backend routes
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from streamsync.core.types import SyncType
from streamsync.handlers.base import CallableHandler, HandlerRegistry, SyncHandler
from streamsync.handlers.http import (
    AnalyticsHandler,
    HTTPResourceHandler,
    LiveStatusHandler,
    decode_json,
    raise_for_sync_status,
    translate_request_error,
)
from streamsync.handlers.thumbnails import ThumbnailHandler, cache_filename

if TYPE_CHECKING:
    import httpx

# Backend route of each resource type
DEFAULT_ROUTES: dict[SyncType, str] = {
    SyncType.STREAMS: "/api/streams",
    SyncType.FAVORITES: "/api/favorites",
    SyncType.SUBSCRIPTIONS: "/api/subscriptions",
    SyncType.USER_SETTINGS: "/api/settings",
    SyncType.NOTIFICATIONS: "/api/notifications",
}


def default_handlers(client: httpx.Client, cache_dir: Path) -> HandlerRegistry:
    """Build a registry covering every sync type.

    Args:
        client: HTTP client with the backend base URL.
        cache_dir: Thumbnail cache directory.

    Returns:
        Registry with one handler per SyncType.
    """
    registry = HandlerRegistry()
    for sync_type, path in DEFAULT_ROUTES.items():
        registry.register(sync_type, HTTPResourceHandler(client, path))
    registry.register(SyncType.LIVE_STATUS, LiveStatusHandler(client))
    registry.register(SyncType.ANALYTICS, AnalyticsHandler(client))
    registry.register(SyncType.THUMBNAILS, ThumbnailHandler(client, Path(cache_dir)))
    return registry


__all__ = [
    # Registry
    "CallableHandler",
    "HandlerRegistry",
    "SyncHandler",
    "default_handlers",
    "DEFAULT_ROUTES",
    # HTTP
    "AnalyticsHandler",
    "HTTPResourceHandler",
    "LiveStatusHandler",
    "decode_json",
    "raise_for_sync_status",
    "translate_request_error",
    # Thumbnails
    "ThumbnailHandler",
    "cache_filename",
]
