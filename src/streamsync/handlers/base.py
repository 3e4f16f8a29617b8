"""Handler protocol and registry.

This module provides:
- SyncHandler: Protocol implemented by per-type handlers
- CallableHandler: Adapter turning a plain function into a handler
- HandlerRegistry: Strategy table mapping sync types to handlers

Handlers do the actual remote fetch or push for one item. They signal
failure by raising, ideally one of the streamsync.scheduler.errors
exceptions; the executor classifies anything else.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol

from streamsync.core.types import SyncType

if TYPE_CHECKING:
    from collections.abc import Callable

    from streamsync.scheduler.types import SyncItem

logger = logging.getLogger(__name__)


class SyncHandler(Protocol):
    """Protocol for per-type sync handlers."""

    def execute(self, item: SyncItem) -> None:
        """Run one sync item.

        Args:
            item: The item to process

        Raises:
            Exception: Any failure; SyncError subclasses keep their kind.
        """
        ...


class CallableHandler:
    """Handler wrapping a function that takes the item."""

    def __init__(self, func: Callable[[SyncItem], object]) -> None:
        self._func = func

    def execute(self, item: SyncItem) -> None:
        """Call the wrapped function."""
        self._func(item)


class HandlerRegistry:
    """Maps each sync type to the handler that executes it.

    Usage:
        registry = HandlerRegistry()
        registry.register(SyncType.FAVORITES, favorites_handler)
        handler = registry.get(SyncType.FAVORITES)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[SyncType, SyncHandler] = {}

    def register(
        self,
        sync_type: SyncType,
        handler: SyncHandler | Callable[[SyncItem], object],
    ) -> None:
        """Register the handler for a sync type, replacing any previous one.

        Plain callables are wrapped in a CallableHandler.
        """
        if not hasattr(handler, "execute"):
            handler = CallableHandler(handler)  # type: ignore[arg-type]
        with self._lock:
            self._handlers[SyncType(sync_type)] = handler  # type: ignore[assignment]
        logger.debug("Registered handler for %s", SyncType(sync_type).value)

    def unregister(self, sync_type: SyncType) -> SyncHandler | None:
        """Remove the handler for a sync type."""
        with self._lock:
            return self._handlers.pop(SyncType(sync_type), None)

    def get(self, sync_type: SyncType) -> SyncHandler | None:
        """Get the handler for a sync type."""
        with self._lock:
            return self._handlers.get(sync_type)

    def types(self) -> frozenset[SyncType]:
        """Get the types that have a handler."""
        with self._lock:
            return frozenset(self._handlers)

    def __contains__(self, sync_type: object) -> bool:
        with self._lock:
            return sync_type in self._handlers

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)
