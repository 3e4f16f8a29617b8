"""Priority queue of pending sync items.

This module provides:
- SyncQueue: Thread-safe ordered queue with id-based upsert

Ordering:
    Items are kept sorted by (priority desc, scheduled time asc, insertion
    order). Items without a scheduled time sort by their creation time.

Deduplication:
    Items are keyed by id - scheduling an id that is already pending replaces
    the pending item instead of adding a second one.

Expiry:
    Items more than an hour past their scheduled time are purged whenever the
    queue is read (next_eligible, get, snapshot, len, stats). They are never
    returned or counted.

Persistence:
    Every mutation writes the full queue through the optional SyncStore.
    Persistence failures are logged and never raised: the in-memory queue
    stays authoritative for the running process.
"""

from __future__ import annotations

import itertools
import logging
import sqlite3
import threading
import time
from typing import TYPE_CHECKING

from streamsync.scheduler.types import SyncItem

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from streamsync.scheduler.store import SyncStore

logger = logging.getLogger(__name__)


class SyncQueue:
    """Thread-safe priority queue of sync items.

    Attributes:
        store: Optional store used for write-through persistence
    """

    def __init__(
        self,
        store: SyncStore | None = None,
        clock: Callable[[], float] = time.time,
        load: bool = True,
    ) -> None:
        """Initialize the queue.

        Args:
            store: Optional store for persistence
            clock: Time source, in Unix seconds
            load: Load pending items from the store on startup
        """
        self._lock = threading.RLock()
        self._items: list[SyncItem] = []
        self._sequence: dict[str, int] = {}  # id -> insertion order
        self._counter = itertools.count()
        self._store = store
        self._clock = clock

        if store is not None and load:
            self._load_from_store()

    def _load_from_store(self) -> None:
        """Load items saved by a previous process."""
        assert self._store is not None
        try:
            items = self._store.load_queue()
        except sqlite3.Error:
            logger.exception("Failed to load sync queue, starting empty")
            return

        for item in items:
            self._sequence[item.id] = next(self._counter)
            self._items.append(item)
        self._sort()

        if items:
            logger.info("Loaded %d pending sync items from store", len(items))

    def _sort_key(self, item: SyncItem) -> tuple[int, float, int]:
        return (-int(item.priority), item.sort_time, self._sequence[item.id])

    def _sort(self) -> None:
        self._items.sort(key=self._sort_key)

    def _persist(self) -> None:
        """Write the full queue to the store."""
        if self._store is None:
            return
        try:
            self._store.save_queue(self._items)
        except sqlite3.Error:
            logger.exception("Failed to persist sync queue (%d items)", len(self._items))

    def upsert(self, item: SyncItem) -> None:
        """Insert an item, replacing any pending item with the same id.

        Args:
            item: The item to schedule
        """
        with self._lock:
            replaced = False
            for index, existing in enumerate(self._items):
                if existing.id == item.id:
                    del self._items[index]
                    replaced = True
                    break

            self._sequence[item.id] = next(self._counter)
            self._items.append(item)
            self._sort()
            self._persist()

            logger.debug(
                "%s %r (queue size: %d)",
                "Replaced" if replaced else "Queued",
                item,
                len(self._items),
            )

    def cancel(self, item_id: str) -> SyncItem | None:
        """Remove a pending item by id.

        Does nothing if the item isn't pending. Work already handed to a
        handler is not affected.

        Args:
            item_id: Id of the item to remove

        Returns:
            The removed item, or None if not found
        """
        with self._lock:
            for index, existing in enumerate(self._items):
                if existing.id == item_id:
                    del self._items[index]
                    self._sequence.pop(item_id, None)
                    self._persist()
                    logger.debug("Cancelled %r", existing)
                    return existing
            return None

    def purge_expired(self) -> list[SyncItem]:
        """Remove expired items.

        Returns:
            The removed items
        """
        with self._lock:
            now = self._clock()
            expired = [item for item in self._items if item.is_expired(now)]
            if not expired:
                return []

            self._items = [item for item in self._items if not item.is_expired(now)]
            for item in expired:
                self._sequence.pop(item.id, None)
                logger.info("Dropping expired sync item %r", item)
            self._persist()
            return expired

    def next_eligible(self, is_eligible: Callable[[SyncItem], bool]) -> SyncItem | None:
        """Take the first eligible item in queue order.

        Expired items are purged first.

        Args:
            is_eligible: Predicate deciding whether an item may run now

        Returns:
            The removed item, or None if nothing is eligible
        """
        with self._lock:
            self.purge_expired()

            for index, item in enumerate(self._items):
                if is_eligible(item):
                    del self._items[index]
                    self._sequence.pop(item.id, None)
                    self._persist()
                    logger.debug("Dequeued %r (queue size: %d)", item, len(self._items))
                    return item
            return None

    def get(self, item_id: str) -> SyncItem | None:
        """Get a pending item without removing it."""
        with self._lock:
            self.purge_expired()
            for item in self._items:
                if item.id == item_id:
                    return item
            return None

    def snapshot(self) -> list[SyncItem]:
        """Get the pending items in queue order."""
        with self._lock:
            self.purge_expired()
            return list(self._items)

    def clear(self) -> int:
        """Remove all pending items.

        Returns:
            Number of items removed
        """
        with self._lock:
            count = len(self._items)
            self._items.clear()
            self._sequence.clear()
            self._persist()
            logger.info("Cleared %d items from sync queue", count)
            return count

    def __contains__(self, item_id: object) -> bool:
        """Check if an id is pending."""
        with self._lock:
            self.purge_expired()
            return any(item.id == item_id for item in self._items)

    def __len__(self) -> int:
        """Get number of pending items."""
        with self._lock:
            self.purge_expired()
            return len(self._items)

    def __iter__(self) -> Iterator[SyncItem]:
        """Iterate over a snapshot of pending items in queue order."""
        return iter(self.snapshot())

    def __bool__(self) -> bool:
        """Check if the queue has pending items."""
        with self._lock:
            self.purge_expired()
            return bool(self._items)

    def stats(self) -> dict[str, int]:
        """Get pending item counts by type.

        Returns:
            Dictionary with a total and one count per type present
        """
        with self._lock:
            self.purge_expired()
            stats: dict[str, int] = {"total": len(self._items)}
            for item in self._items:
                stats[item.type.value] = stats.get(item.type.value, 0) + 1
            return stats
