"""Public entry point of the sync scheduler.

This module provides:
- BackgroundSyncScheduler: Facade used by the app and by the host callback

The facade wires the pieces together:

    BackgroundSyncScheduler
        ├── SyncQueue ──────────── SyncStore (SQLite)
        ├── StatisticsTracker ──── SyncStore
        ├── Executor ───────────── HandlerRegistry (type -> handler)
        │                          BackgroundHost (keep-alive, wake-ups)
        ├── NetworkMonitor (push)
        └── PowerMonitor (push)

Public methods may be called from any thread. Queue and statistics are
mutated only through the facade and the executor, each behind its own lock.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from typing import TYPE_CHECKING

from streamsync.core.config import SyncConfiguration
from streamsync.core.types import SchedulerStatus, SyncPriority, SyncType
from streamsync.handlers.base import HandlerRegistry
from streamsync.scheduler.executor import Executor
from streamsync.scheduler.factory import create_item, new_item_id
from streamsync.scheduler.gate import GateConditions, rejection_reason
from streamsync.scheduler.host import APSchedulerHost
from streamsync.scheduler.monitors import NetworkMonitor, PowerMonitor
from streamsync.scheduler.queue import SyncQueue
from streamsync.scheduler.statistics import StatisticsTracker
from streamsync.scheduler.types import HaltReason

if TYPE_CHECKING:
    from collections.abc import Callable

    from streamsync.scheduler.errors import SyncError
    from streamsync.scheduler.host import BackgroundHost
    from streamsync.scheduler.statistics import SyncStatistics
    from streamsync.scheduler.store import SyncStore
    from streamsync.scheduler.types import RunResult, SchedulerState, SyncItem

logger = logging.getLogger(__name__)


class BackgroundSyncScheduler:
    """Background synchronization scheduler.

    Usage:
        registry = HandlerRegistry()
        registry.register(SyncType.FAVORITES, favorites_handler)

        scheduler = BackgroundSyncScheduler(registry, store=SyncStore(db_path))
        scheduler.schedule(create_item(SyncType.FAVORITES))  # starts a run

        scheduler.force_run(SyncType.LIVE_STATUS)  # "refresh now"
        scheduler.close()
    """

    def __init__(
        self,
        handlers: HandlerRegistry | None = None,
        store: SyncStore | None = None,
        host: BackgroundHost | None = None,
        network: NetworkMonitor | None = None,
        power: PowerMonitor | None = None,
        configuration: SyncConfiguration | None = None,
        clock: Callable[[], float] = time.time,
        autostart: bool = True,
    ) -> None:
        """Initialize the scheduler and load persisted state.

        Args:
            handlers: Handler for each sync type.
            store: Optional store for the queue, statistics and configuration.
            host: Host background API (APSchedulerHost by default).
            network: Network status collaborator.
            power: Power status collaborator.
            configuration: Initial configuration (stored one, else defaults).
            clock: Time source, in Unix seconds.
            autostart: Start a run automatically when work arrives.
        """
        self._lock = threading.RLock()
        self._clock = clock
        self._store = store
        self._handlers = handlers if handlers is not None else HandlerRegistry()
        self._host = host if host is not None else APSchedulerHost()
        self._network = network if network is not None else NetworkMonitor()
        self._power = power if power is not None else PowerMonitor()
        self._autostart = autostart

        if configuration is None:
            configuration = self._load_configuration()
        else:
            self._save_configuration(configuration)
        self._configuration = configuration

        self._queue = SyncQueue(store=store, clock=clock)
        self._statistics = StatisticsTracker(store)
        self._executor = Executor(
            self._queue,
            self._handlers,
            self._statistics,
            self._host,
            configuration=lambda: self._configuration,
            conditions=self.conditions,
            clock=clock,
        )
        self._executor.set_on_run_started(self._handle_run_started)
        self._executor.set_on_run_complete(self._handle_run_complete)
        self._executor.set_on_terminal_failure(self._handle_terminal_failure)

        self._status = SchedulerStatus.IDLE
        self._last_result: RunResult | None = None
        self._terminal_failure_listeners: list[Callable[[SyncItem, SyncError], None]] = []
        self._run_complete_listeners: list[Callable[[RunResult], None]] = []

        self._unsubscribers = [
            self._network.subscribe(self._handle_network_change),
            self._power.subscribe(self._handle_power_change),
        ]

    # === Configuration ===

    def _load_configuration(self) -> SyncConfiguration:
        if self._store is not None:
            try:
                stored = self._store.load_configuration()
            except sqlite3.Error:
                logger.exception("Failed to load sync configuration")
                stored = None
            if stored is not None:
                return stored
        return SyncConfiguration()

    def _save_configuration(self, configuration: SyncConfiguration) -> None:
        if self._store is None:
            return
        try:
            self._store.save_configuration(configuration)
        except sqlite3.Error:
            logger.exception("Failed to persist sync configuration")

    @property
    def configuration(self) -> SyncConfiguration:
        """Get the live configuration."""
        return self._configuration

    def update_configuration(self, configuration: SyncConfiguration) -> None:
        """Replace the configuration.

        A run in progress keeps its budget; later runs use the new values.
        Retry and gating decisions use the new values immediately.
        """
        with self._lock:
            self._configuration = configuration
            self._save_configuration(configuration)
        logger.info("Sync configuration updated")

        if not configuration.background_sync_enabled:
            self._host.cancel_wakeup()

    # === Scheduling ===

    def schedule(self, item: SyncItem) -> bool:
        """Queue an item, replacing any pending item with the same id.

        Items of a type not in enabled_types are silently ignored.

        Returns:
            True if the item was queued.
        """
        with self._lock:
            if item.type not in self._configuration.enabled_types:
                logger.debug("Ignoring %r: type %s is disabled", item, item.type.value)
                return False
            self._queue.upsert(item)

        self.start_if_needed()
        return True

    def cancel(self, item_id: str) -> bool:
        """Remove a pending item (running work is not interrupted).

        Returns:
            True if a pending item was removed.
        """
        with self._lock:
            return self._queue.cancel(item_id) is not None

    def force_run(self, sync_type: SyncType) -> SyncItem | None:
        """Queue an immediate high-priority item for a type ("refresh now").

        Returns:
            The queued item, or None if the type is disabled.
        """
        sync_type = SyncType(sync_type)
        item = create_item(
            sync_type,
            item_id=new_item_id(sync_type, "force"),
            priority=SyncPriority.HIGH,
            configuration=self._configuration,
            now=self._clock(),
        )
        logger.info("Forcing %s sync", sync_type.value)
        return item if self.schedule(item) else None

    # === Lifecycle ===

    def start(self) -> bool:
        """Start a run on a background thread.

        Returns:
            True if a run was started, False if one is already running.
        """
        return self._executor.start()

    def start_if_needed(self) -> bool:
        """Start a run if idle, enabled and work is pending.

        Returns:
            True if a run was started.
        """
        if not self._autostart or self._executor.is_running:
            return False
        if not self._configuration.background_sync_enabled or not self._queue:
            return False
        return self.start()

    def run_once(self) -> RunResult | None:
        """Run in the calling thread (host background callback).

        Returns:
            The run result, or None if a run is already in progress.
        """
        return self._executor.run_once()

    def handle_wakeup(self) -> None:
        """Entry point for the host's periodic wake-up."""
        self._executor.handle_wakeup()

    def stop(self) -> None:
        """Stop the current run cooperatively."""
        if self._executor.is_running:
            self._executor.stop()
            self._status = SchedulerStatus.CANCELLED

    def wait(self, timeout: float | None = None) -> None:
        """Wait for a background run to finish."""
        self._executor.join(timeout)

    def app_did_enter_background(self) -> None:
        """Register the next wake-up when the app goes to the background."""
        self._host.submit_wakeup(self._configuration.sync_interval, self.handle_wakeup)

    def app_will_enter_foreground(self) -> None:
        """Replace any background run by a foreground one."""
        self.stop()
        self.start_if_needed()

    def close(self) -> None:
        """Stop, release the host and close the store."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.stop()
        self._executor.join(timeout=5.0)
        self._host.shutdown()
        if self._store is not None:
            self._store.close()

    def __enter__(self) -> BackgroundSyncScheduler:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    # === Observers ===

    def add_terminal_failure_listener(
        self,
        listener: Callable[[SyncItem, SyncError], None],
    ) -> None:
        """Be told about items dropped after exhausting their retries."""
        self._terminal_failure_listeners.append(listener)

    def add_run_complete_listener(self, listener: Callable[[RunResult], None]) -> None:
        """Be told when a run finishes."""
        self._run_complete_listeners.append(listener)

    def _handle_run_started(self, result: RunResult) -> None:
        self._status = SchedulerStatus.SYNCING

    def _handle_run_complete(self, result: RunResult) -> None:
        self._last_result = result
        if self._executor.is_running:
            pass  # A newer run already owns the status
        elif result.halt_reason == HaltReason.STOPPED:
            self._status = SchedulerStatus.CANCELLED
        elif result.failed and not result.succeeded:
            self._status = SchedulerStatus.FAILED
        else:
            self._status = SchedulerStatus.SUCCESS

        for listener in list(self._run_complete_listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Run complete listener failed")

    def _handle_terminal_failure(self, item: SyncItem, error: SyncError) -> None:
        logger.error("Sync item %s dropped (%s): %s", item.id, error.kind.value, error)
        for listener in list(self._terminal_failure_listeners):
            try:
                listener(item, error)
            except Exception:
                logger.exception("Terminal failure listener failed")

    def _handle_network_change(self, available: bool, unmetered: bool) -> None:
        if available:
            self.start_if_needed()

    def _handle_power_change(self, low_power: bool) -> None:
        if not low_power:
            self.start_if_needed()

    # === Read-only accessors ===

    def conditions(self) -> GateConditions:
        """Get the current device conditions."""
        return GateConditions(
            network_available=self._network.available,
            network_unmetered=self._network.unmetered,
            low_power=self._power.low_power,
        )

    @property
    def state(self) -> SchedulerState:
        """Get the executor state (idle or running)."""
        return self._executor.state

    @property
    def is_running(self) -> bool:
        """Check if a run is in progress."""
        return self._executor.is_running

    @property
    def status(self) -> SchedulerStatus:
        """Get the user-facing status."""
        return self._status

    @property
    def last_result(self) -> RunResult | None:
        """Get the result of the last finished run."""
        return self._last_result

    @property
    def progress(self) -> float:
        """Get the progress of the current run in [0, 1]."""
        result = self._executor.current_result()
        if result is None:
            return 1.0 if self._last_result is not None else 0.0
        total = result.dispatched + len(self._queue)
        if total == 0:
            return 1.0
        return result.dispatched / total

    @property
    def statistics(self) -> SyncStatistics:
        """Get a copy of the statistics."""
        return self._statistics.snapshot()

    def reset_statistics(self) -> None:
        """Reset the statistics (explicit user action)."""
        self._statistics.reset()

    @property
    def handlers(self) -> HandlerRegistry:
        """Get the handler registry."""
        return self._handlers

    def pending_items(self) -> list[SyncItem]:
        """Get the queued items in execution order."""
        return self._queue.snapshot()

    def get_item(self, item_id: str) -> SyncItem | None:
        """Get a pending item by id."""
        return self._queue.get(item_id)

    def active_ids(self) -> frozenset[str]:
        """Get the ids currently being processed."""
        return self._executor.active_ids()

    def estimated_backlog(self) -> float:
        """Get the summed estimated duration of pending items, in seconds."""
        return sum(item.estimated_duration for item in self._queue.snapshot())

    def explain(self, item_id: str) -> str | None:
        """Tell why a pending item can't run right now.

        Returns:
            The failing check name, "eligible", or None if the id isn't pending.
        """
        item = self._queue.get(item_id)
        if item is None:
            return None
        reason = rejection_reason(
            item,
            self._executor.active_ids(),
            self._configuration,
            self.conditions(),
            self._clock(),
        )
        return reason or "eligible"
