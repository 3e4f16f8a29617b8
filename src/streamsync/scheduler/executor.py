"""Run loop executing queued sync items.

This module provides:
- Executor: Pulls eligible items from the SyncQueue and dispatches them

The executor is the only place where handlers run:
1. Checks the run budget and the host keep-alive before every iteration
2. Takes the next eligible item from the queue (gate.can_process)
3. Marks it active, runs its handler, unmarks it
4. Records the outcome and hands failures to the RetryPolicy
5. Waits a short delay, then loops until the budget or the queue runs out

Items run one at a time. A run halts when:

    | Reason       | Condition                                         |
    |--------------|---------------------------------------------------|
    | exhausted    | nothing eligible remains                          |
    | budget       | elapsed time exceeds max_sync_duration            |
    | keep_alive   | host keep-alive revoked or under keep_alive_margin |
    | batch_limit  | batch_size items dispatched                       |
    | stopped      | stop() was called                                 |
    | error        | unexpected failure outside a handler              |

The budget is checked before each dispatch only: an item already handed to
its handler is allowed to finish.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from streamsync.scheduler.errors import PermanentSyncError, SyncError
from streamsync.scheduler.gate import can_process
from streamsync.scheduler.retry import RetryPolicy, classify_error
from streamsync.scheduler.types import HaltReason, RunResult, SchedulerState

if TYPE_CHECKING:
    from collections.abc import Callable

    from streamsync.core.config import SyncConfiguration
    from streamsync.handlers.base import HandlerRegistry
    from streamsync.scheduler.gate import GateConditions
    from streamsync.scheduler.host import BackgroundHost, KeepAlive
    from streamsync.scheduler.queue import SyncQueue
    from streamsync.scheduler.statistics import StatisticsTracker
    from streamsync.scheduler.types import SyncItem

logger = logging.getLogger(__name__)


@dataclass
class _Run:
    """State of one run (its cancellation token and budget)."""

    configuration: SyncConfiguration
    result: RunResult
    token: threading.Event = field(default_factory=threading.Event)
    keep_alive: KeepAlive | None = None
    stopped: bool = False

    @property
    def started_at(self) -> float:
        return self.result.started_at


class Executor:
    """Sequential run loop for sync items.

    Usage:
        executor = Executor(queue, registry, tracker, host,
                            configuration=lambda: config,
                            conditions=lambda: GateConditions())
        executor.start()      # run on a background thread
        executor.run_once()   # or run inline (host callback, tests)
        executor.stop()
    """

    def __init__(
        self,
        queue: SyncQueue,
        handlers: HandlerRegistry,
        statistics: StatisticsTracker,
        host: BackgroundHost,
        configuration: Callable[[], SyncConfiguration],
        conditions: Callable[[], GateConditions],
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the executor.

        Args:
            queue: Queue to pull items from
            handlers: Handler for each sync type
            statistics: Tracker recording attempt outcomes
            host: Host granting keep-alives and wake-ups
            configuration: Returns the live configuration
            conditions: Returns the current device conditions
            clock: Time source, in Unix seconds
        """
        self._queue = queue
        self._handlers = handlers
        self._statistics = statistics
        self._host = host
        self._configuration = configuration
        self._conditions = conditions
        self._clock = clock

        self._lock = threading.RLock()
        self._state = SchedulerState.IDLE
        self._active: set[str] = set()
        self._run: _Run | None = None
        self._thread: threading.Thread | None = None

        # Callbacks
        self._on_run_started: Callable[[RunResult], None] | None = None
        self._on_run_complete: Callable[[RunResult], None] | None = None
        self._on_terminal_failure: Callable[[SyncItem, SyncError], None] | None = None

    @property
    def state(self) -> SchedulerState:
        """Get current executor state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if a run is in progress."""
        return self._state == SchedulerState.RUNNING

    def active_ids(self) -> frozenset[str]:
        """Get the ids currently being processed."""
        with self._lock:
            return frozenset(self._active)

    def current_result(self) -> RunResult | None:
        """Get the live result of the current run, if any."""
        with self._lock:
            return self._run.result if self._run else None

    def set_on_run_started(self, callback: Callable[[RunResult], None]) -> None:
        """Set callback for run start."""
        self._on_run_started = callback

    def set_on_run_complete(self, callback: Callable[[RunResult], None]) -> None:
        """Set callback for run completion."""
        self._on_run_complete = callback

    def set_on_terminal_failure(
        self,
        callback: Callable[[SyncItem, SyncError], None],
    ) -> None:
        """Set callback for items dropped after their last failed attempt."""
        self._on_terminal_failure = callback

    # === Lifecycle ===

    def start(self) -> bool:
        """Start a run on a background thread.

        Returns:
            True if a run was started, False if one is already in progress
        """
        with self._lock:
            if self._state == SchedulerState.RUNNING:
                logger.debug("Executor already running")
                return False
            run = self._begin()
            self._thread = threading.Thread(
                target=self._execute,
                args=(run,),
                name="SyncExecutor",
                daemon=True,
            )
            self._thread.start()
        return True

    def run_once(self) -> RunResult | None:
        """Run in the calling thread until the run halts.

        Returns:
            The run result, or None if a run is already in progress
        """
        with self._lock:
            if self._state == SchedulerState.RUNNING:
                logger.debug("Executor already running")
                return None
            run = self._begin()
        return self._execute(run)

    def stop(self) -> None:
        """Stop the current run.

        No new item is dispatched. An item already in its handler finishes,
        but its outcome is discarded.
        """
        with self._lock:
            run = self._run
            if self._state != SchedulerState.RUNNING or run is None:
                return
            run.stopped = True
            run.token.set()
            self._active.clear()
            self._run = None
            self._state = SchedulerState.IDLE

        if run.keep_alive is not None:
            run.keep_alive.end()
        logger.info("Executor stopped")

    def join(self, timeout: float | None = None) -> None:
        """Wait for the background run thread to finish."""
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=timeout)

    def handle_wakeup(self) -> None:
        """Host wake-up entry point."""
        if not self._configuration().background_sync_enabled:
            logger.info("Background sync disabled, ignoring wake-up")
            return
        logger.info("Background sync wake-up")
        self.start()

    # === Run loop ===

    def _begin(self) -> _Run:
        """Enter RUNNING and acquire the keep-alive (lock held)."""
        run = _Run(
            configuration=self._configuration(),
            result=RunResult(started_at=self._clock()),
        )
        self._run = run
        self._state = SchedulerState.RUNNING
        run.keep_alive = self._host.begin_keep_alive(
            lambda: self._keep_alive_expired(run)
        )
        logger.info(
            "Sync run started (budget: %.1fs, %d items queued)",
            run.configuration.max_sync_duration,
            len(self._queue),
        )
        self._notify(self._on_run_started, run.result)
        return run

    def _keep_alive_expired(self, run: _Run) -> None:
        """Host revoked the keep-alive: halt before the next dispatch."""
        logger.warning("Keep-alive expired, halting sync run")
        run.token.set()

    def _halt_reason(self, run: _Run) -> HaltReason | None:
        """Check whether the run must halt before the next dispatch."""
        if run.stopped:
            return HaltReason.STOPPED

        config = run.configuration
        keep_alive = run.keep_alive
        if keep_alive is not None and (
            not keep_alive.is_valid
            or keep_alive.time_remaining() < config.keep_alive_margin
        ):
            return HaltReason.KEEP_ALIVE

        if self._clock() - run.started_at > config.max_sync_duration:
            return HaltReason.BUDGET

        if config.batch_size and run.result.dispatched >= config.batch_size:
            return HaltReason.BATCH_LIMIT

        return None

    def _execute(self, run: _Run) -> RunResult:
        """Run the loop until a halt condition is met."""
        result = run.result
        try:
            while True:
                reason = self._halt_reason(run)
                if reason is not None:
                    result.halt_reason = reason
                    break

                item = self._next_item()
                if item is None:
                    result.halt_reason = HaltReason.EXHAUSTED
                    break

                self._dispatch(run, item)

                # Short pause between items; stop() wakes us immediately
                run.token.wait(run.configuration.inter_item_delay)
        except Exception:
            logger.exception("Sync run aborted by an unexpected error")
            result.halt_reason = HaltReason.ERROR
        finally:
            self._finish(run)
        return result

    def _next_item(self) -> SyncItem | None:
        """Take the next item allowed to run now."""
        configuration = self._configuration()
        conditions = self._conditions()
        active = self.active_ids()
        now = self._clock()
        return self._queue.next_eligible(
            lambda item: can_process(item, active, configuration, conditions, now)
        )

    def _dispatch(self, run: _Run, item: SyncItem) -> None:
        """Run one item's handler and record the outcome."""
        result = run.result
        with self._lock:
            self._active.add(item.id)
        result.dispatched += 1

        started = self._clock()
        error: SyncError | None = None
        logger.info("Syncing %r", item)
        try:
            handler = self._handlers.get(item.type)
            if handler is None:
                raise PermanentSyncError(f"No handler registered for {item.type.value}")
            handler.execute(item)
        except Exception as e:
            error = classify_error(e)
        finally:
            with self._lock:
                self._active.discard(item.id)

        now = self._clock()
        duration = now - started

        if run.stopped:
            logger.info("Discarding outcome of %s: run was stopped", item.id)
            return

        if error is None:
            result.succeeded += 1
            self._statistics.record_success(item, duration, now)
            logger.info("Synced %s in %.2fs", item.id, duration)
            return

        result.failed += 1
        policy = RetryPolicy.from_configuration(self._configuration())
        retry = policy.on_failure(item, error, now)
        self._statistics.record_failure(item, error, duration, now, terminal=retry is None)

        if retry is None:
            result.dropped.append(item.id)
            if self._on_terminal_failure is not None:
                try:
                    self._on_terminal_failure(item, error)
                except Exception:
                    logger.exception("Terminal failure callback failed")
        elif item.id in self._queue:
            # A fresh schedule arrived while the item was running
            logger.info("Not retrying %s: superseded by a newer schedule", item.id)
        else:
            result.retried += 1
            self._queue.upsert(retry)

    def _finish(self, run: _Run) -> None:
        """Release the run and register the next wake-up."""
        result = run.result
        result.finished_at = self._clock()
        if result.halt_reason is None:
            result.halt_reason = HaltReason.STOPPED

        if run.keep_alive is not None:
            run.keep_alive.end()

        with self._lock:
            if self._run is run:
                self._run = None
                self._state = SchedulerState.IDLE

        self._statistics.record_run(result)

        if not run.stopped:
            self._host.submit_wakeup(
                self._configuration().sync_interval,
                self.handle_wakeup,
            )

        self._notify(self._on_run_complete, result)

    def _notify(
        self,
        callback: Callable[[RunResult], None] | None,
        result: RunResult,
    ) -> None:
        if callback is None:
            return
        try:
            callback(result)
        except Exception:
            logger.exception("Run callback failed")
