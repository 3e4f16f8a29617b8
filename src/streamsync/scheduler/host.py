"""Host background-execution collaborators.

This module provides:
- KeepAlive / BackgroundHost: Protocols for the host's background API
- TimedKeepAlive: Keep-alive grant with a bounded, revocable lifetime
- APSchedulerHost: Host backed by an APScheduler background scheduler
- InlineHost: Host for foreground use (CLI one-shot runs, tests)

A host grants the scheduler a keep-alive handle when a run starts and
invokes the scheduler again roughly every sync_interval. Exactly one
wake-up is pending at any time: submitting a new one replaces the old one.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

WAKEUP_JOB_ID = "streamsync_wakeup"

# Default keep-alive grant (typical mobile background ceiling)
DEFAULT_KEEP_ALIVE_GRANT = 30.0  # seconds


class KeepAlive(Protocol):
    """Handle keeping the process allowed to run in the background."""

    @property
    def is_valid(self) -> bool:
        """Whether the grant is still held."""
        ...

    def time_remaining(self) -> float:
        """Seconds left before the host reclaims the grant."""
        ...

    def end(self) -> None:
        """Release the grant (idempotent)."""
        ...


class BackgroundHost(Protocol):
    """The host's background-execution API."""

    def begin_keep_alive(self, on_expire: Callable[[], None]) -> KeepAlive:
        """Acquire a keep-alive; on_expire runs if the host revokes it."""
        ...

    def submit_wakeup(self, delay: float, callback: Callable[[], None]) -> None:
        """Register the next wake-up, replacing any pending one."""
        ...

    def cancel_wakeup(self) -> None:
        """Cancel the pending wake-up, if any."""
        ...

    def shutdown(self) -> None:
        """Release host resources."""
        ...


class TimedKeepAlive:
    """Keep-alive grant that expires after a fixed lifetime.

    The host may also revoke it early with revoke(). Either way the
    on_expire callback runs once and the handle becomes invalid.
    """

    def __init__(
        self,
        on_expire: Callable[[], None],
        grant: float | None = DEFAULT_KEEP_ALIVE_GRANT,
        clock: Callable[[], float] = time.time,
        use_timer: bool = True,
    ) -> None:
        """Initialize the grant.

        Args:
            on_expire: Called when the grant expires or is revoked.
            grant: Lifetime in seconds (None = unbounded).
            clock: Time source used for time_remaining().
            use_timer: Fire on_expire from a timer thread at the deadline.
        """
        self._on_expire = on_expire
        self._clock = clock
        self._deadline = None if grant is None else clock() + grant
        self._lock = threading.Lock()
        self._valid = True
        self._timer: threading.Timer | None = None

        if grant is not None and use_timer:
            self._timer = threading.Timer(grant, self.revoke)
            self._timer.daemon = True
            self._timer.start()

    @property
    def is_valid(self) -> bool:
        """Whether the grant is still held."""
        return self._valid

    def time_remaining(self) -> float:
        """Seconds left before the grant expires."""
        if not self._valid:
            return 0.0
        if self._deadline is None:
            return math.inf
        return max(0.0, self._deadline - self._clock())

    def revoke(self) -> None:
        """Revoke the grant on the host's behalf."""
        with self._lock:
            if not self._valid:
                return
            self._valid = False
        if self._timer is not None:
            self._timer.cancel()
        logger.warning("Background keep-alive revoked by host")
        self._on_expire()

    def end(self) -> None:
        """Release the grant without calling on_expire."""
        with self._lock:
            self._valid = False
        if self._timer is not None:
            self._timer.cancel()


class APSchedulerHost:
    """Host backed by an APScheduler BackgroundScheduler.

    Wake-ups are one-shot date jobs under a single job id, so registering a
    new wake-up always replaces the pending one.
    """

    def __init__(
        self,
        keep_alive_grant: float | None = DEFAULT_KEEP_ALIVE_GRANT,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        """Initialize the host.

        Args:
            keep_alive_grant: Lifetime of keep-alive handles (None = unbounded).
            scheduler: Scheduler to use (a new BackgroundScheduler by default).
        """
        self._keep_alive_grant = keep_alive_grant
        self._scheduler = scheduler or BackgroundScheduler()
        self._lock = threading.Lock()

    def _ensure_started(self) -> None:
        with self._lock:
            if not self._scheduler.running:
                self._scheduler.start()
                logger.debug("Background host scheduler started")

    def begin_keep_alive(self, on_expire: Callable[[], None]) -> KeepAlive:
        """Acquire a keep-alive with the configured grant."""
        return TimedKeepAlive(on_expire, grant=self._keep_alive_grant)

    def submit_wakeup(self, delay: float, callback: Callable[[], None]) -> None:
        """Register the next wake-up in `delay` seconds."""
        self._ensure_started()
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay)
        self._scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=run_date),
            id=WAKEUP_JOB_ID,
            name="Background sync wake-up",
            replace_existing=True,
        )
        logger.info("Next background sync scheduled at %s", run_date.isoformat())

    def cancel_wakeup(self) -> None:
        """Cancel the pending wake-up, if any."""
        try:
            self._scheduler.remove_job(WAKEUP_JOB_ID)
        except JobLookupError:
            return
        logger.debug("Pending background sync wake-up cancelled")

    def pending_wakeup(self) -> datetime | None:
        """Get the time of the pending wake-up, if any."""
        job = self._scheduler.get_job(WAKEUP_JOB_ID)
        if job is None:
            return None
        return job.next_run_time

    def shutdown(self) -> None:
        """Stop the scheduler."""
        with self._lock:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
                logger.debug("Background host scheduler stopped")


class InlineHost:
    """Host for foreground runs.

    Keep-alive handles come without timer threads and expire according to
    the given clock, which makes runs deterministic under a fake clock.
    Wake-up requests are recorded rather than executed.

    Attributes:
        wakeup_delay: Delay of the pending wake-up, if any.
        wakeup_callback: Callback of the pending wake-up, if any.
        wakeups_submitted: Number of wake-ups registered so far.
    """

    def __init__(
        self,
        keep_alive_grant: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._keep_alive_grant = keep_alive_grant
        self._clock = clock
        self.keep_alives: list[TimedKeepAlive] = []
        self.wakeup_delay: float | None = None
        self.wakeup_callback: Callable[[], None] | None = None
        self.wakeups_submitted = 0

    def begin_keep_alive(self, on_expire: Callable[[], None]) -> KeepAlive:
        """Acquire a keep-alive bounded by the configured grant."""
        keep_alive = TimedKeepAlive(
            on_expire,
            grant=self._keep_alive_grant,
            clock=self._clock,
            use_timer=False,
        )
        self.keep_alives.append(keep_alive)
        return keep_alive

    def submit_wakeup(self, delay: float, callback: Callable[[], None]) -> None:
        """Record the next wake-up, replacing any pending one."""
        self.wakeup_delay = delay
        self.wakeup_callback = callback
        self.wakeups_submitted += 1

    def cancel_wakeup(self) -> None:
        """Forget the pending wake-up."""
        self.wakeup_delay = None
        self.wakeup_callback = None

    def fire_wakeup(self) -> None:
        """Run the pending wake-up now (as the host would)."""
        callback = self.wakeup_callback
        self.cancel_wakeup()
        if callback is not None:
            callback()

    def shutdown(self) -> None:
        """Nothing to release."""
