"""Tests for background host adapters."""

from __future__ import annotations

import math
import threading
from unittest.mock import MagicMock

from apscheduler.schedulers.background import BackgroundScheduler
from conftest import FakeClock

from streamsync.scheduler.host import (
    WAKEUP_JOB_ID,
    APSchedulerHost,
    InlineHost,
    TimedKeepAlive,
)


class TestTimedKeepAlive:
    """Tests for TimedKeepAlive."""

    def test_time_remaining(self, clock: FakeClock) -> None:
        keep_alive = TimedKeepAlive(lambda: None, grant=30.0, clock=clock, use_timer=False)

        clock.advance(12.0)

        assert keep_alive.is_valid
        assert keep_alive.time_remaining() == 18.0

    def test_unbounded(self, clock: FakeClock) -> None:
        keep_alive = TimedKeepAlive(lambda: None, grant=None, clock=clock)

        assert keep_alive.time_remaining() == math.inf

    def test_revoke_calls_on_expire_once(self, clock: FakeClock) -> None:
        on_expire = MagicMock()
        keep_alive = TimedKeepAlive(on_expire, grant=30.0, clock=clock, use_timer=False)

        keep_alive.revoke()
        keep_alive.revoke()

        assert not keep_alive.is_valid
        assert keep_alive.time_remaining() == 0.0
        on_expire.assert_called_once()

    def test_end_does_not_call_on_expire(self, clock: FakeClock) -> None:
        on_expire = MagicMock()
        keep_alive = TimedKeepAlive(on_expire, grant=30.0, clock=clock, use_timer=False)

        keep_alive.end()

        assert not keep_alive.is_valid
        on_expire.assert_not_called()

    def test_timer_revokes_at_deadline(self) -> None:
        expired = threading.Event()

        TimedKeepAlive(expired.set, grant=0.05)

        assert expired.wait(timeout=2.0)


class TestInlineHost:
    """Tests for InlineHost."""

    def test_records_latest_wakeup(self) -> None:
        host = InlineHost()
        first, second = MagicMock(), MagicMock()

        host.submit_wakeup(900.0, first)
        host.submit_wakeup(600.0, second)

        assert host.wakeup_delay == 600.0
        assert host.wakeups_submitted == 2
        host.fire_wakeup()
        second.assert_called_once()
        first.assert_not_called()
        assert host.wakeup_callback is None

    def test_cancel_wakeup(self) -> None:
        host = InlineHost()
        callback = MagicMock()
        host.submit_wakeup(900.0, callback)

        host.cancel_wakeup()
        host.fire_wakeup()

        callback.assert_not_called()

    def test_keep_alives_follow_clock(self, clock: FakeClock) -> None:
        host = InlineHost(keep_alive_grant=30.0, clock=clock)

        keep_alive = host.begin_keep_alive(lambda: None)
        clock.advance(10.0)

        assert keep_alive.time_remaining() == 20.0
        assert host.keep_alives == [keep_alive]


class TestAPSchedulerHost:
    """Tests for APSchedulerHost."""

    def test_single_pending_wakeup(self) -> None:
        """Registering a wake-up replaces the pending one."""
        host = APSchedulerHost(scheduler=BackgroundScheduler())
        try:
            host.submit_wakeup(900.0, lambda: None)
            first = host.pending_wakeup()
            host.submit_wakeup(1800.0, lambda: None)

            jobs = host._scheduler.get_jobs()
            assert [job.id for job in jobs] == [WAKEUP_JOB_ID]
            assert first is not None
            assert host.pending_wakeup() > first  # type: ignore[operator]
        finally:
            host.shutdown()

    def test_cancel_wakeup(self) -> None:
        host = APSchedulerHost(scheduler=BackgroundScheduler())
        try:
            host.submit_wakeup(900.0, lambda: None)
            host.cancel_wakeup()
            host.cancel_wakeup()

            assert host.pending_wakeup() is None
        finally:
            host.shutdown()

    def test_wakeup_fires(self) -> None:
        host = APSchedulerHost(scheduler=BackgroundScheduler())
        fired = threading.Event()
        try:
            host.submit_wakeup(0.05, fired.set)

            assert fired.wait(timeout=5.0)
        finally:
            host.shutdown()

    def test_shutdown_without_start(self) -> None:
        APSchedulerHost().shutdown()
