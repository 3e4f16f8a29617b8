"""Tests for the executor run loop."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from conftest import START, FakeClock, RecordingHandler

from streamsync.core.config import SyncConfiguration
from streamsync.core.types import SyncPriority, SyncType
from streamsync.handlers.base import HandlerRegistry
from streamsync.scheduler.errors import ErrorKind, ServerError
from streamsync.scheduler.executor import Executor
from streamsync.scheduler.gate import GateConditions
from streamsync.scheduler.host import InlineHost
from streamsync.scheduler.queue import SyncQueue
from streamsync.scheduler.statistics import StatisticsTracker
from streamsync.scheduler.types import HaltReason, SchedulerState, SyncItem


class Harness:
    """Executor wired to in-memory collaborators."""

    def __init__(
        self,
        clock: FakeClock,
        config: SyncConfiguration,
        keep_alive_grant: float | None = None,
    ) -> None:
        self.clock = clock
        self.config = config
        self.conditions = GateConditions()
        self.queue = SyncQueue(clock=clock)
        self.registry = HandlerRegistry()
        self.statistics = StatisticsTracker()
        self.host = InlineHost(keep_alive_grant=keep_alive_grant, clock=clock)
        self.executor = Executor(
            self.queue,
            self.registry,
            self.statistics,
            self.host,
            configuration=lambda: self.config,
            conditions=lambda: self.conditions,
            clock=clock,
        )

    def add(self, item_id: str, **kwargs: Any) -> SyncItem:
        fields: dict[str, Any] = {
            "type": SyncType.FAVORITES,
            "scheduled_time": self.clock(),
            "created_at": self.clock(),
        }
        fields.update(kwargs)
        item = SyncItem(id=item_id, **fields)
        self.queue.upsert(item)
        return item


@pytest.fixture
def harness(clock: FakeClock, fast_config: SyncConfiguration) -> Harness:
    return Harness(clock, fast_config)


class TestRunLoop:
    """Tests for basic run behavior."""

    def test_runs_all_items_in_order(self, harness: Harness) -> None:
        handler = RecordingHandler()
        harness.registry.register(SyncType.FAVORITES, handler)
        harness.add("low", priority=SyncPriority.LOW)
        harness.add("high", priority=SyncPriority.HIGH)
        harness.add("normal")

        result = harness.executor.run_once()

        assert result is not None
        assert handler.ids == ["high", "normal", "low"]
        assert result.halt_reason == HaltReason.EXHAUSTED
        assert result.succeeded == 3
        assert len(harness.queue) == 0
        assert harness.statistics.snapshot().successful_syncs == 3

    def test_returns_to_idle_and_schedules_wakeup(self, harness: Harness) -> None:
        harness.registry.register(SyncType.FAVORITES, RecordingHandler())
        harness.add("a")

        harness.executor.run_once()

        assert harness.executor.state == SchedulerState.IDLE
        assert harness.host.wakeup_delay == harness.config.sync_interval
        assert harness.statistics.snapshot().runs == 1

    def test_empty_queue(self, harness: Harness) -> None:
        result = harness.executor.run_once()

        assert result is not None
        assert result.dispatched == 0
        assert result.halt_reason == HaltReason.EXHAUSTED

    def test_future_items_stay_queued(self, harness: Harness) -> None:
        handler = RecordingHandler()
        harness.registry.register(SyncType.FAVORITES, handler)
        harness.add("later", scheduled_time=START + 60)

        harness.executor.run_once()

        assert handler.calls == []
        assert "later" in harness.queue

    def test_item_is_active_while_running(self, harness: Harness) -> None:
        seen: list[frozenset[str]] = []
        harness.registry.register(
            SyncType.FAVORITES,
            RecordingHandler(on_execute=lambda item: seen.append(harness.executor.active_ids())),
        )
        harness.add("a")

        harness.executor.run_once()

        assert seen == [frozenset({"a"})]
        assert harness.executor.active_ids() == frozenset()

    def test_background_thread(self, harness: Harness) -> None:
        handler = RecordingHandler()
        harness.registry.register(SyncType.FAVORITES, handler)
        harness.add("a")
        complete = MagicMock()
        harness.executor.set_on_run_complete(complete)

        assert harness.executor.start()
        harness.executor.join(timeout=5.0)

        assert handler.ids == ["a"]
        complete.assert_called_once()

    def test_unexpected_error_halts_run(self, harness: Harness) -> None:
        harness.registry.register(SyncType.FAVORITES, RecordingHandler())
        harness.add("a")

        def broken_conditions() -> GateConditions:
            raise RuntimeError("sensor failure")

        harness.executor._conditions = broken_conditions
        result = harness.executor.run_once()

        assert result is not None
        assert result.halt_reason == HaltReason.ERROR
        assert harness.executor.state == SchedulerState.IDLE


class TestRunBudget:
    """Tests for the run halting conditions."""

    def test_stops_dispatching_after_budget(self, clock: FakeClock) -> None:
        """Nothing is dispatched once max_sync_duration has elapsed."""
        config = SyncConfiguration(max_sync_duration=25.0, inter_item_delay=0.0, keep_alive_margin=0.0)
        harness = Harness(clock, config)
        handler = RecordingHandler(clock=clock, duration=10.0)
        harness.registry.register(SyncType.FAVORITES, handler)
        for name in "abcde":
            harness.add(name)

        result = harness.executor.run_once()

        assert result is not None
        assert result.halt_reason == HaltReason.BUDGET
        assert result.dispatched == 3
        assert [i.id for i in harness.queue] == ["d", "e"]

    def test_keep_alive_margin(self, clock: FakeClock) -> None:
        """The run halts before the host keep-alive runs out."""
        config = SyncConfiguration(max_sync_duration=100.0, inter_item_delay=0.0, keep_alive_margin=5.0)
        harness = Harness(clock, config, keep_alive_grant=30.0)
        harness.registry.register(SyncType.FAVORITES, RecordingHandler(clock=clock, duration=10.0))
        for name in "abcde":
            harness.add(name)

        result = harness.executor.run_once()

        assert result is not None
        assert result.halt_reason == HaltReason.KEEP_ALIVE
        assert result.dispatched == 3

    def test_keep_alive_revoked_by_host(self, harness: Harness) -> None:
        """Revocation stops the run after the in-flight item."""

        def revoke(item: SyncItem) -> None:
            harness.host.keep_alives[-1].revoke()

        handler = RecordingHandler(on_execute=revoke)
        harness.registry.register(SyncType.FAVORITES, handler)
        harness.add("a")
        harness.add("b")

        result = harness.executor.run_once()

        assert result is not None
        assert handler.ids == ["a"]
        assert result.succeeded == 1
        assert result.halt_reason == HaltReason.KEEP_ALIVE
        assert "b" in harness.queue

    def test_batch_size(self, clock: FakeClock) -> None:
        config = SyncConfiguration(batch_size=2, inter_item_delay=0.0, keep_alive_margin=0.0)
        harness = Harness(clock, config)
        harness.registry.register(SyncType.FAVORITES, RecordingHandler())
        for name in "abc":
            harness.add(name)

        result = harness.executor.run_once()

        assert result is not None
        assert result.halt_reason == HaltReason.BATCH_LIMIT
        assert result.dispatched == 2

    def test_budget_snapshot_at_run_start(self, clock: FakeClock) -> None:
        """Changing max_sync_duration mid-run doesn't affect the current run."""
        config = SyncConfiguration(max_sync_duration=25.0, inter_item_delay=0.0, keep_alive_margin=0.0)
        harness = Harness(clock, config)

        def shrink(item: SyncItem) -> None:
            harness.config = harness.config.with_updates(max_sync_duration=1.0)

        harness.registry.register(
            SyncType.FAVORITES,
            RecordingHandler(clock=clock, duration=5.0, on_execute=shrink),
        )
        for name in "abc":
            harness.add(name)

        result = harness.executor.run_once()

        assert result is not None
        assert result.dispatched == 3


class TestFailures:
    """Tests for failure handling inside a run."""

    def test_failure_is_retried_later(self, harness: Harness) -> None:
        handler = RecordingHandler(outcomes=[ServerError(503)])
        harness.registry.register(SyncType.FAVORITES, handler)
        harness.add("a", max_retries=3)

        result = harness.executor.run_once()

        assert result is not None
        assert result.failed == 1
        assert result.retried == 1
        retry = harness.queue.get("a")
        assert retry is not None
        assert retry.retry_count == 1
        assert retry.scheduled_time == START + harness.config.retry_delay
        assert handler.ids == ["a"]

    def test_terminal_failure(self, harness: Harness) -> None:
        on_terminal = MagicMock()
        harness.executor.set_on_terminal_failure(on_terminal)
        harness.registry.register(SyncType.FAVORITES, RecordingHandler(outcomes=[ServerError(500)]))
        item = harness.add("a", max_retries=0)

        result = harness.executor.run_once()

        assert result is not None
        assert result.dropped == ["a"]
        assert "a" not in harness.queue
        on_terminal.assert_called_once()
        assert on_terminal.call_args.args[0] == item
        stats = harness.statistics.snapshot()
        assert stats.terminal_failures == 1
        assert stats.errors_by_type == {"server_error": 1}

    def test_missing_handler_is_not_retried(self, harness: Harness) -> None:
        harness.add("orphan", type=SyncType.NOTIFICATIONS, max_retries=5)

        result = harness.executor.run_once()

        assert result is not None
        assert result.dropped == ["orphan"]
        assert len(harness.queue) == 0

    def test_builtin_exceptions_are_classified(self, harness: Harness) -> None:
        harness.registry.register(
            SyncType.FAVORITES,
            RecordingHandler(outcomes=[ConnectionResetError("reset")]),
        )
        harness.add("a")

        harness.executor.run_once()

        assert harness.statistics.snapshot().errors_by_type == {
            ErrorKind.NETWORK_UNAVAILABLE.value: 1
        }

    def test_default_max_retries_read_at_failure_time(self, harness: Harness) -> None:
        """Items without max_retries follow the live configuration."""
        harness.config = harness.config.with_updates(max_retries=0)
        harness.registry.register(SyncType.FAVORITES, RecordingHandler(outcomes=[ServerError(500)]))
        harness.add("a")

        result = harness.executor.run_once()

        assert result is not None
        assert result.dropped == ["a"]

    def test_fresh_schedule_supersedes_retry(self, harness: Harness) -> None:
        """A schedule arriving during the attempt wins over the retry."""

        def reschedule(item: SyncItem) -> None:
            harness.add("a", scheduled_time=START + 600)

        harness.registry.register(
            SyncType.FAVORITES,
            RecordingHandler(outcomes=[ServerError(500)], on_execute=reschedule),
        )
        harness.add("a")

        result = harness.executor.run_once()

        assert result is not None
        assert result.retried == 0
        pending = harness.queue.get("a")
        assert pending is not None
        assert pending.retry_count == 0
        assert pending.scheduled_time == START + 600


class TestConditionsDuringRun:
    """Tests for gating evaluated per item."""

    def test_network_loss_mid_run(self, harness: Harness) -> None:
        """Network-bound items stay queued once the network drops."""

        def go_offline(item: SyncItem) -> None:
            harness.conditions = GateConditions(network_available=False)

        harness.registry.register(SyncType.FAVORITES, RecordingHandler(on_execute=go_offline))
        streams = RecordingHandler()
        harness.registry.register(SyncType.STREAMS, streams)
        harness.add("first", priority=SyncPriority.HIGH)
        harness.add("streams", type=SyncType.STREAMS, requires_network=True)
        harness.add("local")

        result = harness.executor.run_once()

        assert result is not None
        assert streams.calls == []
        assert [i.id for i in harness.queue] == ["streams"]
        assert result.succeeded == 2

    def test_low_power_blocks_dispatch(self, harness: Harness) -> None:
        harness.conditions = GateConditions(low_power=True)
        handler = RecordingHandler()
        harness.registry.register(SyncType.FAVORITES, handler)
        harness.add("a")

        harness.executor.run_once()

        assert handler.calls == []
        assert "a" in harness.queue


class TestStop:
    """Tests for stop()."""

    def test_stop_discards_in_flight_outcome(self, harness: Harness) -> None:
        def stop(item: SyncItem) -> None:
            harness.executor.stop()

        handler = RecordingHandler(outcomes=[ServerError(500)], on_execute=stop)
        harness.registry.register(SyncType.FAVORITES, handler)
        harness.add("a")
        harness.add("b")

        result = harness.executor.run_once()

        assert result is not None
        assert result.halt_reason == HaltReason.STOPPED
        assert handler.ids == ["a"]
        assert "a" not in harness.queue
        assert "b" in harness.queue
        assert harness.statistics.snapshot().total_syncs == 0
        assert harness.host.wakeups_submitted == 0
        assert harness.executor.state == SchedulerState.IDLE

    def test_stop_when_idle_is_noop(self, harness: Harness) -> None:
        harness.executor.stop()

        assert harness.executor.state == SchedulerState.IDLE


class TestWakeup:
    """Tests for handle_wakeup()."""

    def test_wakeup_starts_run(self, harness: Harness) -> None:
        handler = RecordingHandler()
        harness.registry.register(SyncType.FAVORITES, handler)
        harness.add("a")

        harness.executor.handle_wakeup()
        harness.executor.join(timeout=5.0)

        assert handler.ids == ["a"]

    def test_wakeup_ignored_when_disabled(self, harness: Harness) -> None:
        harness.config = harness.config.with_updates(background_sync_enabled=False)
        handler = RecordingHandler()
        harness.registry.register(SyncType.FAVORITES, handler)
        harness.add("a")

        harness.executor.handle_wakeup()
        harness.executor.join(timeout=5.0)

        assert handler.calls == []
