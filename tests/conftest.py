"""Shared fixtures for streamsync tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from streamsync.core.config import SyncConfiguration
from streamsync.scheduler.types import SyncItem

START = 1_700_000_000.0


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = START) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingHandler:
    """Handler recording the items it executes.

    Each call consumes the next entry of `outcomes`: None succeeds, an
    exception is raised. Once outcomes run out, every call succeeds.
    """

    def __init__(
        self,
        outcomes: list[Exception | None] | None = None,
        clock: FakeClock | None = None,
        duration: float = 0.0,
        on_execute: Callable[[SyncItem], Any] | None = None,
    ) -> None:
        self.outcomes = list(outcomes or [])
        self.clock = clock
        self.duration = duration
        self.on_execute = on_execute
        self.calls: list[SyncItem] = []

    def execute(self, item: SyncItem) -> None:
        self.calls.append(item)
        if self.clock is not None and self.duration:
            self.clock.advance(self.duration)
        if self.on_execute is not None:
            self.on_execute(item)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if outcome is not None:
                raise outcome

    @property
    def ids(self) -> list[str]:
        return [item.id for item in self.calls]


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock starting at a fixed time."""
    return FakeClock()


@pytest.fixture
def recording_handler() -> Callable[..., RecordingHandler]:
    """Provide a factory for recording handlers."""
    return RecordingHandler


@pytest.fixture
def fast_config() -> SyncConfiguration:
    """Configuration without pauses between items."""
    return SyncConfiguration(inter_item_delay=0.0, keep_alive_margin=0.0)
