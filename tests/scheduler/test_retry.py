"""Tests for error classification and the retry policy."""

from __future__ import annotations

import json

import pytest

from streamsync.core.config import SyncConfiguration
from streamsync.core.types import SyncType
from streamsync.scheduler.errors import (
    DataCorruptedError,
    ErrorKind,
    ExecutionTimeExpiredError,
    NetworkUnavailableError,
    PermanentSyncError,
    RateLimitedError,
    ServerError,
    UnknownSyncError,
)
from streamsync.scheduler.retry import RetryPolicy, classify_error
from streamsync.scheduler.types import SyncItem

NOW = 1_700_000_000.0


class TestClassifyError:
    """Tests for classify_error()."""

    def test_sync_errors_unchanged(self) -> None:
        error = RateLimitedError("slow down")

        assert classify_error(error) is error

    @pytest.mark.parametrize(
        "error,expected",
        [
            (TimeoutError("late"), ExecutionTimeExpiredError),
            (ConnectionRefusedError("refused"), NetworkUnavailableError),
            (ValueError("bad"), DataCorruptedError),
            (KeyError("x"), UnknownSyncError),
        ],
    )
    def test_builtin_errors(self, error: Exception, expected: type) -> None:
        classified = classify_error(error)

        assert isinstance(classified, expected)
        assert classified.__cause__ is error

    def test_json_errors_are_data_corruption(self) -> None:
        with pytest.raises(ValueError) as exc_info:
            json.loads("{not json")

        assert classify_error(exc_info.value).kind == ErrorKind.DATA_CORRUPTED

    def test_server_error_keeps_status(self) -> None:
        error = ServerError(503)

        assert error.status_code == 503
        assert error.kind == ErrorKind.SERVER_ERROR


class TestRetryPolicy:
    """Tests for RetryPolicy.on_failure()."""

    def test_retry_is_rescheduled(self) -> None:
        policy = RetryPolicy(retry_delay=30.0)
        item = SyncItem(id="a", type=SyncType.STREAMS, max_retries=3)

        retry = policy.on_failure(item, NetworkUnavailableError(), NOW)

        assert retry is not None
        assert retry.id == "a"
        assert retry.retry_count == 1
        assert retry.scheduled_time == NOW + 30.0

    def test_max_retries_allows_n_plus_one_attempts(self) -> None:
        """An item with max_retries=N is attempted N+1 times in total."""
        policy = RetryPolicy()
        item: SyncItem | None = SyncItem(id="a", type=SyncType.STREAMS, max_retries=2)
        attempts = 0

        while item is not None:
            attempts += 1
            item = policy.on_failure(item, ServerError(500), NOW)

        assert attempts == 3

    def test_zero_retries(self) -> None:
        item = SyncItem(id="a", type=SyncType.STREAMS, max_retries=0)

        assert RetryPolicy().on_failure(item, ServerError(500), NOW) is None

    def test_inherited_max_retries_uses_default(self) -> None:
        """Items without max_retries use the policy default."""
        policy = RetryPolicy(default_max_retries=1)
        item = SyncItem(id="a", type=SyncType.STREAMS)

        retry = policy.on_failure(item, ServerError(500), NOW)
        assert retry is not None
        assert policy.on_failure(retry, ServerError(500), NOW) is None

    def test_explicit_max_retries_ignores_default(self) -> None:
        policy = RetryPolicy(default_max_retries=0)
        item = SyncItem(id="a", type=SyncType.STREAMS, max_retries=1)

        assert policy.on_failure(item, ServerError(500), NOW) is not None

    def test_permanent_errors_not_retried(self) -> None:
        item = SyncItem(id="a", type=SyncType.STREAMS, max_retries=5)

        assert RetryPolicy().on_failure(item, PermanentSyncError("bad item"), NOW) is None

    def test_fixed_delay_by_default(self) -> None:
        policy = RetryPolicy(retry_delay=30.0)
        item = SyncItem(id="a", type=SyncType.STREAMS, retry_count=3, max_retries=5)

        assert policy.delay_for(item) == 30.0

    def test_backoff_is_capped(self) -> None:
        policy = RetryPolicy(retry_delay=10.0, backoff_multiplier=2.0, max_delay=50.0)

        delays = [
            policy.delay_for(SyncItem(id="a", type=SyncType.STREAMS, retry_count=n))
            for n in range(4)
        ]

        assert delays == [10.0, 20.0, 40.0, 50.0]

    def test_from_configuration(self) -> None:
        config = SyncConfiguration(retry_delay=5.0, max_retries=7, retry_backoff_multiplier=1.5)

        policy = RetryPolicy.from_configuration(config)

        assert policy.retry_delay == 5.0
        assert policy.default_max_retries == 7
        assert policy.backoff_multiplier == 1.5
