"""Failure classification and retry policy.

This module provides:
- classify_error: Map any exception onto the sync error taxonomy
- RetryPolicy: Decide whether and when a failed item runs again

Retries are re-enqueued items, not in-place loops: the failed item comes
back with retry_count + 1 and a scheduled time in the future, so other
work can run in the meantime.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from streamsync.scheduler.errors import (
    DataCorruptedError,
    ExecutionTimeExpiredError,
    NetworkUnavailableError,
    SyncError,
    UnknownSyncError,
)

if TYPE_CHECKING:
    from streamsync.core.config import SyncConfiguration
    from streamsync.scheduler.types import SyncItem

logger = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 30.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 3600.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 1.0  # fixed delay


def classify_error(error: BaseException) -> SyncError:
    """Map an exception onto the sync error taxonomy.

    SyncError instances are returned unchanged. Builtin exceptions map as:
    TimeoutError -> execution time expired, ConnectionError -> network
    unavailable, ValueError (including JSON decode errors) -> data corrupted.
    Anything else becomes an UnknownSyncError wrapping the cause.

    Args:
        error: The exception raised by a handler.

    Returns:
        The classified error.
    """
    if isinstance(error, SyncError):
        return error
    if isinstance(error, TimeoutError):
        classified: SyncError = ExecutionTimeExpiredError(str(error) or "Timed out")
    elif isinstance(error, ConnectionError):
        classified = NetworkUnavailableError(str(error) or "Network unavailable")
    elif isinstance(error, ValueError):
        classified = DataCorruptedError(str(error) or "Invalid data")
    else:
        classified = UnknownSyncError(error)
    classified.__cause__ = error
    return classified


class RetryPolicy:
    """Decides whether a failed item is re-enqueued.

    Items that carry their own max_retries keep it. Items created with
    max_retries=None use default_max_retries, which the executor reads from
    the live configuration at failure time.
    """

    def __init__(
        self,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        default_max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
        max_delay: float = DEFAULT_MAX_RETRY_DELAY,
    ) -> None:
        """Initialize the policy.

        Args:
            retry_delay: Delay before the first retry, in seconds.
            default_max_retries: Retry budget for items without their own.
            backoff_multiplier: Delay growth per retry (1.0 = fixed delay).
            max_delay: Upper bound of the delay, in seconds.
        """
        self.retry_delay = retry_delay
        self.default_max_retries = default_max_retries
        self.backoff_multiplier = backoff_multiplier
        self.max_delay = max_delay

    @classmethod
    def from_configuration(cls, config: SyncConfiguration) -> RetryPolicy:
        """Create a policy from the scheduler configuration."""
        return cls(
            retry_delay=config.retry_delay,
            default_max_retries=config.max_retries,
            backoff_multiplier=config.retry_backoff_multiplier,
            max_delay=config.max_retry_delay,
        )

    def delay_for(self, item: SyncItem) -> float:
        """Get the delay before the next attempt of an item."""
        delay = self.retry_delay * (self.backoff_multiplier ** item.retry_count)
        return min(delay, self.max_delay)

    def on_failure(
        self,
        item: SyncItem,
        error: SyncError,
        now: float,
    ) -> SyncItem | None:
        """Decide what happens to a failed item.

        Args:
            item: The item whose attempt failed.
            error: The classified failure.
            now: Current Unix time.

        Returns:
            The item to re-enqueue, or None if the failure is terminal.
        """
        if not error.retryable:
            logger.warning(
                "Sync item %s failed permanently (%s): %s",
                item.id,
                error.kind.value,
                error,
            )
            return None

        max_retries = item.effective_max_retries(self.default_max_retries)
        if not item.can_retry(self.default_max_retries):
            logger.error(
                "Sync item %s failed after %d retries (%s): %s",
                item.id,
                max_retries,
                error.kind.value,
                error,
            )
            return None

        delay = self.delay_for(item)
        retry = item.with_retry(now + delay)
        logger.warning(
            "Attempt %d/%d of %s failed (%s): %s. Retrying in %.1fs",
            item.retry_count + 1,
            max_retries + 1,
            item.id,
            error.kind.value,
            error,
            delay,
        )
        return retry
