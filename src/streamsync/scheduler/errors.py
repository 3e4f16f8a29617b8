"""Error taxonomy for sync jobs.

Handlers translate their domain failures into these exceptions. Anything
else they raise is classified by streamsync.scheduler.retry.classify_error().
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Kind of a sync failure, used as the statistics key."""

    NETWORK_UNAVAILABLE = "network_unavailable"
    EXECUTION_TIME_EXPIRED = "execution_time_expired"
    DATA_CORRUPTED = "data_corrupted"
    AUTHENTICATION_FAILED = "authentication_failed"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


class SyncError(Exception):
    """Base exception for sync job failures.

    Attributes:
        kind: Failure kind.
        retryable: Whether the retry policy may re-enqueue the item.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN
    retryable: bool = True


class NetworkUnavailableError(SyncError):
    """The network was unreachable."""

    kind = ErrorKind.NETWORK_UNAVAILABLE


class ExecutionTimeExpiredError(SyncError):
    """The handler ran out of time."""

    kind = ErrorKind.EXECUTION_TIME_EXPIRED


class DataCorruptedError(SyncError):
    """Local or remote data could not be decoded."""

    kind = ErrorKind.DATA_CORRUPTED


class AuthenticationFailedError(SyncError):
    """The backend rejected our credentials."""

    kind = ErrorKind.AUTHENTICATION_FAILED


class RateLimitedError(SyncError):
    """The backend asked us to slow down."""

    kind = ErrorKind.RATE_LIMITED


class ServerError(SyncError):
    """The backend answered with an error status."""

    kind = ErrorKind.SERVER_ERROR

    def __init__(self, status_code: int, message: str | None = None) -> None:
        super().__init__(message or f"Server error: {status_code}")
        self.status_code = status_code


class UnknownSyncError(SyncError):
    """Any failure that doesn't map to a known kind."""

    kind = ErrorKind.UNKNOWN

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Unknown error: {cause}")
        self.cause = cause


class PermanentSyncError(SyncError):
    """The item itself is invalid; retrying it can never succeed."""

    retryable = False

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.DATA_CORRUPTED) -> None:
        super().__init__(message)
        self.kind = kind
