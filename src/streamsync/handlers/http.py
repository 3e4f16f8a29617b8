"""HTTP handlers for backend resources.

This module provides:
- raise_for_sync_status / translate_request_error: httpx -> sync error taxonomy
- HTTPResourceHandler: Fetch (or push) one backend resource per item
- LiveStatusHandler: Check the live status of streamers
- AnalyticsHandler: Push analytics events

Status code mapping:

    | Response               | Sync error                    |
    |------------------------|-------------------------------|
    | 401, 403               | AuthenticationFailedError     |
    | 429                    | RateLimitedError              |
    | 5xx                    | ServerError(code)             |
    | other 4xx              | PermanentSyncError            |
    | connect/network error  | NetworkUnavailableError       |
    | timeout                | ExecutionTimeExpiredError     |
    | invalid JSON body      | DataCorruptedError            |
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from streamsync.scheduler.errors import (
    AuthenticationFailedError,
    DataCorruptedError,
    ErrorKind,
    ExecutionTimeExpiredError,
    NetworkUnavailableError,
    PermanentSyncError,
    RateLimitedError,
    ServerError,
    SyncError,
)
from streamsync.scheduler.payloads import (
    AnalyticsPayload,
    GenericPayload,
    LiveStatusPayload,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from streamsync.scheduler.types import SyncItem

logger = logging.getLogger(__name__)


def raise_for_sync_status(response: httpx.Response) -> httpx.Response:
    """Raise the sync error matching an error response.

    Returns:
        The response, if successful.
    """
    status = response.status_code
    if status in (401, 403):
        raise AuthenticationFailedError(f"Authentication failed ({status})")
    if status == 429:
        raise RateLimitedError("Rate limited by server")
    if status >= 500:
        raise ServerError(status)
    if status >= 400:
        raise PermanentSyncError(
            f"Request rejected ({status}): {response.request.url}",
            kind=ErrorKind.SERVER_ERROR,
        )
    return response


def translate_request_error(error: httpx.RequestError) -> SyncError:
    """Map an httpx transport error onto the sync error taxonomy."""
    if isinstance(error, httpx.TimeoutException):
        translated: SyncError = ExecutionTimeExpiredError(f"Request timed out: {error}")
    else:
        translated = NetworkUnavailableError(f"Request failed: {error}")
    translated.__cause__ = error
    return translated


def decode_json(response: httpx.Response) -> Any:
    """Decode a JSON body.

    Raises:
        DataCorruptedError: If the body isn't valid JSON.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise DataCorruptedError(f"Invalid JSON from {response.request.url}") from e


class HTTPResourceHandler:
    """Fetches (or pushes) one backend resource per sync item.

    GET requests hand the decoded body to the sink callback, which stores it
    locally. Other methods send the item's GenericPayload data as JSON.

    Usage:
        with httpx.Client(base_url="https://api.example.com") as client:
            handler = HTTPResourceHandler(client, "/api/favorites", sink=store_favorites)
            registry.register(SyncType.FAVORITES, handler)
    """

    def __init__(
        self,
        client: httpx.Client,
        path: str,
        method: str = "GET",
        sink: Callable[[SyncItem, Any], None] | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            client: HTTP client (base URL and auth headers preconfigured).
            path: Resource path relative to the client's base URL.
            method: HTTP method.
            sink: Called with (item, decoded body) after a successful request.
        """
        self._client = client
        self._path = path
        self._method = method.upper()
        self._sink = sink

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise translate_request_error(e) from e
        return raise_for_sync_status(response)

    def execute(self, item: SyncItem) -> None:
        """Run the request for one item."""
        kwargs: dict[str, Any] = {}
        if self._method != "GET" and isinstance(item.payload, GenericPayload):
            kwargs["json"] = item.payload.data

        response = self._request(self._method, self._path, **kwargs)
        body = decode_json(response)
        logger.debug("%s %s -> %d", self._method, self._path, response.status_code)

        if self._sink is not None:
            self._sink(item, body)


class LiveStatusHandler(HTTPResourceHandler):
    """Checks whether streamers are live.

    Expects ``GET <path>/<streamer_id>/live`` to answer ``{"is_live": bool}``.
    """

    def __init__(
        self,
        client: httpx.Client,
        path: str = "/api/streamers",
        on_live: Callable[[str], None] | None = None,
    ) -> None:
        super().__init__(client, path)
        self._on_live = on_live

    def execute(self, item: SyncItem) -> None:
        """Check each streamer listed in the item's payload."""
        if not isinstance(item.payload, LiveStatusPayload):
            raise PermanentSyncError(f"{item.id}: expected a live_status payload")

        for streamer_id in item.payload.streamer_ids:
            path = f"{self._path}/{quote(streamer_id, safe='')}/live"
            response = self._request("GET", path)
            body = decode_json(response)
            if not isinstance(body, dict) or "is_live" not in body:
                raise DataCorruptedError(f"Unexpected live status for {streamer_id}")
            if body["is_live"]:
                logger.info("Streamer %s is live", streamer_id)
                if self._on_live is not None:
                    self._on_live(streamer_id)


class AnalyticsHandler(HTTPResourceHandler):
    """Pushes analytics events.

    Events come from the item's AnalyticsPayload, plus whatever the collect
    callback returns (e.g. usage counters gathered at send time).
    """

    def __init__(
        self,
        client: httpx.Client,
        path: str = "/api/analytics",
        collect: Callable[[], dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(client, path, method="POST")
        self._collect = collect

    def execute(self, item: SyncItem) -> None:
        """Send the events."""
        events: list[dict[str, Any]] = []
        if isinstance(item.payload, AnalyticsPayload):
            events.extend(item.payload.events)

        body: dict[str, Any] = {"events": events}
        if self._collect is not None:
            body["context"] = self._collect()

        self._request("POST", self._path, json=body)
        logger.debug("Sent %d analytics events", len(events))
