"""Push-based device status collaborators.

This module provides:
- NetworkMonitor: Reachability and connection type (metered or unmetered)
- PowerMonitor: Low-power mode

Platform integrations call update() when the OS reports a change. The
scheduler subscribes to changes; it never polls.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class NetworkMonitor:
    """Holds the latest network status and notifies subscribers on change."""

    def __init__(self, available: bool = True, unmetered: bool = True) -> None:
        """Initialize with a known status.

        Args:
            available: Whether the network is reachable.
            unmetered: Whether the connection is unmetered (wifi).
        """
        self._lock = threading.Lock()
        self._available = available
        self._unmetered = unmetered
        self._listeners: list[Callable[[bool, bool], None]] = []

    @property
    def available(self) -> bool:
        """Whether the network is reachable."""
        return self._available

    @property
    def unmetered(self) -> bool:
        """Whether the connection is unmetered."""
        return self._unmetered

    def subscribe(self, listener: Callable[[bool, bool], None]) -> Callable[[], None]:
        """Register a listener called with (available, unmetered).

        Returns:
            A function that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def update(self, available: bool, unmetered: bool | None = None) -> None:
        """Report a network status change.

        Args:
            available: Whether the network is reachable.
            unmetered: Connection type, or None to keep the previous one.
        """
        with self._lock:
            if unmetered is None:
                unmetered = self._unmetered
            if (available, unmetered) == (self._available, self._unmetered):
                return
            self._available = available
            self._unmetered = unmetered
            listeners = list(self._listeners)

        logger.info(
            "Network %s (%s)",
            "available" if available else "unavailable",
            "unmetered" if unmetered else "metered",
        )
        for listener in listeners:
            try:
                listener(available, unmetered)
            except Exception:
                logger.exception("Network listener failed")


class PowerMonitor:
    """Holds the latest low-power state and notifies subscribers on change."""

    def __init__(self, low_power: bool = False) -> None:
        self._lock = threading.Lock()
        self._low_power = low_power
        self._listeners: list[Callable[[bool], None]] = []

    @property
    def low_power(self) -> bool:
        """Whether the device is in low-power mode."""
        return self._low_power

    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Register a listener called with the new low-power state.

        Returns:
            A function that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def update(self, low_power: bool) -> None:
        """Report a low-power mode transition."""
        with self._lock:
            if low_power == self._low_power:
                return
            self._low_power = low_power
            listeners = list(self._listeners)

        logger.info("Low-power mode %s", "enabled" if low_power else "disabled")
        for listener in listeners:
            try:
                listener(low_power)
            except Exception:
                logger.exception("Power listener failed")
