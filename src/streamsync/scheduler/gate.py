"""Admission rules for queued sync items.

An item is eligible when all of these hold, checked in order:

    | Check        | Rejects when                                         |
    |--------------|------------------------------------------------------|
    | active       | the item id is already being processed               |
    | network      | the item requires network and none is available      |
    | wifi_only    | the type is wifi-only and the network is metered     |
    | low_power    | low-power mode is on and not allowed by configuration |
    | dependency   | one of the item's dependencies is being processed    |
    | scheduled    | the scheduled time is still in the future            |

The functions here never mutate anything: a rejected item simply stays
queued for a later pass.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Collection

    from streamsync.core.config import SyncConfiguration
    from streamsync.scheduler.types import SyncItem


@dataclass(frozen=True)
class GateConditions:
    """Snapshot of device conditions used for gating.

    Attributes:
        network_available: Whether the network is reachable.
        network_unmetered: Whether the current connection is unmetered (wifi).
        low_power: Whether the device is in low-power mode.
    """

    network_available: bool = True
    network_unmetered: bool = True
    low_power: bool = False


def rejection_reason(
    item: SyncItem,
    active_ids: Collection[str],
    configuration: SyncConfiguration,
    conditions: GateConditions,
    now: float | None = None,
) -> str | None:
    """Get the name of the first failing check for an item.

    Returns:
        The check name (see module table), or None if the item is eligible.
    """
    if item.id in active_ids:
        return "active"

    if item.requires_network and not conditions.network_available:
        return "network"

    if item.type in configuration.wifi_only_types and not (
        conditions.network_available and conditions.network_unmetered
    ):
        return "wifi_only"

    if conditions.low_power and not configuration.low_power_mode_enabled:
        return "low_power"

    if any(dependency in active_ids for dependency in item.dependencies):
        return "dependency"

    if item.scheduled_time is not None:
        if now is None:
            now = time.time()
        if item.scheduled_time > now:
            return "scheduled"

    return None


def can_process(
    item: SyncItem,
    active_ids: Collection[str],
    configuration: SyncConfiguration,
    conditions: GateConditions,
    now: float | None = None,
) -> bool:
    """Check whether an item may be dispatched right now."""
    return rejection_reason(item, active_ids, configuration, conditions, now) is None
