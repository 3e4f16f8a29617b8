"""Scheduler configuration.

This module defines SyncConfiguration, the process-wide set of options that
drive gating, retries and the run budget, plus its JSON round-trip helpers.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from streamsync.core.types import SyncType


# Fields stored as sets of SyncType
TYPE_SET_FIELDS = frozenset({"enabled_types", "network_required_types", "wifi_only_types"})


def _all_types() -> frozenset[SyncType]:
    return frozenset(SyncType)


def _network_required_default() -> frozenset[SyncType]:
    return frozenset({
        SyncType.STREAMS,
        SyncType.LIVE_STATUS,
        SyncType.SUBSCRIPTIONS,
        SyncType.ANALYTICS,
    })


def _wifi_only_default() -> frozenset[SyncType]:
    return frozenset({SyncType.THUMBNAILS})


@dataclass(frozen=True)
class SyncConfiguration:
    """Options for the background sync scheduler.

    Attributes:
        sync_interval: Seconds between two host wake-ups.
        max_sync_duration: Hard wall-clock budget of one run, in seconds.
            Must stay below the host's own grant (25s under a 30s ceiling).
        retry_delay: Seconds before a failed item becomes eligible again.
        max_retries: Default retry budget for items that don't carry one.
        batch_size: Maximum number of items dispatched in one run (0 = no cap).
        enabled_types: Types accepted by schedule(); others are ignored.
        network_required_types: Types whose items need the network.
        wifi_only_types: Types that only run on an unmetered connection.
        background_sync_enabled: Whether runs may start automatically.
        low_power_mode_enabled: Whether runs may dispatch in low-power mode.
        keep_alive_margin: Stop when the host keep-alive has less than this left.
        inter_item_delay: Pause between two dispatches, in seconds.
        retry_backoff_multiplier: Growth of the retry delay per attempt
            (1.0 keeps the delay fixed).
        max_retry_delay: Upper bound of the retry delay, in seconds.
    """

    sync_interval: float = 900.0
    max_sync_duration: float = 25.0
    retry_delay: float = 30.0
    max_retries: int = 3
    batch_size: int = 10
    enabled_types: frozenset[SyncType] = field(default_factory=_all_types)
    network_required_types: frozenset[SyncType] = field(
        default_factory=_network_required_default
    )
    wifi_only_types: frozenset[SyncType] = field(default_factory=_wifi_only_default)
    background_sync_enabled: bool = True
    low_power_mode_enabled: bool = False
    keep_alive_margin: float = 5.0
    inter_item_delay: float = 0.1
    retry_backoff_multiplier: float = 1.0
    max_retry_delay: float = 3600.0

    def __post_init__(self) -> None:
        """Normalize type sets and validate ranges."""
        for name in TYPE_SET_FIELDS:
            value = getattr(self, name)
            object.__setattr__(self, name, frozenset(SyncType(t) for t in value))

        if self.sync_interval <= 0:
            raise ValueError("sync_interval must be positive")
        if self.max_sync_duration <= 0:
            raise ValueError("max_sync_duration must be positive")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must not be negative")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.batch_size < 0:
            raise ValueError("batch_size must not be negative")
        if self.keep_alive_margin < 0 or self.inter_item_delay < 0:
            raise ValueError("keep_alive_margin and inter_item_delay must not be negative")
        if self.retry_backoff_multiplier < 1.0:
            raise ValueError("retry_backoff_multiplier must be >= 1.0")

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        data = asdict(self)
        for name in TYPE_SET_FIELDS:
            data[name] = sorted(t.value for t in getattr(self, name))
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncConfiguration:
        """Create from a dictionary, ignoring unknown keys.

        Missing keys keep their defaults.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        for name in TYPE_SET_FIELDS & kwargs.keys():
            kwargs[name] = frozenset(SyncType(t) for t in kwargs[name])
        return cls(**kwargs)

    def to_json(self) -> str:
        """Serialize to JSON."""
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> SyncConfiguration:
        """Deserialize from JSON produced by to_json()."""
        return cls.from_dict(json.loads(raw))

    def with_updates(self, **changes: Any) -> SyncConfiguration:
        """Return a copy with some fields replaced."""
        return replace(self, **changes)


def parse_field_value(name: str, raw: str) -> Any:
    """Parse a textual value for a configuration field.

    Used by the CLI ``config set`` command. Type sets are comma-separated
    type names (an empty string means no types).

    Args:
        name: Field name.
        raw: Textual value.

    Returns:
        The parsed value.

    Raises:
        KeyError: If the field does not exist.
        ValueError: If the value cannot be parsed.
    """
    if name not in {f.name for f in fields(SyncConfiguration)}:
        raise KeyError(name)

    if name in TYPE_SET_FIELDS:
        parts = [p.strip() for p in raw.split(",") if p.strip()]
        return frozenset(SyncType(p) for p in parts)

    default = getattr(SyncConfiguration(), name)
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Invalid boolean for {name}: {raw!r}")
    if isinstance(default, int):
        return int(raw)
    return float(raw)


def load_configuration(path: Path) -> SyncConfiguration:
    """Load configuration from a JSON file.

    Returns the defaults if the file doesn't exist.

    Raises:
        ValueError: If the file isn't a valid configuration.
    """
    if not path.exists():
        return SyncConfiguration()
    data = json.loads(path.read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    try:
        return SyncConfiguration.from_dict(data)
    except TypeError as e:
        raise ValueError(f"{path}: {e}") from e


def save_configuration(config: SyncConfiguration, path: Path) -> None:
    """Save configuration to a JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.to_dict(), indent=2, sort_keys=True))
