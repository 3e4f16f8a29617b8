"""Typed payloads carried by sync items.

Payloads form a tagged union discriminated by ``kind``. Each sync type has a
documented schema; types without specific data use EmptyPayload:

    | kind          | used by      | fields                          |
    |---------------|--------------|---------------------------------|
    | empty         | any type     | (none)                          |
    | thumbnails    | thumbnails   | urls: list[str]                 |
    | live_status   | live_status  | streamer_ids: list[str]         |
    | analytics     | analytics    | events: list[dict]              |
    | generic       | any type     | data: dict[str, JSON]           |

Payloads are serialized to plain JSON dictionaries and validated back, so
type information survives a persistence round-trip.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from streamsync.scheduler.errors import DataCorruptedError

JSONValue = Union[str, int, float, bool, None, list[Any], dict[str, Any]]


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class EmptyPayload(_Payload):
    """Payload for items that need no extra data."""

    kind: Literal["empty"] = "empty"


class ThumbnailsPayload(_Payload):
    """Thumbnail URLs to download into the cache."""

    kind: Literal["thumbnails"] = "thumbnails"
    urls: tuple[str, ...] = ()


class LiveStatusPayload(_Payload):
    """Streamers whose live status should be checked."""

    kind: Literal["live_status"] = "live_status"
    streamer_ids: tuple[str, ...] = ()


class AnalyticsPayload(_Payload):
    """Analytics events to push to the backend."""

    kind: Literal["analytics"] = "analytics"
    events: tuple[dict[str, JSONValue], ...] = ()


class GenericPayload(_Payload):
    """Free-form handler data (JSON-compatible values only)."""

    kind: Literal["generic"] = "generic"
    data: dict[str, JSONValue] = Field(default_factory=dict)


SyncPayload = Annotated[
    Union[EmptyPayload, ThumbnailsPayload, LiveStatusPayload, AnalyticsPayload, GenericPayload],
    Field(discriminator="kind"),
]

_adapter: TypeAdapter[SyncPayload] = TypeAdapter(SyncPayload)


def dump_payload(payload: SyncPayload) -> dict[str, Any]:
    """Convert a payload to a JSON-compatible dictionary."""
    return payload.model_dump(mode="json")


def load_payload(data: dict[str, Any] | None) -> SyncPayload:
    """Validate a dictionary back into a payload.

    Args:
        data: Dictionary produced by dump_payload(), or None.

    Returns:
        The typed payload (EmptyPayload for None).

    Raises:
        DataCorruptedError: If the data doesn't match any payload schema.
    """
    if data is None:
        return EmptyPayload()
    try:
        return _adapter.validate_python(data)
    except ValidationError as e:
        raise DataCorruptedError(f"Invalid payload: {e}") from e
