"""Base model and timestamp helpers for thermostat payloads.

Every wire model inherits from :class:`ThermoBaseModel` which provides
``alias_generator=to_camel`` so the camelCase keys used on the wire map
to snake_case fields, while still accepting snake_case names from Python
callers.

Timestamps are kept at millisecond precision. Converting between
``datetime`` and epoch milliseconds goes through ``timedelta`` integer
arithmetic so that a value survives the round trip exactly; the poll
channel compares these integers for equality.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


def to_epoch_ms(value: datetime | None) -> int:
    """Convert a timestamp to epoch milliseconds; ``None`` maps to ``0``."""
    if value is None:
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - EPOCH) // _ONE_MS


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return EPOCH + timedelta(milliseconds=int(value))


def truncate_to_ms(value: datetime) -> datetime:
    """Drop sub-millisecond precision from *value*."""
    return from_epoch_ms(to_epoch_ms(value))


class ThermoBaseModel(BaseModel):
    """Base for thermostat wire models.

    Handles:
    * camelCase ↔ snake_case via ``alias_generator=to_camel``
    * immutability, so snapshots handed to channels can be shared freely
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump as the JSON-compatible camelCase dict sent over HTTP."""
        return self.model_dump(mode="json", by_alias=True)
