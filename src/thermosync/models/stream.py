"""Stream channel events.

The server emits three named events over ``text/event-stream``:
``connected`` once per connection, ``update`` with the full record after
every store write, and ``ping`` on a fixed keep-alive interval.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from thermosync.models.thermostat import ThermostatRecord


class StreamEventType(StrEnum):
    CONNECTED = "connected"
    UPDATE = "update"
    PING = "ping"


class StreamEvent(BaseModel):
    """A named event with its decoded JSON payload."""

    model_config = ConfigDict(frozen=True)

    event: str
    data: Any = None

    @property
    def is_update(self) -> bool:
        return self.event == StreamEventType.UPDATE

    def record(self) -> ThermostatRecord:
        """Parse the payload of an ``update`` event."""
        if not self.is_update:
            raise ValueError(f"{self.event!r} events carry no record")
        return ThermostatRecord.model_validate(self.data)


def connected_payload(thermostat_id: int) -> dict[str, Any]:
    return {"message": f"Connected to thermostat {thermostat_id}", "thermostatId": thermostat_id}


def ping_payload(now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now(UTC)
    return {"timestamp": now.isoformat()}
