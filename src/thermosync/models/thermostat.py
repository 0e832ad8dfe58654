"""Thermostat record models.

``ThermostatRecord`` is the persisted document. ``ThermostatCreate`` and
``ThermostatUpdate`` are the write-side shapes: neither carries ``id`` or
``lastUpdated``, both of which belong to the store.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import ConfigDict, Field, ValidationError, model_validator

from thermosync.exceptions import ThermoValidationError
from thermosync.models._base import ThermoBaseModel, to_epoch_ms

__all__ = [
    "FanMode",
    "SystemMode",
    "TARGET_TEMP_MAX",
    "TARGET_TEMP_MIN",
    "ThermostatCreate",
    "ThermostatRecord",
    "ThermostatUpdate",
    "clamp_target_temp",
    "parse_update",
]

TARGET_TEMP_MIN = 50
TARGET_TEMP_MAX = 90

StrictInt = Annotated[int, Field(strict=True)]
TargetTemp = Annotated[int, Field(strict=True, ge=TARGET_TEMP_MIN, le=TARGET_TEMP_MAX)]
Name = Annotated[str, Field(strict=True, min_length=1)]


class SystemMode(StrEnum):
    HEAT = "heat"
    COOL = "cool"
    AUTO = "auto"
    OFF = "off"


class FanMode(StrEnum):
    AUTO = "auto"
    ON = "on"


def clamp_target_temp(value: int) -> int:
    """Clamp a set point into the supported [50, 90] range."""
    return max(TARGET_TEMP_MIN, min(TARGET_TEMP_MAX, int(value)))


class ThermostatCreate(ThermoBaseModel):
    """Fields required to create a record."""

    model_config = ConfigDict(extra="forbid")

    name: Name
    current_temp: StrictInt
    target_temp: TargetTemp
    system_mode: SystemMode
    fan_mode: FanMode
    current_humidity: StrictInt


class ThermostatUpdate(ThermoBaseModel):
    """Partial update; only the fields that were sent are applied."""

    model_config = ConfigDict(extra="forbid")

    name: Name | None = None
    current_temp: StrictInt | None = None
    target_temp: TargetTemp | None = None
    system_mode: SystemMode | None = None
    fan_mode: FanMode | None = None
    current_humidity: StrictInt | None = None

    @model_validator(mode="after")
    def _require_fields(self) -> ThermostatUpdate:
        if not self.model_fields_set:
            raise ValueError("update must set at least one field")
        for field_name in self.model_fields_set:
            if getattr(self, field_name) is None:
                raise ValueError(f"{field_name} must not be null")
        return self

    def changes(self) -> dict[str, Any]:
        """Snake-case dict of the fields that were explicitly sent."""
        return self.model_dump(exclude_unset=True)


class ThermostatRecord(ThermoBaseModel):
    """The persisted thermostat document."""

    id: int
    name: str
    current_temp: int
    target_temp: int
    system_mode: SystemMode
    fan_mode: FanMode
    current_humidity: int
    last_updated: datetime | None = None

    @property
    def version(self) -> int:
        """``lastUpdated`` as epoch milliseconds (``0`` when unset)."""
        return to_epoch_ms(self.last_updated)

    def merged(self, changes: dict[str, Any], *, last_updated: datetime | None = None) -> ThermostatRecord:
        """Return a copy with *changes* applied (snake_case keys)."""
        update = dict(changes)
        if last_updated is not None:
            update["last_updated"] = last_updated
        return self.model_copy(update=update)


def parse_update(body: Any) -> ThermostatUpdate:
    """Validate an update body, raising :class:`ThermoValidationError`.

    The first pydantic error is surfaced, with its location joined into a
    dotted field path.
    """
    if not isinstance(body, dict):
        raise ThermoValidationError("update body must be a JSON object")
    try:
        return ThermostatUpdate.model_validate(body)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(part) for part in first.get("loc", ()))
        raise ThermoValidationError(first.get("msg", "invalid update"), field=loc or None) from exc
