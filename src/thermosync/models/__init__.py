"""Data models for thermostat records and stream events."""

from thermosync.models._base import ThermoBaseModel, from_epoch_ms, to_epoch_ms, truncate_to_ms
from thermosync.models.stream import StreamEvent, StreamEventType
from thermosync.models.thermostat import (
    TARGET_TEMP_MAX,
    TARGET_TEMP_MIN,
    FanMode,
    SystemMode,
    ThermostatCreate,
    ThermostatRecord,
    ThermostatUpdate,
    clamp_target_temp,
    parse_update,
)

__all__ = [
    "FanMode",
    "StreamEvent",
    "StreamEventType",
    "SystemMode",
    "TARGET_TEMP_MAX",
    "TARGET_TEMP_MIN",
    "ThermoBaseModel",
    "ThermostatCreate",
    "ThermostatRecord",
    "ThermostatUpdate",
    "clamp_target_temp",
    "from_epoch_ms",
    "parse_update",
    "to_epoch_ms",
    "truncate_to_ms",
]
