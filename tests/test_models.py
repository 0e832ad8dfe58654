"""Tests for thermostat models, update validation and timestamp helpers."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from thermosync.exceptions import ThermoValidationError
from thermosync.models._base import from_epoch_ms, to_epoch_ms, truncate_to_ms
from thermosync.models.stream import StreamEvent
from thermosync.models.thermostat import (
    FanMode,
    SystemMode,
    ThermostatRecord,
    clamp_target_temp,
    parse_update,
)

_WIRE = {
    "id": 1,
    "name": "Living Room",
    "currentTemp": 72,
    "targetTemp": 70,
    "systemMode": "cool",
    "fanMode": "auto",
    "currentHumidity": 45,
    "lastUpdated": "2026-01-01T00:00:00.123Z",
}

# ------------------------------------------------------------------
# ThermostatRecord
# ------------------------------------------------------------------


class TestThermostatRecord:
    def test_parses_camel_case_wire_keys(self) -> None:
        record = ThermostatRecord.model_validate(_WIRE)
        assert record.current_temp == 72
        assert record.system_mode is SystemMode.COOL
        assert record.fan_mode is FanMode.AUTO
        assert record.last_updated == datetime(2026, 1, 1, 0, 0, 0, 123000, tzinfo=UTC)

    def test_to_wire_round_trips_keys(self) -> None:
        wire = ThermostatRecord.model_validate(_WIRE).to_wire()
        assert set(wire) == set(_WIRE)
        assert wire["targetTemp"] == 70
        assert wire["systemMode"] == "cool"

    def test_version_is_epoch_ms(self) -> None:
        record = ThermostatRecord.model_validate(_WIRE)
        assert record.version == 1_767_225_600_123

    def test_null_last_updated_has_version_zero(self) -> None:
        record = ThermostatRecord.model_validate({**_WIRE, "lastUpdated": None})
        assert record.version == 0

    def test_merged_applies_only_given_fields(self) -> None:
        record = ThermostatRecord.model_validate(_WIRE)
        merged = record.merged({"target_temp": 74})
        assert merged.target_temp == 74
        assert merged.system_mode is SystemMode.COOL
        assert merged.last_updated == record.last_updated
        assert record.target_temp == 70


# ------------------------------------------------------------------
# Update validation
# ------------------------------------------------------------------


class TestParseUpdate:
    def test_partial_update_keeps_only_sent_fields(self) -> None:
        update = parse_update({"targetTemp": 74})
        assert update.changes() == {"target_temp": 74}

    def test_accepts_snake_case_names(self) -> None:
        update = parse_update({"system_mode": "heat"})
        assert update.changes() == {"system_mode": SystemMode.HEAT}

    @pytest.mark.parametrize("value", [49, 91])
    def test_target_temp_out_of_range_rejected(self, value: int) -> None:
        with pytest.raises(ThermoValidationError) as exc_info:
            parse_update({"targetTemp": value})
        assert exc_info.value.field == "targetTemp"

    @pytest.mark.parametrize("value", [50, 90])
    def test_target_temp_bounds_accepted(self, value: int) -> None:
        assert parse_update({"targetTemp": value}).target_temp == value

    def test_unknown_system_mode_rejected(self) -> None:
        with pytest.raises(ThermoValidationError) as exc_info:
            parse_update({"systemMode": "turbo"})
        assert exc_info.value.field == "systemMode"

    def test_unknown_fan_mode_rejected(self) -> None:
        with pytest.raises(ThermoValidationError) as exc_info:
            parse_update({"fanMode": "off"})
        assert exc_info.value.field == "fanMode"

    def test_string_temperature_rejected(self) -> None:
        with pytest.raises(ThermoValidationError) as exc_info:
            parse_update({"targetTemp": "74"})
        assert exc_info.value.field == "targetTemp"

    def test_store_owned_fields_rejected(self) -> None:
        with pytest.raises(ThermoValidationError) as exc_info:
            parse_update({"lastUpdated": "2026-01-01T00:00:00Z"})
        assert exc_info.value.field == "lastUpdated"

    def test_empty_update_rejected(self) -> None:
        with pytest.raises(ThermoValidationError) as exc_info:
            parse_update({})
        assert exc_info.value.field is None

    def test_explicit_null_rejected(self) -> None:
        with pytest.raises(ThermoValidationError):
            parse_update({"name": None})

    def test_non_object_body_rejected(self) -> None:
        with pytest.raises(ThermoValidationError):
            parse_update([{"targetTemp": 74}])


def test_clamp_target_temp() -> None:
    assert clamp_target_temp(20) == 50
    assert clamp_target_temp(95) == 90
    assert clamp_target_temp(72) == 72


# ------------------------------------------------------------------
# Timestamps
# ------------------------------------------------------------------


class TestEpochMs:
    def test_round_trip_is_exact(self) -> None:
        for ms in (0, 1, 1_767_225_600_123, 1_767_225_600_999):
            assert to_epoch_ms(from_epoch_ms(ms)) == ms

    def test_naive_datetime_treated_as_utc(self) -> None:
        assert to_epoch_ms(datetime(1970, 1, 1, 0, 0, 1)) == 1000

    def test_truncate_drops_microseconds(self) -> None:
        value = datetime(2026, 1, 1, 0, 0, 0, 123456, tzinfo=UTC)
        assert truncate_to_ms(value).microsecond == 123000


def test_update_event_exposes_record() -> None:
    event = StreamEvent(event="update", data=_WIRE)
    assert event.is_update
    assert event.record().target_temp == 70


def test_ping_event_has_no_record() -> None:
    with pytest.raises(ValueError):
        StreamEvent(event="ping", data={}).record()
