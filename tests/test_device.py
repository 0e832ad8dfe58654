"""Tests for the simulated thermostat."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeClock, make_stack

from thermosync.device import DeviceSimulator, drift_toward
from thermosync.exceptions import ThermoNotFoundError
from thermosync.models.thermostat import SystemMode


@pytest.mark.parametrize(
    ("current", "target", "mode", "expected"),
    [
        (68, 70, SystemMode.HEAT, 69),
        (72, 70, SystemMode.HEAT, 72),
        (72, 70, SystemMode.COOL, 71),
        (68, 70, SystemMode.COOL, 68),
        (68, 70, SystemMode.AUTO, 69),
        (72, 70, SystemMode.AUTO, 71),
        (72, 70, SystemMode.OFF, 72),
        (70, 70, SystemMode.AUTO, 70),
    ],
)
def test_drift_toward(current: int, target: int, mode: SystemMode, expected: int) -> None:
    assert drift_toward(current, target, mode) == expected


class _Ticker:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_sync_once_adopts_then_reports_not_modified() -> None:
    service, transport, client = make_stack()
    await service.list_thermostats()
    device = DeviceSimulator(client, 1)

    assert await device.sync_once() is True
    assert device.state.target_temp == 70
    assert await device.sync_once() is False

    assert device.polls == 2
    assert device.not_modified == 1
    polls = [path for _method, path, _body in transport.calls if path.endswith("/poll")]
    assert len(polls) == 2


@pytest.mark.asyncio
async def test_step_reports_reading_toward_target() -> None:
    clock = FakeClock()
    service, transport, client = make_stack(clock)
    await service.list_thermostats()
    device = DeviceSimulator(client, 1)
    await device.sync_once()

    clock.advance(1)
    record = await device.step()

    assert record is not None
    assert record.current_temp == 71
    assert transport.patch_calls() == [{"currentTemp": 71}]
    assert (await service.get_thermostat(1)).current_temp == 71
    # Own write moved lastUpdated forward; the next poll sees nothing new.
    assert await device.sync_once() is False


@pytest.mark.asyncio
async def test_step_at_set_point_sends_nothing() -> None:
    service, transport, client = make_stack()
    await service.list_thermostats()
    await service.update_thermostat(1, {"currentTemp": 70})
    device = DeviceSimulator(client, 1)
    await device.sync_once()

    assert await device.step() is None
    assert transport.patch_calls() == []


@pytest.mark.asyncio
async def test_device_adopts_new_set_point() -> None:
    clock = FakeClock()
    service, _transport, client = make_stack(clock)
    await service.list_thermostats()
    device = DeviceSimulator(client, 1)
    await device.sync_once()

    clock.advance(100)
    await service.update_thermostat(1, {"targetTemp": 75, "systemMode": "heat"})

    assert await device.sync_once() is True
    assert device.state.target_temp == 75
    assert device.since_ms == (await service.get_thermostat(1)).version


@pytest.mark.asyncio
async def test_run_steps_on_its_own_cadence() -> None:
    service, transport, client = make_stack()
    await service.list_thermostats()
    ticker = _Ticker()
    device = DeviceSimulator(client, 1, poll_interval=0.01, step_seconds=10.0, clock=ticker)

    task = asyncio.create_task(device.run())
    try:
        for _ in range(100):
            if device.polls >= 3:
                break
            await asyncio.sleep(0.01)
        assert len(transport.patch_calls()) == 1

        ticker.now = 10.0
        for _ in range(100):
            if len(transport.patch_calls()) == 2:
                break
            await asyncio.sleep(0.01)
        assert len(transport.patch_calls()) == 2
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


@pytest.mark.asyncio
async def test_run_survives_transport_errors() -> None:
    service, transport, client = make_stack()
    await service.list_thermostats()
    transport.fail_methods = {"GET"}
    device = DeviceSimulator(client, 1, poll_interval=0.01)

    task = asyncio.create_task(device.run())
    try:
        for _ in range(100):
            if device.polls >= 2:
                break
            await asyncio.sleep(0.01)
        assert device.polls >= 2
        assert device.state is None
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


@pytest.mark.asyncio
async def test_run_stops_on_unknown_thermostat() -> None:
    _service, _transport, client = make_stack()
    device = DeviceSimulator(client, 4, poll_interval=0.01)

    with pytest.raises(ThermoNotFoundError):
        await asyncio.wait_for(device.run(), 1)
