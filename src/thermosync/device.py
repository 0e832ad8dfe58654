"""Simulated physical thermostat.

The device is a poll-channel consumer: it remembers the ``lastUpdated`` of
the last record it adopted and re-polls with it as ``since``, so unchanged
state is never re-transmitted. On a slower cadence it moves its sensor
reading one degree toward the set point (as the system mode allows) and
reports the new ``currentTemp`` back with a PATCH.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from thermosync.client import ThermostatClient
from thermosync.exceptions import ThermoNotFoundError, ThermoTransportError
from thermosync.models.thermostat import SystemMode, ThermostatRecord, ThermostatUpdate

_logger = logging.getLogger(__name__)


def drift_toward(current: int, target: int, mode: SystemMode) -> int:
    """Next sensor reading after one simulated step.

    heat only warms, cool only cools, auto does both, off holds.
    """
    if mode == SystemMode.OFF or current == target:
        return current
    if current < target and mode in (SystemMode.HEAT, SystemMode.AUTO):
        return current + 1
    if current > target and mode in (SystemMode.COOL, SystemMode.AUTO):
        return current - 1
    return current


class DeviceSimulator:
    def __init__(
        self,
        client: ThermostatClient,
        thermostat_id: int,
        *,
        poll_interval: float | None = None,
        step_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self.thermostat_id = thermostat_id
        self._poll_interval = poll_interval if poll_interval is not None else client.config.poll_interval
        self._step_seconds = step_seconds if step_seconds is not None else client.config.device_step_seconds
        self._clock = clock
        self._last_step: float | None = None
        self.state: ThermostatRecord | None = None
        self.polls = 0
        self.not_modified = 0

    @property
    def since_ms(self) -> int | None:
        return self.state.version if self.state is not None else None

    async def sync_once(self) -> bool:
        """Poll once; returns ``True`` when a newer record was adopted."""
        self.polls += 1
        fresh = await self._client.poll_thermostat(self.thermostat_id, self.since_ms)
        if fresh is None:
            self.not_modified += 1
            return False
        _logger.info(
            "Device %s adopted target=%s mode=%s fan=%s",
            self.thermostat_id,
            fresh.target_temp,
            fresh.system_mode,
            fresh.fan_mode,
        )
        self.state = fresh
        return True

    async def step(self) -> ThermostatRecord | None:
        """Advance the simulated reading and report it if it changed."""
        state = self.state
        if state is None:
            return None
        reading = drift_toward(state.current_temp, state.target_temp, state.system_mode)
        if reading == state.current_temp:
            return None
        record = await self._client.update_thermostat(self.thermostat_id, ThermostatUpdate(current_temp=reading))
        _logger.debug("Device %s reported currentTemp=%s", self.thermostat_id, reading)
        self.state = record
        return record

    def _step_due(self) -> bool:
        now = self._clock()
        if self._last_step is None or now - self._last_step >= self._step_seconds:
            self._last_step = now
            return True
        return False

    async def run(self) -> None:
        """Poll and step until cancelled. Transport failures are logged and retried."""
        _logger.info("Device simulator started for thermostat %s", self.thermostat_id)
        while True:
            try:
                await self.sync_once()
                if self._step_due():
                    await self.step()
            except ThermoNotFoundError:
                raise
            except ThermoTransportError as exc:
                _logger.warning("Device %s lost connection: %s", self.thermostat_id, exc)
            await asyncio.sleep(self._poll_interval)
