"""Synchronization service.

Mediates every read and write so the poll and stream channels observe the
single ordering of changes produced by the record store. Business logic is
limited to lazy seeding, validating update bodies and routing them to the
store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from thermosync.exceptions import ThermoNotFoundError
from thermosync.models.thermostat import (
    FanMode,
    SystemMode,
    ThermostatCreate,
    ThermostatRecord,
    ThermostatUpdate,
    parse_update,
)
from thermosync.poll import PollResult, evaluate_poll
from thermosync.state.feed import Subscription
from thermosync.state.store import RecordStore

_logger = logging.getLogger(__name__)

DEFAULT_THERMOSTAT = ThermostatCreate(
    name="Living Room",
    current_temp=72,
    target_temp=70,
    system_mode=SystemMode.COOL,
    fan_mode=FanMode.AUTO,
    current_humidity=45,
)


class SyncService:
    """Consistency layer between writes and the poll/stream read channels.

    The store is constructed by the process entry point and injected here.
    """

    def __init__(self, store: RecordStore, *, seed: ThermostatCreate = DEFAULT_THERMOSTAT) -> None:
        self._store = store
        self._seed = seed
        self._seed_lock = asyncio.Lock()

    @property
    def store(self) -> RecordStore:
        return self._store

    async def list_thermostats(self) -> list[ThermostatRecord]:
        """Return all records, seeding one default record into an empty store."""
        records = list(await self._store.list())
        if records:
            return records

        async with self._seed_lock:
            # Re-check under the lock; a concurrent first request may have seeded.
            created = await self._store.create_if_empty(self._seed)
            if created is not None:
                _logger.info("Seeded empty store with default thermostat %s", created.id)
            return list(await self._store.list())

    async def get_thermostat(self, thermostat_id: int) -> ThermostatRecord:
        record = await self._store.get(thermostat_id)
        if record is None:
            raise ThermoNotFoundError(thermostat_id=thermostat_id)
        return record

    async def update_thermostat(
        self, thermostat_id: int, body: ThermostatUpdate | dict[str, Any]
    ) -> ThermostatRecord:
        """Validate *body* (unless already a :class:`ThermostatUpdate`) and apply it."""
        update = body if isinstance(body, ThermostatUpdate) else parse_update(body)
        return await self._store.update(thermostat_id, update)

    async def poll(self, thermostat_id: int, since_ms: int | None) -> PollResult:
        record = await self.get_thermostat(thermostat_id)
        return evaluate_poll(record, since_ms)

    async def subscribe(self, thermostat_id: int) -> Subscription:
        """Attach to the change feed of an existing record (no replay)."""
        await self.get_thermostat(thermostat_id)
        return self._store.subscribe(thermostat_id)
