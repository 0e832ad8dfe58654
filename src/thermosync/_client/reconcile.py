"""Client reconciliation: debounced, optimistic updates against server truth.

The controller keeps two notions of the set point:

- the *local* target, driven by the user and shown while they interact;
- the *server* view, held in :class:`QueryCache` and fed by list refreshes,
  the push stream and the poll channel.

Writes go through :meth:`ThermostatController.mutate`, which patches the
cache optimistically, rolls back to the snapshot taken just before the
patch if the request fails, and refreshes from the server once the request
settles either way.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from thermosync._client.cache import QueryCache, Snapshot
from thermosync._client.debounce import Debouncer
from thermosync.client import ThermostatClient
from thermosync.exceptions import ThermoError, ThermoNotFoundError
from thermosync.models.stream import StreamEventType
from thermosync.models.thermostat import (
    FanMode,
    SystemMode,
    ThermostatRecord,
    clamp_target_temp,
    parse_update,
)

_logger = logging.getLogger(__name__)

_TARGET_KEY = "target_temp"


@dataclass(slots=True)
class PendingMutation:
    """One in-flight write.

    ``server_snapshot`` is the cache state immediately before the optimistic
    patch, ``optimistic_value`` the fields patched in, ``pending_request`` the
    request task.
    """

    thermostat_id: int
    server_snapshot: Snapshot
    optimistic_value: dict[str, Any]
    pending_request: asyncio.Task[ThermostatRecord] | None = None
    error: BaseException | None = field(default=None)


class ThermostatController:
    """Drives one thermostat view on top of a :class:`ThermostatClient`.

    Usage::

        async with ThermostatClient(config) as client:
            controller = ThermostatController(client)
            await controller.refresh()
            controller.set_target_temp(74)   # sent once, after the quiet window
            await controller.flush()
    """

    def __init__(
        self,
        client: ThermostatClient,
        *,
        thermostat_id: int | None = None,
        debounce_seconds: float | None = None,
        cache: QueryCache | None = None,
    ) -> None:
        self._client = client
        self._thermostat_id = thermostat_id
        self.cache = cache if cache is not None else QueryCache()
        delay = debounce_seconds if debounce_seconds is not None else client.config.debounce_seconds
        self._debouncer = Debouncer(delay)
        self._local_target: int | None = None
        self._dragging = False
        self._mutations: list[PendingMutation] = []
        # Bumped by every optimistic patch; refreshes started earlier are discarded.
        self._generation = 0
        self.connection_lost = False
        self.last_error: BaseException | None = None

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    @property
    def thermostat(self) -> ThermostatRecord | None:
        return self.cache.get(self._thermostat_id)

    @property
    def display_target_temp(self) -> int | None:
        if self._local_target is not None:
            return self._local_target
        record = self.thermostat
        return record.target_temp if record is not None else None

    @property
    def dragging(self) -> bool:
        return self._dragging

    @property
    def pending_mutations(self) -> list[PendingMutation]:
        return list(self._mutations)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def refresh(self) -> list[ThermostatRecord] | None:
        """Reload the list view from the server.

        On failure the last cached view is kept and ``connection_lost`` is set.
        """
        generation = self._generation
        try:
            records = await self._client.list_thermostats()
        except ThermoError as exc:
            self.connection_lost = True
            self.last_error = exc
            _logger.warning("Refreshing thermostats failed: %s", exc)
            return None
        self.connection_lost = False
        if generation != self._generation:
            _logger.debug("Discarding refresh superseded by an optimistic update")
            return self.cache.data
        self.cache.set(records)
        # Writes still in flight keep their optimistic values on top of server state.
        for mutation in self._mutations:
            self.cache.patch(mutation.thermostat_id, mutation.optimistic_value)
        self._maybe_release_local()
        return records

    def apply_server_record(self, record: ThermostatRecord) -> bool:
        """Apply a record pushed by the stream or returned by a poll.

        Older snapshots than the cached one are ignored, as are arrivals for a
        record with a write in flight (the settle refresh converges instead).
        While dragging, the cache is updated but the displayed target stays on
        the local value.
        """
        current = self.cache.get(record.id)
        if current is not None and record.version < current.version:
            _logger.debug("Ignoring stale snapshot of thermostat %s", record.id)
            return False
        if any(m.thermostat_id == record.id for m in self._mutations):
            _logger.debug("Deferring server snapshot of thermostat %s until write settles", record.id)
            return False
        self.cache.upsert(record)
        self.connection_lost = False
        return True

    # ------------------------------------------------------------------
    # Set point (debounced)
    # ------------------------------------------------------------------

    def begin_drag(self) -> None:
        self._dragging = True

    def drag_to(self, temp: int) -> int:
        if not self._dragging:
            self.begin_drag()
        return self.set_target_temp(temp)

    def end_drag(self) -> None:
        self._dragging = False
        self._maybe_release_local()

    def set_target_temp(self, temp: int) -> int:
        """Show *temp* immediately and schedule one update after the quiet window."""
        value = clamp_target_temp(temp)
        self._local_target = value
        self._debouncer.arm(_TARGET_KEY, self._commit_target)
        return value

    def step_target_temp(self, delta: int) -> int | None:
        current = self.display_target_temp
        if current is None:
            return None
        return self.set_target_temp(current + delta)

    async def _commit_target(self) -> None:
        value = self._local_target
        record = self.thermostat
        if value is None or record is None:
            return
        await self.mutate(record.id, {_TARGET_KEY: value})
        self._maybe_release_local()

    def _maybe_release_local(self) -> None:
        """Hand the displayed target back to server state once the user is done."""
        if self._local_target is None or self._dragging:
            return
        if self._debouncer.pending(_TARGET_KEY):
            return
        if any(_TARGET_KEY in m.optimistic_value for m in self._mutations):
            return
        self._local_target = None

    # ------------------------------------------------------------------
    # Modes (immediate)
    # ------------------------------------------------------------------

    async def set_system_mode(self, mode: SystemMode | str) -> ThermostatRecord | None:
        return await self._mutate_current({"system_mode": SystemMode(mode)})

    async def set_fan_mode(self, mode: FanMode | str) -> ThermostatRecord | None:
        return await self._mutate_current({"fan_mode": FanMode(mode)})

    async def _mutate_current(self, updates: Mapping[str, Any]) -> ThermostatRecord | None:
        record = self.thermostat
        if record is None:
            raise ThermoNotFoundError("No thermostat loaded; call refresh() first")
        return await self.mutate(record.id, updates)

    # ------------------------------------------------------------------
    # Optimistic write
    # ------------------------------------------------------------------

    async def mutate(self, thermostat_id: int, updates: Mapping[str, Any]) -> ThermostatRecord | None:
        """Write *updates* optimistically.

        Returns the server's record, or ``None`` when the request failed and
        the cache was rolled back. Invalid *updates* raise before anything is
        patched.
        """
        update = parse_update(dict(updates))
        changes = update.changes()

        self._generation += 1
        snapshot = self.cache.patch(thermostat_id, changes)
        mutation = PendingMutation(
            thermostat_id=thermostat_id,
            server_snapshot=snapshot,
            optimistic_value=changes,
        )
        mutation.pending_request = asyncio.ensure_future(self._client.update_thermostat(thermostat_id, update))
        self._mutations.append(mutation)

        result: ThermostatRecord | None = None
        try:
            result = await mutation.pending_request
        except Exception as exc:
            mutation.error = exc
            self.last_error = exc
            self.cache.restore(mutation.server_snapshot)
            _logger.warning("Update of thermostat %s failed, rolled back: %s", thermostat_id, exc)
            if not isinstance(exc, ThermoError):
                raise
        finally:
            self._mutations.remove(mutation)
            # Settle: converge on server truth regardless of the outcome.
            await self.refresh()
        return result

    async def flush(self) -> None:
        """Send any debounced change now and wait for in-flight writes."""
        await self._debouncer.flush()

    def close(self) -> None:
        self._debouncer.cancel_all()

    # ------------------------------------------------------------------
    # Background synchronization
    # ------------------------------------------------------------------

    async def _resolve_id(self) -> int:
        if self._thermostat_id is not None:
            return self._thermostat_id
        record = self.thermostat
        if record is None:
            await self.refresh()
            record = self.thermostat
        if record is None:
            raise ThermoNotFoundError("No thermostat available")
        return record.id

    async def watch_stream(self) -> None:
        """Follow the push stream forever, reconnecting after drops.

        The stream does not replay history, so every (re)connect is followed
        by a refresh to catch up on changes made while disconnected.
        """
        thermostat_id = await self._resolve_id()
        delay = self._client.config.reconnect_delay
        while True:
            try:
                async for event in self._client.listen(thermostat_id):
                    self.connection_lost = False
                    if event.event == StreamEventType.CONNECTED:
                        await self.refresh()
                    elif event.is_update:
                        self.apply_server_record(event.record())
                _logger.info("Stream for thermostat %s closed by server", thermostat_id)
            except ThermoNotFoundError:
                raise
            except ThermoError as exc:
                self.connection_lost = True
                self.last_error = exc
                _logger.warning("Stream for thermostat %s lost: %s", thermostat_id, exc)
            await asyncio.sleep(delay)

    async def watch_poll(self, interval: float | None = None) -> None:
        """Poll for changes forever, sending the cached ``lastUpdated`` as ``since``."""
        thermostat_id = await self._resolve_id()
        interval = interval if interval is not None else self._client.config.poll_interval
        while True:
            await self.poll_once(thermostat_id)
            await asyncio.sleep(interval)

    async def poll_once(self, thermostat_id: int | None = None) -> bool:
        """One poll round; returns ``True`` when fresh data was applied."""
        if thermostat_id is None:
            thermostat_id = await self._resolve_id()
        cached = self.cache.get(thermostat_id)
        since = cached.version if cached is not None else None
        try:
            fresh = await self._client.poll_thermostat(thermostat_id, since)
        except ThermoNotFoundError:
            raise
        except ThermoError as exc:
            self.connection_lost = True
            self.last_error = exc
            _logger.warning("Polling thermostat %s failed: %s", thermostat_id, exc)
            return False
        self.connection_lost = False
        if fresh is None:
            return False
        return self.apply_server_record(fresh)
