"""Client-side cache of the thermostat list view.

Every UI reader shares this cache, so an optimistic patch applied here is
visible everywhere immediately. Snapshots are immutable tuples of frozen
records; restoring one is a plain reassignment.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from thermosync.models.thermostat import ThermostatRecord

_logger = logging.getLogger(__name__)

Snapshot = tuple[ThermostatRecord, ...] | None
Listener = Callable[[list[ThermostatRecord] | None], None]


class QueryCache:
    def __init__(self) -> None:
        self._records: Snapshot = None
        self._listeners: list[Listener] = []

    @property
    def data(self) -> list[ThermostatRecord] | None:
        return list(self._records) if self._records is not None else None

    def snapshot(self) -> Snapshot:
        return self._records

    def get(self, thermostat_id: int | None = None) -> ThermostatRecord | None:
        """Record by id, or the first record when *thermostat_id* is ``None``."""
        if not self._records:
            return None
        if thermostat_id is None:
            return self._records[0]
        for record in self._records:
            if record.id == thermostat_id:
                return record
        return None

    def set(self, records: Iterable[ThermostatRecord]) -> None:
        self._records = tuple(records)
        self._notify()

    def upsert(self, record: ThermostatRecord) -> None:
        current = self._records or ()
        if any(cand.id == record.id for cand in current):
            self._records = tuple(record if cand.id == record.id else cand for cand in current)
        else:
            self._records = (*current, record)
        self._notify()

    def patch(self, thermostat_id: int, changes: dict[str, Any]) -> Snapshot:
        """Merge *changes* into the cached record in place.

        Returns the snapshot taken immediately before the patch.
        """
        previous = self._records
        if previous is not None:
            self._records = tuple(
                record.merged(changes) if record.id == thermostat_id else record for record in previous
            )
            self._notify()
        return previous

    def restore(self, snapshot: Snapshot) -> None:
        self._records = snapshot
        self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns an idempotent unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        data = self.data
        for listener in list(self._listeners):
            try:
                listener(data)
            except Exception:
                _logger.debug("Cache listener failed", exc_info=True)
