"""Thermostat record stores.

The store is the only owner of the canonical records. It assigns ids,
stamps ``last_updated`` and publishes every successful write to its
:class:`~thermosync.state.feed.ChangeFeed`. Everything it hands out is a
frozen snapshot.

Write ordering:

- ``create`` calls are serialized against each other (seeding race).
- ``update`` calls for the same id are serialized in arrival order; updates
  to different ids and all reads proceed independently.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from thermosync.exceptions import ThermoNotFoundError, ThermoTransportError
from thermosync.models._base import from_epoch_ms, to_epoch_ms
from thermosync.models.thermostat import ThermostatCreate, ThermostatRecord, ThermostatUpdate
from thermosync.state.feed import ChangeFeed, Subscription

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _changes_of(changes: ThermostatUpdate | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(changes, ThermostatUpdate):
        return changes.changes()
    # Already-validated snake_case patch; the store does not re-check values.
    unknown = set(changes) - set(ThermostatUpdate.model_fields)
    if unknown:
        raise ValueError(f"unknown thermostat fields: {sorted(unknown)}")
    return dict(changes)


class RecordStore(Protocol):
    """Structural store interface used by the synchronization service.

    Having a protocol here makes it easy to pass test doubles while keeping
    the shipped implementations concrete.
    """

    feed: ChangeFeed

    async def list(self) -> Sequence[ThermostatRecord]: ...

    async def get(self, thermostat_id: int) -> ThermostatRecord | None: ...

    async def create(self, fields: ThermostatCreate) -> ThermostatRecord: ...

    async def create_if_empty(self, fields: ThermostatCreate) -> ThermostatRecord | None: ...

    async def update(
        self, thermostat_id: int, changes: ThermostatUpdate | Mapping[str, Any]
    ) -> ThermostatRecord: ...

    def subscribe(self, thermostat_id: int) -> Subscription: ...


class MemoryRecordStore:
    """In-memory record store."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        feed: ChangeFeed | None = None,
    ) -> None:
        self._clock = clock
        self.feed = feed if feed is not None else ChangeFeed()
        self._records: dict[int, ThermostatRecord] = {}
        self._next_id = 1
        self._create_lock = asyncio.Lock()
        self._record_locks: dict[int, asyncio.Lock] = {}

    def _stamp(self, previous: datetime | None) -> datetime:
        """Next ``last_updated`` value; strictly after *previous*."""
        now_ms = to_epoch_ms(self._clock())
        if previous is not None:
            now_ms = max(now_ms, to_epoch_ms(previous) + 1)
        return from_epoch_ms(now_ms)

    async def list(self) -> Sequence[ThermostatRecord]:
        return list(self._records.values())

    async def get(self, thermostat_id: int) -> ThermostatRecord | None:
        return self._records.get(thermostat_id)

    async def create(self, fields: ThermostatCreate) -> ThermostatRecord:
        async with self._create_lock:
            return await self._create_locked(fields)

    async def create_if_empty(self, fields: ThermostatCreate) -> ThermostatRecord | None:
        """Create *fields* only if the store holds no records yet."""
        async with self._create_lock:
            if self._records:
                return None
            return await self._create_locked(fields)

    async def _create_locked(self, fields: ThermostatCreate) -> ThermostatRecord:
        record = ThermostatRecord(
            id=self._next_id,
            last_updated=self._stamp(None),
            **fields.model_dump(),
        )
        await self._commit(record)
        self._next_id = record.id + 1
        _logger.info("Created thermostat %s (%s)", record.id, record.name)
        self.feed.publish(record)
        return record

    async def update(
        self, thermostat_id: int, changes: ThermostatUpdate | Mapping[str, Any]
    ) -> ThermostatRecord:
        patch = _changes_of(changes)
        async with self._lock_for(thermostat_id):
            current = self._records[thermostat_id]
            record = current.merged(patch, last_updated=self._stamp(current.last_updated))
            await self._commit(record)
        _logger.debug("Updated thermostat %s fields=%s version=%s", thermostat_id, sorted(patch), record.version)
        self.feed.publish(record)
        return record

    def subscribe(self, thermostat_id: int) -> Subscription:
        return self.feed.subscribe(thermostat_id)

    def _lock_for(self, thermostat_id: int) -> asyncio.Lock:
        lock = self._record_locks.get(thermostat_id)
        if lock is None:
            # Locks exist only for ids that have a record; ids are never deleted.
            if thermostat_id not in self._records:
                raise ThermoNotFoundError(thermostat_id=thermostat_id)
            lock = self._record_locks[thermostat_id] = asyncio.Lock()
        return lock

    async def _commit(self, record: ThermostatRecord) -> None:
        self._records[record.id] = record


class FileRecordStore(MemoryRecordStore):
    """Record store persisted as a single JSON document.

    The document is loaded once at construction and rewritten after every
    write (in the default executor, via a temp file + ``os.replace``). A failed
    write leaves the in-memory copy unchanged and raises
    :class:`ThermoTransportError`.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        clock: Callable[[], datetime] = _utcnow,
        feed: ChangeFeed | None = None,
    ) -> None:
        super().__init__(clock=clock, feed=feed)
        self._path = Path(path)
        self._write_lock = asyncio.Lock()
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            _logger.info("Record store %s does not exist yet; starting empty", self._path)
            return
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ThermoTransportError(f"Cannot read record store {self._path}: {exc}") from exc
        if not isinstance(document, dict):
            raise ThermoTransportError(f"Record store {self._path} is not a JSON object")

        for raw in document.get("thermostats", []):
            record = ThermostatRecord.model_validate(raw)
            self._records[record.id] = record
        highest = max(self._records, default=0)
        next_id = document.get("nextId")
        self._next_id = max(highest + 1, next_id if isinstance(next_id, int) else 1)
        _logger.info("Loaded %d thermostat record(s) from %s", len(self._records), self._path)

    def _snapshot(self, records: Mapping[int, ThermostatRecord], next_id: int) -> str:
        document = {
            "nextId": next_id,
            "thermostats": [record.to_wire() for record in records.values()],
        }
        return json.dumps(document, indent=2)

    def _write(self, text: str) -> None:
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, self._path)

    async def _commit(self, record: ThermostatRecord) -> None:
        async with self._write_lock:
            # Readers keep seeing the previous record until the file is on disk.
            pending = {**self._records, record.id: record}
            text = self._snapshot(pending, max(self._next_id, record.id + 1))
            try:
                await asyncio.get_running_loop().run_in_executor(None, self._write, text)
            except OSError as exc:
                raise ThermoTransportError(f"Cannot write record store {self._path}: {exc}") from exc
            self._records[record.id] = record
