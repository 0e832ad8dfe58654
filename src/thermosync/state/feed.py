"""Per-record change feed.

Publishing never blocks: each subscription owns an unbounded queue and
``publish`` only does ``put_nowait``. Consumers drain their queue at
their own pace, so a slow stream connection cannot hold up a store write.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from thermosync.models.thermostat import ThermostatRecord

_logger = logging.getLogger(__name__)


class Subscription:
    """Cancellable stream of record snapshots for one thermostat id.

    Iterate it (``async for record in sub``) or call :meth:`get`. Closing is
    idempotent; once closed, buffered snapshots are discarded and iteration
    ends.
    """

    def __init__(self, feed: ChangeFeed, thermostat_id: int) -> None:
        self._feed = feed
        self.thermostat_id = thermostat_id
        self._queue: asyncio.Queue[ThermostatRecord | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, record: ThermostatRecord) -> None:
        if not self._closed:
            self._queue.put_nowait(record)

    async def get(self) -> ThermostatRecord | None:
        """Wait for the next snapshot; ``None`` once the subscription is closed."""
        if self._closed:
            return None
        item = await self._queue.get()
        if item is None or self._closed:
            return None
        return item

    def close(self) -> bool:
        """Detach from the feed. Returns ``True`` only for the call that closed it."""
        if self._closed:
            return False
        self._closed = True
        self._feed._remove(self)
        # Wake a consumer blocked in get().
        self._queue.put_nowait(None)
        return True

    def __aiter__(self) -> AsyncIterator[ThermostatRecord]:
        return self

    async def __anext__(self) -> ThermostatRecord:
        record = await self.get()
        if record is None:
            raise StopAsyncIteration
        return record

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.close()


class ChangeFeed:
    """Publish/subscribe primitive keyed by thermostat id."""

    def __init__(self) -> None:
        self._subscribers: dict[int, list[Subscription]] = {}

    def subscribe(self, thermostat_id: int) -> Subscription:
        sub = Subscription(self, thermostat_id)
        self._subscribers.setdefault(thermostat_id, []).append(sub)
        _logger.debug("Subscribed to thermostat %s (%d active)", thermostat_id, self.subscriber_count(thermostat_id))
        return sub

    def publish(self, record: ThermostatRecord) -> int:
        """Fan *record* out to every subscriber of its id; returns the count."""
        subs = list(self._subscribers.get(record.id, ()))
        for sub in subs:
            sub.deliver(record)
        return len(subs)

    def subscriber_count(self, thermostat_id: int | None = None) -> int:
        if thermostat_id is None:
            return sum(len(subs) for subs in self._subscribers.values())
        return len(self._subscribers.get(thermostat_id, ()))

    def close_all(self) -> None:
        for subs in list(self._subscribers.values()):
            for sub in list(subs):
                sub.close()

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.thermostat_id)
        if subs is None:
            return
        self._subscribers[sub.thermostat_id] = [cand for cand in subs if cand is not sub]
        if not self._subscribers[sub.thermostat_id]:
            self._subscribers.pop(sub.thermostat_id, None)
        _logger.debug("Unsubscribed from thermostat %s", sub.thermostat_id)
