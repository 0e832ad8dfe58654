"""Single-slot debouncer.

Arming a key cancels the timer already armed for that key, so at most one
deferred action per key is ever pending. Once a timer fires, its action
runs as a task and is no longer cancellable through the debouncer; a new
arm only replaces the *timer*, never an in-flight request.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

_logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[Any]]


class Debouncer:
    def __init__(self, delay: float) -> None:
        self._delay = delay
        self._timers: dict[Hashable, tuple[asyncio.TimerHandle, Action]] = {}
        self._inflight: set[asyncio.Task[Any]] = set()

    def arm(self, key: Hashable, action: Action) -> None:
        """(Re)start the quiet window for *key*; *action* runs when it elapses."""
        self.cancel(key)
        loop = asyncio.get_running_loop()
        handle = loop.call_later(self._delay, self._fire, key)
        self._timers[key] = (handle, action)

    def cancel(self, key: Hashable) -> bool:
        entry = self._timers.pop(key, None)
        if entry is None:
            return False
        entry[0].cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._timers):
            self.cancel(key)

    def pending(self, key: Hashable) -> bool:
        return key in self._timers

    def _fire(self, key: Hashable) -> None:
        entry = self._timers.pop(key, None)
        if entry is None:
            return
        task = asyncio.ensure_future(entry[1]())
        self._inflight.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.warning("Debounced action failed", exc_info=exc)

    async def flush(self) -> None:
        """Fire every pending timer now and wait for all actions to finish."""
        for key in list(self._timers):
            handle, _action = self._timers[key]
            handle.cancel()
            self._fire(key)
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait for in-flight actions (not pending timers) to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
