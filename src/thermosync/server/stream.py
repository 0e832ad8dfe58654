"""Stream channel: one push connection per client.

Lifecycle::

    CONNECTING -> CONNECTED -> (IDLE <-> PUSHING) -> CLOSED

Each session owns two independently cancellable resources, the change-feed
subscription and the keep-alive task. Both are released together, exactly
once, by :meth:`StreamSession.close`, whichever way the connection ends
(client gone, write failure, handler cancellation or server shutdown).
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import Any

from aiohttp import web

from thermosync._sse import CONTENT_TYPE, encode_event
from thermosync.models.stream import StreamEventType, connected_payload, ping_payload
from thermosync.state.feed import Subscription

_logger = logging.getLogger(__name__)


class StreamState(StrEnum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    IDLE = "idle"
    PUSHING = "pushing"
    CLOSED = "closed"


class StreamSession:
    """Drives one ``/listen`` connection."""

    def __init__(
        self,
        request: web.Request,
        subscription: Subscription,
        *,
        keepalive_interval: float,
    ) -> None:
        self._request = request
        self._subscription = subscription
        self._keepalive_interval = keepalive_interval
        self._response: web.StreamResponse | None = None
        self._keepalive_task: asyncio.Task[None] | None = None
        self._write_lock = asyncio.Lock()
        self.state = StreamState.CONNECTING
        self.events_sent = 0

    @property
    def thermostat_id(self) -> int:
        return self._subscription.thermostat_id

    async def run(self) -> web.StreamResponse:
        response = web.StreamResponse(
            status=200,
            headers={
                "Content-Type": CONTENT_TYPE,
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )
        self._response = response
        try:
            await response.prepare(self._request)
            await self._send(StreamEventType.CONNECTED, connected_payload(self.thermostat_id))
            self.state = StreamState.CONNECTED
            _logger.info("Stream opened for thermostat %s", self.thermostat_id)

            self._keepalive_task = asyncio.create_task(self._keepalive_loop())
            self.state = StreamState.IDLE
            async for record in self._subscription:
                self.state = StreamState.PUSHING
                await self._send(StreamEventType.UPDATE, record.to_wire())
                self.state = StreamState.IDLE
        except ConnectionResetError:
            _logger.debug("Stream client for thermostat %s went away", self.thermostat_id)
        finally:
            self.close()
        return response

    async def _send(self, event: StreamEventType, data: Any) -> None:
        response = self._response
        if response is None:
            return
        async with self._write_lock:
            await response.write(encode_event(event, data))
        self.events_sent += 1

    async def _keepalive_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._keepalive_interval)
                await self._send(StreamEventType.PING, ping_payload())
        except ConnectionResetError:
            _logger.debug("Keep-alive write failed for thermostat %s", self.thermostat_id)
            # Ends the subscription iterator in run(), which then returns.
            self._subscription.close()
        except Exception:
            _logger.warning("Keep-alive for thermostat %s failed", self.thermostat_id, exc_info=True)
            self._subscription.close()

    def close(self) -> None:
        """Release the subscription and the keep-alive task (idempotent)."""
        if self.state == StreamState.CLOSED:
            return
        self.state = StreamState.CLOSED
        self._subscription.close()
        task = self._keepalive_task
        self._keepalive_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
        _logger.info("Stream closed for thermostat %s after %d event(s)", self.thermostat_id, self.events_sent)
