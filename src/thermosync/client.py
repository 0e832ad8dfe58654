"""High-level async client for the thermostat API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

import aiohttp
from pydantic import ValidationError

from thermosync._transport import HttpTransport, Transport
from thermosync.config import ThermoConfig
from thermosync.exceptions import ThermoError, ThermoTransportError
from thermosync.models.stream import StreamEvent
from thermosync.models.thermostat import ThermostatRecord, ThermostatUpdate

_logger = logging.getLogger(__name__)


def _parse_record(data: Any, endpoint: str) -> ThermostatRecord:
    if not isinstance(data, dict):
        raise ThermoTransportError(f"Expected a thermostat object from {endpoint}", endpoint=endpoint)
    try:
        return ThermostatRecord.model_validate(data)
    except ValidationError as exc:
        raise ThermoTransportError(f"Malformed thermostat from {endpoint}: {exc}", endpoint=endpoint) from exc


class ThermostatClient:
    """Async client for the thermostat API.

    Usage::

        async with ThermostatClient(config) as client:
            thermostats = await client.list_thermostats()
            await client.update_thermostat(1, {"targetTemp": 74})
    """

    def __init__(
        self,
        config: ThermoConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config or ThermoConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport

    @property
    def config(self) -> ThermoConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ThermostatClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise ThermoError("Client not initialized. Use 'async with ThermostatClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Request/response
    # ------------------------------------------------------------------

    async def list_thermostats(self) -> list[ThermostatRecord]:
        endpoint = "/thermostats"
        data = await self._require_transport().request_json("GET", endpoint)
        if not isinstance(data, list):
            raise ThermoTransportError(f"Expected a list from {endpoint}", endpoint=endpoint)
        return [_parse_record(item, endpoint) for item in data]

    async def get_thermostat(self, thermostat_id: int) -> ThermostatRecord:
        endpoint = f"/thermostats/{thermostat_id}"
        data = await self._require_transport().request_json("GET", endpoint)
        return _parse_record(data, endpoint)

    async def update_thermostat(
        self, thermostat_id: int, updates: ThermostatUpdate | Mapping[str, Any]
    ) -> ThermostatRecord:
        """PATCH a partial update.

        A :class:`ThermostatUpdate` is sent with only its explicitly set
        fields; a plain mapping is sent as-is (camelCase keys) and validated by
        the server.
        """
        endpoint = f"/thermostats/{thermostat_id}"
        if isinstance(updates, ThermostatUpdate):
            body: Mapping[str, Any] = updates.model_dump(mode="json", by_alias=True, exclude_unset=True)
        else:
            body = updates
        data = await self._require_transport().request_json("PATCH", endpoint, body=body)
        return _parse_record(data, endpoint)

    # ------------------------------------------------------------------
    # Read channels
    # ------------------------------------------------------------------

    async def poll_thermostat(self, thermostat_id: int, since_ms: int | None = None) -> ThermostatRecord | None:
        """Return the record if it changed after *since_ms*, else ``None``."""
        endpoint = f"/thermostats/{thermostat_id}/poll"
        params = {"since": str(since_ms)} if since_ms is not None else None
        data = await self._require_transport().request_json(
            "GET", endpoint, params=params, allow_not_modified=True
        )
        if data is None:
            return None
        return _parse_record(data, endpoint)

    def listen(self, thermostat_id: int) -> AsyncIterator[StreamEvent]:
        """Iterate ``connected`` / ``update`` / ``ping`` events from the push stream."""
        return self._require_transport().stream_events(f"/thermostats/{thermostat_id}/listen")
