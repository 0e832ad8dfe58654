from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from thermosync.client import ThermostatClient
from thermosync.config import ThermoConfig
from thermosync.exceptions import ThermoTransportError
from thermosync.models._base import from_epoch_ms
from thermosync.models.stream import StreamEvent, StreamEventType, connected_payload
from thermosync.service import SyncService
from thermosync.state.store import MemoryRecordStore

T0_MS = 1_767_225_600_000  # 2026-01-01T00:00:00Z


class FakeClock:
    """Settable clock for deterministic ``lastUpdated`` stamps."""

    def __init__(self, start_ms: int = T0_MS) -> None:
        self.now_ms = start_ms

    def __call__(self) -> datetime:
        return from_epoch_ms(self.now_ms)

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@dataclass
class ServiceTransport:
    """Transport double that routes client calls straight into a SyncService.

    ``fail_methods`` makes matching HTTP methods raise ThermoTransportError,
    standing in for a dropped connection.
    """

    service: SyncService
    calls: list[tuple[str, str, dict[str, Any] | None]] = field(default_factory=list)
    fail_methods: set[str] = field(default_factory=set)

    def patch_calls(self) -> list[dict[str, Any] | None]:
        return [body for method, _path, body in self.calls if method == "PATCH"]

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
        allow_not_modified: bool = False,
    ) -> Any:
        self.calls.append((method, path, dict(body) if body is not None else None))
        if method in self.fail_methods:
            raise ThermoTransportError(f"{method} {path} failed", endpoint=path)

        parts = path.strip("/").split("/")
        if parts == ["thermostats"]:
            return [record.to_wire() for record in await self.service.list_thermostats()]

        thermostat_id = int(parts[1])
        if len(parts) == 2 and method == "GET":
            return (await self.service.get_thermostat(thermostat_id)).to_wire()
        if len(parts) == 2 and method == "PATCH":
            return (await self.service.update_thermostat(thermostat_id, dict(body or {}))).to_wire()
        if parts[2] == "poll":
            since = (params or {}).get("since")
            result = await self.service.poll(thermostat_id, int(since) if since is not None else None)
            if result.record is None:
                assert allow_not_modified
                return None
            return result.record.to_wire()
        raise AssertionError(f"unexpected request {method} {path}")

    async def stream_events(self, path: str) -> AsyncIterator[StreamEvent]:
        if "LISTEN" in self.fail_methods:
            raise ThermoTransportError(f"stream {path} failed", endpoint=path)
        thermostat_id = int(path.strip("/").split("/")[1])
        async with await self.service.subscribe(thermostat_id) as sub:
            yield StreamEvent(event=StreamEventType.CONNECTED, data=connected_payload(thermostat_id))
            async for record in sub:
                yield StreamEvent(event=StreamEventType.UPDATE, data=record.to_wire())


def make_stack(
    clock: FakeClock | None = None, **config_overrides: Any
) -> tuple[SyncService, ServiceTransport, ThermostatClient]:
    store = MemoryRecordStore(clock=clock or FakeClock())
    service = SyncService(store)
    transport = ServiceTransport(service)
    client = ThermostatClient(ThermoConfig(**config_overrides), transport=transport)
    return service, transport, client
