"""aiohttp application exposing the thermostat HTTP surface.

Routes (relative to ``config.route_prefix``):

- ``GET   /thermostats``                 list (seeds an empty store)
- ``GET   /thermostats/{id}``            single record
- ``PATCH /thermostats/{id}``            partial update
- ``GET   /thermostats/{id}/poll``       timestamp-conditioned read, 304 when unchanged
- ``GET   /thermostats/{id}/listen``     text/event-stream push channel
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable

from aiohttp import web

from thermosync.config import ThermoConfig
from thermosync.exceptions import (
    ThermoError,
    ThermoNotFoundError,
    ThermoTransportError,
    ThermoValidationError,
)
from thermosync.poll import parse_since
from thermosync.server.stream import StreamSession
from thermosync.service import SyncService
from thermosync.state.store import FileRecordStore, MemoryRecordStore, RecordStore

_logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("thermosync_service", SyncService)
CONFIG_KEY = web.AppKey("thermosync_config", ThermoConfig)
SESSIONS_KEY = web.AppKey("thermosync_sessions", set)

_Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _thermostat_id(request: web.Request) -> int:
    raw = request.match_info["id"]
    try:
        return int(raw)
    except ValueError as exc:
        raise ThermoNotFoundError(f"Thermostat not found: {raw!r}") from exc


@web.middleware
async def error_middleware(request: web.Request, handler: _Handler) -> web.StreamResponse:
    """Map the thermosync exception hierarchy onto HTTP status codes."""
    try:
        return await handler(request)
    except ThermoValidationError as exc:
        body: dict[str, str] = {"message": str(exc)}
        if exc.field:
            body["field"] = exc.field
        _logger.debug("%s %s rejected: %s", request.method, request.path, body)
        return web.json_response(body, status=400)
    except ThermoNotFoundError as exc:
        return web.json_response({"message": str(exc)}, status=404)
    except ThermoTransportError as exc:
        _logger.warning("%s %s failed: %s", request.method, request.path, exc)
        return web.json_response({"message": str(exc)}, status=500)
    except web.HTTPException:
        raise
    except ThermoError as exc:
        _logger.exception("%s %s failed", request.method, request.path)
        return web.json_response({"message": str(exc)}, status=500)
    except Exception:
        _logger.exception("Unhandled error for %s %s", request.method, request.path)
        return web.json_response({"message": "Internal server error"}, status=500)


async def list_thermostats(request: web.Request) -> web.Response:
    records = await request.app[SERVICE_KEY].list_thermostats()
    return web.json_response([record.to_wire() for record in records])


async def get_thermostat(request: web.Request) -> web.Response:
    record = await request.app[SERVICE_KEY].get_thermostat(_thermostat_id(request))
    return web.json_response(record.to_wire())


async def update_thermostat(request: web.Request) -> web.Response:
    thermostat_id = _thermostat_id(request)
    try:
        body = await request.json()
    except json.JSONDecodeError as exc:
        raise ThermoValidationError(f"Invalid JSON body: {exc.msg}") from exc
    record = await request.app[SERVICE_KEY].update_thermostat(thermostat_id, body)
    return web.json_response(record.to_wire())


async def poll_thermostat(request: web.Request) -> web.Response:
    thermostat_id = _thermostat_id(request)
    since_ms = parse_since(request.query.get("since"))
    result = await request.app[SERVICE_KEY].poll(thermostat_id, since_ms)
    if result.record is None:
        return web.Response(status=304)
    return web.json_response(result.record.to_wire())


async def listen_thermostat(request: web.Request) -> web.StreamResponse:
    thermostat_id = _thermostat_id(request)
    # Raises NotFound before any stream bytes are written.
    subscription = await request.app[SERVICE_KEY].subscribe(thermostat_id)
    session = StreamSession(
        request,
        subscription,
        keepalive_interval=request.app[CONFIG_KEY].keepalive_interval,
    )
    sessions = request.app[SESSIONS_KEY]
    sessions.add(session)
    try:
        return await session.run()
    finally:
        sessions.discard(session)


async def _close_streams(app: web.Application) -> None:
    sessions = list(app[SESSIONS_KEY])
    if sessions:
        _logger.info("Closing %d open stream(s)", len(sessions))
    for session in sessions:
        session.close()


def create_app(service: SyncService, config: ThermoConfig | None = None) -> web.Application:
    """Build the web application around an already-constructed service."""
    config = config or ThermoConfig()
    app = web.Application(middlewares=[error_middleware])
    app[SERVICE_KEY] = service
    app[CONFIG_KEY] = config
    app[SESSIONS_KEY] = set()

    prefix = config.route_prefix
    app.router.add_get(f"{prefix}/thermostats", list_thermostats)
    app.router.add_get(f"{prefix}/thermostats/{{id}}", get_thermostat)
    app.router.add_patch(f"{prefix}/thermostats/{{id}}", update_thermostat)
    app.router.add_get(f"{prefix}/thermostats/{{id}}/poll", poll_thermostat)
    app.router.add_get(f"{prefix}/thermostats/{{id}}/listen", listen_thermostat)

    app.on_shutdown.append(_close_streams)
    return app


def build_store(config: ThermoConfig) -> RecordStore:
    """Construct the record store selected by *config*."""
    if config.store_path:
        return FileRecordStore(config.store_path)
    return MemoryRecordStore()


def run_server(config: ThermoConfig) -> None:
    """Process entry point: owns the store's lifecycle and serves until interrupted."""
    store = build_store(config)
    service = SyncService(store)
    app = create_app(service, config)
    _logger.info(
        "Serving thermostats on http://%s:%s%s (store=%s)",
        config.host,
        config.port,
        config.route_prefix or "/",
        config.store_path or "memory",
    )
    web.run_app(app, host=config.host, port=config.port, print=None)
