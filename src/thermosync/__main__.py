"""Command-line entry point.

Sub-commands:

- ``serve``  run the HTTP API (in-memory or JSON-file store)
- ``device`` run the simulated thermostat against a server
- ``watch``  print events from a thermostat's push stream
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import sys
from typing import Any

from thermosync.client import ThermostatClient
from thermosync.config import ThermoConfig
from thermosync.device import DeviceSimulator
from thermosync.exceptions import ThermoError
from thermosync.server.app import run_server

_logger = logging.getLogger("thermosync")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="thermosync", description="Thermostat state synchronization service.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address (default: THERMO_HOST or 127.0.0.1)")
    serve.add_argument("--port", type=int, help="Listen port (default: THERMO_PORT or 8080)")
    serve.add_argument("--store", dest="store_path", help="JSON file backing the record store")
    serve.add_argument("--prefix", dest="route_prefix", help="Route prefix, e.g. /api")

    for name, help_text in (("device", "Run the simulated thermostat"), ("watch", "Print push-stream events")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--base-url", help="Server base URL (default: THERMO_BASE_URL)")
        cmd.add_argument("--prefix", dest="route_prefix", help="Route prefix, e.g. /api")
        cmd.add_argument("--id", dest="thermostat_id", type=int, default=1, help="Thermostat id (default: 1)")
        if name == "device":
            cmd.add_argument("--poll-interval", type=float, help="Seconds between polls")
            cmd.add_argument("--step", dest="device_step_seconds", type=float, help="Seconds between readings")
    return parser


def _config_from_args(args: argparse.Namespace) -> ThermoConfig:
    overrides: dict[str, Any] = {}
    for field_name in ("host", "port", "store_path", "route_prefix", "poll_interval", "device_step_seconds"):
        value = getattr(args, field_name, None)
        if value is not None:
            overrides[field_name] = value
    base_url = getattr(args, "base_url", None)
    if base_url is not None:
        overrides["base_url"] = base_url
    return ThermoConfig.from_env(**overrides)


async def _run_device(config: ThermoConfig, thermostat_id: int) -> None:
    async with ThermostatClient(config) as client:
        await DeviceSimulator(client, thermostat_id).run()


async def _run_watch(config: ThermoConfig, thermostat_id: int) -> None:
    async with ThermostatClient(config) as client:
        async for event in client.listen(thermostat_id):
            print(f"{event.event}: {json.dumps(event.data)}", flush=True)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = _config_from_args(args)
        if args.command == "serve":
            run_server(config)
        elif args.command == "device":
            with contextlib.suppress(KeyboardInterrupt):
                asyncio.run(_run_device(config, args.thermostat_id))
        elif args.command == "watch":
            with contextlib.suppress(KeyboardInterrupt):
                asyncio.run(_run_watch(config, args.thermostat_id))
    except ThermoError as exc:
        _logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
