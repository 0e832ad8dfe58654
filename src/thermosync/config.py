"""Runtime configuration for thermosync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from thermosync.exceptions import ThermoConfigError


def _env_float(env_key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ThermoConfigError(f"{env_key} must be a number, got {value!r}") from exc


def _env_int(env_key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ThermoConfigError(f"{env_key} must be an integer, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class ThermoConfig:
    """Server and client configuration.

    Parameters
    ----------
    host : str
        Interface the HTTP server binds to.
    port : int
        Port the HTTP server listens on.
    base_url : str
        Base URL clients use to reach the server.
    route_prefix : str
        Path prefix for every route, e.g. ``"/api"`` when the API shares an
        origin with the dashboard. Empty by default.
    store_path : str or None
        JSON file backing the record store. ``None`` keeps records in memory.
    keepalive_interval : float
        Seconds between ``ping`` events on an open stream.
    debounce_seconds : float
        Quiet window before a target-temperature change is sent.
    poll_interval : float
        Seconds between poll requests for poll-based watchers and the device
        simulator.
    reconnect_delay : float
        Seconds a stream watcher waits before reconnecting after a drop.
    request_timeout : float
        Total timeout for single-shot HTTP requests made by the client.
    device_step_seconds : float
        Seconds between simulated temperature steps.
    """

    host: str = "127.0.0.1"
    port: int = 8080
    base_url: str = "http://127.0.0.1:8080"
    route_prefix: str = ""
    store_path: str | None = None
    keepalive_interval: float = 30.0
    debounce_seconds: float = 0.4
    poll_interval: float = 5.0
    reconnect_delay: float = 2.0
    request_timeout: float = 10.0
    device_step_seconds: float = 10.0

    def __post_init__(self) -> None:
        if self.route_prefix and not self.route_prefix.startswith("/"):
            raise ThermoConfigError(f"route_prefix must start with '/', got {self.route_prefix!r}")
        if self.route_prefix.endswith("/"):
            raise ThermoConfigError(f"route_prefix must not end with '/', got {self.route_prefix!r}")
        if self.keepalive_interval <= 0:
            raise ThermoConfigError("keepalive_interval must be positive")
        if self.debounce_seconds < 0:
            raise ThermoConfigError("debounce_seconds must not be negative")

    @property
    def api_url(self) -> str:
        """Base URL with the route prefix applied."""
        return f"{self.base_url.rstrip('/')}{self.route_prefix}"

    @classmethod
    def from_env(cls, **overrides: Any) -> ThermoConfig:
        """Create configuration from ``THERMO_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "THERMO_HOST": "host",
            "THERMO_BASE_URL": "base_url",
            "THERMO_ROUTE_PREFIX": "route_prefix",
            "THERMO_STORE_PATH": "store_path",
        }
        _ENV_FLOAT_MAP = {
            "THERMO_KEEPALIVE_INTERVAL": "keepalive_interval",
            "THERMO_DEBOUNCE_SECONDS": "debounce_seconds",
            "THERMO_POLL_INTERVAL": "poll_interval",
            "THERMO_RECONNECT_DELAY": "reconnect_delay",
            "THERMO_REQUEST_TIMEOUT": "request_timeout",
            "THERMO_DEVICE_STEP_SECONDS": "device_step_seconds",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = _env_float(env_key, val)

        port_env = env.get("THERMO_PORT")
        if port_env is not None:
            config_kwargs["port"] = _env_int("THERMO_PORT", port_env)

        # Empty THERMO_STORE_PATH means in-memory.
        if config_kwargs.get("store_path") == "":
            config_kwargs["store_path"] = None

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
