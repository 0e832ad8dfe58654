"""Tests for ThermoConfig and environment loading."""

from __future__ import annotations

import pytest

from thermosync.config import ThermoConfig
from thermosync.exceptions import ThermoConfigError

_ENV_KEYS = (
    "THERMO_HOST",
    "THERMO_PORT",
    "THERMO_BASE_URL",
    "THERMO_ROUTE_PREFIX",
    "THERMO_STORE_PATH",
    "THERMO_KEEPALIVE_INTERVAL",
    "THERMO_DEBOUNCE_SECONDS",
    "THERMO_POLL_INTERVAL",
    "THERMO_RECONNECT_DELAY",
    "THERMO_REQUEST_TIMEOUT",
    "THERMO_DEVICE_STEP_SECONDS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = ThermoConfig.from_env()
    assert config.port == 8080
    assert config.route_prefix == ""
    assert config.store_path is None
    assert config.keepalive_interval == 30.0
    assert config.debounce_seconds == 0.4
    assert config.api_url == "http://127.0.0.1:8080"


def test_env_values_are_parsed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("THERMO_PORT", "9090")
    monkeypatch.setenv("THERMO_ROUTE_PREFIX", "/api")
    monkeypatch.setenv("THERMO_BASE_URL", "http://thermo.local:9090/")
    monkeypatch.setenv("THERMO_DEBOUNCE_SECONDS", "0.25")
    monkeypatch.setenv("THERMO_STORE_PATH", "/var/lib/thermo.json")

    config = ThermoConfig.from_env()

    assert config.port == 9090
    assert config.debounce_seconds == 0.25
    assert config.store_path == "/var/lib/thermo.json"
    assert config.api_url == "http://thermo.local:9090/api"


def test_overrides_win_over_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("THERMO_PORT", "9090")
    assert ThermoConfig.from_env(port=7000).port == 7000


def test_empty_store_path_means_memory(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("THERMO_STORE_PATH", "")
    assert ThermoConfig.from_env().store_path is None


@pytest.mark.parametrize(
    ("key", "value"),
    [("THERMO_PORT", "eighty"), ("THERMO_POLL_INTERVAL", "soon")],
)
def test_malformed_numbers_raise(monkeypatch: pytest.MonkeyPatch, key: str, value: str) -> None:
    monkeypatch.setenv(key, value)
    with pytest.raises(ThermoConfigError, match=key):
        ThermoConfig.from_env()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"route_prefix": "api"},
        {"route_prefix": "/api/"},
        {"keepalive_interval": 0},
        {"debounce_seconds": -1},
    ],
)
def test_invalid_values_rejected(kwargs: dict) -> None:
    with pytest.raises(ThermoConfigError):
        ThermoConfig(**kwargs)
