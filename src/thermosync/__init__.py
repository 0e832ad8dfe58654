"""thermosync - Thermostat state synchronization service and async client."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("thermosync")
except PackageNotFoundError:
    __version__ = "0+local"
from thermosync._client import Debouncer, QueryCache, ThermostatController
from thermosync.client import ThermostatClient
from thermosync.config import ThermoConfig
from thermosync.device import DeviceSimulator
from thermosync.exceptions import (
    ThermoConfigError,
    ThermoError,
    ThermoNotFoundError,
    ThermoTransportError,
    ThermoValidationError,
)
from thermosync.models import (
    FanMode,
    StreamEvent,
    StreamEventType,
    SystemMode,
    ThermostatCreate,
    ThermostatRecord,
    ThermostatUpdate,
)
from thermosync.poll import PollResult, PollStatus
from thermosync.service import SyncService
from thermosync.state import ChangeFeed, FileRecordStore, MemoryRecordStore, Subscription

__all__ = [
    "__version__",
    "ChangeFeed",
    "Debouncer",
    "DeviceSimulator",
    "FanMode",
    "FileRecordStore",
    "MemoryRecordStore",
    "PollResult",
    "PollStatus",
    "QueryCache",
    "StreamEvent",
    "StreamEventType",
    "Subscription",
    "SyncService",
    "SystemMode",
    "ThermoConfig",
    "ThermoConfigError",
    "ThermoError",
    "ThermoNotFoundError",
    "ThermoTransportError",
    "ThermoValidationError",
    "ThermostatClient",
    "ThermostatController",
    "ThermostatCreate",
    "ThermostatRecord",
    "ThermostatUpdate",
]
