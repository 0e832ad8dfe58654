"""Client-side reconciliation helpers for :class:`thermosync.client.ThermostatClient`."""

from thermosync._client.cache import QueryCache
from thermosync._client.debounce import Debouncer
from thermosync._client.reconcile import PendingMutation, ThermostatController

__all__ = ["Debouncer", "PendingMutation", "QueryCache", "ThermostatController"]
