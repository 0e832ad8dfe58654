"""Custom exception hierarchy for thermosync."""

from __future__ import annotations


class ThermoError(Exception):
    """Base exception for all thermosync errors."""


class ThermoConfigError(ThermoError):
    """Invalid or missing configuration."""


class ThermoValidationError(ThermoError):
    """Update body is malformed or outside the record schema.

    ``field`` carries the dotted path of the offending key (camelCase, as
    sent on the wire) when one can be identified.
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class ThermoNotFoundError(ThermoError):
    """No thermostat record exists for the requested id."""

    def __init__(self, message: str = "Thermostat not found", *, thermostat_id: int | None = None) -> None:
        self.thermostat_id = thermostat_id
        super().__init__(message)


class ThermoTransportError(ThermoError):
    """Store or network failure (I/O error, non-2xx, invalid JSON, dropped stream)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)
