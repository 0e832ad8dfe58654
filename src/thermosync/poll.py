"""Timestamp-conditioned change detection for the poll channel.

A poller remembers the ``lastUpdated`` it last saw (epoch ms) and sends it
back as ``since``. If the record has not been written since, the answer is
"not modified" and no body is transmitted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from thermosync.exceptions import ThermoValidationError
from thermosync.models.thermostat import ThermostatRecord


class PollStatus(StrEnum):
    FRESH = "fresh"
    NOT_MODIFIED = "not_modified"


@dataclass(frozen=True, slots=True)
class PollResult:
    status: PollStatus
    record: ThermostatRecord | None = None

    @property
    def modified(self) -> bool:
        return self.status == PollStatus.FRESH


def parse_since(raw: str | None) -> int | None:
    """Parse the ``since`` query parameter (epoch milliseconds)."""
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ThermoValidationError("since must be an integer epoch-millisecond timestamp", field="since") from exc


def evaluate_poll(record: ThermostatRecord, since_ms: int | None) -> PollResult:
    """Decide between fresh data and "not modified".

    ``since`` absent always yields the record. Otherwise the record is sent
    only when its ``lastUpdated`` (null counts as ``0``) is strictly newer.
    """
    if since_ms is None:
        return PollResult(PollStatus.FRESH, record)
    if record.version <= since_ms:
        return PollResult(PollStatus.NOT_MODIFIED)
    return PollResult(PollStatus.FRESH, record)
