"""State/store layer.

The record store is the single owner of canonical thermostat records and
the source of the change feed both read channels are built on.
"""

from thermosync.state.feed import ChangeFeed, Subscription
from thermosync.state.store import FileRecordStore, MemoryRecordStore, RecordStore

__all__ = ["ChangeFeed", "FileRecordStore", "MemoryRecordStore", "RecordStore", "Subscription"]
