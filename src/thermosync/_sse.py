"""text/event-stream framing.

Each event is written as::

    event: <name>
    data: <json>
    <blank line>

The parser follows the event-stream line rules closely enough for this
protocol: ``:`` comment lines are ignored, repeated ``data`` lines are
joined with ``\\n``, and a blank line dispatches the pending event.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from thermosync.models.stream import StreamEvent

_logger = logging.getLogger(__name__)

CONTENT_TYPE = "text/event-stream"


def encode_event(event: str, data: Any) -> bytes:
    """Frame a named event with a JSON payload."""
    payload = json.dumps(data, separators=(",", ":"))
    return f"event: {event}\ndata: {payload}\n\n".encode()


class SseParser:
    """Incremental line parser producing :class:`StreamEvent` objects."""

    def __init__(self) -> None:
        self._event: str | None = None
        self._data: list[str] = []

    def feed_line(self, line: str) -> StreamEvent | None:
        """Consume one line (without or with its trailing newline)."""
        line = line.rstrip("\r\n")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if not sep:
            value = ""
        elif value.startswith(" "):
            value = value[1:]

        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        return None

    def _dispatch(self) -> StreamEvent | None:
        if self._event is None and not self._data:
            return None
        event = self._event or "message"
        text = "\n".join(self._data)
        self._event = None
        self._data = []

        data: Any = None
        if text:
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                _logger.debug("Non-JSON payload on %r event: %s", event, text[:64])
                data = text
        return StreamEvent(event=event, data=data)
