"""HTTP transport for the thermostat API.

Maps HTTP outcomes onto the thermosync exception hierarchy:

- 400 -> :class:`ThermoValidationError` (``message`` / ``field`` from the body)
- 404 -> :class:`ThermoNotFoundError`
- other non-2xx, network errors, timeouts, bad JSON -> :class:`ThermoTransportError`
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any, Protocol

import aiohttp

from thermosync._sse import CONTENT_TYPE, SseParser
from thermosync.config import ThermoConfig
from thermosync.exceptions import ThermoNotFoundError, ThermoTransportError, ThermoValidationError
from thermosync.models.stream import StreamEvent

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by :class:`ThermostatClient`.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
        allow_not_modified: bool = False,
    ) -> Any: ...

    def stream_events(self, path: str) -> AsyncIterator[StreamEvent]: ...


def _error_message(text: str, default: str) -> tuple[str, str | None]:
    try:
        body = json.loads(text)
    except json.JSONDecodeError:
        return default, None
    if not isinstance(body, dict):
        return default, None
    message = body.get("message")
    field = body.get("field")
    return (
        message if isinstance(message, str) and message else default,
        field if isinstance(field, str) and field else None,
    )


def _raise_for_status(status: int, text: str, endpoint: str) -> None:
    if status == 400:
        message, field = _error_message(text, "Invalid request")
        raise ThermoValidationError(message, field=field)
    if status == 404:
        message, _ = _error_message(text, "Thermostat not found")
        raise ThermoNotFoundError(message)
    raise ThermoTransportError(
        f"HTTP {status} from {endpoint}: {text[:200]}",
        status_code=status,
        endpoint=endpoint,
    )


class HttpTransport:
    """aiohttp-backed transport for the JSON routes and the event stream."""

    def __init__(self, config: ThermoConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _url(self, path: str) -> str:
        return f"{self._config.api_url}{path}"

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
        allow_not_modified: bool = False,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Returns ``None`` for a 304 when *allow_not_modified* is set.
        """
        url = self._url(path)
        _logger.debug("%s %s params=%s", method, url, params)
        try:
            async with self._http.request(
                method,
                url,
                json=dict(body) if body is not None else None,
                params=dict(params) if params is not None else None,
                timeout=self._timeout,
            ) as resp:
                if resp.status == 304 and allow_not_modified:
                    return None
                text = await resp.text()
                if resp.status != 200:
                    _raise_for_status(resp.status, text, path)
        except (ThermoTransportError, ThermoValidationError, ThermoNotFoundError):
            raise
        except aiohttp.ClientError as exc:
            raise ThermoTransportError(f"Request to {path} failed: {exc}", endpoint=path) from exc
        except TimeoutError as exc:
            raise ThermoTransportError(f"Request to {path} timed out", endpoint=path) from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ThermoTransportError(f"Invalid JSON from {path}: {text[:200]}", endpoint=path) from exc

    async def stream_events(self, path: str) -> AsyncIterator[StreamEvent]:
        """Open a push connection and yield events until it ends.

        A server-side close ends the iteration normally; a dropped connection
        raises :class:`ThermoTransportError`.
        """
        url = self._url(path)
        # No total timeout: the connection is held open indefinitely.
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self._config.request_timeout)
        parser = SseParser()
        _logger.debug("Opening event stream %s", url)
        try:
            async with self._http.get(url, headers={"Accept": CONTENT_TYPE}, timeout=timeout) as resp:
                if resp.status != 200:
                    _raise_for_status(resp.status, await resp.text(), path)
                async for raw_line in resp.content:
                    event = parser.feed_line(raw_line.decode("utf-8", errors="replace"))
                    if event is not None:
                        yield event
        except (ThermoTransportError, ThermoValidationError, ThermoNotFoundError):
            raise
        except aiohttp.ClientError as exc:
            raise ThermoTransportError(f"Stream {path} dropped: {exc}", endpoint=path) from exc
        except TimeoutError as exc:
            raise ThermoTransportError(f"Stream {path} timed out", endpoint=path) from exc
        _logger.debug("Event stream %s ended", url)
