"""HTTP server: request/response routes, poll channel and stream channel."""

from thermosync.server.app import build_store, create_app, run_server
from thermosync.server.stream import StreamSession, StreamState

__all__ = ["StreamSession", "StreamState", "build_store", "create_app", "run_server"]
