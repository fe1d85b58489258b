"""Transport adapter that delivers engine messages over FastAPI WebSockets."""

from __future__ import annotations

import asyncio
from concurrent.futures import Future
import itertools
import logging
from threading import Lock
from typing import Any

from fastapi import WebSocket

from quiz_live.core.errors import TransportError
from quiz_live.core.transport import Transport

logger = logging.getLogger(__name__)

_connection_ids = itertools.count(1)


class WebSocketConnection:
    """Opaque handle the engine uses to address one accepted WebSocket."""

    __slots__ = ("connection_id", "websocket", "loop", "write_lock")

    def __init__(self, websocket: WebSocket, loop: asyncio.AbstractEventLoop) -> None:
        self.connection_id = next(_connection_ids)
        self.websocket = websocket
        self.loop = loop
        self.write_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<WebSocketConnection #{self.connection_id}>"


class WebSocketTransport(Transport):
    """Schedules sends on the loop that owns each socket.

    ``send`` returns immediately, so the engine can call it from timer threads
    or while holding a session lock. Writes to the same socket are serialized
    by an ``asyncio.Lock`` and keep the order in which they were requested.
    """

    def __init__(self) -> None:
        self._open: set[WebSocketConnection] = set()
        self._lock = Lock()

    def register(self, websocket: WebSocket) -> WebSocketConnection:
        """Track an accepted socket; must be called from its event loop."""
        connection = WebSocketConnection(websocket, asyncio.get_running_loop())
        with self._lock:
            self._open.add(connection)
        return connection

    def unregister(self, connection: WebSocketConnection) -> None:
        with self._lock:
            self._open.discard(connection)

    def connection_count(self) -> int:
        with self._lock:
            return len(self._open)

    def send(self, connection: object, message: dict[str, Any]) -> None:
        handle = self._require_open(connection)
        future = asyncio.run_coroutine_threadsafe(self._write(handle, message), handle.loop)
        future.add_done_callback(lambda done: self._report(done, handle, message.get("type")))

    def close(self, connection: object) -> None:
        with self._lock:
            if connection not in self._open:
                return
            self._open.discard(connection)
        handle: WebSocketConnection = connection  # type: ignore[assignment]
        if handle.loop.is_closed():
            return
        future = asyncio.run_coroutine_threadsafe(self._close(handle), handle.loop)
        future.add_done_callback(lambda done: self._report(done, handle, "close"))

    def _require_open(self, connection: object) -> WebSocketConnection:
        with self._lock:
            is_open = connection in self._open
        if not is_open or not isinstance(connection, WebSocketConnection):
            raise TransportError(f"Connection {connection!r} is not open.")
        if connection.loop.is_closed():
            raise TransportError(f"Event loop of {connection!r} is closed.")
        return connection

    @staticmethod
    async def _write(connection: WebSocketConnection, message: dict[str, Any]) -> None:
        async with connection.write_lock:
            await connection.websocket.send_json(message)

    @staticmethod
    async def _close(connection: WebSocketConnection) -> None:
        async with connection.write_lock:
            await connection.websocket.close(code=1000)

    @staticmethod
    def _report(future: Future, connection: WebSocketConnection, kind: Any) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("Delivery of %s to %r failed: %s", kind, connection, exc)
