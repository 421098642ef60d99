"""WebSocket status server.

Subscribers connect to ``/ws/orders/{order_id}`` and receive the
order's status updates until they disconnect. Messages sent before a
subscriber connects are not replayed; query the store for current state.
"""

from __future__ import annotations

import re

import structlog
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from order_router.notify.notifier import StatusNotifier

log = structlog.get_logger()

_PATH_RE = re.compile(r"^/ws/orders/(?P<order_id>[^/?#]+)/?$")

# RFC 6455 policy violation
_CLOSE_BAD_PATH = 1008


def parse_order_id(path: str) -> str | None:
    """Extract the order_id from a subscription path, or None."""
    match = _PATH_RE.match(path.split("?", 1)[0])
    return match.group("order_id") if match else None


class WebSocketSink:
    """StatusSink over a websockets server connection."""

    def __init__(self, connection: ServerConnection) -> None:
        self._connection = connection

    @property
    def is_open(self) -> bool:
        return self._connection.state is State.OPEN

    async def send(self, message: str) -> None:
        await self._connection.send(message)


class StatusServer:
    """Serves subscriber connections into a StatusNotifier."""

    def __init__(self, notifier: StatusNotifier, host: str, port: int) -> None:
        self._notifier = notifier
        self._host = host
        self._port = port
        self._server: Server | None = None

    @property
    def port(self) -> int:
        """Bound port (resolves port 0 after start)."""
        if self._server is None:
            return self._port
        return int(self._server.sockets[0].getsockname()[1])

    async def start(self) -> None:
        self._server = await serve(self._handle, self._host, self._port)
        log.info("status_server_started", host=self._host, port=self.port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        log.info("status_server_stopped")

    async def _handle(self, connection: ServerConnection) -> None:
        path = connection.request.path if connection.request is not None else ""
        order_id = parse_order_id(path)
        if order_id is None:
            await connection.close(_CLOSE_BAD_PATH, "expected /ws/orders/{order_id}")
            return

        sink = WebSocketSink(connection)
        await self._notifier.handle_connection(order_id, sink)
        try:
            # Subscribers only listen; drain anything they send until close.
            async for _ in connection:
                pass
        except ConnectionClosed:
            log.debug("subscriber_connection_closed", order_id=order_id)
        finally:
            self._notifier.handle_disconnect(order_id, sink)
