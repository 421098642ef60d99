"""Status notifier -- fire-and-forget order updates to subscribers.

A missing, closed or failing subscriber drops the message. Nothing
raised here reaches the caller.
"""

from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable

import structlog

from order_router.notify.registry import ConnectionRegistry
from order_router.orders.types import OrderStatus

log = structlog.get_logger()


@runtime_checkable
class StatusSink(Protocol):
    """A subscriber connection for one order."""

    @property
    def is_open(self) -> bool:
        """Whether the connection can still accept messages."""
        ...

    async def send(self, message: str) -> None:
        """Deliver one serialized message."""
        ...


class StatusNotifier:
    """Pushes JSON status messages to the sink registered for an order."""

    def __init__(self, registry: ConnectionRegistry[StatusSink] | None = None) -> None:
        self._registry: ConnectionRegistry[StatusSink] = (
            registry if registry is not None else ConnectionRegistry()
        )

    @property
    def registry(self) -> ConnectionRegistry[StatusSink]:
        return self._registry

    async def handle_connection(self, order_id: str, sink: StatusSink) -> None:
        """Register a subscriber and acknowledge the subscription."""
        self._registry.register(order_id, sink)
        log.info("subscriber_connected", order_id=order_id)
        await self._send(
            order_id,
            sink,
            {"type": "connection_ack", "orderId": order_id},
        )

    def handle_disconnect(self, order_id: str, sink: StatusSink) -> None:
        if self._registry.unregister(order_id, sink):
            log.info("subscriber_disconnected", order_id=order_id)

    def has_connection(self, order_id: str) -> bool:
        return order_id in self._registry

    def connection_count(self) -> int:
        return len(self._registry)

    async def notify(
        self,
        order_id: str,
        status: OrderStatus,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Send an order_update to the order's subscriber, if any."""
        sink = self._registry.get(order_id)
        if sink is None or not sink.is_open:
            log.debug("no_subscriber", order_id=order_id, status=status.value)
            return

        message = {"type": "order_update", "status": status.value, "data": data}
        await self._send(order_id, sink, message)
        log.debug("status_sent", order_id=order_id, status=status.value)

    async def _send(
        self,
        order_id: str,
        sink: StatusSink,
        message: dict[str, Any],
    ) -> None:
        try:
            await sink.send(json.dumps(message))
        except Exception:
            log.warning("subscriber_send_failed", order_id=order_id, exc_info=True)
            self._registry.unregister(order_id, sink)


@runtime_checkable
class Notifier(Protocol):
    """The notification capability the order pipeline depends on."""

    async def notify(
        self,
        order_id: str,
        status: OrderStatus,
        data: dict[str, Any] | None = None,
    ) -> None: ...
