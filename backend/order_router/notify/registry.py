"""Connection registry: order_id -> subscriber sink.

Mutated from connect/close/error callbacks, read by point lookup only.
"""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

SinkT = TypeVar("SinkT")


class ConnectionRegistry(Generic[SinkT]):
    """Thread-safe map of order_id to an opaque sink handle.

    One sink per order: a newer connection for the same order replaces
    the older one.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sinks: dict[str, SinkT] = {}

    def register(self, order_id: str, sink: SinkT) -> None:
        with self._lock:
            self._sinks[order_id] = sink

    def unregister(self, order_id: str, sink: SinkT | None = None) -> bool:
        """Remove the sink for ``order_id``.

        When ``sink`` is given, only remove it if it is still the
        registered one, so a stale close cannot evict a newer connection.
        Returns True if something was removed.
        """
        with self._lock:
            current = self._sinks.get(order_id)
            if current is None:
                return False
            if sink is not None and current is not sink:
                return False
            del self._sinks[order_id]
            return True

    def get(self, order_id: str) -> SinkT | None:
        with self._lock:
            return self._sinks.get(order_id)

    def __contains__(self, order_id: object) -> bool:
        with self._lock:
            return order_id in self._sinks

    def __len__(self) -> int:
        with self._lock:
            return len(self._sinks)
