"""Best-effort live status channel keyed by order_id."""

from order_router.notify.notifier import Notifier, StatusNotifier, StatusSink
from order_router.notify.registry import ConnectionRegistry

__all__ = [
    "ConnectionRegistry",
    "Notifier",
    "StatusNotifier",
    "StatusSink",
]
