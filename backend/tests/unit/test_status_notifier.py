"""Tests for StatusNotifier -- best-effort delivery to subscribers."""

from __future__ import annotations

import json

from order_router.notify.notifier import Notifier, StatusNotifier, StatusSink
from order_router.orders.types import OrderStatus
from tests.factories import RecordingNotifier, RecordingSink


class TestConnectionLifecycle:
    async def test_connection_is_acknowledged(self) -> None:
        notifier = StatusNotifier()
        sink = RecordingSink()
        await notifier.handle_connection("o1", sink)

        assert notifier.has_connection("o1")
        assert notifier.connection_count() == 1
        assert json.loads(sink.messages[0]) == {"type": "connection_ack", "orderId": "o1"}

    async def test_disconnect_removes_subscriber(self) -> None:
        notifier = StatusNotifier()
        sink = RecordingSink()
        await notifier.handle_connection("o1", sink)
        notifier.handle_disconnect("o1", sink)
        assert not notifier.has_connection("o1")

    async def test_stale_disconnect_keeps_new_subscriber(self) -> None:
        notifier = StatusNotifier()
        old, new = RecordingSink(), RecordingSink()
        await notifier.handle_connection("o1", old)
        await notifier.handle_connection("o1", new)
        notifier.handle_disconnect("o1", old)
        assert notifier.registry.get("o1") is new

    def test_sinks_satisfy_protocol(self) -> None:
        assert isinstance(RecordingSink(), StatusSink)
        assert isinstance(StatusNotifier(), Notifier)
        assert isinstance(RecordingNotifier(), Notifier)


class TestNotify:
    async def test_sends_order_update(self) -> None:
        notifier = StatusNotifier()
        sink = RecordingSink()
        await notifier.handle_connection("o1", sink)

        await notifier.notify("o1", OrderStatus.ROUTING, {"order_id": "o1"})

        assert json.loads(sink.messages[-1]) == {
            "type": "order_update",
            "status": "routing",
            "data": {"order_id": "o1"},
        }

    async def test_data_defaults_to_null(self) -> None:
        notifier = StatusNotifier()
        sink = RecordingSink()
        await notifier.handle_connection("o1", sink)
        await notifier.notify("o1", OrderStatus.SUBMITTED)
        assert json.loads(sink.messages[-1])["data"] is None

    async def test_updates_arrive_in_call_order(self) -> None:
        notifier = StatusNotifier()
        sink = RecordingSink()
        await notifier.handle_connection("o1", sink)
        for status in (OrderStatus.ROUTING, OrderStatus.CONFIRMED):
            await notifier.notify("o1", status)
        assert [json.loads(m).get("status") for m in sink.messages[1:]] == [
            "routing",
            "confirmed",
        ]

    async def test_no_subscriber_is_silent(self) -> None:
        notifier = StatusNotifier()
        await notifier.notify("nobody", OrderStatus.ROUTING)

    async def test_other_orders_not_notified(self) -> None:
        notifier = StatusNotifier()
        sink = RecordingSink()
        await notifier.handle_connection("o1", sink)
        await notifier.notify("o2", OrderStatus.ROUTING)
        assert len(sink.messages) == 1

    async def test_closed_sink_is_skipped(self) -> None:
        notifier = StatusNotifier()
        sink = RecordingSink()
        await notifier.handle_connection("o1", sink)
        sink.open = False
        await notifier.notify("o1", OrderStatus.ROUTING)
        assert len(sink.messages) == 1

    async def test_failing_sink_is_swallowed_and_dropped(self) -> None:
        notifier = StatusNotifier()
        sink = RecordingSink()
        await notifier.handle_connection("o1", sink)
        sink.fail = True

        await notifier.notify("o1", OrderStatus.ROUTING)

        assert not notifier.has_connection("o1")

    async def test_failing_ack_drops_subscriber(self) -> None:
        notifier = StatusNotifier()
        await notifier.handle_connection("o1", RecordingSink(fail=True))
        assert not notifier.has_connection("o1")
