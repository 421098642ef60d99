"""End-to-end order flow: service -> queue -> worker -> pipeline -> store.

Uses a file-backed database so the worker's concurrent sessions
behave like a deployed process.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_router.notify.notifier import StatusNotifier
from order_router.orders.pipeline import OrderPipeline
from order_router.orders.service import OrderService
from order_router.orders.store import OrderStore
from order_router.orders.types import OrderStatus, Quote, SwapResult
from order_router.queue.job_queue import FAILED, JobQueue
from order_router.queue.worker import Worker
from order_router.venues.errors import VenueExecutionError
from order_router.utils.time import utc_now
from order_router.venues.fake.client import FakeVenueClient
from tests.factories import (
    FakeClock,
    RecordingNotifier,
    RecordingSink,
    make_pipeline_config,
    make_queue_config,
    make_quote,
)


class FlakyVenueClient(FakeVenueClient):
    """Fails the first ``failures`` executions, then succeeds."""

    def __init__(self, failures: int, quotes: dict[str, Quote]) -> None:
        super().__init__(quotes=quotes)
        self.failures = failures

    async def execute_swap(self, venue: str, token_in: str, amount: Decimal) -> SwapResult:
        if self.failures > 0:
            self.failures -= 1
            raise VenueExecutionError(venue, "transient revert")
        return await super().execute_swap(venue, token_in, amount)


def _quotes() -> dict[str, Quote]:
    return {
        "Raydium": make_quote(venue="Raydium", price="1.00", fee="0.0025"),
        "Meteora": make_quote(venue="Meteora", price="0.99", fee="0.003"),
    }


class Harness:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        venues: FakeVenueClient,
        notifier: StatusNotifier | RecordingNotifier,
        clock: FakeClock | None = None,
        **queue_config: object,
    ) -> None:
        self.store = OrderStore(session_factory)
        self.queue = JobQueue(
            session_factory,
            make_queue_config(**queue_config),
            clock=clock or utc_now,
        )
        self.venues = venues
        self.pipeline = OrderPipeline(venues, self.store, notifier, make_pipeline_config())
        self.service = OrderService(self.store, self.queue)

    async def drain(self, concurrency: int = 10) -> None:
        worker = Worker(
            self.queue,
            self.pipeline.handle_job,
            concurrency=concurrency,
            poll_interval=0.01,
            on_stalled=self.pipeline.handle_stalled,
        )
        await worker.run_until_idle()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


class TestOrderFlow:
    async def test_submitted_order_is_confirmed(
        self,
        file_session_factory: async_sessionmaker[AsyncSession],
        notifier: RecordingNotifier,
    ) -> None:
        harness = Harness(
            file_session_factory, FakeVenueClient(quotes=_quotes()), notifier
        )
        order_id = await harness.service.submit_order("SOL", "USDC", "1.5")

        await harness.drain()

        record = await harness.service.get_order(order_id)
        assert record is not None
        assert record.status is OrderStatus.CONFIRMED
        assert record.provider == "Raydium"
        assert record.tx_hash == "0x" + "ab" * 32
        assert notifier.statuses(order_id) == [
            OrderStatus.ROUTING,
            OrderStatus.CONFIRMED,
        ]
        assert await harness.queue.counts() == {}

    async def test_many_orders_processed_concurrently(
        self,
        file_session_factory: async_sessionmaker[AsyncSession],
        notifier: RecordingNotifier,
    ) -> None:
        venues = FakeVenueClient(quotes=_quotes(), execute_delay=0.02)
        harness = Harness(file_session_factory, venues, notifier)
        order_ids = [
            await harness.service.submit_order("SOL", "USDC", str(i + 1))
            for i in range(8)
        ]

        await harness.drain(concurrency=4)

        for order_id in order_ids:
            record = await harness.store.get(order_id)
            assert record is not None
            assert record.status is OrderStatus.CONFIRMED
        assert len(venues.execute_calls) == 8

    async def test_transient_failure_is_retried(
        self,
        file_session_factory: async_sessionmaker[AsyncSession],
        notifier: RecordingNotifier,
    ) -> None:
        venues = FlakyVenueClient(failures=1, quotes=_quotes())
        harness = Harness(file_session_factory, venues, notifier)
        order_id = await harness.service.submit_order("SOL", "USDC", "1")

        await harness.drain()

        record = await harness.store.get(order_id)
        assert record is not None
        assert record.status is OrderStatus.CONFIRMED
        assert notifier.statuses(order_id) == [
            OrderStatus.ROUTING,
            OrderStatus.FAILED,
            OrderStatus.ROUTING,
            OrderStatus.CONFIRMED,
        ]

    async def test_exhausted_retries_leave_order_failed(
        self,
        file_session_factory: async_sessionmaker[AsyncSession],
        notifier: RecordingNotifier,
    ) -> None:
        venues = FakeVenueClient(quotes=_quotes(), failing_executes={"Raydium"})
        harness = Harness(file_session_factory, venues, notifier, attempts=3)
        order_id = await harness.service.submit_order("SOL", "USDC", "1")

        await harness.drain()

        record = await harness.store.get(order_id)
        assert record is not None
        assert record.status is OrderStatus.FAILED
        assert record.provider is None
        assert len(venues.execute_calls) == 3
        assert await harness.queue.counts() == {FAILED: 1}

    async def test_stalled_out_order_is_failed(
        self,
        file_session_factory: async_sessionmaker[AsyncSession],
        notifier: RecordingNotifier,
    ) -> None:
        clock = FakeClock()
        venues = FakeVenueClient(quotes=_quotes())
        harness = Harness(file_session_factory, venues, notifier, clock=clock)
        order_id = await harness.service.submit_order("SOL", "USDC", "1")
        await harness.store.update(order_id, OrderStatus.ROUTING)
        # three deliveries, each lost by a crashed worker
        for _ in range(3):
            assert await harness.queue.claim() is not None
            clock.advance(minutes=1)

        await harness.drain()

        record = await harness.store.get(order_id)
        assert record is not None
        assert record.status is OrderStatus.FAILED
        assert record.tx_hash is None
        assert venues.execute_calls == []
        assert notifier.statuses(order_id) == [OrderStatus.FAILED]
        assert await harness.queue.counts() == {FAILED: 1}

    async def test_subscriber_receives_updates(
        self,
        file_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        status_notifier = StatusNotifier()
        harness = Harness(
            file_session_factory, FakeVenueClient(quotes=_quotes()), status_notifier
        )
        order_id = await harness.service.submit_order("SOL", "USDC", "1")
        sink = RecordingSink()
        await status_notifier.handle_connection(order_id, sink)

        await harness.drain()

        assert len(sink.messages) == 3
        assert '"status": "confirmed"' in sink.messages[-1]
