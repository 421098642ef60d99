"""Tests for OrderService -- validation, persist-then-enqueue."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_router.orders.service import (
    DEFAULT_USER_ID,
    InvalidOrderError,
    OrderService,
    parse_amount,
)
from order_router.orders.store import OrderStore
from order_router.orders.types import OrderStatus
from order_router.queue.job_queue import JobQueue
from tests.factories import make_queue_config


@pytest.fixture
def queue(db_session_factory: async_sessionmaker[AsyncSession]) -> JobQueue:
    return JobQueue(db_session_factory, make_queue_config())


@pytest.fixture
def service(store: OrderStore, queue: JobQueue) -> OrderService:
    return OrderService(store, queue)


class TestParseAmount:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("1.5", Decimal("1.5")),
            (" 2 ", Decimal("2")),
            (3, Decimal("3")),
            (Decimal("0.000001"), Decimal("0.000001")),
        ],
    )
    def test_valid(self, raw: object, expected: Decimal) -> None:
        assert parse_amount(raw) == expected  # type: ignore[arg-type]

    @pytest.mark.parametrize("raw", ["0", "-1", "abc", "", "NaN", "Infinity"])
    def test_invalid(self, raw: str) -> None:
        with pytest.raises(InvalidOrderError):
            parse_amount(raw)

    def test_float_rejected(self) -> None:
        with pytest.raises(InvalidOrderError, match="float"):
            parse_amount(1.5)  # type: ignore[arg-type]


class TestSubmitOrder:
    async def test_persists_pending_and_enqueues(
        self,
        service: OrderService,
        store: OrderStore,
        queue: JobQueue,
    ) -> None:
        order_id = await service.submit_order("SOL", "USDC", "1.25")

        record = await store.get(order_id)
        assert record is not None
        assert record.status is OrderStatus.PENDING
        assert record.user_id == DEFAULT_USER_ID
        assert record.amount == Decimal("1.25")

        job = await queue.claim()
        assert job is not None
        assert job.payload == {
            "order_id": order_id,
            "token_in": "SOL",
            "token_out": "USDC",
            "amount": "1.25",
        }
        assert await queue.claim() is None

    async def test_order_ids_are_unique(self, service: OrderService) -> None:
        first = await service.submit_order("SOL", "USDC", "1")
        second = await service.submit_order("SOL", "USDC", "1")
        assert first != second

    async def test_tokens_are_stripped(
        self, service: OrderService, store: OrderStore
    ) -> None:
        order_id = await service.submit_order(" SOL ", "USDC\n", "1")
        record = await store.get(order_id)
        assert record is not None
        assert (record.token_in, record.token_out) == ("SOL", "USDC")

    async def test_custom_user(self, service: OrderService, store: OrderStore) -> None:
        order_id = await service.submit_order("SOL", "USDC", "1", user_id="alice")
        record = await store.get(order_id)
        assert record is not None
        assert record.user_id == "alice"

    @pytest.mark.parametrize(
        ("token_in", "token_out", "amount", "match"),
        [
            ("", "USDC", "1", "Missing required fields"),
            ("SOL", " ", "1", "Missing required fields"),
            ("SOL", "SOL", "1", "must differ"),
            ("SOL", "USDC", "-5", "positive"),
        ],
    )
    async def test_invalid_orders_rejected_before_persisting(
        self,
        store: OrderStore,
        token_in: str,
        token_out: str,
        amount: str,
        match: str,
    ) -> None:
        queue = AsyncMock(spec=JobQueue)
        service = OrderService(store, queue)

        with pytest.raises(InvalidOrderError, match=match):
            await service.submit_order(token_in, token_out, amount)
        queue.submit.assert_not_awaited()

    async def test_order_exists_before_job_is_enqueued(self, store: OrderStore) -> None:
        queue = AsyncMock(spec=JobQueue)

        async def check_persisted(order_id: str, *args: object) -> str:
            assert await store.get(order_id) is not None
            return "job-1"

        queue.submit.side_effect = check_persisted
        service = OrderService(store, queue)

        await service.submit_order("SOL", "USDC", "1")
        queue.submit.assert_awaited_once()

    async def test_get_order_missing(self, service: OrderService) -> None:
        assert await service.get_order("nope") is None
