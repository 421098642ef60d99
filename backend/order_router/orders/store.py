"""Order store -- keyed persistent record of order lifecycle.

Every update is a direct overwrite of the given fields in a single
transaction, plus an append-only audit row. There is no compare-and-swap
on the current status: overlapping runs for the same order resolve as
last-writer-wins.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_router.models.order import OrderEventModel, OrderModel
from order_router.orders.errors import OrderNotFoundError
from order_router.orders.types import OrderRecord, OrderStatus
from order_router.utils.time import format_timestamp, utc_now

log = structlog.get_logger()


class _Unset(Enum):
    UNSET = "unset"


UNSET = _Unset.UNSET


def _to_record(order: OrderModel) -> OrderRecord:
    return OrderRecord(
        order_id=order.order_id,
        user_id=order.user_id,
        token_in=order.token_in,
        token_out=order.token_out,
        amount=Decimal(str(order.amount)),
        status=OrderStatus(order.status),
        provider=order.provider,
        tx_hash=order.tx_hash,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


class OrderStore:
    """Async access to the ``orders`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(
        self,
        order_id: str,
        token_in: str,
        token_out: str,
        amount: Decimal,
        user_id: str,
    ) -> OrderRecord:
        """Persist a new order in PENDING."""
        now = format_timestamp(utc_now())
        async with self._session_factory() as session, session.begin():
            order = OrderModel(
                order_id=order_id,
                user_id=user_id,
                token_in=token_in,
                token_out=token_out,
                amount=amount,
                status=OrderStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            session.add(order)
            session.add(
                OrderEventModel(
                    order_id=order_id,
                    old_status=None,
                    new_status=OrderStatus.PENDING.value,
                    recorded_at=now,
                )
            )
        log.info("order_created", order_id=order_id, amount=str(amount))
        return _to_record(order)

    async def get(self, order_id: str) -> OrderRecord | None:
        async with self._session_factory() as session:
            order = await self._find(session, order_id)
            return _to_record(order) if order is not None else None

    async def update(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        provider: str | None | _Unset = UNSET,
        tx_hash: str | None | _Unset = UNSET,
        detail: str | None = None,
    ) -> None:
        """Overwrite status and any given fields, appending an audit event.

        Raises:
            OrderNotFoundError: If no order has this order_id.
        """
        now = format_timestamp(utc_now())
        async with self._session_factory() as session, session.begin():
            order = await self._find(session, order_id)
            if order is None:
                raise OrderNotFoundError(order_id)

            old_status = order.status
            order.status = status.value
            order.updated_at = now
            if provider is not UNSET:
                order.provider = provider
            if tx_hash is not UNSET:
                order.tx_hash = tx_hash

            session.add(
                OrderEventModel(
                    order_id=order_id,
                    old_status=old_status,
                    new_status=status.value,
                    provider=order.provider,
                    tx_hash=order.tx_hash,
                    detail=detail,
                    recorded_at=now,
                )
            )

    async def events(self, order_id: str) -> list[OrderEventModel]:
        """Audit trail for one order, oldest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderEventModel)
                .where(OrderEventModel.order_id == order_id)
                .order_by(OrderEventModel.id)
            )
            return list(result.scalars().all())

    @staticmethod
    async def _find(session: AsyncSession, order_id: str) -> OrderModel | None:
        result = await session.execute(
            select(OrderModel).where(OrderModel.order_id == order_id)
        )
        return result.scalar_one_or_none()
