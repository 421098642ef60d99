"""Order service -- ingress coupling between submission and processing.

Persists the order in PENDING before enqueueing its job, so every
delivered job finds its order in the store.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from order_router.orders.store import OrderStore
from order_router.orders.types import OrderRecord

if TYPE_CHECKING:
    from order_router.queue.job_queue import JobQueue

log = structlog.get_logger()

# No auth layer; every order belongs to the same placeholder user.
DEFAULT_USER_ID = "user_123"


class InvalidOrderError(ValueError):
    """Submitted order parameters failed validation."""


def parse_amount(value: Decimal | str | int) -> Decimal:
    """Parse a positive, finite decimal amount without float conversion."""
    if isinstance(value, float):
        raise InvalidOrderError("amount must be a decimal string, not a float")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise InvalidOrderError(f"amount is not a number: {value!r}") from exc
    if not amount.is_finite() or amount <= Decimal("0"):
        raise InvalidOrderError(f"amount must be positive, got {value!r}")
    return amount


class OrderService:
    """Submit orders and look up their current state."""

    def __init__(self, store: OrderStore, queue: JobQueue) -> None:
        self._store = store
        self._queue = queue

    async def submit_order(
        self,
        token_in: str,
        token_out: str,
        amount: Decimal | str | int,
        user_id: str = DEFAULT_USER_ID,
    ) -> str:
        """Validate, persist as pending, enqueue. Returns the order_id.

        Raises:
            InvalidOrderError: If the parameters are missing or invalid.
        """
        token_in = token_in.strip()
        token_out = token_out.strip()
        if not token_in or not token_out:
            raise InvalidOrderError("Missing required fields: token_in, token_out")
        if token_in == token_out:
            raise InvalidOrderError("token_in and token_out must differ")
        parsed = parse_amount(amount)

        order_id = str(uuid4())
        await self._store.create(
            order_id=order_id,
            token_in=token_in,
            token_out=token_out,
            amount=parsed,
            user_id=user_id,
        )
        await self._queue.submit(order_id, token_in, token_out, parsed)
        log.info(
            "order_submitted",
            order_id=order_id,
            pair=f"{token_in}/{token_out}",
            amount=str(parsed),
        )
        return order_id

    async def get_order(self, order_id: str) -> OrderRecord | None:
        return await self._store.get(order_id)
