"""Order domain types shared across the pipeline, store and queue.

Frozen dataclasses for value objects. Prices, fees and amounts use
Decimal so the order amount survives the round trip losslessly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class OrderStatus(str, Enum):
    """Persisted order lifecycle states."""

    PENDING = "pending"
    ROUTING = "routing"
    BUILDING = "building"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    {
        OrderStatus.CONFIRMED,
        OrderStatus.FAILED,
    }
)


@dataclass(frozen=True)
class Quote:
    """A venue's price and fee for one trade.

    ``price`` is units of output per unit of input, so higher is better.
    """

    venue: str
    price: Decimal
    fee: Decimal

    def __post_init__(self) -> None:
        if self.price <= Decimal("0"):
            raise ValueError(f"Quote price must be positive, got {self.price}")
        if not Decimal("0") <= self.fee < Decimal("1"):
            raise ValueError(f"Quote fee must be in [0, 1), got {self.fee}")

    @property
    def effective_price(self) -> Decimal:
        """Price net of the venue fee."""
        return self.price * (Decimal("1") - self.fee)


@dataclass(frozen=True)
class SwapResult:
    """Confirmation handle returned by a venue execution."""

    tx_hash: str
    status: OrderStatus = OrderStatus.CONFIRMED


@dataclass(frozen=True)
class OrderJob:
    """Read-only job payload: a copy of the order's identity and trade."""

    order_id: str
    token_in: str
    token_out: str
    amount: Decimal

    def to_payload(self) -> dict[str, str]:
        """Serialize for the queue. Amount travels as a decimal string."""
        return {
            "order_id": self.order_id,
            "token_in": self.token_in,
            "token_out": self.token_out,
            "amount": str(self.amount),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> OrderJob:
        return cls(
            order_id=str(payload["order_id"]),
            token_in=str(payload["token_in"]),
            token_out=str(payload["token_out"]),
            amount=Decimal(str(payload["amount"])),
        )


@dataclass(frozen=True)
class OrderRecord:
    """Snapshot of a persisted order."""

    order_id: str
    user_id: str
    token_in: str
    token_out: str
    amount: Decimal
    status: OrderStatus
    provider: str | None
    tx_hash: str | None
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a successful pipeline run."""

    order_id: str
    provider: str
    effective_price: Decimal | None
    tx_hash: str
    status: OrderStatus = OrderStatus.CONFIRMED

    def to_notification(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "provider": self.provider,
            "effective_price": (
                str(self.effective_price) if self.effective_price is not None else None
            ),
            "tx_hash": self.tx_hash,
            "status": self.status.value,
        }
