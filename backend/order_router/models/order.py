"""Order-related database models.

Tables: orders, order_event
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from order_router.models.base import Base, DecimalText


class OrderModel(Base):
    """Mutable order lifecycle record, keyed by order_id. Never deleted."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    token_in: Mapped[str] = mapped_column(String(255), nullable=False)
    token_out: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalText, nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        CheckConstraint(
            "status IN ('pending', 'routing', 'building', 'submitted', "
            "'confirmed', 'failed')",
            name="ck_orders_status",
        ),
        nullable=False,
        server_default="pending",
    )
    provider: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tx_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        Index("ix_orders_status", "status"),
        Index("ix_orders_user_created", "user_id", "created_at"),
    )


class OrderEventModel(Base):
    """Immutable append-only audit log, one row per store update."""

    __tablename__ = "order_event"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(255), nullable=False)
    old_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    new_status: Mapped[str] = mapped_column(String(50), nullable=False)
    provider: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tx_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        Index("ix_order_event_order_id", "order_id"),
        Index("ix_order_event_recorded", "recorded_at"),
    )
