"""Tests for order domain types."""

from __future__ import annotations

from decimal import Decimal

import pytest

from order_router.orders.types import (
    TERMINAL_STATES,
    ExecutionResult,
    OrderJob,
    OrderStatus,
    Quote,
)
from tests.factories import make_order_job, make_quote


class TestOrderStatus:
    def test_values_are_wire_strings(self) -> None:
        assert [s.value for s in OrderStatus] == [
            "pending",
            "routing",
            "building",
            "submitted",
            "confirmed",
            "failed",
        ]

    def test_terminal_states(self) -> None:
        assert TERMINAL_STATES == {OrderStatus.CONFIRMED, OrderStatus.FAILED}

    def test_str_enum_compares_to_string(self) -> None:
        assert OrderStatus.ROUTING == "routing"


class TestQuote:
    """Quote validation and fee-adjusted price."""

    def test_effective_price_nets_out_fee(self) -> None:
        quote = make_quote(price="1.00", fee="0.0025")
        assert quote.effective_price == Decimal("0.997500")

    def test_zero_fee_keeps_price(self) -> None:
        quote = make_quote(price="0.99", fee="0")
        assert quote.effective_price == Decimal("0.99")

    @pytest.mark.parametrize("price", ["0", "-1"])
    def test_non_positive_price_rejected(self, price: str) -> None:
        with pytest.raises(ValueError, match="price must be positive"):
            make_quote(price=price)

    @pytest.mark.parametrize("fee", ["-0.01", "1", "1.5"])
    def test_fee_outside_unit_interval_rejected(self, fee: str) -> None:
        with pytest.raises(ValueError, match="fee must be in"):
            make_quote(fee=fee)

    def test_quote_is_frozen(self) -> None:
        quote = make_quote()
        with pytest.raises(AttributeError):
            quote.price = Decimal("2")  # type: ignore[misc]


class TestOrderJob:
    def test_payload_carries_amount_as_string(self) -> None:
        job = make_order_job(amount="0.000000000000000001")
        payload = job.to_payload()
        assert payload == {
            "order_id": "order-001",
            "token_in": "SOL",
            "token_out": "USDC",
            "amount": "1E-18",
        }

    def test_from_payload_is_lossless(self) -> None:
        job = make_order_job(amount="123456789.123456789123456789")
        restored = OrderJob.from_payload(job.to_payload())
        assert restored == job
        assert restored.amount == Decimal("123456789.123456789123456789")

    def test_from_payload_accepts_numeric_amount(self) -> None:
        job = OrderJob.from_payload(
            {"order_id": "o", "token_in": "SOL", "token_out": "USDC", "amount": 2}
        )
        assert job.amount == Decimal("2")


class TestExecutionResult:
    def test_to_notification(self) -> None:
        result = ExecutionResult(
            order_id="order-001",
            provider="Raydium",
            effective_price=Decimal("0.9975"),
            tx_hash="0xabc",
        )
        assert result.to_notification() == {
            "order_id": "order-001",
            "provider": "Raydium",
            "effective_price": "0.9975",
            "tx_hash": "0xabc",
            "status": "confirmed",
        }

    def test_to_notification_without_price(self) -> None:
        result = ExecutionResult(
            order_id="order-001",
            provider="Raydium",
            effective_price=None,
            tx_hash="0xabc",
        )
        assert result.to_notification()["effective_price"] is None

    def test_default_status_is_confirmed(self) -> None:
        quote = Quote(venue="Raydium", price=Decimal("1"), fee=Decimal("0"))
        result = ExecutionResult("o", quote.venue, quote.effective_price, "0x1")
        assert result.status is OrderStatus.CONFIRMED
