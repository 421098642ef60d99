"""FakeVenueClient -- deterministic venue double for testing.

Lightweight implementation of VenueClient for unit testing the
pipeline, selection and failure handling with fixed inputs.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from order_router.orders.types import OrderStatus, Quote, SwapResult
from order_router.venues.errors import VenueExecutionError, VenueQuoteError


@dataclass(frozen=True)
class ExecuteCall:
    """One recorded execute_swap invocation."""

    venue: str
    token_in: str
    amount: Decimal


class FakeVenueClient:
    """In-memory VenueClient for testing.

    Supply canned quotes per venue at construction. Venues listed in
    ``failing_quotes``/``failing_executes`` raise the matching VenueError.
    Inspect ``quote_calls``/``execute_calls`` after test execution.
    """

    def __init__(
        self,
        quotes: dict[str, Quote] | None = None,
        tx_hash: str = "0x" + "ab" * 32,
        failing_quotes: set[str] | None = None,
        failing_executes: set[str] | None = None,
        execute_delay: float = 0.0,
    ) -> None:
        self._quotes: dict[str, Quote] = quotes if quotes is not None else {}
        self._tx_hash = tx_hash
        self.failing_quotes: set[str] = failing_quotes or set()
        self.failing_executes: set[str] = failing_executes or set()
        self._execute_delay = execute_delay
        self._connected = False
        self.quote_calls: list[str] = []
        self.execute_calls: list[ExecuteCall] = []

    def set_quote(self, quote: Quote) -> None:
        """Replace the canned quote for ``quote.venue``."""
        self._quotes[quote.venue] = quote

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def get_quote(
        self,
        venue: str,
        token_in: str,
        token_out: str,
        amount: Decimal,
    ) -> Quote:
        self.quote_calls.append(venue)
        if venue in self.failing_quotes:
            raise VenueQuoteError(venue, "quote unavailable")
        if venue not in self._quotes:
            raise VenueQuoteError(venue, "unknown venue")
        return self._quotes[venue]

    async def execute_swap(
        self,
        venue: str,
        token_in: str,
        amount: Decimal,
    ) -> SwapResult:
        self.execute_calls.append(
            ExecuteCall(venue=venue, token_in=token_in, amount=amount)
        )
        if self._execute_delay:
            await asyncio.sleep(self._execute_delay)
        if venue in self.failing_executes:
            raise VenueExecutionError(venue, "swap reverted")
        return SwapResult(tx_hash=self._tx_hash, status=OrderStatus.CONFIRMED)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        await self.disconnect()
