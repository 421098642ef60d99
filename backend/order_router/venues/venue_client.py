"""VenueClient protocol -- abstract interface for quoting and swapping.

All venue implementations (mock, fake, real on-chain routers) must
satisfy this protocol. Latency and outcome are opaque to callers.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable

from order_router.orders.types import Quote, SwapResult


@runtime_checkable
class VenueClient(Protocol):
    """Async interface for venue quotes and swap execution.

    Implementations must support ``async with`` for lifecycle management.
    """

    async def connect(self) -> None:
        """Establish connections to the venues."""
        ...

    async def disconnect(self) -> None:
        """Tear down connections and release resources."""
        ...

    async def get_quote(
        self,
        venue: str,
        token_in: str,
        token_out: str,
        amount: Decimal,
    ) -> Quote:
        """Quote a swap of ``amount`` token_in -> token_out on ``venue``.

        Raises:
            VenueQuoteError: If the venue cannot quote.
        """
        ...

    async def execute_swap(
        self,
        venue: str,
        token_in: str,
        amount: Decimal,
    ) -> SwapResult:
        """Execute a swap on ``venue`` and return its settlement reference.

        Raises:
            VenueExecutionError: If the swap fails.
        """
        ...

    async def __aenter__(self) -> VenueClient:
        """Connect on context manager entry."""
        ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Disconnect on context manager exit."""
        ...
