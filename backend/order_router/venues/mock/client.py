"""MockVenueClient -- randomized stand-in for on-chain DEX routers.

Prices drift uniformly around 1.0 per quote and executions take a
few seconds, mimicking network and confirmation latency.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Self

import structlog

from order_router.config import MockVenueConfig
from order_router.orders.types import OrderStatus, Quote, SwapResult
from order_router.venues.errors import VenueExecutionError, VenueQuoteError

log = structlog.get_logger()

_BASE_PRICE = Decimal("1.0")
_TX_HASH_HEX_DIGITS = 64


@dataclass(frozen=True)
class VenueProfile:
    """Price band and fee of a simulated venue.

    Quoted price is ``base * (floor + U(0, 1) * spread)``.
    """

    floor: Decimal
    spread: Decimal
    fee: Decimal


DEFAULT_PROFILES: dict[str, VenueProfile] = {
    "Raydium": VenueProfile(
        floor=Decimal("0.98"), spread=Decimal("0.04"), fee=Decimal("0.0025")
    ),
    "Meteora": VenueProfile(
        floor=Decimal("0.97"), spread=Decimal("0.05"), fee=Decimal("0.003")
    ),
}

# Used for configured venues without a dedicated profile
GENERIC_PROFILE = VenueProfile(
    floor=Decimal("0.97"), spread=Decimal("0.05"), fee=Decimal("0.003")
)


class MockVenueClient:
    """In-process VenueClient with randomized prices and latency.

    Pass a seeded ``random.Random`` for reproducible runs.
    """

    def __init__(
        self,
        config: MockVenueConfig | None = None,
        profiles: dict[str, VenueProfile] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config or MockVenueConfig()
        self._profiles = profiles if profiles is not None else dict(DEFAULT_PROFILES)
        self._rng = rng or random.Random()
        self._connected = False

    def _profile(self, venue: str) -> VenueProfile:
        return self._profiles.get(venue, GENERIC_PROFILE)

    def _should_fail(self) -> bool:
        return self._rng.random() < self._config.failure_rate

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
        await asyncio.sleep(self._config.quote_delay_ms / 1000)
        if self._should_fail():
            raise VenueQuoteError(venue, "simulated quote failure")

        profile = self._profile(venue)
        jitter = Decimal(str(self._rng.random()))
        price = _BASE_PRICE * (profile.floor + jitter * profile.spread)
        log.debug(
            "venue_quote",
            venue=venue,
            pair=f"{token_in}/{token_out}",
            amount=str(amount),
            price=str(price),
            fee=str(profile.fee),
        )
        return Quote(venue=venue, price=price, fee=profile.fee)

    async def execute_swap(
        self,
        venue: str,
        token_in: str,
        amount: Decimal,
    ) -> SwapResult:
        confirmation_ms = self._rng.uniform(
            self._config.execute_min_ms,
            self._config.execute_max_ms,
        )
        await asyncio.sleep(confirmation_ms / 1000)
        if self._should_fail():
            raise VenueExecutionError(venue, "simulated execution failure")

        tx_hash = "0x" + "".join(
            self._rng.choice("0123456789abcdef") for _ in range(_TX_HASH_HEX_DIGITS)
        )
        return SwapResult(tx_hash=tx_hash, status=OrderStatus.CONFIRMED)

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
