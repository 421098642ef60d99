"""Venue selection by effective price."""

from __future__ import annotations

from collections.abc import Sequence

from order_router.orders.errors import NoQuotesError
from order_router.orders.types import Quote


def select_best_quote(quotes: Sequence[Quote]) -> Quote:
    """Pick the quote with the highest effective price.

    Only a strictly greater effective price displaces the current best,
    so exact ties resolve to the earliest quote in ``quotes``. Callers
    pass quotes in configured venue order.

    Raises:
        NoQuotesError: If ``quotes`` is empty.
    """
    if not quotes:
        raise NoQuotesError("No venue quotes available")

    best = quotes[0]
    for quote in quotes[1:]:
        if quote.effective_price > best.effective_price:
            best = quote
    return best
