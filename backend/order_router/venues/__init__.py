"""Venue capability layer.

Re-exports the protocol and errors for convenient imports:
    from order_router.venues import VenueClient, VenueError
"""

from order_router.venues.errors import (
    VenueError,
    VenueExecutionError,
    VenueQuoteError,
    VenueTimeoutError,
)
from order_router.venues.venue_client import VenueClient

__all__ = [
    "VenueClient",
    "VenueError",
    "VenueExecutionError",
    "VenueQuoteError",
    "VenueTimeoutError",
]
