"""Venue error hierarchy.

All venue-related exceptions inherit from VenueError, enabling
clean exception handling at the capability boundary. Every VenueError
is retryable at the job level.
"""

from __future__ import annotations


class VenueError(Exception):
    """Base exception for all venue-related errors."""

    def __init__(self, venue: str, message: str) -> None:
        self.venue = venue
        self.message = message
        super().__init__(f"{venue}: {message}")


class VenueQuoteError(VenueError):
    """A venue failed to produce a quote."""


class VenueExecutionError(VenueError):
    """A venue failed to execute a swap."""


class VenueTimeoutError(VenueError):
    """A quote or execute call exceeded its configured timeout."""

    def __init__(self, venue: str, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(venue, f"{operation} timed out after {timeout}s")
