"""Pipeline error hierarchy.

Integrity faults (unknown order, payload mismatch) are unrecoverable:
the queue fails the job immediately instead of retrying it.
"""

from __future__ import annotations

from order_router.queue.errors import UnrecoverableJobError


class PipelineError(Exception):
    """Base exception for order pipeline errors."""


class NoQuotesError(PipelineError):
    """No venue produced a quote, so there is nothing to select."""


class OrderNotFoundError(PipelineError, UnrecoverableJobError):
    """The order store has no record for this order_id."""

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class OrderIntegrityError(PipelineError, UnrecoverableJobError):
    """The job payload disagrees with the persisted order."""

    def __init__(self, order_id: str, field: str, expected: str, actual: str) -> None:
        self.order_id = order_id
        self.field = field
        super().__init__(
            f"Order {order_id} {field} mismatch: stored={expected}, job={actual}"
        )


class SettlementRecordError(PipelineError, UnrecoverableJobError):
    """The swap executed but its confirmation could not be persisted.

    Unrecoverable so the queue does not execute the swap a second time.
    """

    def __init__(self, order_id: str, tx_hash: str) -> None:
        self.order_id = order_id
        self.tx_hash = tx_hash
        super().__init__(
            f"Swap for order {order_id} executed ({tx_hash}) "
            "but confirmation was not persisted"
        )


class StalledJobError(PipelineError):
    """The queue failed the job after it stalled past its attempt budget."""
