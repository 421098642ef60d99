"""Order state machine -- pure transition logic with validation.

No I/O, no database. Tracks the progression of a single pipeline run.
Store writes are never gated on it: a redelivered job starts a fresh
machine at PENDING regardless of what an earlier attempt persisted.
"""

from __future__ import annotations

from typing import ClassVar

from order_router.orders.types import TERMINAL_STATES, OrderStatus


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: OrderStatus, to_state: OrderStatus) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


class OrderStateMachine:
    """Pure state transition logic for one pipeline run.

    Validates from->to transitions against a static transition table.
    Raises InvalidTransitionError on invalid transitions.
    """

    TRANSITIONS: ClassVar[dict[OrderStatus, frozenset[OrderStatus]]] = {
        OrderStatus.PENDING: frozenset(
            {
                OrderStatus.ROUTING,
                OrderStatus.FAILED,
            }
        ),
        OrderStatus.ROUTING: frozenset(
            {
                OrderStatus.BUILDING,
                OrderStatus.SUBMITTED,
                OrderStatus.CONFIRMED,
                OrderStatus.FAILED,
            }
        ),
        OrderStatus.BUILDING: frozenset(
            {
                OrderStatus.SUBMITTED,
                OrderStatus.CONFIRMED,
                OrderStatus.FAILED,
            }
        ),
        OrderStatus.SUBMITTED: frozenset(
            {
                OrderStatus.CONFIRMED,
                OrderStatus.FAILED,
            }
        ),
    }

    def __init__(self, state: OrderStatus = OrderStatus.PENDING) -> None:
        self._state = state
        self._history: list[OrderStatus] = []

    @property
    def state(self) -> OrderStatus:
        """Current state."""
        return self._state

    @property
    def history(self) -> tuple[OrderStatus, ...]:
        """States entered by this run, in order."""
        return tuple(self._history)

    @property
    def is_terminal(self) -> bool:
        """Whether the current state is terminal (no further transitions)."""
        return self._state in TERMINAL_STATES

    def transition(self, to: OrderStatus) -> None:
        """Validate and apply a state transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed.
        """
        if self.is_terminal:
            raise InvalidTransitionError(self._state, to)

        valid_targets = self.TRANSITIONS.get(self._state, frozenset())
        if to not in valid_targets:
            raise InvalidTransitionError(self._state, to)

        self._state = to
        self._history.append(to)
