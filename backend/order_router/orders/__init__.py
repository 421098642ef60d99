"""Order processing package."""

from order_router.orders.errors import (
    NoQuotesError,
    OrderIntegrityError,
    OrderNotFoundError,
    PipelineError,
    SettlementRecordError,
    StalledJobError,
)
from order_router.orders.pipeline import OrderPipeline
from order_router.orders.selection import select_best_quote
from order_router.orders.service import InvalidOrderError, OrderService
from order_router.orders.state_machine import InvalidTransitionError, OrderStateMachine
from order_router.orders.store import OrderStore
from order_router.orders.types import (
    TERMINAL_STATES,
    ExecutionResult,
    OrderJob,
    OrderRecord,
    OrderStatus,
    Quote,
    SwapResult,
)

__all__ = [
    "TERMINAL_STATES",
    "ExecutionResult",
    "InvalidOrderError",
    "InvalidTransitionError",
    "NoQuotesError",
    "OrderIntegrityError",
    "OrderJob",
    "OrderNotFoundError",
    "OrderPipeline",
    "OrderRecord",
    "OrderService",
    "OrderStateMachine",
    "OrderStatus",
    "OrderStore",
    "PipelineError",
    "Quote",
    "SettlementRecordError",
    "StalledJobError",
    "SwapResult",
    "select_best_quote",
]
