"""Order pipeline -- the job handler that drives one order to a terminal state.

routing -> (building -> submitted) -> confirmed, or failed on any error.
Every transition is persisted first, then notified. Store writes are
unconditional overwrites, so a redelivered job simply restarts from
routing. Notifications are best-effort and never fail a run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from order_router.config import PipelineConfig
from order_router.orders.errors import (
    OrderIntegrityError,
    OrderNotFoundError,
    SettlementRecordError,
    StalledJobError,
)
from order_router.orders.selection import select_best_quote
from order_router.orders.state_machine import OrderStateMachine
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
from order_router.venues.errors import VenueTimeoutError

if TYPE_CHECKING:
    from order_router.notify.notifier import Notifier
    from order_router.queue.job_queue import Job
    from order_router.venues.venue_client import VenueClient

log = structlog.get_logger()

T = TypeVar("T")

# Confirmation write retries after a successful swap
_CONFIRM_RETRY_MAX = 3
_CONFIRM_RETRY_DELAY = 0.5


def failure_reason(exc: BaseException) -> str:
    """Human-readable reason for a failure notification."""
    message = str(exc)
    return message if message else type(exc).__name__


class OrderPipeline:
    """Runs the order state machine for one job at a time per call.

    Venue, store and notifier are injected so tests can substitute
    deterministic doubles.
    """

    def __init__(
        self,
        venues: VenueClient,
        store: OrderStore,
        notifier: Notifier,
        config: PipelineConfig | None = None,
    ) -> None:
        self._venues = venues
        self._store = store
        self._notifier = notifier
        self._config = config or PipelineConfig()

    async def handle_job(self, job: Job) -> ExecutionResult:
        """Queue handler entry point."""
        return await self.process(OrderJob.from_payload(job.payload))

    async def process(self, job: OrderJob) -> ExecutionResult:
        """Drive ``job`` to confirmed, or mark it failed and re-raise.

        Raises:
            OrderNotFoundError: The store has no such order (not retried).
            OrderIntegrityError: The job disagrees with the store (not retried).
            Exception: Whatever failed during routing/selection/execution,
                after the failed transition has been attempted.
        """
        record = await self._load(job)
        if record.status == OrderStatus.CONFIRMED and record.tx_hash is not None:
            # Duplicate delivery after a completed swap: never execute twice
            log.warning("order_already_confirmed", tx_hash=record.tx_hash)
            return ExecutionResult(
                order_id=record.order_id,
                provider=record.provider or "",
                effective_price=None,
                tx_hash=record.tx_hash,
            )

        machine = OrderStateMachine()
        try:
            quote, swap = await self._route_and_execute(job, machine)
        except Exception as exc:
            await self._fail(job, machine, exc)
            raise

        return await self._confirm(job, machine, quote, swap)

    async def handle_stalled(self, job: Job, reason: str) -> None:
        """Mark the order of a job the queue gave up on as failed.

        A confirmed order is left alone: its swap already settled.
        """
        order = OrderJob.from_payload(job.payload)
        record = await self._store.get(order.order_id)
        if record is None:
            log.warning("stalled_order_missing")
            return
        if record.status in TERMINAL_STATES:
            log.info("stalled_order_already_terminal", status=record.status.value)
            return
        await self._fail(order, OrderStateMachine(record.status), StalledJobError(reason))

    async def _load(self, job: OrderJob) -> OrderRecord:
        record = await self._store.get(job.order_id)
        if record is None:
            log.critical("order_missing_for_job")
            raise OrderNotFoundError(job.order_id)

        for field in ("token_in", "token_out", "amount"):
            stored, delivered = getattr(record, field), getattr(job, field)
            if stored != delivered:
                log.critical(
                    "order_job_mismatch",
                    field=field,
                    stored=str(stored),
                    job=str(delivered),
                )
                raise OrderIntegrityError(
                    job.order_id, field, str(stored), str(delivered)
                )
        return record

    async def _route_and_execute(
        self,
        job: OrderJob,
        machine: OrderStateMachine,
    ) -> tuple[Quote, SwapResult]:
        await self._transition(
            job,
            machine,
            OrderStatus.ROUTING,
            data={"order_id": job.order_id, "venues": list(self._config.venues)},
            provider=None,
            tx_hash=None,
        )

        quotes = await self._collect_quotes(job)
        best = select_best_quote(quotes)
        log.info(
            "venue_selected",
            provider=best.venue,
            effective_price=str(best.effective_price),
            quotes={q.venue: str(q.effective_price) for q in quotes},
        )

        if self._config.intermediate_stages:
            data = {
                "order_id": job.order_id,
                "provider": best.venue,
                "effective_price": str(best.effective_price),
            }
            await self._transition(
                job, machine, OrderStatus.BUILDING, data=data, provider=best.venue
            )
            await self._transition(job, machine, OrderStatus.SUBMITTED, data=data)
        else:
            # provider must be durable before execution even without stages
            await self._store.update(
                job.order_id,
                OrderStatus.ROUTING,
                provider=best.venue,
                detail="venue_selected",
            )

        log.info("swap_executing", provider=best.venue)
        swap = await self._with_timeout(
            self._venues.execute_swap(best.venue, job.token_in, job.amount),
            self._config.execute_timeout_s,
            best.venue,
            "execute",
        )
        return best, swap

    async def _collect_quotes(self, job: OrderJob) -> list[Quote]:
        """Quote every configured venue concurrently, in venue order.

        With ``require_all_quotes`` any venue failure fails the run;
        otherwise the surviving quotes are used and only a total
        failure does.
        """
        venues = self._config.venues
        results = await asyncio.gather(
            *(
                self._with_timeout(
                    self._venues.get_quote(
                        venue, job.token_in, job.token_out, job.amount
                    ),
                    self._config.quote_timeout_s,
                    venue,
                    "quote",
                )
                for venue in venues
            ),
            return_exceptions=True,
        )

        quotes: list[Quote] = []
        errors: list[Exception] = []
        for venue, result in zip(venues, results, strict=True):
            if isinstance(result, Quote):
                log.info(
                    "venue_quote",
                    venue=venue,
                    price=str(result.price),
                    fee=str(result.fee),
                    effective_price=str(result.effective_price),
                )
                quotes.append(result)
            elif isinstance(result, Exception):
                log.warning("venue_quote_failed", venue=venue, error=str(result))
                errors.append(result)
            else:
                raise result

        if errors and (self._config.require_all_quotes or not quotes):
            raise errors[0]
        return quotes

    async def _confirm(
        self,
        job: OrderJob,
        machine: OrderStateMachine,
        quote: Quote,
        swap: SwapResult,
    ) -> ExecutionResult:
        result = ExecutionResult(
            order_id=job.order_id,
            provider=quote.venue,
            effective_price=quote.effective_price,
            tx_hash=swap.tx_hash,
        )
        machine.transition(OrderStatus.CONFIRMED)

        for attempt in range(_CONFIRM_RETRY_MAX):
            try:
                await self._store.update(
                    job.order_id,
                    OrderStatus.CONFIRMED,
                    provider=quote.venue,
                    tx_hash=swap.tx_hash,
                )
                break
            except Exception:
                log.exception("confirm_write_failed", attempt=attempt + 1)
                if attempt < _CONFIRM_RETRY_MAX - 1:
                    await asyncio.sleep(_CONFIRM_RETRY_DELAY)
        else:
            log.critical(
                "swap_unrecorded",
                provider=quote.venue,
                tx_hash=swap.tx_hash,
            )
            # The swap settled; subscribers still get a terminal update
            await self._notify(
                job.order_id, OrderStatus.CONFIRMED, result.to_notification()
            )
            raise SettlementRecordError(job.order_id, swap.tx_hash)

        log.info(
            "swap_confirmed",
            provider=quote.venue,
            tx_hash=swap.tx_hash,
            effective_price=str(quote.effective_price),
        )
        await self._notify(job.order_id, OrderStatus.CONFIRMED, result.to_notification())
        return result

    async def _fail(
        self,
        job: OrderJob,
        machine: OrderStateMachine,
        exc: Exception,
    ) -> None:
        reason = failure_reason(exc)
        log.error(
            "order_failed",
            stage=machine.state.value,
            error=reason,
            error_type=type(exc).__name__,
        )
        if not machine.is_terminal:
            machine.transition(OrderStatus.FAILED)

        try:
            await self._store.update(
                job.order_id,
                OrderStatus.FAILED,
                provider=None,
                tx_hash=None,
                detail=reason,
            )
        except Exception:
            # Never let the reporting failure mask the original error
            log.exception("failed_status_write_failed")

        await self._notify(
            job.order_id,
            OrderStatus.FAILED,
            {"order_id": job.order_id, "status": OrderStatus.FAILED.value, "reason": reason},
        )

    async def _transition(
        self,
        job: OrderJob,
        machine: OrderStateMachine,
        status: OrderStatus,
        *,
        data: dict[str, Any] | None = None,
        **fields: Any,
    ) -> None:
        machine.transition(status)
        await self._store.update(job.order_id, status, **fields)
        log.info("order_transition", status=status.value)
        await self._notify(job.order_id, status, data)

    async def _notify(
        self,
        order_id: str,
        status: OrderStatus,
        data: dict[str, Any] | None,
    ) -> None:
        try:
            await self._notifier.notify(order_id, status, data)
        except Exception:
            log.warning("notify_failed", status=status.value, exc_info=True)

    @staticmethod
    async def _with_timeout(
        call: Awaitable[T],
        timeout: float | None,
        venue: str,
        operation: str,
    ) -> T:
        if timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except TimeoutError as exc:
            raise VenueTimeoutError(venue, operation, timeout) from exc
