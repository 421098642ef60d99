"""Queue worker -- bounded-concurrency asyncio job runner.

Claims jobs from a JobQueue and runs each in its own task, with at most
``concurrency`` in flight and at most ``limiter_max`` starts per rolling
window. A handler that returns completes the job; one that raises hands
the error to the queue's retry policy.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from order_router.config import QueueConfig
from order_router.queue.errors import JobNotActiveError, UnrecoverableJobError
from order_router.queue.job_queue import FAILED, Job, JobQueue
from order_router.queue.rate_limiter import RateLimiter
from order_router.utils.logging import job_context

log = structlog.get_logger()

JobHandler = Callable[[Job], Awaitable[Any]]
StalledHandler = Callable[[Job, str], Awaitable[Any]]


class Worker:
    """Runs ``handler`` for every job delivered by ``queue``."""

    def __init__(
        self,
        queue: JobQueue,
        handler: JobHandler,
        *,
        concurrency: int = 10,
        limiter: RateLimiter | None = None,
        poll_interval: float = 0.2,
        lock_renew_interval: float | None = None,
        on_stalled: StalledHandler | None = None,
    ) -> None:
        self._queue = queue
        self._handler = handler
        self._on_stalled = on_stalled
        self._concurrency = concurrency
        self._slots = asyncio.Semaphore(concurrency)
        self._limiter = limiter
        self._poll_interval = poll_interval
        self._lock_renew_interval = (
            lock_renew_interval
            if lock_renew_interval is not None
            else queue.config.lock_duration_ms / 2000
        )
        self._tasks: set[asyncio.Task[None]] = set()
        self._closing = asyncio.Event()

    @classmethod
    def from_config(
        cls,
        queue: JobQueue,
        handler: JobHandler,
        config: QueueConfig,
        *,
        on_stalled: StalledHandler | None = None,
    ) -> Worker:
        return cls(
            queue,
            handler,
            concurrency=config.concurrency,
            limiter=RateLimiter(
                config.limiter_max,
                config.limiter_duration_ms / 1000,
            ),
            poll_interval=config.poll_interval_ms / 1000,
            on_stalled=on_stalled,
        )

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def run(self, *, until_idle: bool = False) -> None:
        """Claim and dispatch jobs until ``close()``.

        With ``until_idle``, return once no job is waiting, delayed or
        in flight.
        """
        log.info("worker_started", queue=self._queue.name, concurrency=self._concurrency)
        try:
            while not self._closing.is_set():
                await self._slots.acquire()
                if self._limiter is not None:
                    await self._limiter.wait_for_capacity()

                try:
                    job = await self._queue.claim()
                    await self._dispatch_stalled()
                    idle = (
                        job is None
                        and until_idle
                        and not self._tasks
                        and await self._queue.pending_count() == 0
                    )
                except Exception:
                    # Transient store errors must not stop the worker
                    self._slots.release()
                    log.exception("job_claim_failed", queue=self._queue.name)
                    await self._sleep(self._poll_interval)
                    continue

                if job is None:
                    self._slots.release()
                    if idle:
                        break
                    await self._sleep(self._poll_interval)
                    continue

                if self._limiter is not None:
                    self._limiter.record_start()
                task = asyncio.create_task(self._process(job))
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)
        finally:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            log.info("worker_stopped", queue=self._queue.name)

    async def run_until_idle(self) -> None:
        await self.run(until_idle=True)

    async def close(self) -> None:
        """Stop claiming; in-flight jobs finish before ``run`` returns."""
        self._closing.set()

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        self._slots.release()

    async def _sleep(self, seconds: float) -> None:
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._closing.wait(), timeout=seconds)

    async def _renew_lock(self, job: Job) -> None:
        while True:
            await asyncio.sleep(self._lock_renew_interval)
            try:
                await self._queue.extend_lock(job)
            except JobNotActiveError:
                log.warning("job_lock_lost", job_id=job.job_id)
                return
            except Exception:
                # Keep renewing; the next attempt may still beat the lock expiry
                log.warning("job_lock_renew_failed", job_id=job.job_id, exc_info=True)

    async def _process(self, job: Job) -> None:
        order_id = str(job.payload.get("order_id", job.job_id))
        with job_context(order_id=order_id, job_id=job.job_id):
            log.info(
                "job_started",
                name=job.name,
                attempt=job.attempts_made,
                max_attempts=job.max_attempts,
            )
            renewer = asyncio.create_task(self._renew_lock(job))
            try:
                await self._handler(job)
            except UnrecoverableJobError as exc:
                await self._settle_failure(job, exc, unrecoverable=True)
            except Exception as exc:
                await self._settle_failure(job, exc, unrecoverable=False)
            else:
                try:
                    await self._queue.complete(job)
                except JobNotActiveError:
                    log.warning("job_lock_lost", job_id=job.job_id)
                except Exception:
                    log.exception("job_complete_failed", job_id=job.job_id)
                else:
                    log.info("job_completed", attempt=job.attempts_made)
            finally:
                renewer.cancel()
                await asyncio.gather(renewer, return_exceptions=True)

    async def _settle_failure(
        self,
        job: Job,
        exc: Exception,
        *,
        unrecoverable: bool,
    ) -> None:
        try:
            state = await self._queue.fail(job, str(exc), unrecoverable=unrecoverable)
        except JobNotActiveError:
            log.warning("job_lock_lost", job_id=job.job_id)
            return
        except Exception:
            log.exception("job_fail_record_failed", job_id=job.job_id, error=str(exc))
            return

        if state == FAILED:
            log.error(
                "job_failed",
                attempt=job.attempts_made,
                unrecoverable=unrecoverable,
                error=str(exc),
            )
        else:
            log.warning(
                "job_retry_scheduled",
                attempt=job.attempts_made,
                max_attempts=job.max_attempts,
                error=str(exc),
            )

    async def _dispatch_stalled(self) -> None:
        """Report jobs the queue failed for stalling past their attempts."""
        for job in self._queue.take_stalled_out():
            if self._on_stalled is None:
                continue
            order_id = str(job.payload.get("order_id", job.job_id))
            with job_context(order_id=order_id, job_id=job.job_id):
                try:
                    await self._on_stalled(job, job.last_error or "job stalled")
                except Exception:
                    log.exception("stalled_hook_failed")
