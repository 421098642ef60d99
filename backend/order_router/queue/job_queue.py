"""Durable job queue backed by the ``job`` table.

At-least-once delivery: a claimed job holds a lock (visibility timeout)
that the worker keeps extending while the handler runs. If the lock
expires, the job becomes claimable again and may run concurrently with
the stalled attempt. Completed jobs are never redelivered.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_router.config import QueueConfig
from order_router.models.job import JobModel
from order_router.orders.types import OrderJob
from order_router.queue.errors import JobNotActiveError
from order_router.utils.time import format_timestamp, utc_now

log = structlog.get_logger()

PROCESS_ORDER_JOB = "process-order"

WAITING = "waiting"
DELAYED = "delayed"
ACTIVE = "active"
COMPLETED = "completed"
FAILED = "failed"

PENDING_STATES = (WAITING, DELAYED, ACTIVE)

# Claims lost to a concurrent claimer before giving up for this poll
_CLAIM_RACE_RETRIES = 3


@dataclass(frozen=True)
class Job:
    """A delivered job. ``attempts_made`` includes the current attempt."""

    job_id: str
    name: str
    payload: dict[str, Any]
    attempts_made: int
    max_attempts: int
    state: str
    last_error: str | None = None


def compute_backoff_ms(backoff_type: str, delay_ms: int, attempts_made: int) -> int:
    """Delay before the next attempt after ``attempts_made`` failures.

    exponential: delay * 2^(attempts_made - 1); fixed: delay.
    """
    if backoff_type == "fixed":
        return delay_ms
    return int(delay_ms * 2 ** max(attempts_made - 1, 0))


def _to_job(model: JobModel) -> Job:
    return Job(
        job_id=model.job_id,
        name=model.name,
        payload=json.loads(model.payload),
        attempts_made=model.attempts_made,
        max_attempts=model.max_attempts,
        state=model.state,
        last_error=model.last_error,
    )


class JobQueue:
    """Named queue with retry/backoff policy from QueueConfig."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: QueueConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._config = config or QueueConfig()
        self._clock = clock
        self._stalled_out: list[Job] = []

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> QueueConfig:
        return self._config

    async def add(
        self,
        name: str,
        payload: dict[str, Any],
        job_id: str | None = None,
    ) -> str:
        """Enqueue one job and return its id."""
        job_id = job_id or str(uuid4())
        now = format_timestamp(self._clock())
        async with self._session_factory() as session, session.begin():
            session.add(
                JobModel(
                    job_id=job_id,
                    queue=self._config.name,
                    name=name,
                    payload=json.dumps(payload),
                    state=WAITING,
                    attempts_made=0,
                    max_attempts=self._config.attempts,
                    backoff_type=self._config.backoff_type,
                    backoff_delay_ms=self._config.backoff_delay_ms,
                    run_at=now,
                    created_at=now,
                )
            )
        return job_id

    async def submit(
        self,
        order_id: str,
        token_in: str,
        token_out: str,
        amount: Decimal,
    ) -> str:
        """Enqueue exactly one process-order job for an order."""
        job = OrderJob(
            order_id=order_id,
            token_in=token_in,
            token_out=token_out,
            amount=amount,
        )
        job_id = await self.add(PROCESS_ORDER_JOB, job.to_payload())
        log.info("order_enqueued", order_id=order_id, job_id=job_id)
        return job_id

    async def claim(self) -> Job | None:
        """Move the next due job to active and return it, or None."""
        for _ in range(_CLAIM_RACE_RETRIES):
            now_dt = self._clock()
            now = format_timestamp(now_dt)
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    select(JobModel)
                    .where(
                        JobModel.queue == self._config.name,
                        or_(
                            and_(
                                JobModel.state.in_((WAITING, DELAYED)),
                                JobModel.run_at <= now,
                            ),
                            and_(
                                JobModel.state == ACTIVE,
                                JobModel.locked_until < now,
                            ),
                        ),
                    )
                    .order_by(JobModel.run_at, JobModel.id)
                    .limit(1)
                )
                candidate = result.scalar_one_or_none()
                if candidate is None:
                    return None

                stalled = candidate.state == ACTIVE
                stalled_out: Job | None = None
                job: Job | None = None
                if stalled and candidate.attempts_made >= candidate.max_attempts:
                    stalled_out = self._fail_stalled(candidate, now)
                else:
                    job = await self._activate(session, candidate, now_dt)

            if stalled_out is not None:
                self._stalled_out.append(stalled_out)
                continue
            if job is None:
                continue
            if stalled:
                log.warning(
                    "job_redelivered",
                    job_id=job.job_id,
                    attempt=job.attempts_made,
                )
            return job
        return None

    def take_stalled_out(self) -> list[Job]:
        """Jobs failed by claim() for stalling past their attempt budget.

        Each job is returned once; the list is cleared.
        """
        stalled, self._stalled_out = self._stalled_out, []
        return stalled

    async def _activate(
        self,
        session: AsyncSession,
        candidate: JobModel,
        now_dt: datetime,
    ) -> Job | None:
        """Conditionally move ``candidate`` to active; None if a racer won."""
        locked_until = format_timestamp(
            now_dt + timedelta(milliseconds=self._config.lock_duration_ms)
        )
        claimed = await session.execute(
            update(JobModel)
            .where(
                JobModel.id == candidate.id,
                JobModel.state == candidate.state,
                JobModel.attempts_made == candidate.attempts_made,
            )
            .values(
                state=ACTIVE,
                attempts_made=candidate.attempts_made + 1,
                locked_until=locked_until,
            )
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            return None
        return Job(
            job_id=candidate.job_id,
            name=candidate.name,
            payload=json.loads(candidate.payload),
            attempts_made=candidate.attempts_made + 1,
            max_attempts=candidate.max_attempts,
            state=ACTIVE,
            last_error=candidate.last_error,
        )

    async def extend_lock(self, job: Job) -> None:
        """Push the job's visibility timeout forward.

        Raises:
            JobNotActiveError: If another attempt has taken over the job.
        """
        locked_until = format_timestamp(
            self._clock() + timedelta(milliseconds=self._config.lock_duration_ms)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                self._owned(job)
                .values(locked_until=locked_until)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise JobNotActiveError(job.job_id)

    async def complete(self, job: Job) -> None:
        """Finish a job. Removed or marked completed; never redelivered.

        Raises:
            JobNotActiveError: If another attempt has taken over the job.
        """
        now = format_timestamp(self._clock())
        async with self._session_factory() as session, session.begin():
            if self._config.remove_on_complete:
                stmt: Any = delete(JobModel).where(*self._owned_clauses(job))
            else:
                stmt = (
                    self._owned(job)
                    .values(state=COMPLETED, locked_until=None, finished_at=now)
                    .execution_options(synchronize_session=False)
                )
            result = await session.execute(stmt)
            if result.rowcount != 1:
                raise JobNotActiveError(job.job_id)

    async def fail(
        self,
        job: Job,
        error: str,
        *,
        unrecoverable: bool = False,
    ) -> str:
        """Record a failed attempt; schedule a retry or fail the job.

        Returns the job's new state (``delayed`` or ``failed``).

        Raises:
            JobNotActiveError: If another attempt has taken over the job.
        """
        now_dt = self._clock()
        now = format_timestamp(now_dt)
        retry = not unrecoverable and job.attempts_made < job.max_attempts
        async with self._session_factory() as session, session.begin():
            if retry:
                delay_ms = compute_backoff_ms(
                    self._config.backoff_type,
                    self._config.backoff_delay_ms,
                    job.attempts_made,
                )
                values: dict[str, Any] = {
                    "state": DELAYED,
                    "run_at": format_timestamp(
                        now_dt + timedelta(milliseconds=delay_ms)
                    ),
                    "locked_until": None,
                    "last_error": error,
                }
            else:
                values = {
                    "state": FAILED,
                    "locked_until": None,
                    "last_error": error,
                    "finished_at": now,
                }
            result = await session.execute(
                self._owned(job)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise JobNotActiveError(job.job_id)
        return DELAYED if retry else FAILED

    async def get_job(self, job_id: str) -> Job | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(JobModel).where(JobModel.job_id == job_id)
            )
            model = result.scalar_one_or_none()
            return _to_job(model) if model is not None else None

    async def counts(self) -> dict[str, int]:
        """Number of jobs per state in this queue."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(JobModel.state, func.count())
                .where(JobModel.queue == self._config.name)
                .group_by(JobModel.state)
            )
            return {state: count for state, count in result.all()}

    async def pending_count(self) -> int:
        """Jobs that are waiting, delayed or in flight."""
        counts = await self.counts()
        return sum(counts.get(state, 0) for state in PENDING_STATES)

    def _owned_clauses(self, job: Job) -> tuple[Any, ...]:
        return (
            JobModel.job_id == job.job_id,
            JobModel.state == ACTIVE,
            JobModel.attempts_made == job.attempts_made,
        )

    def _owned(self, job: Job) -> Any:
        return update(JobModel).where(*self._owned_clauses(job))

    def _fail_stalled(self, candidate: JobModel, now: str) -> Job:
        candidate.state = FAILED
        candidate.locked_until = None
        candidate.last_error = "job stalled more than allowable limit"
        candidate.finished_at = now
        log.error(
            "job_stalled_out",
            job_id=candidate.job_id,
            attempts=candidate.attempts_made,
        )
        return _to_job(candidate)
