"""Durable job queue and worker pool."""

from order_router.queue.errors import (
    JobNotActiveError,
    QueueError,
    UnrecoverableJobError,
)
from order_router.queue.job_queue import Job, JobQueue, compute_backoff_ms
from order_router.queue.rate_limiter import RateLimiter
from order_router.queue.worker import Worker

__all__ = [
    "Job",
    "JobNotActiveError",
    "JobQueue",
    "QueueError",
    "RateLimiter",
    "UnrecoverableJobError",
    "Worker",
    "compute_backoff_ms",
]
