"""Job queue error types."""

from __future__ import annotations


class QueueError(Exception):
    """Base exception for job queue errors."""


class UnrecoverableJobError(Exception):
    """Mixin marker: a job raising this is failed without further attempts."""


class JobNotActiveError(QueueError):
    """Completion or failure reported for a job this worker no longer owns."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job {job_id} is not active")
