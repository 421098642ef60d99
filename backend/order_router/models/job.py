"""Durable job queue table."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from order_router.models.base import Base


class JobModel(Base):
    """One queued unit of work.

    ``run_at`` gates delayed (backoff) jobs; ``locked_until`` is the
    visibility timeout of an active job. An active job whose lock has
    expired is eligible for redelivery.
    """

    __tablename__ = "job"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    queue: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(
        String,
        CheckConstraint(
            "state IN ('waiting', 'delayed', 'active', 'completed', 'failed')",
            name="ck_job_state",
        ),
        nullable=False,
        server_default="waiting",
    )
    attempts_made: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default="0"
    )
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    backoff_type: Mapped[str] = mapped_column(String, nullable=False)
    backoff_delay_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    run_at: Mapped[str] = mapped_column(String, nullable=False)
    locked_until: Mapped[str | None] = mapped_column(String, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    finished_at: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (Index("ix_job_queue_state_run_at", "queue", "state", "run_at"),)
