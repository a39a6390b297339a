"""
Job system models.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.infra.database import Base, UTCDateTime, utcnow


class JobStatus(str, Enum):
    """Job status enumeration."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Job(Base):
    """
    One unit of deferred work.

    A job is ready for dequeue while it is pending and its scheduled_for time
    has passed. Status only moves pending -> processing -> completed|failed.
    """

    __tablename__ = "jobs"

    # Core fields
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="Job type identifier"
    )
    payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
        comment="Handler parameters",
    )

    # Job state
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=JobStatus.PENDING.value,
        comment="Job status: pending|processing|completed|failed",
    )
    scheduled_for: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        comment="Earliest time the job may be dequeued",
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Number of claims"
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=3, comment="Recorded attempt budget"
    )
    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Last error message"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="jobs_status_check",
        ),
        Index("jobs_status_scheduled_idx", "status", "scheduled_for"),
        Index("jobs_type_idx", "type"),
        Index("jobs_created_at_idx", "created_at"),
    )

    def is_ready(self, now: datetime) -> bool:
        """Check if the job would be picked up by a poll at `now`."""
        return self.status == JobStatus.PENDING.value and self.scheduled_for <= now

    def __repr__(self) -> str:
        return f"<Job id={self.id} type={self.type!r} status={self.status}>"
