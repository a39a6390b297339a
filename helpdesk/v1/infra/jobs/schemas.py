"""
Job system Pydantic schemas.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class JobResponse(BaseModel):
    """Schema for job API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    payload: dict[str, Any] | None
    status: str
    scheduled_for: datetime
    attempts: int
    max_attempts: int
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime


class JobEnqueueRequest(BaseModel):
    """Schema for enqueueing a single job."""

    type: str = Field(..., min_length=1, description="Job type identifier")
    payload: dict[str, Any] | None = Field(default=None, description="Job parameters")
    scheduled_for: datetime | None = Field(
        default=None, description="Earliest time to run the job, now if omitted"
    )


class EventTriggerRequest(BaseModel):
    """Schema for triggering an application event."""

    event: str = Field(..., description="Event name, e.g. conversations/message.created")
    data: dict[str, Any] = Field(default_factory=dict, description="Event data")
    sleep_seconds: float = Field(
        default=0, ge=0, description="Delay before the event's jobs become ready"
    )


class EventTriggerResponse(BaseModel):
    event: str
    jobs: list[JobResponse]


class JobCleanupRequest(BaseModel):
    older_than_hours: int | None = Field(
        default=None, ge=1, description="Defaults to JOB_CLEANUP_AFTER_HOURS"
    )


class JobStatsResponse(BaseModel):
    """Schema for job system statistics."""

    queue: dict[str, int]
    metrics: dict[str, Any]
    scheduled_jobs: int
    queue_running: bool
    available_job_types: list[str]
