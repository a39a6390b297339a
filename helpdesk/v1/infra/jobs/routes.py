"""
Job management API endpoints.

Provides admin endpoints for enqueueing, event triggering and monitoring.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from helpdesk.v1.core.exceptions import (
    NotFoundError,
    ValidationError,
    create_success_response,
)
from helpdesk.v1.infra.jobs.schemas import (
    EventTriggerRequest,
    EventTriggerResponse,
    JobCleanupRequest,
    JobEnqueueRequest,
    JobResponse,
    JobStatsResponse,
)
from helpdesk.v1.infra.jobs.startup import JobSystem

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_job_system(request: Request) -> JobSystem:
    """Return the job system owned by the running application."""
    return request.app.state.job_system


JobSystemDep = Depends(get_job_system)


@router.get("/stats", response_model=dict)
async def get_job_stats(system: JobSystem = JobSystemDep) -> dict[str, Any]:
    """Get job counts per status, queue metrics and scheduler state."""
    stats = JobStatsResponse(**await system.stats())
    return create_success_response(data=stats.model_dump(mode="json"))


@router.get("/types", response_model=dict)
async def list_job_types(system: JobSystem = JobSystemDep) -> dict[str, Any]:
    """List registered job types and the event catalog."""
    return create_success_response(
        data={
            "job_types": system.processor.list_available_job_types(),
            "events": system.trigger.list_events(),
        }
    )


@router.get("/schedules", response_model=dict)
async def list_schedules(system: JobSystem = JobSystemDep) -> dict[str, Any]:
    return create_success_response(data=system.scheduler.list_schedules())


@router.get("/failed", response_model=dict)
async def list_failed_jobs(
    limit: int = Query(default=50, ge=1, le=500, description="Maximum results"),
    system: JobSystem = JobSystemDep,
) -> dict[str, Any]:
    """List failed jobs, most recent first."""
    jobs = await system.queue.get_failed_jobs(limit)
    return create_success_response(
        data=[JobResponse.model_validate(job).model_dump(mode="json") for job in jobs]
    )


@router.get("/{job_id}", response_model=dict)
async def get_job(job_id: int, system: JobSystem = JobSystemDep) -> dict[str, Any]:
    job = await system.queue.get_job(job_id)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found", details={"job_id": job_id})
    return create_success_response(
        data=JobResponse.model_validate(job).model_dump(mode="json")
    )


@router.post("", response_model=dict)
async def enqueue_job(
    job_request: JobEnqueueRequest, system: JobSystem = JobSystemDep
) -> dict[str, Any]:
    """Enqueue a single background job."""
    if not system.processor.is_job_type_available(job_request.type):
        raise ValidationError(
            f"Invalid job type: {job_request.type}",
            details={"available": system.processor.list_available_job_types()},
        )

    job = await system.queue.add_job(
        job_request.type, job_request.payload, job_request.scheduled_for
    )
    logger.info(
        "Job enqueued via API", extra={"job_id": job.id, "job_type": job.type}
    )
    return create_success_response(
        data=JobResponse.model_validate(job).model_dump(mode="json")
    )


@router.post("/trigger", response_model=dict)
async def trigger_event(
    trigger_request: EventTriggerRequest, system: JobSystem = JobSystemDep
) -> dict[str, Any]:
    """Trigger an application event, enqueueing all of its jobs."""
    jobs = await system.trigger.trigger_event(
        trigger_request.event,
        trigger_request.data,
        sleep_seconds=trigger_request.sleep_seconds,
    )
    response = EventTriggerResponse(
        event=trigger_request.event,
        jobs=[JobResponse.model_validate(job) for job in jobs],
    )
    return create_success_response(data=response.model_dump(mode="json"))


@router.post("/{job_id}/retry", response_model=dict)
async def retry_job(job_id: int, system: JobSystem = JobSystemDep) -> dict[str, Any]:
    """Put a failed job back in the queue."""
    if not await system.queue.retry_job(job_id):
        raise NotFoundError(
            f"No failed job with id {job_id}", details={"job_id": job_id}
        )
    return create_success_response(
        data={"job_id": job_id}, message="Job queued for retry"
    )


@router.post("/cleanup", response_model=dict)
async def cleanup_jobs(
    cleanup_request: JobCleanupRequest | None = None,
    system: JobSystem = JobSystemDep,
) -> dict[str, Any]:
    """Delete old completed and failed jobs."""
    older_than_hours = cleanup_request.older_than_hours if cleanup_request else None
    deleted = await system.queue.cleanup_old_jobs(older_than_hours)
    return create_success_response(data={"deleted_count": deleted})
