"""
Job handlers.

Each handler implements the JobHandler protocol and is registered in the job
registry under its job type. Handlers for the helpdesk's business jobs live
with the features that own them and are passed in as overrides; until one is
supplied, the job type is served by a logging placeholder so events and
schedules that reference it still complete.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from helpdesk.v1.infra.jobs.queue import JobQueue

logger = logging.getLogger(__name__)


class CleanupOldJobsHandler:
    """
    Deletes finished jobs from the jobs table.

    Payload expected:
    {
        "older_than_hours": 168  # optional, defaults to JOB_CLEANUP_AFTER_HOURS
    }
    """

    def __init__(self, queue: JobQueue):
        self.queue = queue

    async def handle(self, payload: dict[str, Any] | None) -> None:
        older_than_hours = (payload or {}).get("older_than_hours")
        if older_than_hours is not None and (
            not isinstance(older_than_hours, int) or older_than_hours <= 0
        ):
            raise ValueError(
                f"older_than_hours must be a positive integer, got: {older_than_hours!r}"
            )

        deleted = await self.queue.cleanup_old_jobs(older_than_hours)

        logger.info(
            "Old jobs cleanup completed",
            extra={"deleted_count": deleted, "older_than_hours": older_than_hours},
        )


class LoggingJobHandler:
    """Placeholder for a job type whose feature handler is not installed."""

    def __init__(self, job_type: str):
        self.job_type = job_type

    async def handle(self, payload: dict[str, Any] | None) -> None:
        logger.info(
            "No handler installed for job type, job acknowledged",
            extra={"job_type": self.job_type, "payload_keys": sorted(payload or {})},
        )


class CallableHandler:
    """Adapts a plain `async def fn(payload)` into a job handler."""

    def __init__(self, fn: Callable[[dict[str, Any] | None], Awaitable[Any]]):
        self.fn = fn

    async def handle(self, payload: dict[str, Any] | None) -> None:
        await self.fn(payload)

    def __repr__(self) -> str:
        return f"CallableHandler({getattr(self.fn, '__name__', self.fn)!r})"
