"""
Job processor: resolves a job's type to its handler and runs it.
"""

import asyncio
from typing import Any

from helpdesk.config.logging import get_logger
from helpdesk.v1.core.registries import JobRegistry
from helpdesk.v1.infra.jobs.models import Job

logger = get_logger(__name__)


class JobError(Exception):
    """Base class for job processing failures."""


class HandlerNotFoundError(JobError):
    """The job type has no registered handler (usually a build mismatch)."""

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(f"Invalid job type: {job_type}")


class JobTimeoutError(JobError):
    """The handler did not finish within the processor timeout."""

    def __init__(self, job_type: str, timeout_s: float):
        self.job_type = job_type
        self.timeout_s = timeout_s
        super().__init__(
            f"Job {job_type} timed out after {round(timeout_s * 1000)}ms"
        )


class JobExecutionError(JobError):
    """A handler raised or timed out; the message carries the job type."""

    def __init__(self, job_type: str, cause: BaseException):
        self.job_type = job_type
        self.cause = cause
        super().__init__(f"Job {job_type} failed: {cause}")


def sanitize_payload(payload: dict[str, Any] | None) -> dict[str, Any] | None:
    """Drop top-level keys starting with "_", which belong to the queue."""
    if payload is None:
        return None
    return {key: value for key, value in payload.items() if not key.startswith("_")}


class JobProcessor:
    """Dispatches jobs to handlers from a job registry."""

    def __init__(self, registry: JobRegistry, timeout_s: float):
        self.registry = registry
        self.timeout_s = timeout_s

    async def process_job(self, job: Job) -> None:
        """
        Run the handler registered for `job.type`.

        Raises:
            HandlerNotFoundError: no handler for the job type
            JobExecutionError: the handler raised or exceeded the timeout
        """
        if not self.is_job_type_available(job.type):
            raise HandlerNotFoundError(job.type)

        handler = self.registry.get(job.type)
        payload = sanitize_payload(job.payload)

        deadline = asyncio.timeout(self.timeout_s)
        try:
            async with deadline:
                await handler.handle(payload)
        except TimeoutError as e:
            # A TimeoutError raised by the handler itself is a plain failure
            if deadline.expired():
                timeout_error = JobTimeoutError(job.type, self.timeout_s)
                logger.warning(
                    "Job handler timed out",
                    job_id=job.id,
                    job_type=job.type,
                    timeout_s=self.timeout_s,
                )
                raise JobExecutionError(job.type, timeout_error) from timeout_error
            raise JobExecutionError(job.type, e) from e
        except Exception as e:
            raise JobExecutionError(job.type, e) from e

    def is_job_type_available(self, job_type: str) -> bool:
        return self.registry.contains(job_type)

    def list_available_job_types(self) -> list[str]:
        return sorted(self.registry.list())
