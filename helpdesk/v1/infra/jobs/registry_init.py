"""
Job registry initialization.

Registers a handler for every job type the application can enqueue.
"""

import logging
from collections.abc import Iterable, Mapping

from helpdesk.v1.core.registries import JobHandler, JobRegistry
from helpdesk.v1.infra.jobs.handlers import CleanupOldJobsHandler, LoggingJobHandler
from helpdesk.v1.infra.jobs.queue import JobQueue

logger = logging.getLogger(__name__)


def register_job_handlers(
    registry: JobRegistry,
    queue: JobQueue,
    job_types: Iterable[str],
    overrides: Mapping[str, JobHandler] | None = None,
) -> None:
    """
    Register handlers for `job_types` plus any `overrides`.

    Overrides win over the built-in handlers. Job types without a handler of
    their own get a LoggingJobHandler.
    """
    logger.info("Registering job handlers")

    overrides = dict(overrides or {})
    builtin: dict[str, JobHandler] = {
        "cleanup_old_jobs": CleanupOldJobsHandler(queue),
    }

    for job_type in sorted(set(job_types) | set(builtin) | set(overrides)):
        if job_type in overrides:
            handler = overrides[job_type]
        elif job_type in builtin:
            handler = builtin[job_type]
        else:
            handler = LoggingJobHandler(job_type)
        registry.register(job_type, handler)

    logger.info(
        "Job handlers registered", extra={"registered_handlers": registry.list()}
    )
