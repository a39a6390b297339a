"""
Job system wiring: builds the store, registry, processor, queue, scheduler
and event trigger, registers the recurring catalog, and runs the standalone
worker.
"""

import asyncio
import signal
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from helpdesk.config.logging import get_logger, setup_logging
from helpdesk.config.settings import Settings
from helpdesk.infra.database import Database
from helpdesk.v1.core.registries import JobHandler, JobRegistry
from helpdesk.v1.infra.jobs.events import EVENTS, EventDefinition, event_job_types
from helpdesk.v1.infra.jobs.processor import JobProcessor
from helpdesk.v1.infra.jobs.queue import JobQueue
from helpdesk.v1.infra.jobs.registry_init import register_job_handlers
from helpdesk.v1.infra.jobs.scheduler import (
    Cadence,
    Daily,
    Hourly,
    RecurringScheduler,
    Weekly,
)
from helpdesk.v1.infra.jobs.store import JobStore
from helpdesk.v1.infra.jobs.trigger import EventTrigger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RecurringJob:
    schedule_id: str
    job_type: str
    cadence: Cadence
    payload: dict[str, Any] = field(default_factory=dict)


SUNDAY, MONDAY, FRIDAY, SATURDAY = 0, 1, 5, 6

RECURRING_JOBS: list[RecurringJob] = [
    # System maintenance
    RecurringJob(
        "process-email-queue-hourly",
        "process_email_queue",
        Hourly(),
        {"batch_size": 100, "max_age_minutes": 30},
    ),
    RecurringJob(
        "send-notifications-hourly",
        "send_pending_notifications",
        Hourly(),
        {"batch_size": 50, "max_age_minutes": 5},
    ),
    RecurringJob(
        "cleanup-files-hourly",
        "cleanup_dangling_files",
        Hourly(),
        {"dry_run": False, "older_than_days": 1},
    ),
    RecurringJob("close-inactive-hourly", "close_inactive_conversations", Hourly()),
    RecurringJob(
        "cleanup-failed-emails-hourly",
        "cleanup_failed_emails",
        Hourly(),
        {"older_than_days": 3},
    ),
    RecurringJob(
        "cleanup-notifications-hourly",
        "cleanup_old_notifications",
        Hourly(),
        {"older_than_days": 30, "keep_failed_days": 7},
    ),
    RecurringJob(
        "cleanup-old-jobs-daily",
        "cleanup_old_jobs",
        Daily(3),
        {"older_than_hours": 24 * 7},
    ),
    # Business
    RecurringJob(
        "bulk-embedding-daily", "bulk_embedding_closed_conversations", Daily(19)
    ),
    *(
        RecurringJob(
            f"ticket-response-check-{day}",
            "check_assigned_ticket_response_times",
            Weekly(day, 14),
        )
        for day in range(MONDAY, FRIDAY + 1)
    ),
    *(
        RecurringJob(
            f"vip-response-check-{day}", "check_vip_response_times", Weekly(day, 14)
        )
        for day in range(MONDAY, FRIDAY + 1)
    ),
    RecurringJob("renew-watches-daily", "renew_mailbox_watches", Daily(0)),
    RecurringJob(
        "db-maintenance-daily",
        "perform_database_maintenance",
        Daily(0),
        {"analyze": True, "vacuum": False},
    ),
    RecurringJob(
        "website-crawl-weekly", "scheduled_website_crawl", Weekly(SUNDAY, 0)
    ),
    RecurringJob(
        "db-maintenance-weekly",
        "perform_database_maintenance",
        Weekly(SUNDAY, 2),
        {"analyze": True, "vacuum": True},
    ),
    # Reporting: the Monday slot belongs to the weekly report
    *(
        RecurringJob(f"daily-reports-{day}", "generate_daily_reports", Weekly(day, 16))
        for day in range(SUNDAY, SATURDAY + 1)
        if day != MONDAY
    ),
    RecurringJob(
        "weekly-reports-monday", "generate_weekly_reports", Weekly(MONDAY, 16)
    ),
]


def register_recurring_jobs(
    scheduler: RecurringScheduler, jobs: list[RecurringJob] = RECURRING_JOBS
) -> int:
    """Register the recurring catalog. Safe to call more than once."""
    for job in jobs:
        scheduler.schedule_recurring(
            job.job_type, job.payload, job.cadence, job.schedule_id
        )
    logger.info("Recurring jobs scheduled", count=len(jobs))
    return len(jobs)


def required_job_types(
    events: Mapping[str, EventDefinition] = EVENTS,
    recurring: list[RecurringJob] = RECURRING_JOBS,
) -> set[str]:
    """Every job type the application itself can enqueue."""
    return event_job_types(dict(events)) | {job.job_type for job in recurring}


@dataclass
class JobSystem:
    """The job components of one process, built from settings."""

    settings: Settings
    registry: JobRegistry
    store: JobStore
    processor: JobProcessor
    queue: JobQueue
    scheduler: RecurringScheduler
    trigger: EventTrigger
    initialized: bool = False

    @classmethod
    def build(
        cls,
        database: Database,
        settings: Settings,
        registry: JobRegistry | None = None,
        handlers: Mapping[str, JobHandler] | None = None,
        clock: Callable[[], datetime] | None = None,
        scheduler_clock: Callable[[], datetime] | None = None,
        scheduler_sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> "JobSystem":
        registry = registry if registry is not None else JobRegistry()
        store = JobStore(database.SessionLocal)
        processor = JobProcessor(registry, settings.job_timeout_s)
        queue = JobQueue(
            store, processor, settings, clock=clock, autostart=settings.job_autostart
        )

        register_job_handlers(registry, queue, required_job_types(), handlers)
        if settings.environment != "development":
            registry.freeze()

        scheduler = RecurringScheduler(
            queue,
            clock=scheduler_clock,
            sleep=scheduler_sleep,
            tz=settings.scheduler_tzinfo,
        )
        trigger = EventTrigger(queue)

        return cls(
            settings=settings,
            registry=registry,
            store=store,
            processor=processor,
            queue=queue,
            scheduler=scheduler,
            trigger=trigger,
        )

    def check_consistency(self) -> None:
        """Fail fast when an event or schedule names an unregistered job type."""
        missing = sorted(
            job_type
            for job_type in required_job_types()
            if not self.processor.is_job_type_available(job_type)
        )
        if missing:
            raise RuntimeError(
                f"Job types referenced but not registered: {', '.join(missing)}"
            )

    async def initialize(self, start_queue: bool | None = None) -> None:
        """Check handlers, register recurring jobs and start the poll loop."""
        logger.info("Initializing job system")
        self.check_consistency()

        if self.settings.job_scheduler_enabled:
            register_recurring_jobs(self.scheduler)

        if self.settings.job_autostart if start_queue is None else start_queue:
            self.queue.start()

        self.initialized = True
        logger.info(
            "Job system initialized",
            job_types=len(self.registry.list()),
            scheduled_jobs=self.scheduler.get_scheduled_job_count(),
            queue_running=self.queue.is_running,
        )

    async def shutdown(self) -> None:
        logger.info("Shutting down job system")
        self.scheduler.cancel_all_jobs()
        await self.queue.stop()
        self.initialized = False
        logger.info("Job system shutdown complete")

    async def stats(self) -> dict[str, Any]:
        return {
            "queue": await self.queue.get_job_stats(),
            "metrics": self.queue.metrics.snapshot(),
            "scheduled_jobs": self.scheduler.get_scheduled_job_count(),
            "queue_running": self.queue.is_running,
            "available_job_types": self.processor.list_available_job_types(),
        }


async def run_worker(settings: Settings) -> None:
    """Run the job system in this process until SIGINT or SIGTERM."""
    setup_logging(settings)

    database = Database(settings)
    if settings.db_create_all:
        await database.create_all()
    system = JobSystem.build(database, settings)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await system.initialize(start_queue=True)
        logger.info("Job worker running")
        await stop.wait()
    finally:
        await system.shutdown()
        await database.close()
