"""
Store-backed job queue with a single polling loop per process.
"""

import asyncio
import time
from collections import deque
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any

from helpdesk.config.logging import get_logger
from helpdesk.config.settings import Settings
from helpdesk.infra.database import utcnow
from helpdesk.v1.infra.jobs.models import Job, JobStatus
from helpdesk.v1.infra.jobs.processor import JobProcessor
from helpdesk.v1.infra.jobs.store import JobStore

logger = get_logger(__name__)

Clock = Callable[[], datetime]


@dataclass
class QueueMetrics:
    """In-process counters; reset when the process restarts."""

    processed: int = 0
    failed: int = 0
    avg_processing_ms: float = 0.0
    last_processed_at: datetime | None = None
    _recent_ms: deque[float] = field(
        default_factory=lambda: deque(maxlen=100), repr=False
    )

    def record(self, duration_ms: float, success: bool, at: datetime) -> None:
        self._recent_ms.append(duration_ms)
        self.avg_processing_ms = sum(self._recent_ms) / len(self._recent_ms)
        self.last_processed_at = at
        if success:
            self.processed += 1
        else:
            self.failed += 1

    def snapshot(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("_recent_ms")
        return data


class JobQueue:
    """
    Durable enqueue plus a polling loop that executes ready jobs.

    The loop fetches up to `job_batch_size` ready jobs, runs them with at most
    `job_concurrency` in flight, and polls again right away. When nothing is
    ready it waits `job_poll_interval_s`; when the fetch itself fails it waits
    `job_error_backoff_s`. A failing job is marked failed and never stops the
    batch or the loop.
    """

    def __init__(
        self,
        store: JobStore,
        processor: JobProcessor,
        settings: Settings,
        clock: Clock | None = None,
        autostart: bool = True,
    ):
        self.store = store
        self.processor = processor
        self.settings = settings
        self.autostart = autostart
        self.metrics = QueueMetrics()
        self._clock = clock or utcnow
        self._running = False
        self._task: asyncio.Task | None = None
        self._wakeup = asyncio.Event()
        self._slots = asyncio.Semaphore(settings.job_concurrency)

    @property
    def is_running(self) -> bool:
        return self._running

    def now(self) -> datetime:
        return self._clock()

    async def add_job(
        self,
        job_type: str,
        payload: dict[str, Any] | None = None,
        scheduled_for: datetime | None = None,
    ) -> Job:
        """Insert a pending job; it becomes ready at `scheduled_for` (default now)."""
        job = await self.store.insert(
            job_type,
            payload,
            scheduled_for or self.now(),
            max_attempts=self.settings.job_max_attempts,
        )

        logger.info(
            "Job enqueued",
            job_id=job.id,
            job_type=job_type,
            scheduled_for=job.scheduled_for.isoformat(),
        )

        if self.autostart:
            self.start()

        return job

    async def get_pending_jobs(self, limit: int = 10) -> list[Job]:
        """Ready jobs, oldest scheduled_for first."""
        return await self.store.select_ready(self.now(), limit)

    async def mark_processing(self, job_id: int) -> bool:
        """Claim a pending job. Returns False if it was no longer pending."""
        return await self.store.update_status(
            job_id,
            JobStatus.PROCESSING,
            expected_status=JobStatus.PENDING,
            attempts=Job.attempts + 1,
        )

    async def mark_completed(self, job_id: int) -> None:
        await self.store.update_status(job_id, JobStatus.COMPLETED)

    async def mark_failed(self, job_id: int, error: str) -> None:
        await self.store.update_status(job_id, JobStatus.FAILED, last_error=error)

    def start(self) -> None:
        """Start the polling loop. No-op while it is already running."""
        self._running = True
        self._wakeup.clear()
        # A loop still draining after a timed-out stop() is resumed, not doubled
        if self._task is not None and not self._task.done():
            return

        self._task = asyncio.create_task(self._poll_loop(), name="job-queue-poll")
        logger.info(
            "Job queue started",
            batch_size=self.settings.job_batch_size,
            concurrency=self.settings.job_concurrency,
            poll_interval_s=self.settings.job_poll_interval_s,
        )

    async def stop(self, timeout_s: float | None = None) -> None:
        """
        Stop polling. The idle wait is interrupted; the batch in flight is
        allowed to finish for up to `timeout_s` (default `job_stop_timeout_s`).
        """
        self._running = False
        self._wakeup.set()

        task = self._task
        if task is None or task.done():
            self._task = None
            return

        timeout_s = self.settings.job_stop_timeout_s if timeout_s is None else timeout_s
        done, _ = await asyncio.wait({task}, timeout=timeout_s)
        if not done:
            logger.warning(
                "Job queue stopped with jobs still in flight", timeout_s=timeout_s
            )
            return

        if self._task is task:
            self._task = None
        logger.info("Job queue stopped")

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                jobs = await self.get_pending_jobs(self.settings.job_batch_size)
            except Exception:
                logger.exception("Error fetching job batch")
                await self._idle(self.settings.job_error_backoff_s)
                continue

            if not jobs:
                await self._idle(self.settings.job_poll_interval_s)
                continue

            await self._run_batch(jobs)

    async def _idle(self, seconds: float) -> None:
        """Sleep unless stop() is called in the meantime."""
        if not self._running:
            return
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=seconds)
        except TimeoutError:
            pass

    async def _run_batch(self, jobs: list[Job]) -> None:
        results = await asyncio.gather(
            *(self._process_with_slot(job) for job in jobs), return_exceptions=True
        )
        for job, result in zip(jobs, results):
            # Job failures are recorded in _process_job; this is store trouble
            if isinstance(result, Exception):
                logger.error(
                    "Unexpected error processing job",
                    job_id=job.id,
                    job_type=job.type,
                    error=str(result),
                )

    async def _process_with_slot(self, job: Job) -> None:
        async with self._slots:
            await self._process_job(job)

    async def _process_job(self, job: Job) -> None:
        """Claim, execute and record the outcome of a single job."""
        if not await self.mark_processing(job.id):
            logger.info("Job already claimed, skipping", job_id=job.id)
            return

        started = time.perf_counter()
        try:
            await self.processor.process_job(job)
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            self.metrics.record(duration_ms, success=False, at=self.now())
            await self.mark_failed(job.id, str(e))
            logger.error(
                "Job failed",
                job_id=job.id,
                job_type=job.type,
                duration_ms=round(duration_ms, 2),
                error=str(e),
            )
            return

        duration_ms = (time.perf_counter() - started) * 1000
        self.metrics.record(duration_ms, success=True, at=self.now())
        await self.mark_completed(job.id)
        logger.info(
            "Job completed",
            job_id=job.id,
            job_type=job.type,
            duration_ms=round(duration_ms, 2),
        )

    async def get_job_stats(self) -> dict[str, int]:
        """Job counts per status, zero-filled."""
        counts = await self.store.count_by_status()
        return {status.value: counts.get(status.value, 0) for status in JobStatus}

    async def get_job(self, job_id: int) -> Job | None:
        return await self.store.get(job_id)

    async def get_failed_jobs(self, limit: int = 50) -> list[Job]:
        return await self.store.list_by_status(JobStatus.FAILED, limit)

    async def retry_job(self, job_id: int) -> bool:
        """Put a failed job back in the queue, due immediately."""
        retried = await self.store.update_status(
            job_id,
            JobStatus.PENDING,
            expected_status=JobStatus.FAILED,
            scheduled_for=self.now(),
            attempts=0,
            last_error=None,
        )
        if retried:
            logger.info("Job retried", job_id=job_id)
            if self.autostart:
                self.start()
        return retried

    async def cleanup_old_jobs(self, older_than_hours: int | None = None) -> int:
        """
        Delete completed jobs older than the cutoff, and failed jobs older than
        four times the cutoff (kept longer for debugging).
        """
        hours = older_than_hours or self.settings.job_cleanup_after_hours
        now = self.now()
        completed = await self.store.delete_updated_before(
            [JobStatus.COMPLETED], now - timedelta(hours=hours)
        )
        failed = await self.store.delete_updated_before(
            [JobStatus.FAILED], now - timedelta(hours=hours * 4)
        )

        if completed or failed:
            logger.info(
                "Cleaned up old jobs",
                completed_deleted=completed,
                failed_deleted=failed,
                older_than_hours=hours,
            )
        return completed + failed
