"""
Recurring job scheduler.

Each schedule is one asyncio task that sleeps until its next fire time,
enqueues a job and re-arms itself. Nothing is persisted: the owning process
registers every schedule again at startup, and registration is idempotent by
schedule id.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Any, Protocol

from helpdesk.config.logging import get_logger
from helpdesk.v1.infra.jobs.models import Job

logger = get_logger(__name__)


@dataclass(frozen=True)
class Hourly:
    minute: int = 0

    def __post_init__(self):
        if not 0 <= self.minute <= 59:
            raise ValueError(f"minute must be between 0 and 59, got: {self.minute}")


@dataclass(frozen=True)
class Daily:
    hour: int

    def __post_init__(self):
        if not 0 <= self.hour <= 23:
            raise ValueError(f"hour must be between 0 and 23, got: {self.hour}")


@dataclass(frozen=True)
class Weekly:
    day_of_week: int  # 0 = Sunday .. 6 = Saturday
    hour: int

    def __post_init__(self):
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(
                f"day_of_week must be between 0 (Sunday) and 6 (Saturday), "
                f"got: {self.day_of_week}"
            )
        if not 0 <= self.hour <= 23:
            raise ValueError(f"hour must be between 0 and 23, got: {self.hour}")


Cadence = Hourly | Daily | Weekly


def next_fire_time(cadence: Cadence, now: datetime) -> datetime:
    """First instant matching `cadence` strictly after `now`, in now's timezone."""
    if isinstance(cadence, Hourly):
        candidate = now.replace(minute=cadence.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(hours=1)
        return candidate

    if isinstance(cadence, Daily):
        candidate = now.replace(hour=cadence.hour, minute=0, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    if isinstance(cadence, Weekly):
        today = now.isoweekday() % 7  # Sunday -> 0
        days_ahead = (cadence.day_of_week - today) % 7
        candidate = now.replace(
            hour=cadence.hour, minute=0, second=0, microsecond=0
        ) + timedelta(days=days_ahead)
        if candidate <= now:
            candidate += timedelta(days=7)
        return candidate

    raise TypeError(f"Unsupported cadence: {cadence!r}")


def seconds_until(target: datetime, now: datetime) -> float:
    # Compare in UTC so DST shifts between now and target are accounted for
    return max(0.0, (target.astimezone(UTC) - now.astimezone(UTC)).total_seconds())


class Enqueuer(Protocol):
    def now(self) -> datetime: ...

    async def add_job(
        self,
        job_type: str,
        payload: dict[str, Any] | None = None,
        scheduled_for: datetime | None = None,
    ) -> Job: ...


@dataclass
class ScheduleEntry:
    schedule_id: str
    job_type: str
    payload: dict[str, Any]
    cadence: Cadence
    next_run_at: datetime | None = None
    task: asyncio.Task | None = field(default=None, repr=False, compare=False)

    def same_spec(self, other: "ScheduleEntry") -> bool:
        return (
            self.job_type == other.job_type
            and self.payload == other.payload
            and self.cadence == other.cadence
        )


class RecurringScheduler:
    """Named, self-rescheduling recurring jobs that enqueue through a job queue."""

    def __init__(
        self,
        queue: Enqueuer,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        tz: tzinfo | None = None,
    ):
        self.queue = queue
        self.tz = tz
        self._clock = clock
        self._sleep = sleep
        self._entries: dict[str, ScheduleEntry] = {}

    def now(self) -> datetime:
        if self._clock is not None:
            return self._clock()
        if self.tz is not None:
            return datetime.now(self.tz)
        return datetime.now().astimezone()

    def hourly(
        self,
        job_type: str,
        payload: dict[str, Any] | None,
        schedule_id: str,
        minute: int = 0,
    ) -> str:
        return self.schedule_recurring(job_type, payload, Hourly(minute), schedule_id)

    def daily(
        self,
        job_type: str,
        payload: dict[str, Any] | None,
        hour: int,
        schedule_id: str,
    ) -> str:
        return self.schedule_recurring(job_type, payload, Daily(hour), schedule_id)

    def weekly(
        self,
        job_type: str,
        payload: dict[str, Any] | None,
        day_of_week: int,
        hour: int,
        schedule_id: str,
    ) -> str:
        return self.schedule_recurring(
            job_type, payload, Weekly(day_of_week, hour), schedule_id
        )

    def schedule_recurring(
        self,
        job_type: str,
        payload: dict[str, Any] | None,
        cadence: Cadence,
        schedule_id: str,
    ) -> str:
        """
        Register a recurring job under `schedule_id`.

        Registering an identical entry again keeps the armed timer; a
        different entry under the same id replaces it.
        """
        entry = ScheduleEntry(
            schedule_id=schedule_id,
            job_type=job_type,
            payload=dict(payload or {}),
            cadence=cadence,
        )

        existing = self._entries.get(schedule_id)
        if existing is not None:
            if existing.same_spec(entry) and existing.task and not existing.task.done():
                return schedule_id
            logger.info("Replacing recurring job", schedule_id=schedule_id)
            self.cancel_job(schedule_id)

        entry.next_run_at = next_fire_time(cadence, self.now())
        entry.task = asyncio.create_task(
            self._run(entry), name=f"recurring-job:{schedule_id}"
        )
        self._entries[schedule_id] = entry

        logger.debug(
            "Recurring job scheduled",
            schedule_id=schedule_id,
            job_type=job_type,
            next_run_at=entry.next_run_at.isoformat(),
        )
        return schedule_id

    async def _run(self, entry: ScheduleEntry) -> None:
        while True:
            fire_at = entry.next_run_at
            await self._sleep(seconds_until(fire_at, self.now()))
            await self._fire(entry, fire_at)
            # A timer that wakes a little early must not fire the same slot twice
            entry.next_run_at = next_fire_time(entry.cadence, max(self.now(), fire_at))

    async def _fire(self, entry: ScheduleEntry, fire_at: datetime) -> None:
        try:
            await self.queue.add_job(entry.job_type, dict(entry.payload), fire_at)
        except Exception:
            # The cadence continues; only this occurrence is lost
            logger.exception(
                "Failed to enqueue recurring job",
                schedule_id=entry.schedule_id,
                job_type=entry.job_type,
            )
        else:
            logger.info(
                "Recurring job enqueued",
                schedule_id=entry.schedule_id,
                job_type=entry.job_type,
                fire_at=fire_at.isoformat(),
            )

    def cancel_job(self, schedule_id: str) -> bool:
        entry = self._entries.pop(schedule_id, None)
        if entry is None:
            return False
        if entry.task is not None:
            entry.task.cancel()
        return True

    def cancel_all_jobs(self) -> None:
        for schedule_id in list(self._entries):
            self.cancel_job(schedule_id)

    def get_scheduled_job_count(self) -> int:
        return len(self._entries)

    def next_run_at(self, schedule_id: str) -> datetime | None:
        entry = self._entries.get(schedule_id)
        return entry.next_run_at if entry else None

    def list_schedules(self) -> list[dict[str, Any]]:
        return [
            {
                "schedule_id": entry.schedule_id,
                "job_type": entry.job_type,
                "cadence": type(entry.cadence).__name__.lower(),
                "next_run_at": entry.next_run_at.isoformat()
                if entry.next_run_at
                else None,
            }
            for entry in sorted(self._entries.values(), key=lambda e: e.schedule_id)
        ]
