import asyncio
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from helpdesk.v1.infra.jobs.scheduler import (
    Daily,
    Hourly,
    RecurringScheduler,
    Weekly,
    next_fire_time,
    seconds_until,
)
from helpdesk.v1.infra.jobs.startup import (
    MONDAY,
    RECURRING_JOBS,
    register_recurring_jobs,
)
from tests.helpers import FakeClock, FakeQueue

# 2025-01-01 is a Wednesday
WEDNESDAY_1030 = datetime(2025, 1, 1, 10, 30, tzinfo=UTC)
SUNDAY_1000 = datetime(2025, 1, 5, 10, 0, tzinfo=UTC)


async def run_until(condition, max_iterations: int = 1000) -> None:
    for _ in range(max_iterations):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


class TestNextFireTime:
    def test_hourly_later_this_hour(self):
        assert next_fire_time(Hourly(45), WEDNESDAY_1030) == datetime(
            2025, 1, 1, 10, 45, tzinfo=UTC
        )

    def test_hourly_next_hour(self):
        assert next_fire_time(Hourly(0), WEDNESDAY_1030) == datetime(
            2025, 1, 1, 11, 0, tzinfo=UTC
        )

    def test_hourly_is_strictly_after_now(self):
        now = datetime(2025, 1, 1, 11, 0, tzinfo=UTC)
        assert next_fire_time(Hourly(0), now) == datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def test_hourly_rolls_over_midnight(self):
        now = datetime(2025, 1, 1, 23, 30, tzinfo=UTC)
        assert next_fire_time(Hourly(0), now) == datetime(2025, 1, 2, 0, 0, tzinfo=UTC)

    def test_daily_later_today(self):
        assert next_fire_time(Daily(19), WEDNESDAY_1030) == datetime(
            2025, 1, 1, 19, 0, tzinfo=UTC
        )

    def test_daily_tomorrow(self):
        assert next_fire_time(Daily(3), WEDNESDAY_1030) == datetime(
            2025, 1, 2, 3, 0, tzinfo=UTC
        )

    def test_daily_at_exact_time_moves_to_tomorrow(self):
        now = datetime(2025, 1, 1, 3, 0, tzinfo=UTC)
        assert next_fire_time(Daily(3), now) == datetime(2025, 1, 2, 3, 0, tzinfo=UTC)

    def test_weekly_later_this_week(self):
        # Wednesday -> Friday 14:00
        assert next_fire_time(Weekly(5, 14), WEDNESDAY_1030) == datetime(
            2025, 1, 3, 14, 0, tzinfo=UTC
        )

    def test_weekly_same_day_later_hour(self):
        assert next_fire_time(Weekly(3, 14), WEDNESDAY_1030) == datetime(
            2025, 1, 1, 14, 0, tzinfo=UTC
        )

    def test_weekly_same_day_earlier_hour_waits_a_week(self):
        assert next_fire_time(Weekly(3, 9), WEDNESDAY_1030) == datetime(
            2025, 1, 8, 9, 0, tzinfo=UTC
        )

    def test_weekly_sunday_is_day_zero(self):
        assert next_fire_time(Weekly(0, 2), SUNDAY_1000) == datetime(
            2025, 1, 12, 2, 0, tzinfo=UTC
        )
        assert next_fire_time(Weekly(MONDAY, 16), SUNDAY_1000) == datetime(
            2025, 1, 6, 16, 0, tzinfo=UTC
        )

    def test_keeps_timezone_of_now(self):
        berlin = ZoneInfo("Europe/Berlin")
        now = datetime(2025, 6, 1, 10, 0, tzinfo=berlin)

        fire = next_fire_time(Daily(3), now)

        assert fire == datetime(2025, 6, 2, 3, 0, tzinfo=berlin)
        assert fire.tzinfo is berlin

    def test_seconds_until_uses_absolute_time(self):
        berlin = ZoneInfo("Europe/Berlin")
        now = datetime(2025, 6, 1, 10, 0, tzinfo=UTC)
        target = datetime(2025, 6, 1, 13, 0, tzinfo=berlin)  # 11:00 UTC

        assert seconds_until(target, now) == 3600.0
        assert seconds_until(now, target) == 0.0

    @pytest.mark.parametrize(
        "factory",
        [
            lambda: Hourly(60),
            lambda: Hourly(-1),
            lambda: Daily(24),
            lambda: Weekly(7, 0),
            lambda: Weekly(0, 24),
        ],
    )
    def test_out_of_range_rejected(self, factory):
        with pytest.raises(ValueError):
            factory()


class TestRecurringScheduler:
    async def test_hourly_fires_every_hour(self):
        clock = FakeClock(WEDNESDAY_1030)
        queue = FakeQueue(clock)
        scheduler = RecurringScheduler(queue, clock=clock, sleep=clock.sleep)

        scheduler.hourly("process_email_queue", {"batch_size": 100}, "email-hourly")
        try:
            await run_until(lambda: len(queue.calls) >= 3)
        finally:
            scheduler.cancel_all_jobs()

        assert [call[2] for call in queue.calls[:3]] == [
            datetime(2025, 1, 1, 11, 0, tzinfo=UTC),
            datetime(2025, 1, 1, 12, 0, tzinfo=UTC),
            datetime(2025, 1, 1, 13, 0, tzinfo=UTC),
        ]
        assert queue.calls[0][:2] == ("process_email_queue", {"batch_size": 100})
        assert clock.sleeps[0] == 30 * 60

    async def test_weekly_fires_once_per_week(self):
        clock = FakeClock(WEDNESDAY_1030)
        queue = FakeQueue(clock)
        scheduler = RecurringScheduler(queue, clock=clock, sleep=clock.sleep)

        scheduler.weekly("generate_weekly_reports", {}, MONDAY, 16, "weekly-reports")
        try:
            await run_until(lambda: len(queue.calls) >= 2)
        finally:
            scheduler.cancel_all_jobs()

        assert [call[2] for call in queue.calls[:2]] == [
            datetime(2025, 1, 6, 16, 0, tzinfo=UTC),
            datetime(2025, 1, 13, 16, 0, tzinfo=UTC),
        ]

    async def test_daily_registered_after_its_hour_rearms_every_24h(self):
        clock = FakeClock(datetime(2025, 1, 1, 4, 0, tzinfo=UTC))
        queue = FakeQueue(clock)
        scheduler = RecurringScheduler(queue, clock=clock, sleep=clock.sleep)

        scheduler.daily("cleanup", {}, 3, "cleanup-daily")
        assert scheduler.next_run_at("cleanup-daily") == datetime(
            2025, 1, 2, 3, 0, tzinfo=UTC
        )
        try:
            await run_until(lambda: len(queue.calls) >= 2)
        finally:
            scheduler.cancel_all_jobs()

        assert clock.sleeps[:2] == [23 * 3600, 24 * 3600]
        assert queue.calls[:2] == [
            ("cleanup", {}, datetime(2025, 1, 2, 3, 0, tzinfo=UTC)),
            ("cleanup", {}, datetime(2025, 1, 3, 3, 0, tzinfo=UTC)),
        ]

    async def test_payload_is_copied_per_occurrence(self):
        clock = FakeClock(WEDNESDAY_1030)
        queue = FakeQueue(clock)
        scheduler = RecurringScheduler(queue, clock=clock, sleep=clock.sleep)
        payload = {"analyze": True}

        scheduler.daily("perform_database_maintenance", payload, 0, "db-daily")
        try:
            await run_until(lambda: len(queue.calls) >= 2)
        finally:
            scheduler.cancel_all_jobs()

        queue.calls[0][1]["analyze"] = False
        assert queue.calls[1][1] == {"analyze": True}
        assert payload == {"analyze": True}

    async def test_enqueue_failure_keeps_schedule(self):
        clock = FakeClock(WEDNESDAY_1030)
        queue = FakeQueue(clock, fail_times=1)
        scheduler = RecurringScheduler(queue, clock=clock, sleep=clock.sleep)

        scheduler.hourly("send_pending_notifications", {}, "notify-hourly")
        try:
            await run_until(lambda: len(queue.calls) >= 1)
        finally:
            scheduler.cancel_all_jobs()

        # The 11:00 occurrence was lost, 12:00 still fired
        assert queue.calls[0][2] == datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    async def test_reregistering_same_entry_keeps_timer(self):
        clock = FakeClock(WEDNESDAY_1030)
        scheduler = RecurringScheduler(FakeQueue(clock), clock=clock, sleep=asyncio.sleep)

        scheduler.daily("cleanup_old_jobs", {"older_than_hours": 168}, 3, "cleanup")
        task = scheduler._entries["cleanup"].task
        scheduler.daily("cleanup_old_jobs", {"older_than_hours": 168}, 3, "cleanup")

        try:
            assert scheduler.get_scheduled_job_count() == 1
            assert scheduler._entries["cleanup"].task is task
        finally:
            scheduler.cancel_all_jobs()

    async def test_reregistering_changed_entry_replaces_timer(self):
        clock = FakeClock(WEDNESDAY_1030)
        scheduler = RecurringScheduler(FakeQueue(clock), clock=clock, sleep=asyncio.sleep)

        scheduler.daily("cleanup_old_jobs", {}, 3, "cleanup")
        old_task = scheduler._entries["cleanup"].task
        scheduler.daily("cleanup_old_jobs", {}, 4, "cleanup")
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        try:
            assert scheduler.get_scheduled_job_count() == 1
            assert old_task.cancelled()
            assert scheduler.next_run_at("cleanup") == datetime(
                2025, 1, 2, 4, 0, tzinfo=UTC
            )
        finally:
            scheduler.cancel_all_jobs()

    async def test_cancel_job(self):
        clock = FakeClock(WEDNESDAY_1030)
        scheduler = RecurringScheduler(FakeQueue(clock), clock=clock, sleep=asyncio.sleep)
        scheduler.hourly("a", {}, "a-hourly")
        scheduler.hourly("b", {}, "b-hourly")

        assert scheduler.cancel_job("a-hourly") is True
        assert scheduler.cancel_job("a-hourly") is False
        assert scheduler.get_scheduled_job_count() == 1
        assert scheduler.next_run_at("a-hourly") is None

        scheduler.cancel_all_jobs()
        assert scheduler.get_scheduled_job_count() == 0

    async def test_list_schedules(self):
        clock = FakeClock(WEDNESDAY_1030)
        scheduler = RecurringScheduler(FakeQueue(clock), clock=clock, sleep=asyncio.sleep)
        scheduler.weekly("generate_weekly_reports", {}, MONDAY, 16, "weekly")
        scheduler.hourly("process_email_queue", {}, "hourly")

        try:
            schedules = scheduler.list_schedules()
        finally:
            scheduler.cancel_all_jobs()

        assert schedules == [
            {
                "schedule_id": "hourly",
                "job_type": "process_email_queue",
                "cadence": "hourly",
                "next_run_at": "2025-01-01T11:00:00+00:00",
            },
            {
                "schedule_id": "weekly",
                "job_type": "generate_weekly_reports",
                "cadence": "weekly",
                "next_run_at": "2025-01-06T16:00:00+00:00",
            },
        ]

    async def test_uses_configured_timezone(self):
        tokyo = ZoneInfo("Asia/Tokyo")
        scheduler = RecurringScheduler(FakeQueue(FakeClock(WEDNESDAY_1030)), tz=tokyo)

        scheduler.daily("renew_mailbox_watches", {}, 0, "renew")
        try:
            next_run = scheduler.next_run_at("renew")
        finally:
            scheduler.cancel_all_jobs()

        assert next_run.tzinfo is tokyo
        assert (next_run.hour, next_run.minute) == (0, 0)


class TestRecurringCatalog:
    async def test_register_catalog(self):
        clock = FakeClock(WEDNESDAY_1030)
        scheduler = RecurringScheduler(FakeQueue(clock), clock=clock, sleep=asyncio.sleep)

        try:
            count = register_recurring_jobs(scheduler)
            assert count == len(RECURRING_JOBS)
            assert scheduler.get_scheduled_job_count() == len(RECURRING_JOBS)

            # Safe to run again
            register_recurring_jobs(scheduler)
            assert scheduler.get_scheduled_job_count() == len(RECURRING_JOBS)
        finally:
            scheduler.cancel_all_jobs()

    def test_schedule_ids_are_unique(self):
        ids = [job.schedule_id for job in RECURRING_JOBS]
        assert len(ids) == len(set(ids))

    def test_daily_reports_skip_monday(self):
        days = sorted(
            job.cadence.day_of_week
            for job in RECURRING_JOBS
            if job.job_type == "generate_daily_reports"
        )
        assert days == [0, 2, 3, 4, 5, 6]

    def test_response_time_checks_on_weekdays(self):
        for job_type in (
            "check_assigned_ticket_response_times",
            "check_vip_response_times",
        ):
            cadences = [job.cadence for job in RECURRING_JOBS if job.job_type == job_type]
            assert cadences == [Weekly(day, 14) for day in range(1, 6)]

    def test_old_job_cleanup_runs_daily_at_three(self):
        (cleanup,) = [job for job in RECURRING_JOBS if job.job_type == "cleanup_old_jobs"]
        assert cleanup.cadence == Daily(3)
        assert cleanup.payload == {"older_than_hours": 168}
