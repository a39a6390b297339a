from datetime import timedelta

from helpdesk.infra.database import utcnow
from helpdesk.v1.infra.jobs.models import Job, JobStatus
from helpdesk.v1.infra.jobs.store import JobStore


async def test_insert_defaults(store: JobStore):
    scheduled_for = utcnow()

    job = await store.insert("send_email", {"to": "a@example.com"}, scheduled_for)

    assert job.id is not None
    assert job.type == "send_email"
    assert job.payload == {"to": "a@example.com"}
    assert job.status == JobStatus.PENDING.value
    assert job.attempts == 0
    assert job.max_attempts == 3
    assert job.last_error is None
    assert job.scheduled_for == scheduled_for
    assert job.scheduled_for.tzinfo is not None


async def test_insert_without_payload(store: JobStore):
    job = await store.insert("noop", None, utcnow())

    stored = await store.get(job.id)
    assert stored.payload is None


async def test_get_missing_returns_none(store: JobStore):
    assert await store.get(12345) is None


async def test_select_ready_orders_by_scheduled_for(store: JobStore):
    now = utcnow()
    later = await store.insert("b", None, now - timedelta(minutes=1))
    earlier = await store.insert("a", None, now - timedelta(minutes=5))
    await store.insert("future", None, now + timedelta(hours=1))

    ready = await store.select_ready(now, limit=10)

    assert [job.id for job in ready] == [earlier.id, later.id]


async def test_select_ready_respects_limit_and_status(store: JobStore):
    now = utcnow()
    jobs = [await store.insert(f"job_{i}", None, now) for i in range(4)]
    await store.update_status(jobs[0].id, JobStatus.PROCESSING)

    ready = await store.select_ready(now, limit=2)

    assert [job.id for job in ready] == [jobs[1].id, jobs[2].id]


async def test_update_status_compare_and_set(store: JobStore):
    job = await store.insert("claim_me", None, utcnow())

    first = await store.update_status(
        job.id,
        JobStatus.PROCESSING,
        expected_status=JobStatus.PENDING,
        attempts=Job.attempts + 1,
    )
    second = await store.update_status(
        job.id,
        JobStatus.PROCESSING,
        expected_status=JobStatus.PENDING,
        attempts=Job.attempts + 1,
    )

    assert first is True
    assert second is False
    stored = await store.get(job.id)
    assert stored.status == JobStatus.PROCESSING.value
    assert stored.attempts == 1


async def test_update_status_refreshes_updated_at(store: JobStore):
    job = await store.insert("touch", None, utcnow())

    await store.update_status(job.id, JobStatus.FAILED, last_error="nope")

    stored = await store.get(job.id)
    assert stored.status == JobStatus.FAILED.value
    assert stored.last_error == "nope"
    assert stored.updated_at >= job.updated_at


async def test_update_missing_job_returns_false(store: JobStore):
    assert await store.update_status(999, JobStatus.COMPLETED) is False


async def test_count_and_list_by_status(store: JobStore):
    now = utcnow()
    a = await store.insert("a", None, now)
    b = await store.insert("b", None, now)
    await store.insert("c", None, now)
    await store.update_status(a.id, JobStatus.FAILED, last_error="first")
    await store.update_status(b.id, JobStatus.FAILED, last_error="second")

    counts = await store.count_by_status()
    failed = await store.list_by_status(JobStatus.FAILED, limit=10)

    assert counts == {"pending": 1, "failed": 2}
    assert {job.id for job in failed} == {a.id, b.id}


async def test_delete_updated_before(store: JobStore):
    now = utcnow()
    done = await store.insert("done", None, now)
    await store.insert("waiting", None, now)
    await store.update_status(done.id, JobStatus.COMPLETED)

    deleted = await store.delete_updated_before(
        [JobStatus.COMPLETED], now + timedelta(minutes=1)
    )

    assert deleted == 1
    assert await store.get(done.id) is None
    assert await store.count_by_status() == {"pending": 1}
