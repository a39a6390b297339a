import asyncio
from collections.abc import AsyncGenerator, Callable, Generator

import pytest
from fastapi.testclient import TestClient

from helpdesk.config.settings import Settings
from helpdesk.infra.database import Database
from helpdesk.main import create_app
from helpdesk.v1.core.registries import JobRegistry
from helpdesk.v1.infra.jobs.models import Job, JobStatus
from helpdesk.v1.infra.jobs.processor import JobProcessor
from helpdesk.v1.infra.jobs.queue import JobQueue
from helpdesk.v1.infra.jobs.store import JobStore


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite database with fast polling."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'helpdesk.db'}",
        environment="development",
        debug=True,
        db_create_all=True,
        job_poll_interval_s=0.05,
        job_error_backoff_s=0.05,
        job_timeout_s=1.0,
        job_stop_timeout_s=2.0,
        job_autostart=False,
        job_scheduler_enabled=False,
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings)
    await db.create_all()
    yield db
    await db.close()


@pytest.fixture
def store(database: Database) -> JobStore:
    return JobStore(database.SessionLocal)


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry()


@pytest.fixture
def processor(registry: JobRegistry, settings: Settings) -> JobProcessor:
    return JobProcessor(registry, settings.job_timeout_s)


@pytest.fixture
async def queue(
    store: JobStore, processor: JobProcessor, settings: Settings
) -> AsyncGenerator[JobQueue, None]:
    job_queue = JobQueue(store, processor, settings, autostart=False)
    yield job_queue
    await job_queue.stop()


@pytest.fixture
def wait_for_status(store: JobStore) -> Callable:
    """Poll the store until a job reaches `status` or the timeout expires."""

    async def _wait(job_id: int, status: JobStatus, timeout_s: float = 5.0) -> Job:
        async with asyncio.timeout(timeout_s):
            while True:
                job = await store.get(job_id)
                if job is not None and job.status == status.value:
                    return job
                await asyncio.sleep(0.02)

    return _wait


@pytest.fixture
def app(settings: Settings):
    """Create a test FastAPI application backed by the test database."""
    return create_app(settings)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client. Entering it runs the application lifespan."""
    with TestClient(app) as test_client:
        yield test_client
