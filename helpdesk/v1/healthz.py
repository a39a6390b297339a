from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config.settings import Settings, SettingsDep
from helpdesk.infra.database import get_session
from helpdesk.v1.core.exceptions import create_success_response

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class JobSystemHealth(BaseModel):
    """Job system status in this process."""

    initialized: bool
    queue_running: bool
    scheduled_jobs: int = 0
    pending_jobs: int = 0
    failed_jobs: int = 0


class HealthResponse(BaseModel):
    """Health response with database and job system status."""

    ok: bool
    version: str
    environment: str
    timestamp: str
    database: DatabaseHealth
    jobs: JobSystemHealth | None = None


@router.get("/healthz", response_model=dict)
async def health_check(
    request: Request,
    settings: Settings = SettingsDep,
    session: AsyncSession = Depends(get_session),
):
    """Health check endpoint with database and job system status."""

    timestamp = datetime.now(UTC).isoformat()

    db_health = await _check_database_health(session)

    # Job status is informational; only the database decides overall health
    jobs_health = None
    if db_health.connected:
        jobs_health = await _check_job_system_health(request)

    health = HealthResponse(
        ok=db_health.connected,
        version=settings.version,
        environment=settings.environment,
        timestamp=timestamp,
        database=db_health,
        jobs=jobs_health,
    )

    return create_success_response(data=health.model_dump())


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        end_time = datetime.now(UTC)
        response_time_ms = (end_time - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))


async def _check_job_system_health(request: Request) -> JobSystemHealth | None:
    system = getattr(request.app.state, "job_system", None)
    if system is None:
        return None

    counts = await system.queue.get_job_stats()
    return JobSystemHealth(
        initialized=system.initialized,
        queue_running=system.queue.is_running,
        scheduled_jobs=system.scheduler.get_scheduled_job_count(),
        pending_jobs=counts["pending"],
        failed_jobs=counts["failed"],
    )
