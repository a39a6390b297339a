"""
Job record store: CRUD primitives over the jobs table.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk.infra.database import utcnow
from helpdesk.v1.infra.jobs.models import Job, JobStatus


class JobStore:
    """Durable job table access. Every status change is one UPDATE keyed by id."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def insert(
        self,
        job_type: str,
        payload: dict[str, Any] | None,
        scheduled_for: datetime,
        max_attempts: int = 3,
    ) -> Job:
        """Insert a pending job and return the stored row."""
        now = utcnow()
        job = Job(
            type=job_type,
            payload=payload,
            status=JobStatus.PENDING.value,
            scheduled_for=scheduled_for,
            attempts=0,
            max_attempts=max_attempts,
            created_at=now,
            updated_at=now,
        )
        async with self._session_factory() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)
        return job

    async def get(self, job_id: int) -> Job | None:
        async with self._session_factory() as session:
            return await session.get(Job, job_id)

    async def select_ready(self, now: datetime, limit: int) -> list[Job]:
        """Pending jobs due at `now`, oldest scheduled_for first."""
        query = (
            select(Job)
            .where(
                and_(
                    Job.status == JobStatus.PENDING.value,
                    Job.scheduled_for <= now,
                )
            )
            .order_by(Job.scheduled_for, Job.id)
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def update_status(
        self,
        job_id: int,
        status: JobStatus,
        *,
        expected_status: JobStatus | None = None,
        **values: Any,
    ) -> bool:
        """
        Set a job's status, refreshing updated_at.

        With expected_status the update only applies if the row currently has
        that status, which makes the transition a compare-and-set.

        Returns:
            True if a row was updated
        """
        conditions = [Job.id == job_id]
        if expected_status is not None:
            conditions.append(Job.status == expected_status.value)

        query = (
            update(Job)
            .where(and_(*conditions))
            .values(status=status.value, updated_at=utcnow(), **values)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            await session.commit()
        return result.rowcount > 0

    async def count_by_status(self) -> dict[str, int]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Job.status, func.count(Job.id)).group_by(Job.status)
            )
            return {status: count for status, count in result.all()}

    async def list_by_status(self, status: JobStatus, limit: int) -> list[Job]:
        """Jobs with the given status, most recently updated first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Job)
                .where(Job.status == status.value)
                .order_by(desc(Job.updated_at), desc(Job.id))
                .limit(limit)
            )
            return list(result.scalars().all())

    async def delete_updated_before(
        self, statuses: Iterable[JobStatus], cutoff: datetime
    ) -> int:
        """Delete jobs in the given statuses last touched before `cutoff`."""
        query = delete(Job).where(
            and_(
                Job.status.in_([s.value for s in statuses]),
                Job.updated_at < cutoff,
            )
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            await session.commit()
        return result.rowcount
