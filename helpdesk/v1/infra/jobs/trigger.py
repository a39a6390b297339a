"""
Event trigger: validate an event's data and enqueue one job per job type the
event maps to.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from helpdesk.config.logging import get_logger
from helpdesk.v1.core.exceptions import NotFoundError, ValidationError
from helpdesk.v1.infra.jobs.events import EVENTS, EventDefinition
from helpdesk.v1.infra.jobs.models import Job
from helpdesk.v1.infra.jobs.scheduler import Enqueuer

logger = get_logger(__name__)


class EventTrigger:
    def __init__(
        self,
        queue: Enqueuer,
        events: dict[str, EventDefinition] = EVENTS,
        clock: Callable[[], datetime] | None = None,
    ):
        self.queue = queue
        self.events = events
        self._clock = clock

    def _now(self) -> datetime:
        if self._clock is not None:
            return self._clock()
        return self.queue.now()

    def _get_event(self, event_name: str) -> EventDefinition:
        event = self.events.get(event_name)
        if event is None:
            raise NotFoundError(
                f"Unknown event: {event_name}", details={"event_name": event_name}
            )
        return event

    async def trigger_event(
        self,
        event_name: str,
        data: dict[str, Any],
        sleep_seconds: float = 0,
    ) -> list[Job]:
        """
        Enqueue every job mapped to `event_name` with `data` as payload.

        Jobs are delayed by `sleep_seconds` when positive. Returns once all
        jobs are stored; if any enqueue fails the error propagates.

        Raises:
            NotFoundError: unknown event name
            ValidationError: data does not match the event's payload shape
        """
        event = self._get_event(event_name)

        try:
            event.payload_model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid data for event '{event_name}'",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

        scheduled_for = None
        if sleep_seconds > 0:
            scheduled_for = self._now() + timedelta(seconds=sleep_seconds)

        jobs = await asyncio.gather(
            *(
                self.queue.add_job(job_type, data, scheduled_for)
                for job_type in event.job_types
            )
        )

        logger.info(
            "Event triggered",
            event_name=event_name,
            job_count=len(jobs),
            sleep_seconds=sleep_seconds,
        )
        return list(jobs)

    def job_types_for(self, event_name: str) -> list[str]:
        return list(self._get_event(event_name).job_types)

    def list_events(self) -> dict[str, list[str]]:
        return {
            name: list(event.job_types) for name, event in sorted(self.events.items())
        }
