"""Job handlers and fakes shared by the test modules."""

import asyncio
from datetime import datetime, timedelta
from typing import Any


class RecordingHandler:
    """Job handler that records every payload it receives."""

    def __init__(self, delay_s: float = 0):
        self.delay_s = delay_s
        self.payloads: list[dict[str, Any] | None] = []

    async def handle(self, payload: dict[str, Any] | None) -> None:
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        self.payloads.append(payload)


class FailingHandler:
    def __init__(self, error: Exception | None = None):
        self.error = error or RuntimeError("boom")
        self.calls = 0

    async def handle(self, payload: dict[str, Any] | None) -> None:
        self.calls += 1
        raise self.error


class FakeClock:
    """Manually advanced clock; `sleep` moves time forward instantly."""

    def __init__(self, now: datetime):
        self.current = now
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)
        await asyncio.sleep(0)


class FakeQueue:
    """Records add_job calls instead of storing jobs."""

    def __init__(self, clock: FakeClock, fail_times: int = 0):
        self.clock = clock
        self.fail_times = fail_times
        self.calls: list[tuple[str, dict[str, Any] | None, datetime | None]] = []

    def now(self) -> datetime:
        return self.clock()

    async def add_job(self, job_type, payload=None, scheduled_for=None):
        if self.fail_times:
            self.fail_times -= 1
            raise RuntimeError("database unavailable")
        self.calls.append((job_type, payload, scheduled_for))
