"""API Endpoint Wrappers"""

from typing import Any

from .base import APIClient, HelpdeskError
from ..utils.config_manager import config

__all__ = ["HelpdeskClient", "HelpdeskError"]


class HelpdeskClient:
    """High-level client with one method per endpoint"""

    def __init__(self, base_url: str | None = None, api: APIClient | None = None):
        if api is None:
            api_config = config.load_config().get("api", {})
            api = APIClient(
                base_url=base_url or api_config.get("base_url", "http://localhost:8000"),
                timeout=api_config.get("timeout", 30),
                headers=api_config.get("headers", {}),
            )
        self.api = api

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    def health_check(self) -> dict[str, Any]:
        return self.api.get("/healthz")

    # Jobs
    def job_stats(self) -> dict[str, Any]:
        return self.api.get("/jobs/stats")

    def job_types(self) -> dict[str, Any]:
        return self.api.get("/jobs/types")

    def schedules(self) -> list[dict[str, Any]]:
        return self.api.get("/jobs/schedules")

    def failed_jobs(self, limit: int = 50) -> list[dict[str, Any]]:
        return self.api.get("/jobs/failed", {"limit": limit})

    def get_job(self, job_id: int) -> dict[str, Any]:
        return self.api.get(f"/jobs/{job_id}")

    def enqueue_job(
        self,
        job_type: str,
        payload: dict[str, Any] | None = None,
        scheduled_for: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"type": job_type, "payload": payload}
        if scheduled_for:
            body["scheduled_for"] = scheduled_for
        return self.api.post("/jobs", body)

    def trigger_event(
        self, event: str, data: dict[str, Any], sleep_seconds: float = 0
    ) -> dict[str, Any]:
        return self.api.post(
            "/jobs/trigger",
            {"event": event, "data": data, "sleep_seconds": sleep_seconds},
        )

    def retry_job(self, job_id: int) -> dict[str, Any]:
        return self.api.post(f"/jobs/{job_id}/retry")

    def cleanup_jobs(self, older_than_hours: int | None = None) -> dict[str, Any]:
        return self.api.post("/jobs/cleanup", {"older_than_hours": older_than_hours})
