"""Job Commands - Inspect and operate the background job system"""

import json
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel

from ..client.endpoints import HelpdeskClient, HelpdeskError
from ..utils.config_manager import config
from ..utils.formatting import (
    create_events_table,
    create_jobs_table,
    create_schedules_table,
    create_stats_panel,
    print_error,
    print_info,
    print_success,
)

console = Console()
app = typer.Typer(name="jobs", help="Background job commands")


def _client() -> HelpdeskClient:
    return HelpdeskClient(config.get("api.base_url"))


def _parse_json(value: str | None, option: str) -> dict[str, Any] | None:
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        print_error(f"{option} is not valid JSON: {e}")
        raise typer.Exit(1) from None
    if not isinstance(parsed, dict):
        print_error(f"{option} must be a JSON object")
        raise typer.Exit(1)
    return parsed


@app.command("stats")
def show_stats():
    """📊 Show job counts and queue metrics"""
    try:
        with _client() as client:
            stats = client.job_stats()
    except HelpdeskError as e:
        print_error(f"Failed to get job stats: {e}")
        raise typer.Exit(1) from None

    console.print(create_stats_panel(stats))


@app.command("types")
def show_types():
    """📋 List registered job types and events"""
    try:
        with _client() as client:
            data = client.job_types()
    except HelpdeskError as e:
        print_error(f"Failed to get job types: {e}")
        raise typer.Exit(1) from None

    console.print(
        Panel(
            "\n".join(f"• {job_type}" for job_type in data.get("job_types", [])),
            title="Job Types",
            border_style="blue",
        )
    )
    console.print(create_events_table(data.get("events", {})))


@app.command("schedules")
def show_schedules():
    """⏰ List recurring jobs and their next run"""
    try:
        with _client() as client:
            schedules = client.schedules()
    except HelpdeskError as e:
        print_error(f"Failed to get schedules: {e}")
        raise typer.Exit(1) from None

    if not schedules:
        print_info("No recurring jobs are scheduled in the API process")
        return
    console.print(create_schedules_table(schedules))


@app.command("failed")
def show_failed(
    limit: int | None = typer.Option(None, "--limit", "-l", help="Number of jobs to show"),
):
    """🚨 Show failed jobs, most recent first"""
    limit = limit or config.get("display.failed_jobs_limit", 20)
    try:
        with _client() as client:
            jobs = client.failed_jobs(limit)
    except HelpdeskError as e:
        print_error(f"Failed to get failed jobs: {e}")
        raise typer.Exit(1) from None

    if not jobs:
        console.print(
            Panel(
                "🎉 [green]No failed jobs![/green]",
                title="Failed Jobs",
                border_style="green",
            )
        )
        return
    console.print(create_jobs_table(jobs, title="Failed Jobs"))


@app.command("enqueue")
def enqueue(
    job_type: str = typer.Argument(..., help="Job type to enqueue"),
    payload: str | None = typer.Option(None, "--payload", "-p", help="JSON payload"),
    at: str | None = typer.Option(
        None, "--at", help="ISO 8601 time the job becomes ready"
    ),
):
    """➕ Enqueue a single job"""
    body = _parse_json(payload, "--payload")
    try:
        with _client() as client:
            job = client.enqueue_job(job_type, body, at)
    except HelpdeskError as e:
        print_error(f"Failed to enqueue job: {e}")
        raise typer.Exit(1) from None

    print_success(f"Enqueued job {job['id']} ({job['type']}), ready at {job['scheduled_for']}")


@app.command("trigger")
def trigger(
    event: str = typer.Argument(..., help="Event name, e.g. conversations/message.created"),
    data: str = typer.Option("{}", "--data", "-d", help="JSON event data"),
    sleep_seconds: float = typer.Option(
        0, "--sleep", "-s", min=0, help="Delay the event's jobs by this many seconds"
    ),
):
    """⚡ Trigger an event and enqueue its jobs"""
    body = _parse_json(data, "--data")
    try:
        with _client() as client:
            result = client.trigger_event(event, body, sleep_seconds)
    except HelpdeskError as e:
        print_error(f"Failed to trigger event: {e}")
        raise typer.Exit(1) from None

    jobs = result.get("jobs", [])
    print_success(f"Triggered {event}: {len(jobs)} job(s) enqueued")
    console.print(create_jobs_table(jobs, title=event))


@app.command("retry")
def retry(job_id: int = typer.Argument(..., help="ID of a failed job")):
    """🔁 Retry a failed job"""
    try:
        with _client() as client:
            client.retry_job(job_id)
    except HelpdeskError as e:
        print_error(f"Failed to retry job {job_id}: {e}")
        raise typer.Exit(1) from None

    print_success(f"Job {job_id} queued for retry")


@app.command("cleanup")
def cleanup(
    older_than_hours: int | None = typer.Option(
        None, "--older-than-hours", min=1, help="Defaults to the server setting"
    ),
):
    """🧹 Delete old completed and failed jobs"""
    try:
        with _client() as client:
            result = client.cleanup_jobs(older_than_hours)
    except HelpdeskError as e:
        print_error(f"Failed to clean up jobs: {e}")
        raise typer.Exit(1) from None

    print_success(f"Deleted {result.get('deleted_count', 0)} old job(s)")
