"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "processing": "cyan",
    "completed": "green",
    "failed": "red",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def _truncate(text: str | None, width: int = 60) -> str:
    if not text:
        return "—"
    return text[:width] + "..." if len(text) > width else text


def create_stats_panel(stats: dict[str, Any]) -> Panel:
    """Create formatted panel for job system statistics"""
    queue = stats.get("queue", {})
    metrics = stats.get("metrics", {})
    running = "[green]running[/green]" if stats.get("queue_running") else "[red]stopped[/red]"

    lines = ["📊 [bold blue]Jobs by Status[/bold blue]\n"]
    for status, style in STATUS_STYLES.items():
        lines.append(f"• {status.title()}: [{style}]{queue.get(status, 0)}[/{style}]")

    lines.append("\n⚙️ [bold blue]This Process[/bold blue]\n")
    lines.append(f"• Poll loop: {running}")
    lines.append(f"• Scheduled jobs: [cyan]{stats.get('scheduled_jobs', 0)}[/cyan]")
    lines.append(f"• Processed: [green]{metrics.get('processed', 0)}[/green]")
    lines.append(f"• Failed: [red]{metrics.get('failed', 0)}[/red]")
    lines.append(
        f"• Avg processing time: [yellow]{metrics.get('avg_processing_ms', 0):.1f}ms[/yellow]"
    )

    return Panel("\n".join(lines), title="Job System", border_style="green")


def create_jobs_table(jobs: list[dict[str, Any]], title: str = "Jobs") -> Table:
    """Create a formatted table for a list of jobs"""
    table = Table(title=title, box=box.ROUNDED)

    table.add_column("ID", justify="right", style="cyan", no_wrap=True)
    table.add_column("Type", justify="left", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Attempts", justify="center", style="yellow")
    table.add_column("Updated", justify="left", style="white")
    table.add_column("Last Error", justify="left", style="red")

    for job in jobs:
        status = job.get("status", "")
        style = STATUS_STYLES.get(status, "white")
        table.add_row(
            str(job.get("id", "")),
            job.get("type", ""),
            f"[{style}]{status}[/{style}]",
            f"{job.get('attempts', 0)}/{job.get('max_attempts', 0)}",
            job.get("updated_at", ""),
            _truncate(job.get("last_error")),
        )

    return table


def create_schedules_table(schedules: list[dict[str, Any]]) -> Table:
    table = Table(title="Recurring Jobs", box=box.ROUNDED)

    table.add_column("Schedule", justify="left", style="cyan", no_wrap=True)
    table.add_column("Job Type", justify="left", style="magenta")
    table.add_column("Cadence", justify="center", style="yellow")
    table.add_column("Next Run", justify="left", style="green")

    for schedule in schedules:
        table.add_row(
            schedule.get("schedule_id", ""),
            schedule.get("job_type", ""),
            schedule.get("cadence", ""),
            schedule.get("next_run_at") or "—",
        )

    return table


def create_events_table(events: dict[str, list[str]]) -> Table:
    table = Table(title="Events", box=box.ROUNDED)

    table.add_column("Event", justify="left", style="cyan", no_wrap=True)
    table.add_column("Jobs", justify="left", style="magenta")

    for event, job_types in events.items():
        table.add_row(event, "\n".join(job_types))

    return table
