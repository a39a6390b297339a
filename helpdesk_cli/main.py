"""Helpdesk CLI - Main Entry Point"""

import typer
from rich.console import Console
from rich.panel import Panel

from .client.endpoints import HelpdeskClient, HelpdeskError
from .commands import jobs
from .utils.config_manager import config as config_manager
from .utils.formatting import print_error, print_info

console = Console()

app = typer.Typer(
    name="helpdesk",
    help="🛟 Helpdesk - background job administration CLI",
    rich_markup_mode="rich",
)

app.add_typer(jobs.app, name="jobs")


@app.command()
def status():
    """📊 Check API connectivity and job system health"""
    base_url = config_manager.get("api.base_url")
    print_info(f"Checking connection to: {base_url}")

    try:
        with HelpdeskClient(base_url) as client:
            health = client.health_check()
    except HelpdeskError as e:
        print_error(f"Failed to connect: {e}")
        console.print(
            Panel(
                f"🚫 [red]Connection Failed[/red]\n\n"
                f"Make sure the Helpdesk API is running at:\n"
                f"[blue]{base_url}[/blue]\n\n"
                f"Set [cyan]HELPDESK_API_URL[/cyan] or api.base_url in "
                f"~/.helpdesk/config.yaml to point elsewhere.",
                title="Connection Error",
                border_style="red",
            )
        )
        raise typer.Exit(1) from None

    jobs_health = health.get("jobs") or {}
    database = health.get("database") or {}
    console.print(
        Panel(
            f"🚀 [green]Connected Successfully![/green]\n\n"
            f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
            f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
            f"• Database: {'[green]up[/green]' if database.get('connected') else '[red]down[/red]'}\n"
            f"• Job queue: {'[green]running[/green]' if jobs_health.get('queue_running') else '[yellow]idle[/yellow]'}\n"
            f"• Pending jobs: [cyan]{jobs_health.get('pending_jobs', 0)}[/cyan]\n"
            f"• Failed jobs: [red]{jobs_health.get('failed_jobs', 0)}[/red]\n"
            f"• API URL: [blue]{base_url}[/blue]",
            title="System Status",
            border_style="green" if health.get("ok") else "red",
        )
    )


@app.command()
def version():
    """📎 Show CLI version information"""
    from . import __version__

    console.print(
        Panel(
            f"🛟 [bold cyan]Helpdesk CLI[/bold cyan]\n\n"
            f"• Version: [green]{__version__}[/green]",
            title="Version Info",
            border_style="cyan",
        )
    )


if __name__ == "__main__":
    app()
