"""CLI commands for running and controlling the agent."""

import subprocess
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from transmission_agent.agent.ipc import IPCClient, IPCError
from transmission_agent.cli.config_commands import load_config
from transmission_agent.core.config import AgentSettings, validate_settings
from transmission_agent.core.models import DaemonStatus, ToggleOutcome
from transmission_agent.rpc.client import TransmissionClient

console = Console()
error_console = Console(stderr=True)

STATUS_STYLES = {
    DaemonStatus.ACTIVE.value: "green",
    DaemonStatus.PAUSED.value: "yellow",
    DaemonStatus.DISCONNECTED.value: "red",
}

TOGGLE_MESSAGES = {
    ToggleOutcome.PAUSED.value: "[green]✓[/green] All torrents paused",
    ToggleOutcome.RESUMED.value: "[green]✓[/green] All torrents resumed",
    ToggleOutcome.BUSY.value: "[yellow]Another operation is in progress, try again[/yellow]",
    ToggleOutcome.NOT_CONNECTED.value: (
        "[red]Cannot toggle: Not connected to Transmission server[/red]"
    ),
    ToggleOutcome.FAILED.value: "[red]Toggle failed, Transmission is unreachable[/red]",
}


def format_speed(value: object) -> str:
    """Format a byte rate for display."""
    if not isinstance(value, int):
        return "N/A"
    if value >= 1024 * 1024:
        return f"{value / (1024 * 1024):.1f} MB/s"
    if value >= 1024:
        return f"{value / 1024:.1f} KB/s"
    return f"{value} B/s"


def status_label(value: str) -> str:
    try:
        status = DaemonStatus(value)
    except ValueError:
        return value
    return f"[{STATUS_STYLES[value]}]●[/{STATUS_STYLES[value]}] {status.label}"


@click.command()
@click.option(
    "--foreground",
    "-f",
    is_flag=True,
    help="Run agent in foreground (don't daemonize)",
)
@click.pass_context
def run(ctx: click.Context, foreground: bool) -> None:
    """Start the background agent."""
    from transmission_agent.agent import AgentError, TransmissionAgent

    if IPCClient().is_agent_running():
        console.print("[yellow]Agent is already running[/yellow]")
        return

    config_mgr = load_config(ctx)
    mode = "foreground" if foreground else "background"
    console.print(f"[cyan]Starting agent in {mode}...[/cyan]")

    try:
        agent = TransmissionAgent(config=config_mgr)
        agent.start(foreground=foreground)
    except KeyboardInterrupt:
        console.print("\n[yellow]Agent stopped by user[/yellow]")
    except AgentError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@click.command()
def stop() -> None:
    """Stop the background agent."""
    client = IPCClient()

    try:
        console.print("[cyan]Stopping agent...[/cyan]")
        client.call("stop")
        console.print("[green]✓[/green] Agent stopped")
    except IPCError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        console.print("[yellow]Agent may not be running[/yellow]")
        sys.exit(1)


@click.command()
@click.option("--verbose", "-v", is_flag=True, help="Show detailed status")
def status(verbose: bool) -> None:
    """Show agent and Transmission status."""
    client = IPCClient()

    if not client.is_agent_running():
        console.print("[yellow]Agent is not running[/yellow]")
        return

    try:
        status_data = client.call("status")
    except IPCError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    state = status_data.get("state", {})

    if not verbose:
        status_text = f"""
{status_label(state.get('status', 'disconnected'))}
  Endpoint: {status_data.get('endpoint', 'N/A')}
  Active torrents: {state.get('active_torrents') if state.get('active_torrents') is not None else 'N/A'}
  Last poll: {state.get('last_poll') or 'never'}
        """
        console.print(Panel(status_text.strip(), title="Transmission Agent"))
        return

    table = Table(title="Transmission Agent Status", show_header=True)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Transmission", status_label(state.get("status", "disconnected")))
    table.add_row("Endpoint", status_data.get("endpoint", "N/A"))
    table.add_row("Last Poll", state.get("last_poll") or "never")
    if state.get("last_error"):
        table.add_row("Last Error", state["last_error"])
    table.add_row("Active Torrents", str(state.get("active_torrents", "N/A")))
    table.add_row("Download", format_speed(state.get("download_speed")))
    table.add_row("Upload", format_speed(state.get("upload_speed")))
    table.add_row("", "")

    table.add_row(
        "Activity Monitoring",
        "Enabled" if state.get("monitoring_enabled") else "Disabled",
    )
    if state.get("monitoring_enabled"):
        table.add_row("Policy", state.get("policy_mode") or "N/A")
        table.add_row("Current Activity", state.get("current_activity") or "none")
        auto_paused = state.get("auto_paused")
        table.add_row(
            "Auto-Paused",
            f"Yes ({state.get('auto_paused_by')})" if auto_paused else "No",
        )
    table.add_row("", "")

    table.add_row("PID", str(state.get("pid", "N/A")))
    table.add_row("Started At", state.get("started_at", "N/A"))
    table.add_row("Version", state.get("version", "N/A"))
    table.add_row("Polls", str(state.get("polls_count", 0)))
    table.add_row("Failed Polls", str(state.get("failed_polls_count", 0)))
    table.add_row("Toggles", str(state.get("toggles_count", 0)))
    table.add_row("Notifications Sent", str(state.get("notifications_sent", 0)))

    console.print(table)


@click.command()
def toggle() -> None:
    """Pause all torrents if downloading, resume them if paused."""
    client = IPCClient()

    try:
        result = client.call("toggle")
    except IPCError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        console.print("[yellow]Is the agent running? Start it with: transmission-agent run[/yellow]")
        sys.exit(1)

    outcome = result.get("outcome")
    console.print(TOGGLE_MESSAGES.get(outcome, f"Toggle: {outcome}"))
    if outcome in (ToggleOutcome.NOT_CONNECTED.value, ToggleOutcome.FAILED.value):
        sys.exit(1)


@click.command()
def refresh() -> None:
    """Poll Transmission now instead of waiting for the next interval."""
    client = IPCClient()

    try:
        result = client.call("refresh")
    except IPCError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if result.get("skipped"):
        console.print("[yellow]Refresh skipped: an operation is in progress[/yellow]")
    console.print(status_label(result.get("status", "disconnected")))


@click.command("test-connection")
@click.pass_context
def test_connection(ctx: click.Context) -> None:
    """Check that the configured Transmission server answers."""
    settings = AgentSettings.from_config(load_config(ctx))

    problems = validate_settings(settings)
    if problems:
        for problem in problems:
            error_console.print(f"[red]Error:[/red] {problem}")
        sys.exit(1)

    console.print(f"[cyan]Connecting to {settings.base_url}...[/cyan]")
    with TransmissionClient(settings) as client:
        ok = client.test_connection()

    if ok:
        console.print("[green]✓[/green] Connection successful!")
    else:
        error_console.print("[red]Connection failed. Please check your settings.[/red]")
        sys.exit(1)


@click.command()
@click.option("--lines", "-n", default=50, help="Number of log lines to show")
@click.option("--follow", "-f", is_flag=True, help="Follow log output")
def logs(lines: int, follow: bool) -> None:
    """View agent logs."""
    from transmission_agent.agent.platform import get_log_file_path

    log_file = get_log_file_path()

    if not log_file.exists():
        console.print("[yellow]No log file found[/yellow]")
        return

    if follow:
        try:
            subprocess.run(["tail", "-f", "-n", str(lines), str(log_file)])
        except KeyboardInterrupt:
            pass
        return

    with open(log_file, "r") as f:
        last_lines = f.readlines()[-lines:]
    console.print("".join(last_lines), markup=False)
