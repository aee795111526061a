"""CLI commands for configuration management."""

import json
import shutil
import sys
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from transmission_agent.core.config import AgentSettings, ConfigManager, validate_settings

console = Console()
error_console = Console(stderr=True)


def load_config(ctx: click.Context) -> ConfigManager:
    """Load the configuration selected by the global --config option."""
    config_path = (ctx.obj or {}).get("config_path")
    try:
        return ConfigManager(config_path)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def convert_value(value: str) -> Any:
    """Convert a command-line string to bool, None, int or list where it looks like one."""
    lowered = value.lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    if lowered == "null":
        return None
    if value.startswith("["):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    try:
        return int(value)
    except ValueError:
        return value


@click.group()
def config() -> None:
    """Manage agent configuration.

    Configuration is stored in ~/.transmission-agent/config.yml
    """
    pass


@config.command("show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def config_show(ctx: click.Context, as_json: bool) -> None:
    """Show all configuration settings.

    The password is masked.
    """
    config_mgr = load_config(ctx)
    config_dict = config_mgr.to_dict()
    if config_dict.get("transmission", {}).get("password"):
        config_dict["transmission"]["password"] = "********"

    if as_json:
        print(json.dumps(config_dict, indent=2))
        return

    table = Table(title="Transmission Agent Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    def add_rows(prefix: str, data: dict[str, Any]) -> None:
        for key, value in data.items():
            full_key = f"{prefix}.{key}" if prefix else key
            if isinstance(value, dict):
                add_rows(full_key, value)
            else:
                table.add_row(full_key, str(value))

    add_rows("", config_dict)
    console.print(table)
    console.print(f"\nConfig file: {config_mgr.config_path}")


@config.command("get")
@click.argument("key")
@click.pass_context
def config_get(ctx: click.Context, key: str) -> None:
    """Get a specific configuration value.

    Example:
        transmission-agent config get transmission.port
    """
    value = load_config(ctx).get(key)

    if value is None:
        error_console.print(f"[red]Error:[/red] Configuration key '{key}' not found")
        sys.exit(1)

    if isinstance(value, (dict, list)):
        console.print(json.dumps(value, indent=2))
    else:
        console.print(str(value))


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set a configuration value.

    Use 'true'/'false' for booleans, numbers for integers, JSON for lists.
    A running agent picks up changes after a restart.

    Example:
        transmission-agent config set transmission.host nas.local
        transmission-agent config set activity_monitoring.behavior auto_pause
    """
    config_mgr = load_config(ctx)
    converted_value = convert_value(value)

    try:
        config_mgr.set(key, converted_value)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    shown = "********" if key == "transmission.password" else converted_value
    console.print(f"[green]✓[/green] Set {key} = {shown}")


@config.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def config_reset(ctx: click.Context, yes: bool) -> None:
    """Reset configuration to defaults."""
    config_mgr = load_config(ctx)

    if not yes:
        console.print("[yellow]Warning:[/yellow] This will reset all configuration to defaults.")
        if not click.confirm("Continue?"):
            console.print("Cancelled")
            return

    backup_path = config_mgr.config_path.with_suffix(".yml.backup")
    if config_mgr.config_path.exists():
        shutil.copy(config_mgr.config_path, backup_path)
        console.print(f"Backed up current config to {backup_path}")

    config_mgr.reset()
    console.print("[green]✓[/green] Configuration reset to defaults")


@config.command("validate")
@click.pass_context
def config_validate(ctx: click.Context) -> None:
    """Validate configuration file and agent settings."""
    config_mgr = load_config(ctx)

    problems = validate_settings(AgentSettings.from_config(config_mgr))
    if problems:
        for problem in problems:
            error_console.print(f"[red]Error:[/red] {problem}")
        sys.exit(1)

    console.print("[green]✓[/green] Configuration is valid")


@config.command("path")
@click.pass_context
def config_path(ctx: click.Context) -> None:
    """Show path to configuration file."""
    console.print(str(load_config(ctx).config_path))


@click.group()
def watch() -> None:
    """Manage watched processes (e.g. games) that pause torrents."""
    pass


@watch.command("list")
@click.pass_context
def watch_list(ctx: click.Context) -> None:
    """List watched processes in priority order."""
    config_mgr = load_config(ctx)
    processes = config_mgr.get("activity_monitoring.processes", [])

    if not processes:
        console.print("[yellow]No watched processes[/yellow]")
        return

    table = Table(title="Watched Processes")
    table.add_column("#", style="dim")
    table.add_column("Process", style="cyan")
    for index, name in enumerate(processes, start=1):
        table.add_row(str(index), name)
    console.print(table)

    enabled = config_mgr.get("activity_monitoring.enabled", False)
    behavior = config_mgr.get("activity_monitoring.behavior", "notify_only")
    console.print(f"Monitoring: {'enabled' if enabled else 'disabled'} ({behavior})")


@watch.command("add")
@click.argument("name")
@click.pass_context
def watch_add(ctx: click.Context, name: str) -> None:
    """Add a process name to the watch list.

    Example:
        transmission-agent watch add game.exe
    """
    if not load_config(ctx).add_watched_process(name):
        console.print(f"[yellow]{name} is already watched[/yellow]")
        return
    console.print(f"[green]✓[/green] Watching {name}")


@watch.command("remove")
@click.argument("name")
@click.pass_context
def watch_remove(ctx: click.Context, name: str) -> None:
    """Remove a process name from the watch list."""
    if not load_config(ctx).remove_watched_process(name):
        error_console.print(f"[red]Error:[/red] {name} is not watched")
        sys.exit(1)
    console.print(f"[green]✓[/green] Stopped watching {name}")
