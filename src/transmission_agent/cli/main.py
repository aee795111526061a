"""Main CLI application."""

from pathlib import Path
from typing import Optional

import click

from transmission_agent import __version__
from transmission_agent.cli import agent_commands, config_commands
from transmission_agent.cli.agent_commands import (
    logs,
    refresh,
    run,
    status,
    stop,
    test_connection,
    toggle,
)
from transmission_agent.cli.config_commands import config, watch

# Every rich console the commands print through
CONSOLES = (
    agent_commands.console,
    agent_commands.error_console,
    config_commands.console,
    config_commands.error_console,
)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    help="Configuration file (default: ~/.transmission-agent/config.yml)",
    type=click.Path(dir_okay=False),
)
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], no_color: bool) -> None:
    """Transmission Agent - keep an eye on your Transmission daemon.

    Shows whether torrents are downloading, toggles them all on or off, and
    can pause them while selected programs (games) are running.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["no_color"] = no_color

    for output in CONSOLES:
        output.no_color = no_color


cli.add_command(run)
cli.add_command(stop)
cli.add_command(status)
cli.add_command(toggle)
cli.add_command(refresh)
cli.add_command(test_connection)
cli.add_command(logs)
cli.add_command(config)
cli.add_command(watch)


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
