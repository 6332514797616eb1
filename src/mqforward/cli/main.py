# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Main CLI entry point for mqforward.
"""

import asyncio
import os
import sys
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.table import Table

from . import __version__
from ..capture.shared.config import Config, load_config
from ..capture.shared.errors import MqforwardError
from ..capture.shared.models import Message
from ..processing.database.influxdb_writer import InfluxDBWriter
from ..processing.database.line_protocol import point_to_line
from ..processing.encoding.topic_mapping import MappingConfig, SeriesEncoder
from ..processing.server import ForwarderServer, setup_logging

# Create console for rich output
console = Console()


class CliContext:
    """Lazily loaded configuration shared by subcommands."""

    def __init__(self, config_path: Optional[str], debug: bool):
        self.config_path = config_path
        self.debug = debug
        self._config: Optional[Config] = None

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = load_config(self.config_path)
            if self.debug:
                self._config.general.debug = True
        return self._config


pass_context = click.make_pass_decorator(CliContext)


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit"
)
@click.option(
    "--config", "-c", "config_path",
    envvar="MQFORWARD_CONFIG",
    type=click.Path(dir_okay=False),
    default=None,
    help="Configuration file (default: ~/.mqforward/config.yaml)"
)
@click.option(
    "--debug",
    envvar="MQFORWARD_DEBUG",
    is_flag=True,
    help="Enable debug logging"
)
@click.pass_context
def cli(ctx, version: bool, config_path: Optional[str], debug: bool):
    """
    mqforward - forward MQTT messages to InfluxDB.

    Examples:
        mqforward -c config.yaml run
        mqforward -c config.yaml ping
        mqforward -c config.yaml encode weather/paris/temp 21.5
    """
    if version:
        click.echo(f"mqforward version {__version__}")
        ctx.exit()

    ctx.obj = CliContext(config_path, debug)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@pass_context
def run(ctx: CliContext):
    """Subscribe to MQTT and forward messages until stopped."""
    config = ctx.config
    setup_logging("DEBUG" if config.general.debug else "INFO")

    server = ForwarderServer(config)
    asyncio.run(server.start())


@cli.command()
@pass_context
def ping(ctx: CliContext):
    """Test the InfluxDB connection."""
    writer = InfluxDBWriter.from_config(ctx.config.influxdb, check=False)
    try:
        ok, version = writer.ping()
    finally:
        writer.close()

    if ok:
        console.print(f"[green]✓[/green] InfluxDB is reachable at {writer.base_url} (version {version or 'unknown'})")
    else:
        console.print(f"[red]✗[/red] Cannot reach InfluxDB at {writer.base_url}", style="bold red")
        sys.exit(1)


@cli.command()
@click.argument("topic")
@click.argument("payload")
@pass_context
def encode(ctx: CliContext, topic: str, payload: str):
    """Show the point and line protocol produced for TOPIC and PAYLOAD."""
    encoder = SeriesEncoder(MappingConfig.from_influxdb_conf(ctx.config.influxdb))
    point = encoder.encode(Message(topic=topic, payload=payload.encode("utf-8")))

    table = Table(title=f"Series: {point.series}")
    table.add_column("Kind", style="cyan")
    table.add_column("Key", style="green")
    table.add_column("Value")
    for key, value in point.tags.items():
        table.add_row("tag", key, value)
    for key, value in point.fields.items():
        table.add_row("field", key, str(value))

    console.print(table)
    click.echo(point_to_line(point))


@cli.command("show-config")
@pass_context
def show_config(ctx: CliContext):
    """Print the effective configuration (passwords masked)."""
    click.echo(yaml.dump(ctx.config.to_dict(), default_flow_style=False, sort_keys=False))


def main():
    """Main entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except MqforwardError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except Exception as e:
        if os.environ.get("MQFORWARD_DEBUG") or "--debug" in sys.argv[1:]:
            console.print_exception()
        else:
            console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
