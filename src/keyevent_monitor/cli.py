"""Key-event monitor CLI.

Usage:
    keyevent-monitor watch                          # Print key events (with values)
    keyevent-monitor watch --no-lookup --json       # JSON lines, no value lookup
    keyevent-monitor watch -e localhost:6379        # TCP endpoint
    keyevent-monitor get <key>                      # One-shot GET
    keyevent-monitor config                         # Show configuration

Defaults come from KEYEVENT_MONITOR_* environment variables
(see keyevent_monitor.config). Logs go to stderr, events to stdout.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from .command import CommandConnection, fetch_value
from .config import MonitorConfig, parse_endpoint
from .errors import ConfigurationError, KeyEventError
from .events import KeyEvent
from .pipeline import NotificationPipeline, NotificationSink

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def console_sink(event: KeyEvent) -> None:
    """Print an event in human-readable form."""
    click.echo(f"Received event: {event.summary()}")


def json_sink(event: KeyEvent) -> None:
    """Print an event as a JSON line."""
    click.echo(event.model_dump_json())


def _apply_endpoint(config: MonitorConfig, endpoint: str | None) -> None:
    if endpoint is None:
        return
    try:
        config.endpoint = parse_endpoint(endpoint)
    except ConfigurationError as e:
        raise click.BadParameter(str(e), param_hint="--endpoint") from e


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Log level (default: KEYEVENT_MONITOR_LOG_LEVEL or WARNING)",
)
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """Key-event monitor - watch keyspace notifications over RESP."""
    try:
        config = MonitorConfig.from_env()
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    if log_level:
        config.log_level = log_level.upper()

    # Logs to stderr so stdout stays clean for events
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    ctx.obj = config


# =============================================================================
# Watch Command
# =============================================================================


async def _watch(config: MonitorConfig, sink: NotificationSink) -> None:
    if not config.lookup_values:
        await NotificationPipeline.from_config(config, sink).run()
        return

    async with CommandConnection(
        config.endpoint,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
    ) as conn:
        await NotificationPipeline.from_config(config, sink, lookup=conn.lookup).run()


@main.command()
@click.option("--endpoint", "-e", help="unix:/path, /path, host:port or tcp://host:port")
@click.option("--pattern", "-p", help="PSUBSCRIBE pattern (default: __keyevent@*:*)")
@click.option(
    "--lookup/--no-lookup",
    default=None,
    help="Fetch each key's current value (default: on)",
)
@click.option("--json", "output_json", is_flag=True, help="Print events as JSON lines")
@click.pass_obj
def watch(
    config: MonitorConfig,
    endpoint: str | None,
    pattern: str | None,
    lookup: bool | None,
    output_json: bool,
) -> None:
    """Watch key events and print them.

    Runs until interrupted (Ctrl+C) or until the connection fails.

    Examples:

        keyevent-monitor watch

        keyevent-monitor watch -e 127.0.0.1:6379 -p '__keyevent@0__:expired'
    """
    _apply_endpoint(config, endpoint)
    if pattern:
        config.pattern = pattern
    if lookup is not None:
        config.lookup_values = lookup

    sink = json_sink if output_json else console_sink

    try:
        asyncio.run(_watch(config, sink))
    except KeyboardInterrupt:
        click.echo("Stopped.", err=True)
    except KeyEventError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


# =============================================================================
# Get Command
# =============================================================================


@main.command("get")
@click.argument("key")
@click.option("--endpoint", "-e", help="unix:/path, /path, host:port or tcp://host:port")
@click.pass_obj
def get_value(config: MonitorConfig, key: str, endpoint: str | None) -> None:
    """Print the current value of KEY.

    Absent keys print (nil).
    """
    _apply_endpoint(config, endpoint)

    try:
        value = asyncio.run(
            fetch_value(
                config.endpoint,
                key,
                connect_timeout=config.connect_timeout,
                read_timeout=config.read_timeout,
            )
        )
    except KeyEventError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("(nil)" if value is None else value)


# =============================================================================
# Config Command
# =============================================================================


@main.command("config")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def show_config(config: MonitorConfig, output_json: bool) -> None:
    """Show the effective configuration."""
    data = config.to_dict()

    if output_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo("Key-Event Monitor Configuration")
    click.echo("-" * 40)
    click.echo(f"Endpoint:          {data['endpoint']}")
    click.echo(f"Pattern:           {data['pattern']}")
    click.echo(f"Value lookup:      {'on' if data['lookup_values'] else 'off'}")
    click.echo(f"Connect timeout:   {data['connect_timeout'] or 'none'}")
    click.echo(f"Read timeout:      {data['read_timeout'] or 'none'}")
    click.echo(f"Log level:         {data['log_level']}")


if __name__ == "__main__":
    main()
