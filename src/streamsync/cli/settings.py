"""Configuration and statistics commands for the streamsync CLI.

Commands:
- config show: Print the configuration
- config set: Change one configuration field
- config export / config import: Copy the configuration to or from a JSON file
- stats show / stats reset: Print or reset the statistics
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from streamsync.cli.config import open_scheduler
from streamsync.core.config import (
    TYPE_SET_FIELDS,
    load_configuration,
    parse_field_value,
    save_configuration,
)


@click.group("config")
def config_group() -> None:
    """Scheduler configuration commands."""


@config_group.command("show")
def config_show() -> None:
    """Print the configuration."""
    with open_scheduler() as scheduler:
        for key, value in sorted(scheduler.configuration.to_dict().items()):
            if key in TYPE_SET_FIELDS:
                value = ",".join(value) or "(none)"
            click.echo(f"{key} = {value}")


@config_group.command("set", context_settings={"ignore_unknown_options": True})
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Change one configuration field.

    Type sets take comma-separated type names. Values starting with a dash
    are taken as values, not options.

    Examples:

        streamsync config set sync_interval 600

        streamsync config set wifi_only_types thumbnails,analytics
    """
    try:
        parsed = parse_field_value(key, value)
    except KeyError:
        click.echo(f"Error: unknown configuration key '{key}'.", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    with open_scheduler() as scheduler:
        try:
            updated = scheduler.configuration.with_updates(**{key: parsed})
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        scheduler.update_configuration(updated)
    click.echo(f"{key} updated")


@config_group.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
def config_export(path: Path) -> None:
    """Write the configuration to a JSON file."""
    with open_scheduler() as scheduler:
        save_configuration(scheduler.configuration, path)
    click.echo(f"Configuration written to {path}")


@config_group.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def config_import(path: Path) -> None:
    """Load the configuration from a JSON file.

    Missing keys take their default values. An invalid file leaves the
    stored configuration unchanged.
    """
    try:
        configuration = load_configuration(path)
    except ValueError as e:
        click.echo(f"Error: invalid configuration file: {e}", err=True)
        sys.exit(1)
    with open_scheduler() as scheduler:
        scheduler.update_configuration(configuration)
    click.echo(f"Configuration loaded from {path}")


@click.group("stats")
def stats_group() -> None:
    """Sync statistics commands."""


@stats_group.command("show")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON.")
def stats_show(as_json: bool) -> None:
    """Print the statistics."""
    with open_scheduler() as scheduler:
        stats = scheduler.statistics

    if as_json:
        click.echo(json.dumps(stats.to_dict(), indent=2, sort_keys=True))
        return

    click.echo(f"Runs: {stats.runs}")
    click.echo(f"Syncs: {stats.total_syncs} ({stats.successful_syncs} ok, {stats.failed_syncs} failed)")
    click.echo(f"Dropped items: {stats.terminal_failures}")
    click.echo(f"Average duration: {stats.average_sync_duration:.2f}s")
    for sync_type, count in sorted(stats.syncs_by_type.items()):
        click.echo(f"  {sync_type}: {count}")
    for kind, count in sorted(stats.errors_by_type.items()):
        click.echo(f"  error {kind}: {count}")


@stats_group.command("reset")
def stats_reset() -> None:
    """Reset the statistics."""
    with open_scheduler() as scheduler:
        scheduler.reset_statistics()
    click.echo("Statistics reset")
