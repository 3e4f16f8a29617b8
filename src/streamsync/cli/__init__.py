"""Command-line interface for streamsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- status: Show the scheduler status and the pending items
- schedule: Queue a sync item
- cancel: Remove a pending item
- force: Queue an immediate high-priority item
- run: Process the queue once against a backend
- config: Show, change, export and import the configuration
- stats: Show or reset the statistics
"""

from __future__ import annotations

import logging

import click

from streamsync.cli.config import get_cache_dir, get_config_dir, get_database_path
from streamsync.cli.queue import cancel, force, schedule, status
from streamsync.cli.run import run
from streamsync.cli.settings import config_group, stats_group


@click.group()
@click.version_option(package_name="streamsync")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """streamsync - Background sync scheduler for a streaming client."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Queue commands
cli.add_command(status)
cli.add_command(schedule)
cli.add_command(cancel)
cli.add_command(force)

# Execution
cli.add_command(run)

# Settings
cli.add_command(config_group)
cli.add_command(stats_group)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_cache_dir",
    "get_config_dir",
    "get_database_path",
]
