"""Queue commands for the streamsync CLI.

Commands:
- status: Show the scheduler status and the pending items
- schedule: Queue a sync item
- cancel: Remove a pending item
- force: Queue an immediate high-priority item
"""

from __future__ import annotations

import sys
from datetime import datetime

import click

from streamsync.cli.config import open_scheduler
from streamsync.core.types import SyncPriority, SyncType
from streamsync.scheduler.factory import create_item

TYPE_CHOICE = click.Choice([t.value for t in SyncType])
PRIORITY_CHOICE = click.Choice([p.name.lower() for p in SyncPriority])


def _format_time(timestamp: float | None) -> str:
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


@click.command()
def status() -> None:
    """Show the scheduler status and the pending items."""
    with open_scheduler() as scheduler:
        stats = scheduler.statistics
        items = scheduler.pending_items()

        click.echo(f"Status: {scheduler.status.value}")
        click.echo(f"Pending: {len(items)} item(s), ~{scheduler.estimated_backlog():.0f}s of work")
        click.echo(
            f"Syncs: {stats.total_syncs} total, {stats.successful_syncs} ok, "
            f"{stats.failed_syncs} failed ({stats.success_rate:.0%} success)"
        )
        click.echo(f"Last sync: {_format_time(stats.last_sync_time)}")

        if items:
            click.echo("")
            for item in items:
                click.echo(
                    f"  {item.id}  {item.type.value:<14} {item.priority.name.lower():<8} "
                    f"at {_format_time(item.scheduled_time)}  "
                    f"retries {item.retry_count}  [{scheduler.explain(item.id)}]"
                )


@click.command()
@click.argument("sync_type", type=TYPE_CHOICE)
@click.option("--id", "item_id", default=None, help="Stable item id (default: generated).")
@click.option(
    "--priority",
    "-p",
    type=PRIORITY_CHOICE,
    default="normal",
    show_default=True,
    help="Item priority.",
)
@click.option("--delay", "-d", type=float, default=0.0, help="Seconds before the item may run.")
@click.option(
    "--max-retries",
    type=int,
    default=None,
    help="Retry budget (default: configuration max_retries).",
)
def schedule(
    sync_type: str,
    item_id: str | None,
    priority: str,
    delay: float,
    max_retries: int | None,
) -> None:
    """Queue a sync item.

    An item with the same id replaces the pending one.

    Examples:

        streamsync schedule favorites --id favorites

        streamsync schedule thumbnails --priority low --delay 60
    """
    if delay < 0:
        click.echo("Error: --delay must not be negative.", err=True)
        sys.exit(1)

    with open_scheduler() as scheduler:
        item = create_item(
            SyncType(sync_type),
            item_id=item_id,
            priority=SyncPriority[priority.upper()],
            delay=delay,
            max_retries=max_retries,
            configuration=scheduler.configuration,
        )
        if not scheduler.schedule(item):
            click.echo(f"Error: sync type '{sync_type}' is disabled.", err=True)
            sys.exit(1)
        click.echo(f"Scheduled {item.id}")


@click.command()
@click.argument("item_id")
def cancel(item_id: str) -> None:
    """Remove a pending item."""
    with open_scheduler() as scheduler:
        if not scheduler.cancel(item_id):
            click.echo(f"Error: no pending item '{item_id}'.", err=True)
            sys.exit(1)
        click.echo(f"Cancelled {item_id}")


@click.command()
@click.argument("sync_type", type=TYPE_CHOICE)
def force(sync_type: str) -> None:
    """Queue an immediate high-priority item ("refresh now")."""
    with open_scheduler() as scheduler:
        item = scheduler.force_run(SyncType(sync_type))
        if item is None:
            click.echo(f"Error: sync type '{sync_type}' is disabled.", err=True)
            sys.exit(1)
        click.echo(f"Scheduled {item.id}")
