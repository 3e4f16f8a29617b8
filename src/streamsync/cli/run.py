"""Run command for the streamsync CLI.

Commands:
- run: Process the queue once against a backend
"""

from __future__ import annotations

import sys

import click

from streamsync.cli.config import get_cache_dir, open_scheduler


@click.command()
@click.option(
    "--base-url",
    envvar="STREAMSYNC_BASE_URL",
    required=True,
    help="Backend URL (or STREAMSYNC_BASE_URL).",
)
@click.option(
    "--token",
    envvar="STREAMSYNC_TOKEN",
    default=None,
    help="Bearer token sent to the backend (or STREAMSYNC_TOKEN).",
)
@click.option("--timeout", type=float, default=10.0, show_default=True, help="Request timeout.")
def run(base_url: str, token: str | None, timeout: float) -> None:
    """Process the queue once, within the run budget.

    Items left over (not yet eligible, or beyond the budget) stay queued
    for the next run.
    """
    import httpx

    from streamsync.handlers import default_handlers

    headers = {"Authorization": f"Bearer {token}"} if token else {}
    with httpx.Client(base_url=base_url, headers=headers, timeout=timeout) as client:
        handlers = default_handlers(client, get_cache_dir())
        with open_scheduler(handlers) as scheduler:
            scheduler.add_terminal_failure_listener(
                lambda item, error: click.echo(f"Dropped {item.id}: {error}", err=True)
            )
            result = scheduler.run_once()
            remaining = len(scheduler.pending_items())

    if result is None:
        click.echo("Error: a run is already in progress.", err=True)
        sys.exit(1)

    click.echo(
        f"Run finished ({result.halt_reason.value}) in {result.duration:.1f}s: "
        f"{result.succeeded} ok, {result.failed} failed, {result.retried} retried"
    )
    click.echo(f"Pending: {remaining} item(s)")
    if result.failed and not result.succeeded:
        sys.exit(1)
