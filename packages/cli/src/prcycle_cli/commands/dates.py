"""dates command — list the date buckets stored for a repository."""

from __future__ import annotations

import click
from rich.console import Console

from prcycle_cli.records import require_store

console = Console()


@click.command("dates")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--limit", default=30, show_default=True, help="Maximum number of dates to show.")
@click.pass_context
def dates_cmd(ctx, repo: str, limit: int):
    """List the dates that hold snapshots for a repository, newest first."""
    store = require_store(ctx)

    dates = store.list_dates(repo)
    if not dates:
        console.print("[yellow]No snapshots stored for this repository.[/yellow]")
        return

    for date in dates[:limit]:
        count = len(store.list_snapshots(repo, date))
        console.print(f"  {date}  [dim]{count} PR(s)[/dim]")
