"""report command — cycle-time metrics for every PR stored on a date."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from prcycle_cli.records import engine_settings, record_to_snapshot, require_store, resolve_date
from prcycle_core.engine import Analysis, analyze_batch
from prcycle_core.errors import InvalidInputError
from prcycle_core.utils.business_hours import format_hours

console = Console()

_STATUS_STYLE = {
    "Merged": "magenta",
    "Open": "green",
    "Draft": "dim",
    "Closed": "red",
}


def _average(values: list[float | None]) -> float | None:
    present = [v for v in values if v is not None]
    return sum(present) / len(present) if present else None


def _flags(analysis: Analysis) -> str:
    flags = []
    if analysis.has_errors:
        flags.append("[red]invalid[/red]")
    if analysis.has_time_warning:
        flags.append(f"[yellow]{analysis.time_warnings.warning_count} slow[/yellow]")
    if analysis.metrics.has_force_pushed:
        flags.append("force-pushed")
    if analysis.metrics.was_created_as_draft:
        flags.append("was draft")
    return ", ".join(flags)


@click.command("report")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--date", "date", default=None, help="Date bucket (YYYY-MM-DD). Defaults to the newest stored date.")
@click.option("--json", "as_json", is_flag=True, help="Print the analyses as JSON instead of a table.")
@click.pass_context
def report_cmd(ctx, repo: str, date: str | None, as_json: bool):
    """Show cycle-time metrics for the PRs collected on a date.

    Metrics are recomputed from the stored snapshots on every run, so
    configuration changes (business_hours, time_limits, ...) apply to
    past collections too.
    """
    store = require_store(ctx)
    date = resolve_date(store, repo, date)

    snapshots = []
    for record in store.list_snapshots(repo, date):
        try:
            snapshots.append(record_to_snapshot(record))
        except InvalidInputError as e:
            console.print(f"[yellow]Skipping stored PR #{record.pr_number}: {e}[/yellow]")

    analyses = analyze_batch(snapshots, engine_settings(ctx))
    if not analyses:
        console.print(f"[yellow]No snapshots found for {repo} on {date}.[/yellow]")
        return

    if as_json:
        click.echo(json.dumps({"date": date, "prs": [a.to_dict() for a in analyses]}, indent=2, ensure_ascii=False))
        return

    table = Table(title=f"Cycle Time — {repo} ({date})", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=6)
    table.add_column("Title", max_width=40)
    table.add_column("Author", max_width=16)
    table.add_column("Status", width=8)
    table.add_column("Commit→Open", justify="right")
    table.add_column("Open→Review", justify="right")
    table.add_column("Review→Approve", justify="right")
    table.add_column("Approve→Merge", justify="right")
    table.add_column("Total", justify="right", style="bold")
    table.add_column("Flags")

    for a in analyses:
        m = a.metrics
        style = _STATUS_STYLE.get(m.status, "white")
        table.add_row(
            f"#{m.pr_number}",
            escape(m.title[:40]) if m.title else "",
            m.author or "",
            f"[{style}]{m.status}[/{style}]",
            format_hours(m.commit_to_open),
            format_hours(m.open_to_review),
            format_hours(m.review_to_approval),
            format_hours(m.approval_to_merge),
            format_hours(m.total_time),
            _flags(a),
        )

    console.print(table)

    # --- Summary ---
    merged = [a.metrics for a in analyses if a.metrics.status == "Merged"]
    console.print(f"\n[bold]{len(analyses)}[/bold] PRs, [bold]{len(merged)}[/bold] merged")
    if merged:
        console.print(f"  Avg total (merged):      {format_hours(_average([m.total_time for m in merged]))}")
        console.print(f"  Avg review → approval:   {format_hours(_average([m.review_to_approval for m in merged]))}")
    invalid = sum(1 for a in analyses if a.has_errors)
    if invalid:
        console.print(f"  [red]{invalid} PR(s) with timeline errors[/red] — see `prcycle timeline --pr N`")
