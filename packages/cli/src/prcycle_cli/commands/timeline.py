"""timeline command — reconstructed timeline and validation for one PR."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from prcycle_cli.records import engine_settings, record_to_snapshot, require_store, resolve_date
from prcycle_core.engine import analyze
from prcycle_core.errors import InvalidInputError
from prcycle_core.utils.business_hours import format_hours

console = Console()

_SEVERITY_STYLE = {"error": "red", "warning": "yellow"}


@click.command("timeline")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option("--date", "date", default=None, help="Date bucket (YYYY-MM-DD). Defaults to the newest stored date.")
@click.option("--json", "as_json", is_flag=True, help="Print the analysis as JSON.")
@click.pass_context
def timeline_cmd(ctx, repo: str, pr_number: int, date: str | None, as_json: bool):
    """Show the reconstructed timeline of one stored PR.

    Replies are indented under the review comment they answer, and
    reviewer activity under the review request it responds to. Validation
    issues and any dropped records are listed below the timeline.
    """
    store = require_store(ctx)
    date = resolve_date(store, repo, date)

    record = store.get(repo, date, pr_number)
    if record is None:
        raise click.UsageError(f"PR #{pr_number} is not stored for {repo} on {date}.")

    try:
        analysis = analyze(record_to_snapshot(record), engine_settings(ctx))
    except InvalidInputError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps(analysis.to_dict(), indent=2, ensure_ascii=False))
        return

    m = analysis.metrics
    console.print(f"\n[bold]#{m.pr_number} {escape(m.title)}[/bold]  [dim]{m.status} · {m.author or 'unknown'}[/dim]")
    if m.url:
        console.print(f"[dim]{m.url}[/dim]")

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Time (UTC)", width=16)
    table.add_column("Event")
    table.add_column("Actor", max_width=20)
    for item in analysis.timeline:
        title = "  " * item.indent_level + ("↳ " if item.indent_level else "") + item.title
        table.add_row(item.time.strftime("%Y-%m-%d %H:%M"), escape(title), escape(item.actor or ""))
    console.print(table)

    console.print(
        f"Commit→Open {format_hours(m.commit_to_open)} · Open→Review {format_hours(m.open_to_review)} · "
        f"Review→Approve {format_hours(m.review_to_approval)} · Approve→Merge {format_hours(m.approval_to_merge)} · "
        f"[bold]Total {format_hours(m.total_time)}[/bold]"
    )

    if analysis.issues:
        console.print("\n[bold]Validation issues[/bold]")
        for issue in analysis.issues:
            style = _SEVERITY_STYLE.get(issue.severity, "white")
            console.print(f"  [{style}]{issue.severity:<7}[/{style}] {issue.type:<14} {issue.message}")

    for warning in analysis.time_warnings.warnings:
        console.print(
            f"  [yellow]slow[/yellow]    {warning.label}: {format_hours(warning.actual)} "
            f"(limit {format_hours(warning.limit)})"
        )
        for reason in warning.suggested_reasons:
            console.print(f"          [dim]- {reason}[/dim]")

    if analysis.notes:
        console.print("\n[bold]Dropped records[/bold]")
        for note in analysis.notes:
            console.print(f"  [dim]{note}[/dim]")
