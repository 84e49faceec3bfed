"""collect command — fetch PR snapshots from GitHub into the store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from itertools import islice

import click
from github import GithubException
from rich.console import Console
from rich.markup import escape

from prcycle_cli.records import engine_settings, snapshot_to_record
from prcycle_core.engine import analyze
from prcycle_core.errors import InvalidInputError
from prcycle_core.gh.pull_request import collect_snapshot, get_pull, get_pull_requests, get_repo
from prcycle_store.noop import NoOpStore

console = Console()
logger = logging.getLogger(__name__)


def _parse_pr_numbers(values: tuple[str, ...]) -> list[int]:
    """Accept `--pr 1 --pr 2` as well as `--pr 1,2,3`."""
    numbers: list[int] = []
    for value in values:
        for part in value.split(","):
            part = part.strip().lstrip("#")
            if not part:
                continue
            try:
                numbers.append(int(part))
            except ValueError:
                raise click.BadParameter(f"'{part}' is not a PR number.", param_hint="--pr")
    return numbers


@click.command("collect")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_values",
    multiple=True,
    help="PR number(s) to collect; repeatable or comma separated. Omit to collect by --state.",
)
@click.option(
    "--state",
    type=click.Choice(["open", "closed", "all"]),
    default="open",
    show_default=True,
    help="Which PRs to collect when --pr is not given.",
)
@click.option("--limit", default=50, show_default=True, help="Maximum number of PRs to collect by --state.")
@click.option("--date", "date", default=None, help="Date bucket (YYYY-MM-DD). Defaults to today (UTC).")
@click.option("--force", is_flag=True, help="Overwrite snapshots already stored for this date.")
@click.pass_context
def collect_cmd(ctx, repo: str, pr_values: tuple[str, ...], state: str, limit: int, date: str | None, force: bool):
    """Collect pull request snapshots and store them under a date.

    Each snapshot holds the commits, reviews, comments and timeline events
    of one PR. Metrics are not stored; `prcycle report` recomputes them.

    \b
    Token sources, first hit wins:
      PRCYCLE_GITHUB_TOKEN, GITHUB_TOKEN, GH_TOKEN, then `gh auth login`
    """
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    token = config.get("github_token")
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set PRCYCLE_GITHUB_TOKEN or GITHUB_TOKEN, or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )

    date = date or datetime.now(timezone.utc).strftime("%Y-%m-%d")
    try:
        datetime.strptime(date, "%Y-%m-%d")
    except ValueError:
        raise click.BadParameter(f"'{date}' is not a YYYY-MM-DD date.", param_hint="--date")

    settings = engine_settings(ctx)
    this_repo = get_repo(repo, token=token)
    targets: list = _parse_pr_numbers(pr_values)
    if not targets:
        targets = list(islice(get_pull_requests(this_repo, state=state), limit))
        if not targets:
            console.print(f"[yellow]No {state} pull requests found.[/yellow]")
            return

    persisting = not isinstance(store, NoOpStore)
    saved = skipped = failed = 0

    for target in targets:
        number = target if isinstance(target, int) else target.number
        try:
            pr = get_pull(this_repo, target) if isinstance(target, int) else target
            snapshot = collect_snapshot(repo, pr)
        except GithubException as e:
            logger.warning("Could not collect %s#%d: %s", repo, number, e)
            console.print(f"[red]Failed to collect #{number}: {e}[/red]")
            failed += 1
            continue

        if store.save(snapshot_to_record(snapshot, date), force_update=force):
            saved += 1
            marker = "[green]saved[/green]"
        else:
            skipped += 1
            marker = "[dim]skipped[/dim]" if persisting else "[dim]not stored[/dim]"

        try:
            analysis = analyze(snapshot, settings)
        except InvalidInputError as e:
            console.print(f"  #{snapshot.number} {marker}  [yellow]{e}[/yellow]")
            continue
        errors = sum(1 for i in analysis.issues if i.severity == "error")
        flag = f"  [red]{errors} error(s)[/red]" if errors else ""
        console.print(f"  #{snapshot.number} {marker}  {snapshot.status:<7} {escape(snapshot.title[:60])}{flag}")

    console.print(f"\n[bold]{repo}[/bold] {date}: {saved} saved, {skipped} skipped, {failed} failed")
