"""Mapping between engine snapshots and store records.

The CLI layer owns this mapping — prcycle_core has no store knowledge and
prcycle_store has no core knowledge. The CLI bridges the two.
"""

from __future__ import annotations

import click

from prcycle_core.config import EngineSettings
from prcycle_core.correlation import correlation_from_settings
from prcycle_core.events import PrSnapshot
from prcycle_store.models import SnapshotRecord


def snapshot_to_record(snapshot: PrSnapshot, date: str) -> SnapshotRecord:
    return SnapshotRecord(
        repo=snapshot.repo,
        date=date,
        pr_number=snapshot.number,
        scraped_at=snapshot.scraped_at or "",
        payload=snapshot.to_dict(),
    )


def record_to_snapshot(record: SnapshotRecord) -> PrSnapshot:
    payload = {**record.payload, "repo": record.repo, "number": record.pr_number}
    if not payload.get("scraped_at"):
        payload["scraped_at"] = record.scraped_at or None
    return PrSnapshot.from_dict(payload)


def require_store(ctx: click.Context):
    """Return the configured store, or fail with a hint when nothing is persisted."""
    from prcycle_store.noop import NoOpStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError("No store configured. Add 'store: sqlite' or 'store: json' to .prcycle.yml.")
    return store


def engine_settings(ctx: click.Context) -> EngineSettings:
    """Build engine settings from the loaded config, rejecting values analyze() cannot use."""
    config = ctx.obj.get("config") if ctx.obj else None
    settings = EngineSettings.from_config(config or {})
    try:
        correlation_from_settings(settings.thread_correlation, settings.thread_window_hours)
    except (TypeError, ValueError) as e:
        raise click.UsageError(f"Invalid configuration: {e}")
    return settings


def resolve_date(store, repo: str, date: str | None) -> str:
    """Return *date*, or the newest stored date for *repo* when omitted."""
    if date:
        return date
    dates = store.list_dates(repo)
    if not dates:
        raise click.UsageError(f"No snapshots stored for {repo}. Run `prcycle collect` first.")
    return dates[0]
