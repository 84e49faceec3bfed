"""Snapshot storage data models.

Decoupled from prcycle_core so the store layer can be used independently
and prcycle_core has no knowledge of persistence concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SnapshotRecord:
    """One collected PR snapshot in a date bucket.

    Created by the CLI layer after collect_snapshot() returns a PrSnapshot.
    The CLI maps PrSnapshot → SnapshotRecord (payload = snapshot.to_dict())
    before calling store.save(), and back again when reading.
    """

    repo: str
    date: str  # YYYY-MM-DD bucket
    pr_number: int
    scraped_at: str  # ISO-8601 UTC timestamp
    payload: dict = field(default_factory=dict)
