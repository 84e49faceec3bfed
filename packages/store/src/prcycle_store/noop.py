"""No-op store — the default when no store is configured.

Collection still runs and prints its analysis, but nothing is persisted.
Using a NoOpStore rather than None lets the CLI always call store.save()
without conditional checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prcycle_store.base import BaseStore

if TYPE_CHECKING:
    from prcycle_store.models import SnapshotRecord


class NoOpStore(BaseStore):
    """Silently discards all records — zero configuration required.

    Teams that want history switch to SQLiteStore (.prcycle.yml: store: sqlite)
    or JsonDirStore (store: json).
    """

    def save(self, record: SnapshotRecord, force_update: bool = False) -> bool:
        return False

    def get(self, repo: str, date: str, pr_number: int) -> SnapshotRecord | None:
        return None

    def list_snapshots(self, repo: str, date: str) -> list[SnapshotRecord]:
        return []

    def list_dates(self, repo: str) -> list[str]:
        return []
