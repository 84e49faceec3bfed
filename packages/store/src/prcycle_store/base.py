"""Abstract store interface.

Any storage backend (SQLite, JSON directory, ...) implements this
interface. The CLI depends on BaseStore, not on a concrete backend,
so backends are swappable without touching CLI code.

Snapshots are bucketed by date and append-only within a bucket: saving a
PR that is already present for that repo and date is a no-op unless the
caller forces an update.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prcycle_store.models import SnapshotRecord


class BaseStore(ABC):
    """Pluggable persistence layer for collected PR snapshots."""

    @abstractmethod
    def save(self, record: SnapshotRecord, force_update: bool = False) -> bool:
        """Persist a snapshot. Returns False when it was skipped as a duplicate."""

    @abstractmethod
    def get(self, repo: str, date: str, pr_number: int) -> SnapshotRecord | None:
        """Return one snapshot, or None when the bucket does not hold it."""

    @abstractmethod
    def list_snapshots(self, repo: str, date: str) -> list[SnapshotRecord]:
        """Return all snapshots of a repo for one date, ordered by PR number.

        Returns an empty list if the bucket is empty — never raises.
        """

    @abstractmethod
    def list_dates(self, repo: str) -> list[str]:
        """Return the dates that hold snapshots for a repo, newest first."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional — subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
