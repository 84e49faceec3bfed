"""SQLiteStore — local file-based snapshot store.

Schema:
  snapshots — one row per (repo, date, pr_number). The scraped PR is kept
              as a JSON payload; nothing derived (metrics, timeline) is
              stored, it is recomputed from the payload on every read.
"""

from __future__ import annotations

import json
import logging
import sqlite3

from prcycle_store.base import BaseStore
from prcycle_store.models import SnapshotRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshots (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    repo            TEXT NOT NULL,
    date            TEXT NOT NULL,
    pr_number       INTEGER NOT NULL,
    scraped_at      TEXT,
    payload_json    TEXT DEFAULT '{}',
    UNIQUE (repo, date, pr_number)
);
CREATE INDEX IF NOT EXISTS idx_snapshots_repo_date ON snapshots (repo, date);
"""


class SQLiteStore(BaseStore):
    """Stores snapshots in a local SQLite database file.

    The database file path defaults to `.prcycle.db` in the current working
    directory. Configure via .prcycle.yml: `store_path: /path/to/prcycle.db`.
    """

    def __init__(self, db_path: str = ".prcycle.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def save(self, record: SnapshotRecord, force_update: bool = False) -> bool:
        existing = self._conn.execute(
            "SELECT id FROM snapshots WHERE repo=? AND date=? AND pr_number=?",
            (record.repo, record.date, record.pr_number),
        ).fetchone()
        payload_json = json.dumps(record.payload)

        if existing is not None:
            if not force_update:
                logger.debug("Snapshot %s#%d for %s already stored; skipping", record.repo, record.pr_number, record.date)
                return False
            self._conn.execute(
                "UPDATE snapshots SET scraped_at=?, payload_json=? WHERE id=?",
                (record.scraped_at, payload_json, existing["id"]),
            )
        else:
            self._conn.execute(
                """
                INSERT INTO snapshots (repo, date, pr_number, scraped_at, payload_json)
                VALUES (?, ?, ?, ?, ?)
                """,
                (record.repo, record.date, record.pr_number, record.scraped_at, payload_json),
            )
        self._conn.commit()
        return True

    def get(self, repo: str, date: str, pr_number: int) -> SnapshotRecord | None:
        row = self._conn.execute(
            "SELECT * FROM snapshots WHERE repo=? AND date=? AND pr_number=?",
            (repo, date, pr_number),
        ).fetchone()
        return self._row_to_record(row) if row is not None else None

    def list_snapshots(self, repo: str, date: str) -> list[SnapshotRecord]:
        rows = self._conn.execute(
            "SELECT * FROM snapshots WHERE repo=? AND date=? ORDER BY pr_number",
            (repo, date),
        ).fetchall()
        return [self._row_to_record(r) for r in rows]

    def list_dates(self, repo: str) -> list[str]:
        rows = self._conn.execute(
            "SELECT DISTINCT date FROM snapshots WHERE repo=? ORDER BY date DESC",
            (repo,),
        ).fetchall()
        return [r["date"] for r in rows]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> SnapshotRecord:
        try:
            payload = json.loads(row["payload_json"] or "{}")
        except json.JSONDecodeError:
            logger.warning("Corrupt payload for %s#%d on %s", row["repo"], row["pr_number"], row["date"])
            payload = {}
        return SnapshotRecord(
            repo=row["repo"],
            date=row["date"],
            pr_number=row["pr_number"],
            scraped_at=row["scraped_at"] or "",
            payload=payload,
        )
