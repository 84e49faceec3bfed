"""JsonDirStore — date-bucketed JSON files on the local filesystem.

Layout: one directory per repository, one file per date.

    <data_dir>/<owner>__<repo>/data-<YYYY-MM-DD>.json

Each file holds {"date", "prs", "createdAt", "updatedAt"} where "prs" is a
JSON array of snapshot payloads. The format is plain enough to commit to a
repository or publish as static dashboard data.
"""

from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone

from prcycle_store.base import BaseStore
from prcycle_store.models import SnapshotRecord

logger = logging.getLogger(__name__)

_FILE_RE = re.compile(r"^data-(\d{4}-\d{2}-\d{2})\.json$")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JsonDirStore(BaseStore):
    """Stores snapshots as one JSON document per repo and date.

    Reads the whole bucket on every call and filters in memory, which is fine
    for the few hundred PRs a daily bucket holds. Configure via .prcycle.yml:
    `store: json` and `data_dir: path/to/data`.
    """

    def __init__(self, data_dir: str = "data"):
        self._data_dir = data_dir

    def _repo_dir(self, repo: str) -> str:
        return os.path.join(self._data_dir, repo.replace("/", "__"))

    def _path(self, repo: str, date: str) -> str:
        return os.path.join(self._repo_dir(repo), f"data-{date}.json")

    def _read_bucket(self, repo: str, date: str) -> dict | None:
        path = self._path(repo, date)
        if not os.path.exists(path):
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read %s: %s", path, e)
            return None
        if not isinstance(data, dict) or not isinstance(data.get("prs"), list):
            logger.warning("Ignoring malformed bucket %s", path)
            return None
        return data

    def _write_bucket(self, repo: str, date: str, data: dict) -> None:
        os.makedirs(self._repo_dir(repo), exist_ok=True)
        path = self._path(repo, date)
        tmp_path = path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)

    def save(self, record: SnapshotRecord, force_update: bool = False) -> bool:
        now = _now()
        data = self._read_bucket(record.repo, record.date) or {
            "date": record.date,
            "prs": [],
            "createdAt": now,
            "updatedAt": now,
        }
        prs = data["prs"]
        entry = {**record.payload, "number": record.pr_number, "scraped_at": record.scraped_at}

        for i, existing in enumerate(prs):
            if existing.get("number") == record.pr_number:
                if not force_update:
                    logger.debug("Snapshot %s#%d for %s already stored; skipping", record.repo, record.pr_number, record.date)
                    return False
                prs[i] = entry
                break
        else:
            prs.append(entry)

        data["updatedAt"] = now
        self._write_bucket(record.repo, record.date, data)
        return True

    def get(self, repo: str, date: str, pr_number: int) -> SnapshotRecord | None:
        for record in self.list_snapshots(repo, date):
            if record.pr_number == pr_number:
                return record
        return None

    def list_snapshots(self, repo: str, date: str) -> list[SnapshotRecord]:
        data = self._read_bucket(repo, date)
        if data is None:
            return []
        records = [
            SnapshotRecord(
                repo=repo,
                date=date,
                pr_number=entry["number"],
                scraped_at=entry.get("scraped_at") or "",
                payload=entry,
            )
            for entry in data["prs"]
            if isinstance(entry, dict) and isinstance(entry.get("number"), int)
        ]
        return sorted(records, key=lambda r: r.pr_number)

    def list_dates(self, repo: str) -> list[str]:
        repo_dir = self._repo_dir(repo)
        if not os.path.isdir(repo_dir):
            return []
        dates = [m.group(1) for m in (_FILE_RE.match(name) for name in os.listdir(repo_dir)) if m]
        return sorted(dates, reverse=True)
