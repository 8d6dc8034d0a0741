"""MIXCRAFT cloud progress store — the remote side of progress sync.

One JSON file per user under ``<data_dir>/cloud/``. Writes never
regress a record: incoming records are merged best-wins with what is
already stored, so replays and out-of-order pushes are harmless.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import quote

import structlog

from mixcraft.brain.merge import merge_records
from mixcraft.brain.progress import ChallengeProgress

logger = structlog.get_logger()


class CloudProgressStore:
    """Per-user progress maps persisted as JSON."""

    def __init__(self, data_dir: Path | str) -> None:
        self._dir = Path(data_dir) / "cloud"

    def _file(self, username: str) -> Path:
        # reversible encoding: one file per distinct username
        return self._dir / f"{quote(username, safe='')}.json"

    def _load(self, username: str) -> dict[str, ChallengeProgress]:
        path = self._file(username)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            logger.warning("cloud_store.load_failed", user=username, error=str(e))
            return {}
        return {
            cid: ChallengeProgress.from_dict({**record, "challenge_id": cid})
            for cid, record in data.get("progress", {}).items()
        }

    def _save(self, username: str, records: dict[str, ChallengeProgress]) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        data = {"version": 1, "progress": {cid: r.to_dict() for cid, r in records.items()}}
        self._file(username).write_text(json.dumps(data, indent=2))

    def get_all(self, username: str) -> dict[str, ChallengeProgress]:
        return self._load(username)

    def upsert_many(self, username: str, incoming: Iterable[ChallengeProgress]) -> list[ChallengeProgress]:
        """Merge records into the user's map; returns the stored results."""
        records = self._load(username)
        stored = []
        for record in incoming:
            existing = records.get(record.challenge_id)
            merged = record if existing is None else merge_records(existing, record)
            records[record.challenge_id] = merged
            stored.append(merged)
        self._save(username, records)
        logger.info("cloud_store.upserted", user=username, count=len(stored))
        return stored

    def upsert(self, username: str, record: ChallengeProgress) -> ChallengeProgress:
        return self.upsert_many(username, [record])[0]
