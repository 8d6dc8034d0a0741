"""MIXCRAFT Progress — per-track best-score records.

One repository per learning track, each persisted to its own JSON file
(``<data_dir>/progress/<track>.json``) as ``{"version": 1, "progress":
{challenge_id: record}}``. Records only move forward: best score, stars
and completion never regress, attempts always count up.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from mixcraft.brain.tracks import Track, classify_or_log
from mixcraft.qc.scoring import ScoreResult

if TYPE_CHECKING:
    from mixcraft.brain.catalog import ChallengeCatalog

logger = structlog.get_logger()

Listener = Callable[[list["ChallengeProgress"]], None]


# ── Data Types ───────────────────────────────────────────


@dataclass
class ChallengeProgress:
    """Durable progress for one challenge id."""

    challenge_id: str
    best_score: int = 0
    stars: int = 0  # 0–3, 0 = never passed
    attempts: int = 0
    completed: bool = False
    breakdown: dict[str, float] | None = None  # axis → score of the best run

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChallengeProgress:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class ModuleProgress:
    module: str
    completed: int = 0
    total: int = 0
    stars: int = 0
    max_stars: int = 0

    @property
    def percent(self) -> float:
        return round(self.completed / self.total * 100, 1) if self.total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "percent": self.percent}


def apply_result(existing: ChallengeProgress | None, challenge_id: str, result: ScoreResult) -> ChallengeProgress:
    """Fold one scored attempt into a progress record (pure)."""
    prior = existing or ChallengeProgress(challenge_id=challenge_id)
    breakdown = prior.breakdown
    if result.overall >= prior.best_score:
        breakdown = result.breakdown_data()
    return replace(
        prior,
        best_score=max(prior.best_score, result.overall),
        stars=max(prior.stars, result.earned_stars),
        attempts=prior.attempts + 1,
        completed=prior.completed or result.passed,
        breakdown=breakdown,
    )


# ── Repository ───────────────────────────────────────────


class ProgressRepository:
    """Progress records for a single track.

    With no ``data_dir`` the repository lives in memory only.
    """

    def __init__(self, track: Track, data_dir: Path | str | None = None) -> None:
        self.track = track
        self._file = Path(data_dir) / "progress" / f"{track.value}.json" if data_dir is not None else None
        self._records: dict[str, ChallengeProgress] = {}
        self._listeners: list[Listener] = []
        self._load()

    def _load(self) -> None:
        """Load records from disk."""
        if self._file is None or not self._file.exists():
            return
        try:
            data = json.loads(self._file.read_text())
            for challenge_id, record in data.get("progress", {}).items():
                self._records[challenge_id] = ChallengeProgress.from_dict({**record, "challenge_id": challenge_id})
            logger.info("progress.loaded", track=self.track.value, count=len(self._records))
        except (json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.warning("progress.load_failed", track=self.track.value, error=str(e))

    def _save(self) -> None:
        """Persist records to disk."""
        if self._file is None:
            return
        self._file.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "version": 1,
            "progress": {cid: record.to_dict() for cid, record in self._records.items()},
        }
        self._file.write_text(json.dumps(data, indent=2))

    # ── Queries ──

    def get(self, challenge_id: str) -> ChallengeProgress | None:
        return self._records.get(challenge_id)

    def all(self) -> dict[str, ChallengeProgress]:
        return dict(self._records)

    def __len__(self) -> int:
        return len(self._records)

    # ── Mutations ──

    def submit(self, challenge_id: str, result: ScoreResult) -> ChallengeProgress:
        """Record one scored attempt and notify listeners."""
        record = apply_result(self._records.get(challenge_id), challenge_id, result)
        self._records[challenge_id] = record
        self._save()
        logger.info(
            "progress.submitted",
            track=self.track.value,
            challenge_id=challenge_id,
            overall=result.overall,
            best_score=record.best_score,
            attempts=record.attempts,
        )
        self._notify([record])
        return record

    def write_back(self, records: Iterable[ChallengeProgress], notify: bool = False) -> int:
        """Replace stored records with already-merged ones. Returns the number changed."""
        changed = [r for r in records if self._records.get(r.challenge_id) != r]
        for record in changed:
            self._records[record.challenge_id] = record
        if changed:
            self._save()
            if notify:
                self._notify(changed)
        return len(changed)

    def clear(self) -> None:
        self._records.clear()
        self._save()

    # ── Listeners ──

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with changed records; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, records: list[ChallengeProgress]) -> None:
        for listener in list(self._listeners):
            listener(records)


class ProgressRepositories:
    """The five track repositories, routed by challenge id."""

    def __init__(self, data_dir: Path | str | None = None) -> None:
        self._repos = {track: ProgressRepository(track, data_dir) for track in Track}

    def for_track(self, track: Track) -> ProgressRepository:
        return self._repos[track]

    def for_challenge(self, challenge_id: str) -> ProgressRepository | None:
        track = classify_or_log(challenge_id)
        return self._repos[track] if track is not None else None

    def __iter__(self) -> Iterator[ProgressRepository]:
        return iter(self._repos.values())

    def get(self, challenge_id: str) -> ChallengeProgress | None:
        repo = self.for_challenge(challenge_id)
        return repo.get(challenge_id) if repo is not None else None

    def submit(self, challenge_id: str, result: ScoreResult) -> ChallengeProgress | None:
        repo = self.for_challenge(challenge_id)
        if repo is None:
            return None
        return repo.submit(challenge_id, result)

    def all_progress(self) -> dict[str, ChallengeProgress]:
        merged: dict[str, ChallengeProgress] = {}
        for repo in self._repos.values():
            merged.update(repo.all())
        return merged

    def write_back(self, records: Mapping[str, ChallengeProgress], notify: bool = False) -> int:
        """Fan merged records out to their track repositories."""
        by_track: dict[Track, list[ChallengeProgress]] = {}
        for challenge_id, record in records.items():
            track = classify_or_log(challenge_id)
            if track is not None:
                by_track.setdefault(track, []).append(record)
        return sum(self._repos[t].write_back(recs, notify=notify) for t, recs in by_track.items())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        unsubscribers = [repo.subscribe(listener) for repo in self._repos.values()]

        def unsubscribe() -> None:
            for undo in unsubscribers:
                undo()

        return unsubscribe

    def total_attempted(self) -> int:
        return sum(1 for r in self.all_progress().values() if r.attempts > 0)

    # ── Summaries ──

    def module_progress(self, module: str, catalog: ChallengeCatalog) -> ModuleProgress:
        challenges = catalog.by_module(module)
        summary = ModuleProgress(module=module, total=len(challenges), max_stars=3 * len(challenges))
        for challenge in challenges:
            record = self.get(challenge.id)
            if record is None:
                continue
            summary.completed += int(record.completed)
            summary.stars += record.stars
        return summary

    def total_progress(self, catalog: ChallengeCatalog) -> ModuleProgress:
        total = ModuleProgress(module="all")
        for module in catalog.modules():
            part = self.module_progress(module, catalog)
            total.completed += part.completed
            total.total += part.total
            total.stars += part.stars
            total.max_stars += part.max_stars
        return total
