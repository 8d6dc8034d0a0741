"""MIXCRAFT Challenge Catalog — challenge metadata and hidden targets.

Storage: a single JSON file ``{"challenges": [...]}``. The packaged
catalog in ``mixcraft/data/catalog.json`` is used unless
``MIXCRAFT_CATALOG_PATH`` points elsewhere.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError

from mixcraft.brain.tracks import DOMAIN_TRACKS, Track, classify
from mixcraft.config import settings
from mixcraft.qc.dispatch import ChallengeTarget

logger = structlog.get_logger()

PACKAGED_CATALOG = Path(__file__).resolve().parent.parent / "data" / "catalog.json"


class Challenge(BaseModel):
    """One playable challenge."""

    id: str
    title: str
    description: str = ""
    module: str
    difficulty: int = Field(default=1, ge=1, le=3)
    skills: list[str] = Field(default_factory=list)
    hints: list[str] = Field(default_factory=list)
    target: ChallengeTarget

    @property
    def track(self) -> Track | None:
        return classify(self.id)

    def summary(self) -> dict[str, Any]:
        """Public metadata (the target stays hidden)."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "module": self.module,
            "difficulty": self.difficulty,
            "skills": list(self.skills),
            "hints": list(self.hints),
            "domain": self.target.domain,
            "track": self.track.value if self.track else None,
        }


class ChallengeCatalog:
    """Ordered, id-indexed collection of challenges."""

    def __init__(self, challenges: Iterable[Challenge] = ()) -> None:
        self._challenges: dict[str, Challenge] = {}
        for challenge in challenges:
            if challenge.id in self._challenges:
                raise ValueError(f"Duplicate challenge id: {challenge.id}")
            self._challenges[challenge.id] = challenge

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChallengeCatalog:
        return cls(Challenge.model_validate(item) for item in data.get("challenges", []))

    @classmethod
    def load(cls, path: Path | str | None = None) -> ChallengeCatalog:
        """Load a catalog file; defaults to the configured or packaged one."""
        catalog_file = Path(path or settings.catalog_path or PACKAGED_CATALOG)
        try:
            catalog = cls.from_dict(json.loads(catalog_file.read_text()))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error("catalog.load_failed", path=str(catalog_file), error=str(e))
            raise
        logger.info("catalog.loaded", path=str(catalog_file), count=len(catalog))
        return catalog

    def get(self, challenge_id: str) -> Challenge | None:
        return self._challenges.get(challenge_id)

    def __contains__(self, challenge_id: object) -> bool:
        return challenge_id in self._challenges

    def __iter__(self) -> Iterator[Challenge]:
        return iter(self._challenges.values())

    def __len__(self) -> int:
        return len(self._challenges)

    def modules(self) -> list[str]:
        seen: dict[str, None] = {}
        for challenge in self:
            seen.setdefault(challenge.module, None)
        return list(seen)

    def by_module(self, module: str) -> list[Challenge]:
        return [c for c in self if c.module == module]

    def tagged(self, skill: str) -> list[Challenge]:
        return [c for c in self if skill in c.skills]

    def validate(self) -> list[str]:
        """Consistency problems: unroutable ids or targets filed under the wrong track."""
        problems = []
        for challenge in self:
            track = challenge.track
            if track is None:
                problems.append(f"{challenge.id}: id matches no track prefix")
            elif DOMAIN_TRACKS[challenge.target.domain] != track:
                problems.append(
                    f"{challenge.id}: {challenge.target.domain} target routed to {track.value}"
                )
        return problems
