"""MIXCRAFT Challenge Session — the challenge currently being played."""

from __future__ import annotations

import structlog

from mixcraft.brain.catalog import Challenge, ChallengeCatalog
from mixcraft.brain.progress import ChallengeProgress, ProgressRepositories
from mixcraft.qc.dispatch import ActualState, evaluate
from mixcraft.qc.scoring import ScoreResult

logger = structlog.get_logger()


class ChallengeSession:
    """Holds the active challenge and routes its results to progress."""

    def __init__(self, catalog: ChallengeCatalog, repositories: ProgressRepositories) -> None:
        self.catalog = catalog
        self.repositories = repositories
        self.current: Challenge | None = None
        self.last_result: ScoreResult | None = None

    def load(self, challenge_id: str) -> Challenge | None:
        """Make a challenge active. Unknown ids are logged and ignored."""
        challenge = self.catalog.get(challenge_id)
        if challenge is None:
            logger.warning("session.unknown_challenge", challenge_id=challenge_id)
            return None
        self.current = challenge
        self.last_result = None
        logger.info("session.loaded", challenge_id=challenge_id, module=challenge.module)
        return challenge

    def clear(self) -> None:
        self.current = None
        self.last_result = None

    def evaluate(self, actual: ActualState) -> ScoreResult | None:
        """Score without recording (live meter)."""
        if self.current is None:
            return None
        return evaluate(self.current.target, actual)

    def submit(self, actual: ActualState) -> ScoreResult | None:
        """Score the user's configuration and record the attempt."""
        result = self.evaluate(actual)
        if result is not None:
            self.submit_result(result)
        return result

    def submit_result(self, result: ScoreResult) -> ChallengeProgress | None:
        """Record an already-scored attempt; a no-op when nothing is loaded."""
        if self.current is None:
            logger.debug("session.submit_without_challenge")
            return None
        self.last_result = result
        return self.repositories.submit(self.current.id, result)
