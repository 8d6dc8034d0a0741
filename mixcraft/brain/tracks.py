"""MIXCRAFT track routing — challenge id → learning track.

Ids are opaque strings whose leading characters encode the track. Rules
are checked in order, two-character prefixes before the one-character
prefixes they would otherwise also match (``SD-01`` is sound design, not
"S…"; ``DS-03`` is drums, not "D…").
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum

import structlog

logger = structlog.get_logger()


class Track(StrEnum):
    """The five learning tracks, one progress repository each."""

    SOUND_DESIGN = "sound-design"
    MIXING = "mixing"
    PRODUCTION = "production"
    SAMPLING = "sampling"
    DRUMS = "drum-sequencing"


def _prefix(prefix: str) -> Callable[[str], bool]:
    def matches(challenge_id: str) -> bool:
        return challenge_id.lower().startswith(prefix)

    return matches


ROUTING_RULES: tuple[tuple[Callable[[str], bool], Track], ...] = (
    (_prefix("sm"), Track.SAMPLING),
    (_prefix("sd"), Track.SOUND_DESIGN),
    (_prefix("ds"), Track.DRUMS),
    (_prefix("p"), Track.PRODUCTION),
    (_prefix("f"), Track.MIXING),
    (_prefix("i"), Track.MIXING),
    (_prefix("a"), Track.MIXING),
    (_prefix("m"), Track.MIXING),
)

# Evaluator domain → track that owns its challenges
DOMAIN_TRACKS: dict[str, Track] = {
    "subtractive": Track.SOUND_DESIGN,
    "fm": Track.SOUND_DESIGN,
    "additive": Track.SOUND_DESIGN,
    "mixing": Track.MIXING,
    "production": Track.PRODUCTION,
    "sampling": Track.SAMPLING,
    "drums": Track.DRUMS,
}


def classify(challenge_id: str) -> Track | None:
    """Track for a challenge id, or None when no rule matches."""
    for predicate, track in ROUTING_RULES:
        if predicate(challenge_id):
            return track
    return None


def classify_or_log(challenge_id: str) -> Track | None:
    track = classify(challenge_id)
    if track is None:
        logger.warning("tracks.unrouted_id", challenge_id=challenge_id)
    return track
