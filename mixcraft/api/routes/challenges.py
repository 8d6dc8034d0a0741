"""MIXCRAFT API — challenge catalog and stateless evaluation."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from mixcraft.brain.catalog import ChallengeCatalog
from mixcraft.brain.skills import practice_more_suggestions
from mixcraft.qc.dispatch import ActualState, evaluate

logger = structlog.get_logger()

router = APIRouter(prefix="/challenges", tags=["challenges"])


@lru_cache(maxsize=1)
def get_catalog() -> ChallengeCatalog:
    return ChallengeCatalog.load()


# ── Models ───────────────────────────────────────────────


class EvaluateRequest(BaseModel):
    """The user's current configuration for the challenge's domain."""

    state: ActualState


# ── Endpoints ────────────────────────────────────────────


@router.get("")
async def list_challenges(module: str | None = None) -> dict[str, Any]:
    """Catalog listing (targets hidden), optionally filtered by module."""
    catalog = get_catalog()
    challenges = catalog.by_module(module) if module else list(catalog)
    return {
        "count": len(challenges),
        "modules": catalog.modules(),
        "challenges": [c.summary() for c in challenges],
    }


@router.get("/{challenge_id}")
async def get_challenge(challenge_id: str) -> dict[str, Any]:
    challenge = get_catalog().get(challenge_id)
    if challenge is None:
        raise HTTPException(status_code=404, detail=f"Challenge {challenge_id} not found")
    return challenge.summary()


@router.post("/{challenge_id}/evaluate")
async def evaluate_challenge(challenge_id: str, req: EvaluateRequest) -> dict[str, Any]:
    """Score a configuration against the hidden target. Nothing is recorded."""
    catalog = get_catalog()
    challenge = catalog.get(challenge_id)
    if challenge is None:
        logger.warning("evaluate.unknown_challenge", challenge_id=challenge_id)
        raise HTTPException(status_code=404, detail=f"Challenge {challenge_id} not found")
    if req.state.domain != challenge.target.domain:
        raise HTTPException(
            status_code=422,
            detail=f"Challenge {challenge_id} expects a '{challenge.target.domain}' state",
        )

    result = evaluate(challenge.target, req.state)
    suggestions = practice_more_suggestions(result.breakdown_data(), {}, catalog, current_id=challenge_id)
    return {
        "challenge_id": challenge_id,
        **result.to_dict(),
        "practice_more": [s.to_dict() for s in suggestions],
    }
