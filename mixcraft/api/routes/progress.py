"""MIXCRAFT API — progress routes (remote store for sync) and skill report."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from mixcraft.api.auth import CurrentUser
from mixcraft.api.routes.challenges import get_catalog
from mixcraft.api.store import CloudProgressStore
from mixcraft.brain.progress import ChallengeProgress
from mixcraft.brain.skills import skill_report
from mixcraft.config import settings

router = APIRouter(tags=["progress"])

MAX_BULK = 400


# ── Models ───────────────────────────────────────────────


class ProgressRecord(BaseModel):
    """Validated wire form of one progress record."""

    challenge_id: str = Field(min_length=1)
    best_score: int = Field(ge=0, le=100)
    stars: int = Field(ge=0, le=3)
    attempts: int = Field(ge=0)
    completed: bool
    breakdown: dict[str, float] | None = None

    def to_progress(self) -> ChallengeProgress:
        return ChallengeProgress(**self.model_dump())


class BulkUpsertRequest(BaseModel):
    records: list[ProgressRecord] = Field(max_length=MAX_BULK)


def _store() -> CloudProgressStore:
    return CloudProgressStore(settings.data_dir)


# ── Endpoints ────────────────────────────────────────────


@router.get("/progress")
async def get_progress(user: CurrentUser) -> dict[str, Any]:
    """All progress stored for the caller."""
    records = _store().get_all(user.username)
    return {"progress": {cid: r.to_dict() for cid, r in records.items()}}


@router.put("/progress/{challenge_id}")
async def upsert_progress(challenge_id: str, record: ProgressRecord, user: CurrentUser) -> dict[str, Any]:
    """Best-wins upsert of one record."""
    if record.challenge_id != challenge_id:
        raise HTTPException(status_code=400, detail="challenge_id does not match the URL")
    stored = _store().upsert(user.username, record.to_progress())
    return stored.to_dict()


@router.post("/progress/bulk")
async def bulk_upsert_progress(req: BulkUpsertRequest, user: CurrentUser) -> dict[str, Any]:
    """Best-wins upsert of up to 400 records."""
    stored = _store().upsert_many(user.username, (r.to_progress() for r in req.records))
    return {"count": len(stored)}


@router.get("/skills")
async def get_skills(user: CurrentUser) -> dict[str, Any]:
    """Skill scores, weaknesses and recommendations from the caller's stored progress."""
    return skill_report(_store().get_all(user.username), get_catalog())
