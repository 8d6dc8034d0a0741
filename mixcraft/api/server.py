"""MIXCRAFT FastAPI server — challenge evaluation and progress sync API."""

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mixcraft.api.auth import get_current_user, login
from mixcraft.api.routes.challenges import router as challenges_router
from mixcraft.api.routes.progress import router as progress_router

app = FastAPI(
    title="MIXCRAFT",
    description="Ear-training evaluation & progression engine",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Auth endpoint (public) ──
app.post("/api/auth/login", tags=["auth"])(login)

# ── Catalog and scoring (public; targets never leave the server) ──
app.include_router(challenges_router, prefix="/api")

# ── Per-user progress — require valid JWT ──
app.include_router(
    progress_router,
    prefix="/api",
    dependencies=[Depends(get_current_user)],
)


# ── Public routes ──
@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "service": "mixcraft"}


@app.get("/api/info")
async def info() -> dict[str, object]:
    """System information and capabilities."""
    from mixcraft import __version__

    return {
        "name": "MIXCRAFT",
        "version": __version__,
        "tracks": ["sound-design", "mixing", "production", "sampling", "drum-sequencing"],
        "layers": {
            "console": "Dynamics math",
            "qc": "Scoring & evaluation",
            "brain": "Progress, skills & sync",
        },
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "auth_login": "POST /api/auth/login",
            "challenges": "GET /api/challenges",
            "challenge": "GET /api/challenges/{challenge_id}",
            "evaluate": "POST /api/challenges/{challenge_id}/evaluate",
            "progress": "GET /api/progress",
            "progress_upsert": "PUT /api/progress/{challenge_id}",
            "progress_bulk": "POST /api/progress/bulk",
            "skills": "GET /api/skills",
        },
    }
