"""Liveness endpoint."""

from fastapi import APIRouter, Depends

from mathstreak.api.deps import engine_dependency
from mathstreak.engine import ProgressionEngine

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz(engine: ProgressionEngine = Depends(engine_dependency)):
    """Lightweight liveness check; reports the active profile."""
    return {"status": "ok", "profile": engine.profile}
