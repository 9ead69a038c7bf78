from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from mathstreak.api.deps import engine_dependency, serialized, unwrap
from mathstreak.engine import ProgressionEngine

router = APIRouter()


class SpendRequest(BaseModel):
    amount: int
    purpose: str = Field("unspecified", min_length=1, max_length=64)


@router.get("/v1/diamonds")
@serialized
def get_diamonds(engine: ProgressionEngine = Depends(engine_dependency)):
    return engine.diamonds.info()


@router.post("/v1/diamonds/refresh")
@serialized
def refresh(engine: ProgressionEngine = Depends(engine_dependency)):
    """Credit any diamonds earned from task volume since the last check."""
    return engine.diamonds.update_from_progress().to_dict()


@router.post("/v1/diamonds/spend")
@serialized
def spend(req: SpendRequest, engine: ProgressionEngine = Depends(engine_dependency)):
    return unwrap(engine.diamonds.spend(req.amount, purpose=req.purpose))
