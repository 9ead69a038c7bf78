from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from mathstreak.api.deps import engine_dependency, serialized, today_param, unwrap
from mathstreak.core.errors import NotFoundError
from mathstreak.engine import ProgressionEngine

router = APIRouter()


class AnswerRequest(BaseModel):
    correct: bool


class FinishRequest(BaseModel):
    error_count: Optional[int] = Field(None, ge=0)


@router.get("/v1/challenges/today")
@serialized
def get_today(engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    """Today's challenge set (generated on first access) plus summary stats."""
    daily = engine.challenges.get_or_create_todays_set(today=today)
    return {
        **daily.to_dict(),
        "stats": engine.challenges.stats(today=today),
        "current_unlocked_index": engine.challenges.current_unlocked_index(today=today),
        "all_completed": engine.challenges.all_completed(today=today),
    }


@router.get("/v1/challenges/{index}/can-start")
@serialized
def can_start(index: int, engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return engine.challenges.can_start(index, today=today)


@router.get("/v1/challenges/{index}/analysis")
@serialized
def analyze(index: int, engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    analysis = engine.challenges.analyze_errors(index, today=today)
    if analysis is None:
        raise NotFoundError(f"Challenge {index} not found")
    return analysis


@router.post("/v1/challenges/{index}/start")
@serialized
def start(index: int, engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return unwrap(engine.challenges.start(index, today=today))


@router.post("/v1/challenges/{index}/answer")
@serialized
def answer(
    index: int,
    req: AnswerRequest,
    engine: ProgressionEngine = Depends(engine_dependency),
    today: Optional[date] = Depends(today_param),
):
    return unwrap(engine.challenges.record_answer(index, req.correct, today=today))


@router.post("/v1/challenges/{index}/advance")
@serialized
def advance(index: int, engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return unwrap(engine.challenges.advance_task(index, today=today))


@router.post("/v1/challenges/{index}/complete")
@serialized
def complete(
    index: int,
    req: Optional[FinishRequest] = None,
    engine: ProgressionEngine = Depends(engine_dependency),
    today: Optional[date] = Depends(today_param),
):
    error_count = req.error_count if req else None
    return unwrap(engine.challenges.complete(index, error_count=error_count, today=today))


@router.post("/v1/challenges/{index}/fail")
@serialized
def fail(
    index: int,
    req: Optional[FinishRequest] = None,
    engine: ProgressionEngine = Depends(engine_dependency),
    today: Optional[date] = Depends(today_param),
):
    error_count = req.error_count if req else None
    return unwrap(engine.challenges.fail(index, error_count=error_count, today=today))


@router.post("/v1/challenges/{index}/reset")
@serialized
def reset(index: int, engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return unwrap(engine.challenges.reset(index, today=today))


@router.post("/v1/challenges/today/reward")
@serialized
def claim_reward(engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return unwrap(engine.challenges.claim_daily_reward(today=today))
