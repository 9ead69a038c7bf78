from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from mathstreak.api.deps import engine_dependency, serialized, today_param, unwrap
from mathstreak.engine import ProgressionEngine

router = APIRouter()

Kind = Literal["nut", "rush"]


class AnswerRequest(BaseModel):
    correct: bool


class TickRequest(BaseModel):
    time_remaining: int = Field(..., ge=0)


@router.get("/v1/premium/today")
@serialized
def get_today(engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return engine.premium.today(today=today)


@router.post("/v1/premium/{kind}/start")
@serialized
def start(kind: Kind, engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return unwrap(engine.premium.start(kind, today=today))


@router.post("/v1/premium/{kind}/answer")
@serialized
def answer(
    kind: Kind,
    req: AnswerRequest,
    engine: ProgressionEngine = Depends(engine_dependency),
    today: Optional[date] = Depends(today_param),
):
    return unwrap(engine.premium.record_answer(kind, req.correct, today=today))


@router.post("/v1/premium/{kind}/advance")
@serialized
def advance(kind: Kind, engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return unwrap(engine.premium.advance_task(kind, today=today))


@router.post("/v1/premium/{kind}/complete")
@serialized
def complete(kind: Kind, engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return unwrap(engine.premium.complete(kind, today=today))


@router.post("/v1/premium/{kind}/tick")
@serialized
def tick(
    kind: Kind,
    req: TickRequest,
    engine: ProgressionEngine = Depends(engine_dependency),
    today: Optional[date] = Depends(today_param),
):
    return unwrap(engine.premium.tick(kind, req.time_remaining, today=today))


@router.post("/v1/premium/{kind}/timeout")
@serialized
def timeout(kind: Kind, engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return unwrap(engine.premium.timeout(kind, today=today))


@router.post("/v1/premium/{kind}/reset")
@serialized
def reset(kind: Kind, engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return unwrap(engine.premium.reset_after_failure(kind, today=today))
