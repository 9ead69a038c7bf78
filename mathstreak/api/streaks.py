from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from mathstreak.api.deps import engine_dependency, serialized, today_param, unwrap
from mathstreak.engine import ProgressionEngine

router = APIRouter()


@router.get("/v1/streaks/status")
@serialized
def get_status(engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    """Evaluate the streak for today and report what the UI should surface."""
    return engine.streaks.check_status_on_load(today=today)


@router.get("/v1/streaks/info")
@serialized
def get_info(engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return engine.streaks.info(today=today)


@router.post("/v1/streaks/unfreeze")
@serialized
def unfreeze(engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return unwrap(engine.streaks.unfreeze_by_challenge(today=today))


@router.post("/v1/streaks/restore")
@serialized
def restore(engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    return unwrap(engine.streaks.restore_expired(today=today))


@router.post("/v1/streaks/accept-loss")
@serialized
def accept_loss(engine: ProgressionEngine = Depends(engine_dependency)):
    return unwrap(engine.streaks.accept_loss())


@router.post("/v1/streaks/handled")
@serialized
def mark_handled(engine: ProgressionEngine = Depends(engine_dependency), today: Optional[date] = Depends(today_param)):
    record = engine.streaks.mark_status_handled(today=today)
    return {"status_handled_date": record.status_handled_date.isoformat()}
