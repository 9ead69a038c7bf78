from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional

LossReason = Literal["frozen", "expired_restorable", "expired_permanent"]
StreakStatus = Literal["active", "frozen", "inactive"]


def _parse_day(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


@dataclass
class StreakRecord:
    """
    Domain model for the learner's streak. Day-level, local calendar dates,
    no direct storage concerns.
    """

    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: Optional[date] = None
    is_frozen: bool = False
    loss_reason: Optional[LossReason] = None
    status_handled_date: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_active_date": self.last_active_date.isoformat() if self.last_active_date else None,
            "is_frozen": self.is_frozen,
            "loss_reason": self.loss_reason,
            "status_handled_date": self.status_handled_date.isoformat() if self.status_handled_date else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StreakRecord":
        return cls(
            current_streak=max(0, int(data.get("current_streak", 0))),
            longest_streak=max(0, int(data.get("longest_streak", 0))),
            last_active_date=_parse_day(data.get("last_active_date")),
            is_frozen=bool(data.get("is_frozen", False)),
            loss_reason=data.get("loss_reason"),
            status_handled_date=_parse_day(data.get("status_handled_date")),
        )


@dataclass
class StreakMilestones:
    """Counts streak increments so milestone rewards are paid once each."""

    progress: int = 0
    milestones_reached: int = 0

    def to_dict(self) -> dict:
        return {"progress": self.progress, "milestones_reached": self.milestones_reached}

    @classmethod
    def from_dict(cls, data: dict) -> "StreakMilestones":
        return cls(
            progress=int(data.get("progress", 0)),
            milestones_reached=int(data.get("milestones_reached", 0)),
        )
