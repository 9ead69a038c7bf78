from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass
class Progress:
    """Aggregate practice counters. Only ever incremented by completions."""

    total_tasks_completed: int = 0
    total_challenges_completed: int = 0
    last_played_date: Optional[date] = None
    tasks_completed_today: int = 0

    def to_dict(self) -> dict:
        return {
            "total_tasks_completed": self.total_tasks_completed,
            "total_challenges_completed": self.total_challenges_completed,
            "last_played_date": self.last_played_date.isoformat() if self.last_played_date else None,
            "tasks_completed_today": self.tasks_completed_today,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Progress":
        last = data.get("last_played_date")
        return cls(
            total_tasks_completed=int(data.get("total_tasks_completed", 0)),
            total_challenges_completed=int(data.get("total_challenges_completed", 0)),
            last_played_date=date.fromisoformat(last) if last else None,
            tasks_completed_today=int(data.get("tasks_completed_today", 0)),
        )
