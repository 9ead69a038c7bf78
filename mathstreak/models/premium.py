from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Literal, Optional

from mathstreak.models.task import Task

PremiumKind = Literal["nut", "rush"]
PremiumState = Literal["not_spawned", "available", "in_progress", "completed", "failed"]
PremiumResult = Literal["success", "failed", "timeout"]

PREMIUM_KINDS = ("nut", "rush")


@dataclass
class PremiumSpawnRoll:
    """Outcome of the shared daily spawn roll. At most one flag is true."""

    date: date
    rush: bool = False
    nut: bool = False

    def spawned(self, kind: str) -> bool:
        return self.rush if kind == "rush" else self.nut

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "rush": self.rush, "nut": self.nut}

    @classmethod
    def from_dict(cls, data: dict) -> "PremiumSpawnRoll":
        rush = bool(data.get("rush", False))
        return cls(
            date=date.fromisoformat(data["date"]),
            rush=rush,
            nut=bool(data.get("nut", False)) and not rush,
        )


@dataclass
class PremiumChallenge:
    """Domain model for a nut or rush challenge on one date."""

    kind: PremiumKind
    date: date
    spawned: bool
    state: PremiumState = "not_spawned"
    tasks: List[Task] = field(default_factory=list)
    error_count: int = 0
    current_task_index: int = 0
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    result: Optional[PremiumResult] = None
    time_remaining: Optional[int] = None
    attempts: int = 0

    @property
    def task_count(self) -> int:
        return len(self.tasks)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "date": self.date.isoformat(),
            "spawned": self.spawned,
            "state": self.state,
            "tasks": [task.to_dict() for task in self.tasks],
            "error_count": self.error_count,
            "current_task_index": self.current_task_index,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "result": self.result,
            "time_remaining": self.time_remaining,
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PremiumChallenge":
        time_remaining = data.get("time_remaining")
        return cls(
            kind=data["kind"],
            date=date.fromisoformat(data["date"]),
            spawned=bool(data["spawned"]),
            state=data["state"],
            tasks=[Task.from_dict(t) for t in data.get("tasks", [])],
            error_count=int(data.get("error_count", 0)),
            current_task_index=int(data.get("current_task_index", 0)),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            result=data.get("result"),
            time_remaining=int(time_remaining) if time_remaining is not None else None,
            attempts=int(data.get("attempts", 0)),
        )
