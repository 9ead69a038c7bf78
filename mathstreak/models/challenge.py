from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Literal, Optional

from mathstreak.models.task import Task

ChallengeState = Literal[
    "locked",
    "available",
    "in_progress",
    "completed",
    "failed",
    "super_locked",
    "super_available",
    "super_in_progress",
    "super_completed",
    "super_failed",
]
SuperResult = Literal["success", "failed"]

LOCKED_STATES = ("locked", "super_locked")
AVAILABLE_STATES = ("available", "super_available")
IN_PROGRESS_STATES = ("in_progress", "super_in_progress")
COMPLETED_STATES = ("completed", "super_completed")
FAILED_STATES = ("failed", "super_failed")


def state_for(base: str, is_super: bool) -> ChallengeState:
    """Map a base state name onto the regular or super variant."""
    return f"super_{base}" if is_super else base  # type: ignore[return-value]


@dataclass
class Challenge:
    """Domain model for one challenge of a daily set."""

    id: str
    operation_type: str
    name: str
    icon: str
    difficulty: int
    tasks: List[Task]
    state: ChallengeState = "locked"
    error_count: int = 0
    current_task_index: int = 0
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    is_super: bool = False
    super_result: Optional[SuperResult] = None

    @property
    def task_count(self) -> int:
        return len(self.tasks)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "operation_type": self.operation_type,
            "name": self.name,
            "icon": self.icon,
            "difficulty": self.difficulty,
            "tasks": [task.to_dict() for task in self.tasks],
            "state": self.state,
            "error_count": self.error_count,
            "current_task_index": self.current_task_index,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "is_super": self.is_super,
            "super_result": self.super_result,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Challenge":
        return cls(
            id=data["id"],
            operation_type=data["operation_type"],
            name=data.get("name", data["operation_type"]),
            icon=data.get("icon", ""),
            difficulty=int(data.get("difficulty", 1)),
            tasks=[Task.from_dict(t) for t in data["tasks"]],
            state=data["state"],
            error_count=int(data.get("error_count", 0)),
            current_task_index=int(data.get("current_task_index", 0)),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            is_super=bool(data.get("is_super", False)),
            super_result=data.get("super_result"),
        )


@dataclass
class DailyChallengeSet:
    """The ordered challenges generated for one calendar date."""

    date: date
    challenges: List[Challenge] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.challenges)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "challenges": [c.to_dict() for c in self.challenges],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DailyChallengeSet":
        return cls(
            date=date.fromisoformat(data["date"]),
            challenges=[Challenge.from_dict(c) for c in data["challenges"]],
        )
