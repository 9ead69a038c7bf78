from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal

OperationType = Literal["addition", "subtraction", "multiplication", "division", "squared", "mixed"]


@dataclass(frozen=True)
class Task:
    """One arithmetic problem. Immutable once generated."""

    question: str
    answer: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"question": self.question, "answer": self.answer, "metadata": dict(self.metadata)}

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        return cls(
            question=str(data["question"]),
            answer=int(data["answer"]),
            metadata=dict(data.get("metadata") or {}),
        )
