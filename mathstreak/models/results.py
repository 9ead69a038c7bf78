from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ActionResult:
    """Outcome of an engine operation. Failures carry a machine reason."""

    success: bool
    reason: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **data: Any) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, reason: str, **data: Any) -> "ActionResult":
        return cls(success=False, reason=reason, data=data)

    def __getitem__(self, item: str) -> Any:
        return self.data[item]

    def to_dict(self) -> dict:
        payload = {"success": self.success, "reason": self.reason}
        payload.update(self.data)
        return payload


@dataclass
class LedgerUpdate:
    awarded: int
    balance: int
    total_earned: int
    tasks_completed: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CompletionResult:
    """Everything a challenge completion changed, for the UI to celebrate."""

    success: bool
    reason: Optional[str] = None
    challenge: Optional[dict] = None
    awarded: int = 0
    new_streak: int = 0
    streak_action: Optional[str] = None
    super_result: Optional[str] = None
    super_reward: int = 0
    all_completed: bool = False
    milestone_reached: bool = False

    def to_dict(self) -> dict:
        return asdict(self)
