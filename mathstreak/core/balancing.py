"""
Balancing profiles for task generation and the progression economy.

Two presets exist: PRODUCTION_BALANCING for real learners (6th grade level,
10-12 years old) and DEV_BALANCING with small numbers and fast progression
for manual testing. The active preset is chosen explicitly through the
PROFILE setting; nothing reads a hidden flag at import time.
"""
from __future__ import annotations

from typing import Dict, Tuple

from pydantic import BaseModel, Field, model_validator


class Range(BaseModel):
    min: int
    max: int

    @model_validator(mode="after")
    def _ordered(self) -> "Range":
        if self.min > self.max:
            raise ValueError(f"range min {self.min} exceeds max {self.max}")
        return self


class MultiplicationBounds(BaseModel):
    factor1: Range
    factor2: Range


class DivisionBounds(BaseModel):
    divisor: Range
    quotient: Range


class OperationBounds(BaseModel):
    """Operand bounds per operation type."""

    addition: Range
    subtraction: Range
    multiplication: MultiplicationBounds
    division: DivisionBounds
    squared: Range


class ChallengeTypeInfo(BaseModel):
    name: str
    icon: str
    difficulty: int


CHALLENGE_TYPES: Dict[str, ChallengeTypeInfo] = {
    "addition": ChallengeTypeInfo(name="Addition", icon="➕", difficulty=1),
    "subtraction": ChallengeTypeInfo(name="Subtraktion", icon="➖", difficulty=1),
    "multiplication": ChallengeTypeInfo(name="Multiplikation", icon="✖️", difficulty=2),
    "division": ChallengeTypeInfo(name="Division", icon="➗", difficulty=2),
    "squared": ChallengeTypeInfo(name="Quadratzahlen", icon="x²", difficulty=2),
    "mixed": ChallengeTypeInfo(name="Gemischt", icon="🎲", difficulty=3),
}

OPERATION_TYPES: Tuple[str, ...] = tuple(CHALLENGE_TYPES)


class StreakPolicy(BaseModel):
    """Day-gap thresholds for the streak regimes.

    A gap below freeze_gap keeps the streak intact, freeze_gap freezes it,
    restorable_gap makes it restorable for diamonds, anything larger loses it.
    """

    freeze_gap: int = 2
    restorable_gap: int = 3

    @model_validator(mode="after")
    def _ordered(self) -> "StreakPolicy":
        if not (1 <= self.freeze_gap < self.restorable_gap):
            raise ValueError("streak policy requires 1 <= freeze_gap < restorable_gap")
        return self


class NutConfig(BaseModel):
    spawn_chance: float = Field(0.3, ge=0.0, le=1.0)
    entry_fee: int = Field(1, ge=0)
    reward: int = Field(2, ge=0)
    task_count: int = Field(5, ge=1)


class RushConfig(BaseModel):
    spawn_chance: float = Field(0.15, ge=0.0, le=1.0)
    entry_fee: int = Field(1, ge=0)
    reward: int = Field(2, ge=0)
    task_count: int = Field(10, ge=1)
    time_limit_seconds: int = Field(120, ge=1)


class GameConfig(BaseModel):
    tasks_per_challenge: int = Field(8, ge=1)
    super_tasks_per_challenge: int = Field(10, ge=1)
    daily_challenges: int = Field(5, ge=1, le=6)
    tasks_per_diamond: int = Field(80, ge=1)
    streak_rescue_cost: int = Field(1, ge=0)
    super_challenge_spawn_chance: float = Field(0.25, ge=0.0, le=1.0)
    super_challenge_candidates: Tuple[int, ...] = (2, 3)
    super_challenge_reward: int = Field(1, ge=0)
    daily_completion_reward: int = Field(1, ge=0)
    streak_milestone_interval: int = Field(7, ge=1)
    streak_milestone_reward: int = Field(1, ge=0)


class Balancing(BaseModel):
    profile: str
    operations: OperationBounds
    hard_operations: OperationBounds
    game: GameConfig = GameConfig()
    streak: StreakPolicy = StreakPolicy()
    nut: NutConfig = NutConfig()
    rush: RushConfig = RushConfig()


PRODUCTION_BALANCING = Balancing(
    profile="production",
    operations=OperationBounds(
        addition=Range(min=10, max=1500),
        subtraction=Range(min=10, max=999),
        multiplication=MultiplicationBounds(factor1=Range(min=2, max=20), factor2=Range(min=2, max=20)),
        division=DivisionBounds(divisor=Range(min=2, max=12), quotient=Range(min=2, max=20)),
        squared=Range(min=2, max=20),
    ),
    hard_operations=OperationBounds(
        addition=Range(min=1000, max=9999),
        subtraction=Range(min=1000, max=9999),
        multiplication=MultiplicationBounds(factor1=Range(min=11, max=30), factor2=Range(min=11, max=30)),
        division=DivisionBounds(divisor=Range(min=11, max=25), quotient=Range(min=11, max=30)),
        squared=Range(min=15, max=35),
    ),
)

DEV_BALANCING = Balancing(
    profile="dev",
    operations=OperationBounds(
        addition=Range(min=1, max=10),
        subtraction=Range(min=1, max=10),
        multiplication=MultiplicationBounds(factor1=Range(min=1, max=5), factor2=Range(min=1, max=5)),
        division=DivisionBounds(divisor=Range(min=2, max=5), quotient=Range(min=1, max=5)),
        squared=Range(min=1, max=5),
    ),
    hard_operations=OperationBounds(
        addition=Range(min=10, max=50),
        subtraction=Range(min=10, max=50),
        multiplication=MultiplicationBounds(factor1=Range(min=3, max=9), factor2=Range(min=3, max=9)),
        division=DivisionBounds(divisor=Range(min=3, max=9), quotient=Range(min=3, max=9)),
        squared=Range(min=5, max=12),
    ),
    game=GameConfig(
        tasks_per_challenge=2,
        super_tasks_per_challenge=3,
        tasks_per_diamond=4,
        super_challenge_spawn_chance=0.75,
        streak_milestone_interval=3,
    ),
    nut=NutConfig(spawn_chance=0.5, task_count=2),
    rush=RushConfig(spawn_chance=0.4, task_count=3, time_limit_seconds=60),
)

_PROFILES = {
    "production": PRODUCTION_BALANCING,
    "dev": DEV_BALANCING,
}


def get_balancing(profile: str = "production") -> Balancing:
    """Return the balancing preset for a profile (unknown profiles use production)."""
    return _PROFILES.get(profile, PRODUCTION_BALANCING)
