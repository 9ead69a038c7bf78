from __future__ import annotations

import random
from datetime import date, datetime
from typing import List, Optional, Tuple

from mathstreak.core.balancing import CHALLENGE_TYPES, OPERATION_TYPES, Balancing
from mathstreak.core.logging import log_event
from mathstreak.core.store import ProgressStore
from mathstreak.features.diamonds.service import DiamondService
from mathstreak.features.progress.service import ProgressService
from mathstreak.features.streaks.service import StreakService
from mathstreak.features.tasks.generator import generate_tasks
from mathstreak.models.challenge import (
    AVAILABLE_STATES,
    COMPLETED_STATES,
    FAILED_STATES,
    IN_PROGRESS_STATES,
    LOCKED_STATES,
    Challenge,
    DailyChallengeSet,
    state_for,
)
from mathstreak.models.results import ActionResult, CompletionResult


def _rating_for(errors: int) -> str:
    if errors > 5:
        return "needs_improvement"
    if errors > 2:
        return "okay"
    if errors > 0:
        return "good"
    return "perfect"


class ChallengeService:
    """Daily challenge set generation and the per-challenge state machine."""

    def __init__(
        self,
        store: ProgressStore,
        balancing: Balancing,
        *,
        rng: random.Random,
        progress: ProgressService,
        streaks: StreakService,
        ledger: DiamondService,
    ):
        self.store = store
        self.balancing = balancing
        self.rng = rng
        self.progress = progress
        self.streaks = streaks
        self.ledger = ledger

    # Generation --------------------------------------------------------
    def generate_daily_set(self, *, today: Optional[date] = None) -> DailyChallengeSet:
        """Build and persist a fresh set for a date, replacing any existing one."""
        current_date = today or self._local_today()
        game = self.balancing.game

        operations = list(OPERATION_TYPES)
        self.rng.shuffle(operations)
        selected = operations[: game.daily_challenges]

        super_index: Optional[int] = None
        if self.rng.random() < game.super_challenge_spawn_chance:
            candidates = [i for i in game.super_challenge_candidates if i < len(selected)]
            if candidates:
                super_index = self.rng.choice(candidates)

        challenges: List[Challenge] = []
        for index, operation in enumerate(selected):
            is_super = index == super_index
            info = CHALLENGE_TYPES[operation]
            count = game.super_tasks_per_challenge if is_super else game.tasks_per_challenge
            challenges.append(
                Challenge(
                    id=f"challenge_{index}_{operation}",
                    operation_type=operation,
                    name=info.name,
                    icon=info.icon,
                    difficulty=info.difficulty,
                    tasks=generate_tasks(operation, count, rng=self.rng, balancing=self.balancing),
                    state=state_for("available" if index == 0 else "locked", is_super),
                    is_super=is_super,
                )
            )

        daily = DailyChallengeSet(date=current_date, challenges=challenges)
        self._save(daily)
        log_event(
            "info",
            "challenges.generated",
            profile=self.store.profile,
            event_type="challenges.generated",
            extra={
                "date": current_date.isoformat(),
                "operations": selected,
                "super_index": super_index,
            },
        )
        return daily

    def get_or_create_todays_set(self, *, today: Optional[date] = None) -> DailyChallengeSet:
        """Load the set for a date or generate it on first access (idempotent)."""
        current_date = today or self._local_today()
        key = self.store.key(ProgressStore.CHALLENGES, current_date)
        existing = self.store.load_entity(key, DailyChallengeSet.from_dict, lambda: None)
        if existing is not None and existing.challenges:
            return existing
        return self.generate_daily_set(today=current_date)

    # Transitions -------------------------------------------------------
    def start(self, index: int, *, today: Optional[date] = None) -> ActionResult:
        daily, challenge = self._lookup(index, today)
        if challenge is None:
            return ActionResult.fail("not_found", index=index)
        if challenge.state not in AVAILABLE_STATES:
            return self._illegal("start", challenge)

        challenge.state = state_for("in_progress", challenge.is_super)
        challenge.started_at = self._now_iso()
        challenge.error_count = 0
        challenge.current_task_index = 0
        self._save(daily)
        self._log("challenge.started", challenge)
        return ActionResult.ok(challenge=challenge.to_dict())

    def record_answer(self, index: int, correct: bool, *, today: Optional[date] = None) -> ActionResult:
        daily, challenge = self._lookup(index, today)
        if challenge is None:
            return ActionResult.fail("not_found", index=index)
        if challenge.state not in IN_PROGRESS_STATES:
            return self._illegal("record_answer", challenge)

        if not correct:
            challenge.error_count += 1
            self._save(daily)
        return ActionResult.ok(challenge=challenge.to_dict(), correct=correct, error_count=challenge.error_count)

    def advance_task(self, index: int, *, today: Optional[date] = None) -> ActionResult:
        daily, challenge = self._lookup(index, today)
        if challenge is None:
            return ActionResult.fail("not_found", index=index)
        if challenge.state not in IN_PROGRESS_STATES:
            return self._illegal("advance_task", challenge)

        if challenge.current_task_index < challenge.task_count:
            challenge.current_task_index += 1
            self._save(daily)
        is_complete = challenge.current_task_index >= challenge.task_count
        return ActionResult.ok(challenge=challenge.to_dict(), is_complete=is_complete)

    def complete(
        self, index: int, *, error_count: Optional[int] = None, today: Optional[date] = None
    ) -> CompletionResult:
        current_date = today or self._local_today()
        daily, challenge = self._lookup(index, current_date)
        if challenge is None:
            return CompletionResult(success=False, reason="not_found")
        if challenge.state not in IN_PROGRESS_STATES:
            self._illegal("complete", challenge)
            return CompletionResult(success=False, reason="invalid_transition", challenge=challenge.to_dict())
        if challenge.current_task_index < challenge.task_count:
            self._log(
                "challenge.tasks_remaining",
                challenge,
                extra={"answered": challenge.current_task_index, "task_count": challenge.task_count},
            )
            return CompletionResult(success=False, reason="tasks_remaining", challenge=challenge.to_dict())

        if error_count is not None:
            challenge.error_count = max(0, error_count)
        challenge.state = state_for("completed", challenge.is_super)
        challenge.completed_at = self._now_iso()
        super_reward = 0
        if challenge.is_super:
            challenge.super_result = "success" if challenge.error_count == 0 else "failed"
        self._unlock_next_in(daily, index)
        self._save(daily)
        self._log("challenge.completed", challenge, extra={"error_count": challenge.error_count})

        progress = self.progress.record_challenge_completion(challenge.task_count, today=current_date)
        streak = self.streaks.advance_for_completion(today=current_date)
        if challenge.super_result == "success":
            super_reward = self.balancing.game.super_challenge_reward
            if super_reward > 0:
                self.ledger.add(super_reward, reason="super_challenge")
        ledger = self.ledger.update_from_progress(progress.total_tasks_completed)

        return CompletionResult(
            success=True,
            challenge=challenge.to_dict(),
            awarded=ledger.awarded,
            new_streak=streak.data.get("new_streak", 0),
            streak_action=streak.data.get("action"),
            super_result=challenge.super_result,
            super_reward=super_reward,
            all_completed=self._all_completed_in(daily),
            milestone_reached=bool(streak.data.get("milestone_reached", False)),
        )

    def fail(self, index: int, *, error_count: Optional[int] = None, today: Optional[date] = None) -> ActionResult:
        daily, challenge = self._lookup(index, today)
        if challenge is None:
            return ActionResult.fail("not_found", index=index)
        if challenge.state not in IN_PROGRESS_STATES:
            return self._illegal("fail", challenge)

        if error_count is not None:
            challenge.error_count = max(0, error_count)
        challenge.state = state_for("failed", challenge.is_super)
        if challenge.is_super:
            challenge.super_result = "failed"
        self._save(daily)
        self._log("challenge.failed", challenge, extra={"error_count": challenge.error_count})
        return ActionResult.ok(challenge=challenge.to_dict())

    def unlock_next(self, index: int, *, today: Optional[date] = None) -> ActionResult:
        daily = self.get_or_create_todays_set(today=today)
        unlocked = self._unlock_next_in(daily, index)
        if unlocked:
            self._save(daily)
        return ActionResult.ok(unlocked=unlocked)

    def reset(self, index: int, *, today: Optional[date] = None) -> ActionResult:
        """Make a failed challenge available again for a retry."""
        daily, challenge = self._lookup(index, today)
        if challenge is None:
            return ActionResult.fail("not_found", index=index)
        if challenge.state not in FAILED_STATES:
            return self._illegal("reset", challenge)

        challenge.state = state_for("available", challenge.is_super)
        challenge.error_count = 0
        challenge.current_task_index = 0
        challenge.started_at = None
        challenge.completed_at = None
        challenge.super_result = None
        self._save(daily)
        self._log("challenge.reset", challenge)
        return ActionResult.ok(challenge=challenge.to_dict())

    def claim_daily_reward(self, *, today: Optional[date] = None) -> ActionResult:
        """Credit the end-of-day reward once every challenge of the date is completed."""
        current_date = today or self._local_today()
        key = self.store.key(ProgressStore.DAILY_REWARD, current_date)
        if self.store.load(key, False):
            return ActionResult.fail("already_claimed", date=current_date.isoformat())
        if not self.all_completed(today=current_date):
            return ActionResult.fail("not_all_completed", date=current_date.isoformat())

        reward = self.balancing.game.daily_completion_reward
        balance = self.ledger.balance()
        if reward > 0:
            balance = self.ledger.add(reward, reason="daily_completion")["balance"]
        self.store.save(key, True)
        log_event(
            "info",
            "challenges.daily_reward_claimed",
            profile=self.store.profile,
            event_type="challenges.daily_reward_claimed",
            extra={"date": current_date.isoformat(), "reward": reward},
        )
        return ActionResult.ok(reward=reward, balance=balance, date=current_date.isoformat())

    # Queries -----------------------------------------------------------
    def can_start(self, index: int, *, today: Optional[date] = None) -> dict:
        _, challenge = self._lookup(index, today)
        reason: Optional[str] = None
        if challenge is None:
            reason = "not_found"
        elif challenge.state in LOCKED_STATES:
            reason = "locked"
        elif challenge.state in COMPLETED_STATES:
            reason = "already_completed"
        elif challenge.state in FAILED_STATES:
            reason = "already_attempted"
        elif challenge.state in IN_PROGRESS_STATES:
            reason = "in_progress"
        return {"can_start": reason is None, "reason": reason}

    def all_completed(self, *, today: Optional[date] = None) -> bool:
        return self._all_completed_in(self.get_or_create_todays_set(today=today))

    def current_unlocked_index(self, *, today: Optional[date] = None) -> Optional[int]:
        challenges = self.get_or_create_todays_set(today=today).challenges
        for index, challenge in enumerate(challenges):
            if challenge.state in IN_PROGRESS_STATES:
                return index
        for index, challenge in enumerate(challenges):
            if challenge.state in AVAILABLE_STATES:
                return index
        return None

    def stats(self, *, today: Optional[date] = None) -> dict:
        challenges = self.get_or_create_todays_set(today=today).challenges
        return {
            "total": len(challenges),
            "completed": sum(1 for c in challenges if c.state in COMPLETED_STATES),
            "failed": sum(1 for c in challenges if c.state in FAILED_STATES),
            "in_progress": sum(1 for c in challenges if c.state in IN_PROGRESS_STATES),
            "available": sum(1 for c in challenges if c.state in AVAILABLE_STATES),
            "locked": sum(1 for c in challenges if c.state in LOCKED_STATES),
            "total_errors": sum(c.error_count for c in challenges),
            "has_super_challenge": any(c.is_super for c in challenges),
        }

    def analyze_errors(self, index: int, *, today: Optional[date] = None) -> Optional[dict]:
        _, challenge = self._lookup(index, today)
        if challenge is None:
            return None
        total = challenge.task_count
        errors = challenge.error_count
        return {
            "total_tasks": total,
            "errors": errors,
            "correct_answers": max(0, total - errors),
            "error_rate": round(errors * 100 / total, 1) if total else 0.0,
            "rating": _rating_for(errors),
            "is_perfect": errors == 0,
        }

    # Internal helpers -------------------------------------------------
    def _lookup(self, index: int, today: Optional[date]) -> Tuple[DailyChallengeSet, Optional[Challenge]]:
        daily = self.get_or_create_todays_set(today=today)
        if not isinstance(index, int) or index < 0 or index >= len(daily.challenges):
            return daily, None
        return daily, daily.challenges[index]

    @staticmethod
    def _unlock_next_in(daily: DailyChallengeSet, index: int) -> bool:
        nxt = index + 1
        if nxt < 0 or nxt >= len(daily.challenges):
            return False
        target = daily.challenges[nxt]
        if target.state not in LOCKED_STATES:
            return False
        target.state = state_for("available", target.is_super)
        return True

    @staticmethod
    def _all_completed_in(daily: DailyChallengeSet) -> bool:
        return bool(daily.challenges) and all(c.state in COMPLETED_STATES for c in daily.challenges)

    def _save(self, daily: DailyChallengeSet) -> None:
        self.store.save(self.store.key(ProgressStore.CHALLENGES, daily.date), daily.to_dict())

    def _illegal(self, operation: str, challenge: Challenge) -> ActionResult:
        log_event(
            "info",
            "challenge.invalid_transition",
            profile=self.store.profile,
            event_type="challenge.invalid_transition",
            error_code="invalid_transition",
            extra={"operation": operation, "challenge_id": challenge.id, "state": challenge.state},
        )
        return ActionResult.fail("invalid_transition", challenge=challenge.to_dict(), state=challenge.state)

    def _log(self, event: str, challenge: Challenge, extra: Optional[dict] = None) -> None:
        payload = {"challenge_id": challenge.id, "state": challenge.state, "is_super": challenge.is_super}
        payload.update(extra or {})
        log_event("info", event, profile=self.store.profile, event_type=event, extra=payload)

    @staticmethod
    def _now_iso() -> str:
        return datetime.now().isoformat(timespec="seconds")

    @staticmethod
    def _local_today() -> date:
        return date.today()
