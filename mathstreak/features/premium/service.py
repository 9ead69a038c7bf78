"""
Premium daily challenges: the nut (hard tasks, zero errors allowed) and the
rush (mixed tasks against a countdown).

One roll per date decides which of the two appears. Rush is rolled first;
when it spawns, the nut is forced off for that date, so both never appear
together. Entry costs diamonds, success pays diamonds.
"""
from __future__ import annotations

import random
from datetime import date, datetime
from typing import List, Optional

from mathstreak.core.balancing import Balancing
from mathstreak.core.logging import log_event
from mathstreak.core.store import ProgressStore
from mathstreak.features.diamonds.service import DiamondService
from mathstreak.features.tasks.generator import generate_hard_tasks, generate_tasks
from mathstreak.models.premium import PREMIUM_KINDS, PremiumChallenge, PremiumSpawnRoll
from mathstreak.models.results import ActionResult
from mathstreak.models.task import Task


class PremiumService:
    def __init__(self, store: ProgressStore, balancing: Balancing, *, rng: random.Random, ledger: DiamondService):
        self.store = store
        self.balancing = balancing
        self.rng = rng
        self.ledger = ledger

    # Spawn roll --------------------------------------------------------
    def roll_daily_spawn(self, *, today: Optional[date] = None) -> PremiumSpawnRoll:
        """Roll (once per date) which premium challenge appears."""
        current_date = today or self._local_today()
        key = self.store.key(ProgressStore.PREMIUM_SPAWN, current_date)
        existing = self.store.load_entity(key, PremiumSpawnRoll.from_dict, lambda: None)
        if existing is not None:
            return existing

        rush = self.rng.random() < self.balancing.rush.spawn_chance
        nut = False if rush else self.rng.random() < self.balancing.nut.spawn_chance
        roll = PremiumSpawnRoll(date=current_date, rush=rush, nut=nut)
        self.store.save(key, roll.to_dict())
        log_event(
            "info",
            "premium.rolled",
            profile=self.store.profile,
            event_type="premium.rolled",
            extra={"date": current_date.isoformat(), "rush": rush, "nut": nut},
        )
        return roll

    def get_or_create(self, kind: str, *, today: Optional[date] = None) -> Optional[PremiumChallenge]:
        """Load or create the record of a kind for a date. Unknown kinds yield None."""
        current_date = today or self._local_today()
        if kind not in PREMIUM_KINDS:
            return None
        key = self._key(kind, current_date)
        existing = self.store.load_entity(key, PremiumChallenge.from_dict, lambda: None)
        if existing is not None:
            return existing

        spawned = self.roll_daily_spawn(today=current_date).spawned(kind)
        challenge = PremiumChallenge(kind=kind, date=current_date, spawned=spawned)  # type: ignore[arg-type]
        if spawned:
            challenge.state = "available"
            challenge.tasks = self._fresh_tasks(kind)
            challenge.time_remaining = self._time_limit(kind)
        self._save(challenge)
        return challenge

    # Transitions -------------------------------------------------------
    def start(self, kind: str, *, today: Optional[date] = None) -> ActionResult:
        challenge = self.get_or_create(kind, today=today)
        if challenge is None:
            return self._not_found(kind)
        if not challenge.spawned:
            return ActionResult.fail("not_spawned", kind=kind)
        if challenge.state != "available":
            return self._illegal("start", challenge)

        fee = self._config(kind).entry_fee
        balance = self.ledger.balance()
        if fee > 0:
            spent = self.ledger.spend(fee, purpose=f"premium_{kind}_entry")
            if not spent.success:
                return ActionResult.fail(
                    spent.reason or "insufficient_funds", kind=kind, balance=balance, required=fee
                )
            balance = spent["balance"]

        challenge.state = "in_progress"
        challenge.started_at = self._now_iso()
        challenge.error_count = 0
        challenge.current_task_index = 0
        challenge.result = None
        challenge.time_remaining = self._time_limit(kind)
        challenge.attempts += 1
        self._save(challenge)
        self._log("premium.started", challenge, extra={"fee": fee, "attempts": challenge.attempts})
        return ActionResult.ok(premium=challenge.to_dict(), fee=fee, balance=balance)

    def record_answer(self, kind: str, correct: bool, *, today: Optional[date] = None) -> ActionResult:
        challenge = self.get_or_create(kind, today=today)
        if challenge is None:
            return self._not_found(kind)
        if challenge.state != "in_progress":
            return self._illegal("record_answer", challenge)
        if not correct:
            challenge.error_count += 1
            self._save(challenge)
        return ActionResult.ok(premium=challenge.to_dict(), correct=correct, error_count=challenge.error_count)

    def advance_task(self, kind: str, *, today: Optional[date] = None) -> ActionResult:
        challenge = self.get_or_create(kind, today=today)
        if challenge is None:
            return self._not_found(kind)
        if challenge.state != "in_progress":
            return self._illegal("advance_task", challenge)
        if challenge.current_task_index < challenge.task_count:
            challenge.current_task_index += 1
            self._save(challenge)
        is_complete = challenge.current_task_index >= challenge.task_count
        return ActionResult.ok(premium=challenge.to_dict(), is_complete=is_complete)

    def complete(self, kind: str, *, today: Optional[date] = None) -> ActionResult:
        """Finish a run. Success depends on the kind: no errors (nut) or time left (rush)."""
        challenge = self.get_or_create(kind, today=today)
        if challenge is None:
            return self._not_found(kind)
        if challenge.state != "in_progress":
            return self._illegal("complete", challenge)

        if kind == "rush" and (challenge.time_remaining or 0) <= 0:
            return self.fail(kind, result="timeout", today=today)
        if challenge.current_task_index < challenge.task_count:
            return ActionResult.fail(
                "tasks_remaining",
                premium=challenge.to_dict(),
                answered=challenge.current_task_index,
                task_count=challenge.task_count,
            )
        if kind == "nut" and challenge.error_count > 0:
            return self.fail(kind, result="failed", today=today)

        challenge.state = "completed"
        challenge.result = "success"
        challenge.completed_at = self._now_iso()
        self._save(challenge)

        reward = self._config(kind).reward
        balance = self.ledger.balance()
        if reward > 0:
            balance = self.ledger.add(reward, reason=f"premium_{kind}")["balance"]
        self._log("premium.completed", challenge, extra={"reward": reward})
        return ActionResult.ok(premium=challenge.to_dict(), result="success", reward=reward, balance=balance)

    def tick(self, kind: str, time_remaining: int, *, today: Optional[date] = None) -> ActionResult:
        """Store the countdown advanced by the caller's clock. Zero means timeout."""
        challenge = self.get_or_create(kind, today=today)
        if challenge is None:
            return self._not_found(kind)
        if kind != "rush" or challenge.state != "in_progress":
            return self._illegal("tick", challenge)
        challenge.time_remaining = max(0, int(time_remaining))
        self._save(challenge)
        if challenge.time_remaining == 0:
            return self.timeout(kind, today=today)
        return ActionResult.ok(premium=challenge.to_dict(), time_remaining=challenge.time_remaining)

    def timeout(self, kind: str, *, today: Optional[date] = None) -> ActionResult:
        challenge = self.get_or_create(kind, today=today)
        if challenge is None:
            return self._not_found(kind)
        if kind != "rush":
            return self._illegal("timeout", challenge)
        return self.fail(kind, result="timeout", today=today)

    def fail(self, kind: str, *, result: str = "failed", today: Optional[date] = None) -> ActionResult:
        challenge = self.get_or_create(kind, today=today)
        if challenge is None:
            return self._not_found(kind)
        if challenge.state != "in_progress":
            return self._illegal("fail", challenge)
        challenge.state = "failed"
        challenge.result = "timeout" if result == "timeout" else "failed"
        challenge.completed_at = self._now_iso()
        if challenge.result == "timeout":
            challenge.time_remaining = 0
        self._save(challenge)
        self._log("premium.failed", challenge, extra={"error_count": challenge.error_count})
        return ActionResult.ok(premium=challenge.to_dict(), result=challenge.result, reward=0)

    def reset_after_failure(self, kind: str, *, today: Optional[date] = None) -> ActionResult:
        """Offer a retry with fresh tasks; the next start charges the fee again."""
        challenge = self.get_or_create(kind, today=today)
        if challenge is None:
            return self._not_found(kind)
        if challenge.state != "failed":
            return self._illegal("reset", challenge)
        challenge.state = "available"
        challenge.tasks = self._fresh_tasks(kind)
        challenge.error_count = 0
        challenge.current_task_index = 0
        challenge.started_at = None
        challenge.completed_at = None
        challenge.result = None
        challenge.time_remaining = self._time_limit(kind)
        self._save(challenge)
        self._log("premium.reset", challenge)
        return ActionResult.ok(premium=challenge.to_dict())

    # Queries -----------------------------------------------------------
    def today(self, *, today: Optional[date] = None) -> dict:
        current_date = today or self._local_today()
        roll = self.roll_daily_spawn(today=current_date)
        return {
            "date": current_date.isoformat(),
            "roll": roll.to_dict(),
            "nut": self.get_or_create("nut", today=current_date).to_dict(),
            "rush": self.get_or_create("rush", today=current_date).to_dict(),
        }

    # Internal helpers -------------------------------------------------
    def _config(self, kind: str):
        return self.balancing.rush if kind == "rush" else self.balancing.nut

    def _time_limit(self, kind: str) -> Optional[int]:
        return self.balancing.rush.time_limit_seconds if kind == "rush" else None

    def _fresh_tasks(self, kind: str) -> List[Task]:
        count = self._config(kind).task_count
        if kind == "nut":
            return generate_hard_tasks(count, rng=self.rng, balancing=self.balancing)
        return generate_tasks("mixed", count, rng=self.rng, balancing=self.balancing)

    def _key(self, kind: str, day: date) -> str:
        return self.store.key(f"{ProgressStore.PREMIUM}_{kind}", day)

    def _save(self, challenge: PremiumChallenge) -> None:
        self.store.save(self._key(challenge.kind, challenge.date), challenge.to_dict())

    def _not_found(self, kind: str) -> ActionResult:
        log_event(
            "info",
            "premium.unknown_kind",
            profile=self.store.profile,
            event_type="premium.unknown_kind",
            error_code="not_found",
            extra={"kind": kind},
        )
        return ActionResult.fail("not_found", kind=kind)

    def _illegal(self, operation: str, challenge: PremiumChallenge) -> ActionResult:
        log_event(
            "info",
            "premium.invalid_transition",
            profile=self.store.profile,
            event_type="premium.invalid_transition",
            error_code="invalid_transition",
            extra={"operation": operation, "kind": challenge.kind, "state": challenge.state},
        )
        return ActionResult.fail("invalid_transition", premium=challenge.to_dict(), state=challenge.state)

    def _log(self, event: str, challenge: PremiumChallenge, extra: Optional[dict] = None) -> None:
        payload = {"kind": challenge.kind, "state": challenge.state, "result": challenge.result}
        payload.update(extra or {})
        log_event("info", event, profile=self.store.profile, event_type=event, extra=payload)

    @staticmethod
    def _now_iso() -> str:
        return datetime.now().isoformat(timespec="seconds")

    @staticmethod
    def _local_today() -> date:
        return date.today()
