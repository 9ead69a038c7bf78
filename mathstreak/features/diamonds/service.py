"""
Diamond ledger.

Diamonds are earned from lifetime practice volume (one per tasks_per_diamond
completed tasks) and from special rewards, and spent on streak rescue and
premium challenge entry.

Invariants:
- total_earned only ever grows; a diamond earned from task volume is
  credited exactly once, no matter how often update_from_progress runs.
- balance never goes negative.
- spending never touches total_earned.
"""
from __future__ import annotations

from typing import Optional

from mathstreak.core.balancing import Balancing
from mathstreak.core.logging import log_event
from mathstreak.core.store import ProgressStore
from mathstreak.features.progress.service import ProgressService
from mathstreak.models.results import ActionResult, LedgerUpdate

SCHEMA_VERSION = 2


class DiamondService:
    def __init__(self, store: ProgressStore, balancing: Balancing, progress: ProgressService):
        self.store = store
        self.balancing = balancing
        self.progress = progress
        self.migrate()

    @property
    def tasks_per_diamond(self) -> int:
        return self.balancing.game.tasks_per_diamond

    def _balance_key(self) -> str:
        return self.store.key(ProgressStore.DIAMONDS)

    def _earned_key(self) -> str:
        return self.store.key(ProgressStore.DIAMONDS_EARNED)

    def _spent_key(self) -> str:
        return self.store.key(ProgressStore.DIAMONDS_SPENT)

    def balance(self) -> int:
        return max(0, self.store.load_int(self._balance_key(), 0))

    def total_earned(self) -> int:
        return max(0, self.store.load_int(self._earned_key(), 0))

    def migrate(self) -> bool:
        """Backfill total_earned for stores written before it was tracked.

        Runs once per namespace, gated on the stored schema version. Legacy
        data gets total_earned set to what its task count already paid out,
        so nothing is credited retroactively; a fresh store starts at zero.
        """
        version_key = self.store.key(ProgressStore.SCHEMA_VERSION)
        if self.store.load_int(version_key, 0) >= SCHEMA_VERSION:
            return False

        has_legacy = self.store.exists(self.store.key(ProgressStore.PROGRESS)) or self.store.exists(
            self._balance_key()
        )
        backfilled = 0
        if not self.store.exists(self._earned_key()):
            if has_legacy:
                backfilled = self.progress.get().total_tasks_completed // self.tasks_per_diamond
            self.store.save(self._earned_key(), backfilled)
        self.store.save(version_key, SCHEMA_VERSION)
        log_event(
            "info",
            "diamonds.migrated",
            profile=self.store.profile,
            event_type="diamonds.migrated",
            extra={"legacy": has_legacy, "total_earned": self.total_earned(), "schema_version": SCHEMA_VERSION},
        )
        return True

    def update_from_progress(self, total_tasks_completed: Optional[int] = None) -> LedgerUpdate:
        """Credit diamonds earned since the last call. Idempotent for a given total."""
        if total_tasks_completed is None:
            total_tasks_completed = self.progress.get().total_tasks_completed
        should_have = total_tasks_completed // self.tasks_per_diamond
        previous = self.total_earned()
        newly = max(0, should_have - previous)
        balance = self.balance()

        if newly > 0:
            balance += newly
            self.store.save(self._balance_key(), balance)
            self.store.save(self._earned_key(), should_have)
            log_event(
                "info",
                "diamonds.awarded",
                profile=self.store.profile,
                event_type="diamonds.awarded",
                extra={"awarded": newly, "balance": balance, "tasks_completed": total_tasks_completed},
            )

        return LedgerUpdate(
            awarded=newly,
            balance=balance,
            total_earned=max(previous, should_have),
            tasks_completed=total_tasks_completed,
        )

    def spend(self, amount: int, *, purpose: str = "unspecified") -> ActionResult:
        if amount <= 0:
            return ActionResult.fail("invalid_amount", amount=amount)
        balance = self.balance()
        if balance < amount:
            log_event(
                "info",
                "diamonds.spend_rejected",
                profile=self.store.profile,
                event_type="diamonds.spend_rejected",
                error_code="insufficient_funds",
                extra={"amount": amount, "balance": balance, "purpose": purpose},
            )
            return ActionResult.fail("insufficient_funds", balance=balance, required=amount)

        remaining = balance - amount
        self.store.save(self._balance_key(), remaining)
        self.store.save(self._spent_key(), self.store.load_int(self._spent_key(), 0) + amount)
        log_event(
            "info",
            "diamonds.spent",
            profile=self.store.profile,
            event_type="diamonds.spent",
            extra={"amount": amount, "balance": remaining, "purpose": purpose},
        )
        return ActionResult.ok(spent=amount, balance=remaining)

    def add(self, amount: int, *, reason: str = "bonus") -> ActionResult:
        """Credit a reward outside task volume. Does not change total_earned."""
        if amount <= 0:
            return ActionResult.fail("invalid_amount", amount=amount)
        balance = self.balance() + amount
        self.store.save(self._balance_key(), balance)
        log_event(
            "info",
            "diamonds.added",
            profile=self.store.profile,
            event_type="diamonds.added",
            extra={"amount": amount, "balance": balance, "reason": reason},
        )
        return ActionResult.ok(added=amount, balance=balance)

    def info(self) -> dict:
        tasks_completed = self.progress.get().total_tasks_completed
        into_current = tasks_completed % self.tasks_per_diamond
        return {
            "current": self.balance(),
            "earned": self.total_earned(),
            "spent": self.store.load_int(self._spent_key(), 0),
            "tasks_completed": tasks_completed,
            "tasks_until_next": self.tasks_per_diamond - into_current,
            "progress_to_next": round(into_current * 100 / self.tasks_per_diamond),
        }
