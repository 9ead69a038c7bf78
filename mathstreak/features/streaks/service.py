from __future__ import annotations

from datetime import date
from typing import Optional

from mathstreak.core.balancing import Balancing
from mathstreak.core.logging import log_event
from mathstreak.core.store import ProgressStore
from mathstreak.features.diamonds.service import DiamondService
from mathstreak.models.results import ActionResult
from mathstreak.models.streak import StreakMilestones, StreakRecord, StreakStatus


def days_between(earlier: date, later: date) -> int:
    """Whole calendar days from earlier to later (negative if reversed)."""
    return later.toordinal() - earlier.toordinal()


class StreakService:
    """
    Day-gap streak state machine with freeze and diamond-priced restore.

    The regime is never stored on a timer; every read recomputes the gap
    between last_active_date and today and persists the resulting state.
    """

    def __init__(self, store: ProgressStore, balancing: Balancing, ledger: DiamondService):
        self.store = store
        self.balancing = balancing
        self.ledger = ledger

    @property
    def policy(self):
        return self.balancing.streak

    # Persistence -------------------------------------------------------
    def load(self) -> StreakRecord:
        return self.store.load_entity(self.store.key(ProgressStore.STREAK), StreakRecord.from_dict, StreakRecord)

    def _save(self, record: StreakRecord) -> None:
        self.store.save(self.store.key(ProgressStore.STREAK), record.to_dict())

    def _load_milestones(self) -> StreakMilestones:
        return self.store.load_entity(
            self.store.key(ProgressStore.STREAK_MILESTONES), StreakMilestones.from_dict, StreakMilestones
        )

    # Evaluation --------------------------------------------------------
    def gap(self, record: StreakRecord, today: date) -> Optional[int]:
        if record.last_active_date is None:
            return None
        return max(0, days_between(record.last_active_date, today))

    def _classify(self, record: StreakRecord, today: date) -> bool:
        """Apply the gap regime to a record in place. Returns True if it changed."""
        gap = self.gap(record, today)
        if gap is None or gap < self.policy.freeze_gap or record.current_streak <= 0:
            return False

        before = record.to_dict()
        if gap == self.policy.freeze_gap:
            record.is_frozen = True
            record.loss_reason = "frozen"
        elif gap == self.policy.restorable_gap:
            record.is_frozen = False
            record.loss_reason = "expired_restorable"
        else:
            record.is_frozen = False
            record.loss_reason = "expired_permanent"
            record.current_streak = 0
        return record.to_dict() != before

    def update_streak(self, *, today: Optional[date] = None) -> StreakRecord:
        current_date = today or self._local_today()
        record = self.load()
        if self._classify(record, current_date):
            self._save(record)
            log_event(
                "info",
                "streak.regime_changed",
                profile=self.store.profile,
                event_type="streak.regime_changed",
                reason=record.loss_reason,
                extra={"gap": self.gap(record, current_date), "current_streak": record.current_streak},
            )
        return record

    def check_status_on_load(self, *, today: Optional[date] = None) -> dict:
        """Evaluate the streak on app open and report what the UI should surface."""
        current_date = today or self._local_today()
        previous_streak = self.load().current_streak
        record = self.update_streak(today=current_date)
        return {
            "show_popup": record.loss_reason is not None and not self._handled_on(record, current_date),
            "loss_reason": record.loss_reason,
            "previous_streak": previous_streak,
            "current_streak": record.current_streak,
            "is_frozen": record.is_frozen,
            "gap": self.gap(record, current_date),
        }

    # Transitions -------------------------------------------------------
    def increment_by_challenge(self, *, today: Optional[date] = None) -> ActionResult:
        current_date = today or self._local_today()
        record = self.update_streak(today=current_date)
        if record.is_frozen or record.loss_reason:
            return ActionResult.fail("invalid_transition", detail=record.loss_reason, new_streak=record.current_streak)
        if record.last_active_date == current_date:
            return ActionResult.fail("already_counted_today", new_streak=record.current_streak)

        self._advance(record, current_date)
        milestone = self._advance_milestones()
        self._log_transition("streak.incremented", record)
        return ActionResult.ok(new_streak=record.current_streak, milestone_reached=milestone)

    def unfreeze_by_challenge(self, *, today: Optional[date] = None) -> ActionResult:
        current_date = today or self._local_today()
        record = self.update_streak(today=current_date)
        if not record.is_frozen or self.gap(record, current_date) != self.policy.freeze_gap:
            return ActionResult.fail("invalid_transition", detail="not_frozen", new_streak=record.current_streak)

        record.is_frozen = False
        record.loss_reason = None
        self._advance(record, current_date)
        milestone = self._advance_milestones()
        self._log_transition("streak.unfrozen", record)
        return ActionResult.ok(new_streak=record.current_streak, milestone_reached=milestone)

    def restore_expired(self, *, today: Optional[date] = None) -> ActionResult:
        current_date = today or self._local_today()
        record = self.update_streak(today=current_date)
        if (
            record.loss_reason != "expired_restorable"
            or self.gap(record, current_date) != self.policy.restorable_gap
        ):
            return ActionResult.fail("invalid_transition", detail="not_restorable", new_streak=record.current_streak)

        cost = self.balancing.game.streak_rescue_cost
        balance = self.ledger.balance()
        if cost > 0:
            spent = self.ledger.spend(cost, purpose="streak_restore")
            if not spent.success:
                return ActionResult.fail(
                    spent.reason or "insufficient_funds",
                    new_streak=record.current_streak,
                    balance=balance,
                    required=cost,
                )
            balance = spent["balance"]

        record.loss_reason = None
        record.is_frozen = False
        self._advance(record, current_date)
        milestone = self._advance_milestones()
        self._log_transition("streak.restored", record)
        return ActionResult.ok(new_streak=record.current_streak, balance=balance, milestone_reached=milestone)

    def accept_loss(self) -> ActionResult:
        record = self.load()
        previous = record.current_streak
        record.current_streak = 0
        record.is_frozen = False
        record.loss_reason = None
        self._save(record)
        self._log_transition("streak.loss_accepted", record)
        return ActionResult.ok(new_streak=0, previous_streak=previous)

    def advance_for_completion(self, *, today: Optional[date] = None) -> ActionResult:
        """Move the streak forward after a challenge completion.

        A frozen streak is unfrozen, a permanently lost one restarts at 1, and
        a restorable one is left for the player to restore or give up.
        """
        current_date = today or self._local_today()
        record = self.update_streak(today=current_date)

        if record.is_frozen:
            result = self.unfreeze_by_challenge(today=current_date)
            result.data["action"] = "unfrozen" if result.success else "none"
            return result
        if record.loss_reason == "expired_restorable":
            return ActionResult.ok(action="pending_decision", new_streak=record.current_streak, milestone_reached=False)

        action = "incremented"
        if record.loss_reason:
            self.accept_loss()
            action = "restarted"
        result = self.increment_by_challenge(today=current_date)
        if result.reason == "already_counted_today":
            return ActionResult.ok(action="already_counted_today", new_streak=result["new_streak"], milestone_reached=False)
        result.data["action"] = action if result.success else "none"
        return result

    def mark_status_handled(self, *, today: Optional[date] = None) -> StreakRecord:
        record = self.load()
        record.status_handled_date = today or self._local_today()
        self._save(record)
        return record

    def was_status_handled_today(self, *, today: Optional[date] = None) -> bool:
        return self._handled_on(self.load(), today or self._local_today())

    # Queries -----------------------------------------------------------
    def info(self, *, today: Optional[date] = None) -> dict:
        current_date = today or self._local_today()
        record = self.update_streak(today=current_date)
        gap = self.gap(record, current_date)
        status: StreakStatus = "active"
        if record.is_frozen:
            status = "frozen"
        if record.current_streak == 0:
            status = "inactive"
        milestones = self._load_milestones()
        interval = self.balancing.game.streak_milestone_interval
        return {
            "current_streak": record.current_streak,
            "longest_streak": record.longest_streak,
            "status": status,
            "is_frozen": record.is_frozen,
            "loss_reason": record.loss_reason,
            "last_active_date": record.last_active_date.isoformat() if record.last_active_date else None,
            "days_since_last_active": gap,
            "can_unfreeze": record.is_frozen and gap == self.policy.freeze_gap,
            "can_restore": record.loss_reason == "expired_restorable" and gap == self.policy.restorable_gap,
            "restore_cost": self.balancing.game.streak_rescue_cost,
            "milestones_reached": milestones.milestones_reached,
            "days_to_next_milestone": interval - (milestones.progress % interval),
        }

    # Dev tooling -------------------------------------------------------
    def set_last_active_date(self, day: Optional[date]) -> StreakRecord:
        """Move last_active_date anywhere, including backwards. Dev/test only."""
        record = self.load()
        record.last_active_date = day
        self._save(record)
        log_event(
            "warning",
            "streak.date_overridden",
            profile=self.store.profile,
            event_type="streak.date_overridden",
            extra={"last_active_date": day.isoformat() if day else None},
        )
        return record

    def reset(self) -> StreakRecord:
        record = StreakRecord()
        self._save(record)
        self.store.save(self.store.key(ProgressStore.STREAK_MILESTONES), StreakMilestones().to_dict())
        self._log_transition("streak.reset", record)
        return record

    # Internal helpers -------------------------------------------------
    def _advance(self, record: StreakRecord, day: date) -> None:
        record.current_streak += 1
        record.longest_streak = max(record.longest_streak, record.current_streak)
        record.last_active_date = day
        self._save(record)

    def _advance_milestones(self) -> bool:
        """Count one streak increment; credit the reward when an interval completes."""
        milestones = self._load_milestones()
        milestones.progress += 1
        reached = milestones.progress % self.balancing.game.streak_milestone_interval == 0
        if reached:
            milestones.milestones_reached += 1
        self.store.save(self.store.key(ProgressStore.STREAK_MILESTONES), milestones.to_dict())
        if reached:
            reward = self.balancing.game.streak_milestone_reward
            if reward > 0:
                self.ledger.add(reward, reason="streak_milestone")
            log_event(
                "info",
                "streak.milestone_reached",
                profile=self.store.profile,
                event_type="streak.milestone_reached",
                extra={"milestones_reached": milestones.milestones_reached, "reward": reward},
            )
        return reached

    def _log_transition(self, event: str, record: StreakRecord) -> None:
        log_event(
            "info",
            event,
            profile=self.store.profile,
            event_type=event,
            extra={"current_streak": record.current_streak, "longest_streak": record.longest_streak},
        )

    @staticmethod
    def _handled_on(record: StreakRecord, day: date) -> bool:
        return record.status_handled_date == day

    @staticmethod
    def _local_today() -> date:
        return date.today()
