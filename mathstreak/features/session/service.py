from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import List, Optional
from uuid import uuid4

from mathstreak.core.logging import bound_request_id, log_event
from mathstreak.features.challenges.service import ChallengeService
from mathstreak.features.premium.service import PremiumService
from mathstreak.models.results import ActionResult
from mathstreak.models.task import Task


def parse_answer(raw) -> Optional[int]:
    """Strict integer parse: the trimmed text must be exactly an integer's canonical form."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    try:
        value = int(text)
    except ValueError:
        return None
    if str(value) != text:
        return None
    return value


@dataclass
class AnswerLogEntry:
    task_index: int
    question: str
    correct_answer: int
    user_answer: int
    is_correct: bool


class PracticeSession:
    """
    One task-flow interaction: a single regular or premium challenge run.

    Holds the in-session answer log; all durable state lives in the services.
    """

    def __init__(
        self,
        challenges: ChallengeService,
        premium: PremiumService,
        *,
        session_id: Optional[str] = None,
        today: Optional[date] = None,
    ):
        self.challenges = challenges
        self.premium = premium
        self.session_id = session_id or str(uuid4())
        self.today = today
        self.mode: Optional[str] = None
        self.challenge_index: Optional[int] = None
        self.premium_kind: Optional[str] = None
        self.answers: List[AnswerLogEntry] = []

    @property
    def active(self) -> bool:
        return self.mode is not None

    def begin_challenge(self, index: int) -> ActionResult:
        with bound_request_id(self.session_id):
            result = self.challenges.start(index, today=self.today)
            if result.success:
                self._activate("challenge", index=index)
            return result

    def begin_premium(self, kind: str) -> ActionResult:
        with bound_request_id(self.session_id):
            result = self.premium.start(kind, today=self.today)
            if result.success:
                self._activate("premium", kind=kind)
            return result

    def current_task(self) -> Optional[dict]:
        record = self._record()
        if record is None:
            return None
        tasks: List[Task] = record.tasks
        index = record.current_task_index
        if index >= len(tasks):
            return None
        return {
            "task": tasks[index].to_dict(),
            "task_number": index + 1,
            "total_tasks": len(tasks),
            "errors": record.error_count,
        }

    def submit_answer(self, raw) -> ActionResult:
        """Check an answer for the current task and move the run forward."""
        with bound_request_id(self.session_id):
            current = self.current_task()
            if current is None:
                return ActionResult.fail("no_active_task")
            value = parse_answer(raw)
            if value is None:
                return ActionResult.fail("invalid_input", raw=str(raw))

            task = Task.from_dict(current["task"])
            is_correct = value == task.answer
            recorded = self._call("record_answer", is_correct)
            if not recorded.success:
                return recorded
            self.answers.append(
                AnswerLogEntry(
                    task_index=current["task_number"] - 1,
                    question=task.question,
                    correct_answer=task.answer,
                    user_answer=value,
                    is_correct=is_correct,
                )
            )
            if not is_correct:
                return ActionResult.ok(correct=False, correct_answer=task.answer, completed=False)

            advanced = self._call("advance_task")
            if not advanced.success:
                return advanced
            if not advanced["is_complete"]:
                return ActionResult.ok(correct=True, correct_answer=task.answer, completed=False)

            completion = self._finish()
            return ActionResult.ok(
                correct=True,
                correct_answer=task.answer,
                completed=True,
                completion=completion.to_dict(),
            )

    def abandon(self) -> ActionResult:
        """Leave the run early. An in-progress run counts as failed and can be retried."""
        if not self.active:
            return ActionResult.fail("no_active_task")
        with bound_request_id(self.session_id):
            if self.mode == "challenge":
                result = self.challenges.fail(self.challenge_index, today=self.today)
            else:
                result = self.premium.fail(self.premium_kind, today=self.today)
            log_event(
                "info",
                "session.abandoned",
                profile=self.challenges.store.profile,
                event_type="session.abandoned",
                extra={"mode": self.mode, "answers": len(self.answers)},
            )
        self._deactivate()
        return result

    def answer_log(self) -> List[dict]:
        return [asdict(entry) for entry in self.answers]

    # Internal helpers -------------------------------------------------
    def _activate(self, mode: str, *, index: Optional[int] = None, kind: Optional[str] = None) -> None:
        self.mode = mode
        self.challenge_index = index
        self.premium_kind = kind
        self.answers = []

    def _deactivate(self) -> None:
        self.mode = None
        self.challenge_index = None
        self.premium_kind = None

    def _record(self):
        if self.mode == "challenge":
            daily = self.challenges.get_or_create_todays_set(today=self.today)
            return daily.challenges[self.challenge_index]
        if self.mode == "premium":
            return self.premium.get_or_create(self.premium_kind, today=self.today)
        return None

    def _call(self, operation: str, *args) -> ActionResult:
        if self.mode == "challenge":
            return getattr(self.challenges, operation)(self.challenge_index, *args, today=self.today)
        return getattr(self.premium, operation)(self.premium_kind, *args, today=self.today)

    def _finish(self):
        if self.mode == "challenge":
            completion = self.challenges.complete(self.challenge_index, today=self.today)
        else:
            completion = self.premium.complete(self.premium_kind, today=self.today)
        self._deactivate()
        return completion
