from __future__ import annotations

from datetime import date
from typing import Optional

from mathstreak.core.logging import log_event
from mathstreak.core.store import ProgressStore
from mathstreak.models.progress import Progress


class ProgressService:
    """Aggregate practice counters, persisted as one entity."""

    def __init__(self, store: ProgressStore):
        self.store = store

    @property
    def _key(self) -> str:
        return self.store.key(ProgressStore.PROGRESS)

    def get(self) -> Progress:
        return self.store.load_entity(self._key, Progress.from_dict, Progress)

    def record_challenge_completion(self, task_count: int, *, today: Optional[date] = None) -> Progress:
        current_date = today or date.today()
        progress = self.get()
        if progress.last_played_date != current_date:
            progress.tasks_completed_today = 0
        progress.total_tasks_completed += task_count
        progress.total_challenges_completed += 1
        progress.tasks_completed_today += task_count
        progress.last_played_date = current_date
        self.store.save(self._key, progress.to_dict())
        log_event(
            "info",
            "progress.recorded",
            profile=self.store.profile,
            event_type="progress.recorded",
            extra={"task_count": task_count, "total_tasks_completed": progress.total_tasks_completed},
        )
        return progress
