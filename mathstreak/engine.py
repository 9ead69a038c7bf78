"""
Progression engine wiring.

build_engine() assembles the services for one learner namespace from a
Settings object: storage backend, balancing preset and random source. The
API and CLI share one process-wide engine through get_engine(); tests build
their own with an in-memory store and a seeded Random.
"""
from __future__ import annotations

import random
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from mathstreak.core.balancing import Balancing, get_balancing
from mathstreak.core.config import Settings, settings
from mathstreak.core.logging import log_event
from mathstreak.core.store import InMemoryStore, KeyValueStore, ProgressStore, SqlKeyValueStore
from mathstreak.features.challenges.service import ChallengeService
from mathstreak.features.diamonds.service import DiamondService
from mathstreak.features.premium.service import PremiumService
from mathstreak.features.progress.service import ProgressService
from mathstreak.features.session.service import PracticeSession
from mathstreak.features.streaks.service import StreakService


@dataclass
class ProgressionEngine:
    store: ProgressStore
    balancing: Balancing
    rng: random.Random
    progress: ProgressService
    diamonds: DiamondService
    streaks: StreakService
    challenges: ChallengeService
    premium: PremiumService
    # Serializes HTTP handlers sharing this engine.
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def profile(self) -> str:
        return self.store.profile

    def session(self, *, today: Optional[date] = None, session_id: Optional[str] = None) -> PracticeSession:
        return PracticeSession(self.challenges, self.premium, today=today, session_id=session_id)

    def status(self, *, today: Optional[date] = None) -> dict:
        """Snapshot of everything the home screen shows for a date."""
        current_date = today or date.today()
        daily = self.challenges.get_or_create_todays_set(today=current_date)
        return {
            "date": current_date.isoformat(),
            "profile": self.profile,
            "streak": self.streaks.check_status_on_load(today=current_date),
            "streak_info": self.streaks.info(today=current_date),
            "diamonds": self.diamonds.info(),
            "progress": self.progress.get().to_dict(),
            "challenges": [
                {
                    "index": index,
                    "name": c.name,
                    "icon": c.icon,
                    "state": c.state,
                    "is_super": c.is_super,
                    "error_count": c.error_count,
                    "task_count": c.task_count,
                }
                for index, c in enumerate(daily.challenges)
            ],
            "current_unlocked_index": self.challenges.current_unlocked_index(today=current_date),
            "premium": self.premium.roll_daily_spawn(today=current_date).to_dict(),
        }

    def reset_profile(self) -> int:
        removed = self.store.clear_profile()
        self.diamonds.migrate()
        log_event("warning", "engine.profile_reset", profile=self.profile, event_type="engine.profile_reset", extra={"removed": removed})
        return removed


def build_backend(settings_obj: Settings) -> KeyValueStore:
    if settings_obj.STORAGE_BACKEND == "sql":
        return SqlKeyValueStore(settings_obj.DATABASE_URL)
    return InMemoryStore()


def build_engine(
    settings_obj: Optional[Settings] = None,
    *,
    backend: Optional[KeyValueStore] = None,
    rng: Optional[random.Random] = None,
    profile: Optional[str] = None,
    balancing: Optional[Balancing] = None,
) -> ProgressionEngine:
    cfg = settings_obj or settings
    active_profile = profile or cfg.PROFILE
    store = ProgressStore(backend if backend is not None else build_backend(cfg), profile=active_profile)
    active_balancing = balancing or get_balancing(active_profile)
    random_source = rng or random.Random(cfg.RNG_SEED)

    progress = ProgressService(store)
    diamonds = DiamondService(store, active_balancing, progress)
    streaks = StreakService(store, active_balancing, diamonds)
    challenges = ChallengeService(
        store,
        active_balancing,
        rng=random_source,
        progress=progress,
        streaks=streaks,
        ledger=diamonds,
    )
    premium = PremiumService(store, active_balancing, rng=random_source, ledger=diamonds)
    return ProgressionEngine(
        store=store,
        balancing=active_balancing,
        rng=random_source,
        progress=progress,
        diamonds=diamonds,
        streaks=streaks,
        challenges=challenges,
        premium=premium,
    )


_engine: Optional[ProgressionEngine] = None


def get_engine() -> ProgressionEngine:
    """Process-wide engine, built lazily from settings."""
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def set_engine(engine: Optional[ProgressionEngine]) -> None:
    global _engine
    _engine = engine
