"""
Key-value persistence for progression state.

The engine only needs a synchronous get/set store keyed by string holding
JSON-serializable values. Two backends implement that contract:

- InMemoryStore: process-local, used by tests and the CLI by default.
- SqlKeyValueStore: one SQLAlchemy table (kv_entries), SQLite or Postgres.

ProgressStore sits on top of a backend and owns key naming, the per-profile
namespace and the "nothing was ever saved" fallback: any backend exception
or malformed payload degrades to the caller's default value.
"""
from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Protocol, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import sessionmaker

from mathstreak.core.database import create_all_tables, get_db_session, get_engine, kv_entries, make_engine

logger = logging.getLogger("mathstreak")

T = TypeVar("T")

KEY_ROOT = "mathstreak"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> bool: ...

    def delete(self, key: str) -> bool: ...

    def keys(self, prefix: str = "") -> List[str]: ...


class InMemoryStore:
    """Dict-backed store. Values are kept as JSON text, like a browser store."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> bool:
        self._data[key] = json.dumps(value)
        return True

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def put_raw(self, key: str, raw: str) -> None:
        """Write unparsed text (used to simulate corrupted entries)."""
        self._data[key] = raw


class SqlKeyValueStore:
    """
    SQLAlchemy-backed store using the kv_entries table.

    Each call runs in its own short session, so every set is an atomic
    read-modify-write from the caller's point of view.
    """

    def __init__(self, database_url: Optional[str] = None, *, engine=None) -> None:
        if engine is None:
            engine = make_engine(database_url) if database_url else get_engine()
        self._engine = engine
        self._factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        create_all_tables(engine)

    def get(self, key: str) -> Any:
        with get_db_session(self._factory) as session:
            row = session.execute(
                select(kv_entries.c.value).where(kv_entries.c.key == key)
            ).first()
        if row is None:
            return None
        return json.loads(row[0])

    def set(self, key: str, value: Any) -> bool:
        payload = json.dumps(value)
        with get_db_session(self._factory) as session:
            if self._engine.dialect.name == "sqlite":
                stmt = sqlite_insert(kv_entries).values(key=key, value=payload)
                stmt = stmt.on_conflict_do_update(index_elements=["key"], set_={"value": payload})
                session.execute(stmt)
            else:
                existing = session.execute(
                    select(kv_entries.c.key).where(kv_entries.c.key == key)
                ).first()
                if existing:
                    session.execute(
                        kv_entries.update().where(kv_entries.c.key == key).values(value=payload)
                    )
                else:
                    session.execute(kv_entries.insert().values(key=key, value=payload))
        return True

    def delete(self, key: str) -> bool:
        with get_db_session(self._factory) as session:
            result = session.execute(delete(kv_entries).where(kv_entries.c.key == key))
        return bool(result.rowcount)

    def keys(self, prefix: str = "") -> List[str]:
        with get_db_session(self._factory) as session:
            rows = session.execute(
                select(kv_entries.c.key).where(kv_entries.c.key.startswith(prefix, autoescape=True)).order_by(kv_entries.c.key)
            ).all()
        return [row[0] for row in rows]


class ProgressStore:
    """
    Typed access to progression keys within one profile namespace.

    Keys are "mathstreak_<name>" for the production profile and
    "mathstreak_<profile>_<name>" otherwise; per-day entities append
    "_<ISO date>".
    """

    CHALLENGES = "challenges"
    PROGRESS = "progress"
    STREAK = "streak"
    STREAK_MILESTONES = "streak_milestones"
    DIAMONDS = "diamonds"
    DIAMONDS_EARNED = "diamonds_earned"
    DIAMONDS_SPENT = "diamonds_spent"
    DAILY_REWARD = "daily_reward"
    PREMIUM_SPAWN = "premium_spawn"
    PREMIUM = "premium"
    SCHEMA_VERSION = "schema_version"

    def __init__(self, backend: KeyValueStore, profile: str = "production") -> None:
        self.backend = backend
        self.profile = profile
        if profile == "production":
            self.prefix = f"{KEY_ROOT}_"
        else:
            self.prefix = f"{KEY_ROOT}_{profile}_"

    def key(self, name: str, day: Optional[date] = None) -> str:
        if day is None:
            return f"{self.prefix}{name}"
        return f"{self.prefix}{name}_{day.isoformat()}"

    def load(self, key: str, default: Any = None) -> Any:
        """Read a raw JSON value; absent or unreadable entries yield the default."""
        try:
            value = self.backend.get(key)
        except Exception as exc:
            logger.warning(
                "store.read_failed",
                extra={"profile": self.profile, "event_type": "store.read_failed", "key": key, "error": str(exc)},
            )
            return default
        if value is None:
            return default
        return value

    def load_entity(self, key: str, parse: Callable[[Any], T], default: Callable[[], T]) -> T:
        """Read and parse a structured entity, degrading to a fresh default."""
        value = self.load(key)
        if value is None:
            return default()
        try:
            return parse(value)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning(
                "store.malformed_entry",
                extra={"profile": self.profile, "event_type": "store.malformed_entry", "key": key, "error": str(exc)},
            )
            return default()

    def save(self, key: str, value: Any) -> bool:
        try:
            return bool(self.backend.set(key, value))
        except Exception as exc:
            logger.error(
                "store.write_failed",
                extra={"profile": self.profile, "event_type": "store.write_failed", "key": key, "error": str(exc)},
            )
            return False

    def exists(self, key: str) -> bool:
        return self.load(key) is not None

    def remove(self, key: str) -> bool:
        try:
            return bool(self.backend.delete(key))
        except Exception as exc:
            logger.error(
                "store.delete_failed",
                extra={"profile": self.profile, "event_type": "store.delete_failed", "key": key, "error": str(exc)},
            )
            return False

    def load_int(self, key: str, default: int = 0) -> int:
        value = self.load(key, default)
        if isinstance(value, bool) or not isinstance(value, int):
            return default
        return value

    def clear_profile(self) -> int:
        """Delete every key of this profile namespace. Returns count removed."""
        try:
            keys = self.backend.keys(self.prefix)
        except Exception as exc:
            logger.error("store.list_failed", extra={"profile": self.profile, "error": str(exc)})
            return 0
        removed = 0
        for key in keys:
            # production prefix is a prefix of every other profile's prefix
            if self.profile == "production" and not self._is_production_key(key):
                continue
            if self.remove(key):
                removed += 1
        return removed

    def _is_production_key(self, key: str) -> bool:
        name = key[len(self.prefix):]
        known = (
            self.CHALLENGES, self.PROGRESS, self.STREAK, self.DIAMONDS, self.DAILY_REWARD,
            self.PREMIUM, self.SCHEMA_VERSION,
        )
        return any(name == k or name.startswith(k + "_") for k in known)
