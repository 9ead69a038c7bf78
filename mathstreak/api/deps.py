from __future__ import annotations

from datetime import date
from functools import wraps
from typing import Optional

from fastapi import Query

from mathstreak.core.errors import error_for_reason
from mathstreak.engine import ProgressionEngine, get_engine


def engine_dependency() -> ProgressionEngine:
    """Overridden in tests via app.dependency_overrides."""
    return get_engine()


def today_param(
    today: Optional[date] = Query(None, description="Calendar date override (ISO); defaults to the local date"),
) -> Optional[date]:
    return today


def unwrap(result) -> dict:
    """Return a successful result's payload, or raise the AppError for its reason."""
    if not result.success:
        raise error_for_reason(result.reason)
    return result.to_dict()


def serialized(route):
    """Run a route body while holding the lock of its `engine` argument.

    Sync routes execute in a threadpool; every engine operation is a
    read-modify-write over the store, so one engine serves one call at a time.
    """

    @wraps(route)
    def wrapper(*args, **kwargs):
        with kwargs["engine"].lock:
            return route(*args, **kwargs)

    return wrapper
