# mathstreak/conftest.py
import random
import sys
from datetime import date
from pathlib import Path

import pytest

# Add repo root to PYTHONPATH
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from mathstreak.core.balancing import PRODUCTION_BALANCING  # noqa: E402
from mathstreak.core.store import InMemoryStore, ProgressStore  # noqa: E402
from mathstreak.engine import build_engine, set_engine  # noqa: E402

DAY = date(2024, 3, 4)


@pytest.fixture
def today():
    return DAY


@pytest.fixture
def rng():
    """Seeded random source so generated sets are reproducible."""
    return random.Random(1234)


@pytest.fixture
def backend():
    return InMemoryStore()


@pytest.fixture
def store(backend):
    return ProgressStore(backend)


@pytest.fixture
def balancing():
    return PRODUCTION_BALANCING


@pytest.fixture
def engine(backend, rng):
    return build_engine(backend=backend, rng=rng, profile="production")


@pytest.fixture
def small_engine(backend, rng):
    """Engine with small challenges and a cheap diamond threshold (dev profile)."""
    return build_engine(backend=backend, rng=rng, profile="dev")


@pytest.fixture
def client(engine):
    """TestClient bound to a fresh in-memory engine."""
    from fastapi.testclient import TestClient

    from mathstreak.api.deps import engine_dependency
    from mathstreak.main import app

    app.dependency_overrides[engine_dependency] = lambda: engine
    set_engine(engine)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    set_engine(None)
