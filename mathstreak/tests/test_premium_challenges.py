import random
from datetime import timedelta

from mathstreak.core.balancing import PRODUCTION_BALANCING, NutConfig, RushConfig
from mathstreak.core.store import InMemoryStore
from mathstreak.engine import build_engine


def premium_engine(*, nut=0.0, rush=0.0, funds=0, seed=3):
    balancing = PRODUCTION_BALANCING.model_copy(
        update={"nut": NutConfig(spawn_chance=nut), "rush": RushConfig(spawn_chance=rush)}
    )
    engine = build_engine(backend=InMemoryStore(), rng=random.Random(seed), balancing=balancing)
    if funds:
        engine.diamonds.add(funds)
    return engine


def advance_all(engine, kind, today):
    run = engine.premium.get_or_create(kind, today=today)
    for _ in range(run.task_count - run.current_task_index):
        engine.premium.advance_task(kind, today=today)


def test_spawn_roll_never_spawns_both(engine, today):
    for offset in range(200):
        roll = engine.premium.roll_daily_spawn(today=today + timedelta(days=offset))
        assert not (roll.nut and roll.rush)


def test_rush_forces_nut_off(today):
    engine = premium_engine(nut=1.0, rush=1.0)
    roll = engine.premium.roll_daily_spawn(today=today)
    assert roll.rush is True
    assert roll.nut is False
    assert engine.premium.get_or_create("nut", today=today).state == "not_spawned"


def test_spawn_roll_is_stable_per_date(engine, today):
    first = engine.premium.roll_daily_spawn(today=today)
    for _ in range(5):
        assert engine.premium.roll_daily_spawn(today=today) == first


def test_not_spawned_cannot_start(today):
    engine = premium_engine(funds=3)
    result = engine.premium.start("nut", today=today)
    assert result.success is False
    assert result.reason == "not_spawned"
    assert engine.diamonds.balance() == 3


def test_nut_challenge_uses_hard_tasks(today):
    engine = premium_engine(nut=1.0)
    nut = engine.premium.get_or_create("nut", today=today)
    assert nut.state == "available"
    assert nut.task_count == 5
    assert all(task.metadata["is_hard"] for task in nut.tasks)


def test_start_charges_entry_fee(today):
    engine = premium_engine(nut=1.0, funds=2)
    started = engine.premium.start("nut", today=today)
    assert started.success
    assert started["fee"] == 1
    assert engine.diamonds.balance() == 1
    assert started["premium"]["attempts"] == 1
    assert started["premium"]["state"] == "in_progress"


def test_start_without_funds_leaves_state(today):
    engine = premium_engine(nut=1.0)
    result = engine.premium.start("nut", today=today)
    assert result.reason == "insufficient_funds"
    assert engine.premium.get_or_create("nut", today=today).state == "available"


def test_nut_with_errors_fails(today):
    engine = premium_engine(nut=1.0, funds=1)
    engine.premium.start("nut", today=today)
    engine.premium.record_answer("nut", False, today=today)
    advance_all(engine, "nut", today)
    result = engine.premium.complete("nut", today=today)
    assert result["result"] == "failed"
    assert result["reward"] == 0
    assert engine.premium.get_or_create("nut", today=today).state == "failed"


def test_nut_without_errors_pays_reward(today):
    engine = premium_engine(nut=1.0, funds=1)
    engine.premium.start("nut", today=today)
    for _ in range(5):
        engine.premium.record_answer("nut", True, today=today)
        engine.premium.advance_task("nut", today=today)
    result = engine.premium.complete("nut", today=today)
    assert result["result"] == "success"
    assert result["reward"] == 2
    assert engine.diamonds.balance() == 2


def test_rush_timeout_via_tick(today):
    engine = premium_engine(rush=1.0, funds=1)
    rush = engine.premium.get_or_create("rush", today=today)
    assert rush.time_remaining == 120
    assert rush.task_count == 10
    engine.premium.start("rush", today=today)
    assert engine.premium.tick("rush", 45, today=today)["time_remaining"] == 45
    result = engine.premium.tick("rush", 0, today=today)
    assert result["result"] == "timeout"
    assert engine.premium.get_or_create("rush", today=today).state == "failed"


def test_rush_success_with_time_left(today):
    engine = premium_engine(rush=1.0, funds=1)
    engine.premium.start("rush", today=today)
    engine.premium.record_answer("rush", False, today=today)
    advance_all(engine, "rush", today)
    engine.premium.tick("rush", 30, today=today)
    result = engine.premium.complete("rush", today=today)
    assert result["result"] == "success"
    assert engine.diamonds.balance() == 2


def test_complete_requires_all_tasks(today):
    for kind, config in (("nut", {"nut": 1.0}), ("rush", {"rush": 1.0})):
        engine = premium_engine(funds=1, **config)
        engine.premium.start(kind, today=today)
        early = engine.premium.complete(kind, today=today)
        assert early.success is False
        assert early.reason == "tasks_remaining"
        assert early["answered"] == 0
        assert engine.premium.get_or_create(kind, today=today).state == "in_progress"
        assert engine.diamonds.balance() == 0


def test_unknown_kind_is_not_found(today):
    engine = premium_engine(funds=2)
    assert engine.premium.get_or_create("sprint", today=today) is None
    for result in (
        engine.premium.start("sprint", today=today),
        engine.premium.record_answer("sprint", True, today=today),
        engine.premium.complete("sprint", today=today),
        engine.premium.timeout("sprint", today=today),
        engine.premium.reset_after_failure("sprint", today=today),
    ):
        assert result.success is False
        assert result.reason == "not_found"
    assert engine.diamonds.balance() == 2


def test_tick_rejected_for_nut(today):
    engine = premium_engine(nut=1.0, funds=1)
    engine.premium.start("nut", today=today)
    assert engine.premium.tick("nut", 10, today=today).reason == "invalid_transition"
    assert engine.premium.timeout("nut", today=today).reason == "invalid_transition"


def test_reset_after_failure_charges_again(today):
    engine = premium_engine(nut=1.0, funds=2)
    engine.premium.start("nut", today=today)
    old_tasks = engine.premium.get_or_create("nut", today=today).tasks
    engine.premium.fail("nut", today=today)

    reset = engine.premium.reset_after_failure("nut", today=today)
    assert reset.success
    assert reset["premium"]["state"] == "available"
    assert reset["premium"]["result"] is None
    assert engine.premium.get_or_create("nut", today=today).tasks != old_tasks

    restarted = engine.premium.start("nut", today=today)
    assert restarted["premium"]["attempts"] == 2
    assert engine.diamonds.balance() == 0


def test_reset_only_after_failure(today):
    engine = premium_engine(nut=1.0)
    assert engine.premium.reset_after_failure("nut", today=today).reason == "invalid_transition"


def test_today_overview(engine, today):
    overview = engine.premium.today(today=today)
    assert overview["date"] == today.isoformat()
    assert set(overview) == {"date", "roll", "nut", "rush"}
    assert overview["nut"]["spawned"] == overview["roll"]["nut"]
    assert overview["rush"]["spawned"] == overview["roll"]["rush"]
