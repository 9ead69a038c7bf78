import json
from datetime import date

from mathstreak.cli import main
from mathstreak.core.config import settings
from mathstreak.core.store import ProgressStore, SqlKeyValueStore
from mathstreak.engine import build_engine

DAY = "2024-03-04"


def run(argv, engine, answers=()):
    lines = []
    pending = list(answers)
    code = main(argv, input_fn=lambda prompt: pending.pop(0), output=lines.append, engine=engine)
    return code, lines


def test_status_prints_snapshot(engine):
    code, lines = run(["--today", DAY, "status"], engine)
    assert code == 0
    payload = json.loads(lines[0])
    assert payload["date"] == DAY
    assert len(payload["challenges"]) == 5


def test_play_completes_challenge(engine):
    daily = engine.challenges.get_or_create_todays_set(today=date(2024, 3, 4))
    answers = ["abc"] + [str(task.answer) for task in daily.challenges[0].tasks]
    code, lines = run(["--today", DAY, "play", "0"], engine, answers)
    assert code == 0
    assert "Please enter a whole number." in lines
    assert lines.count("Correct!") == 8
    assert engine.progress.get().total_challenges_completed == 1


def test_play_empty_line_abandons(engine):
    code, lines = run(["--today", DAY, "play", "0"], engine, [""])
    assert code == 1
    assert "Challenge abandoned." in lines


def test_play_locked_challenge(engine):
    code, lines = run(["--today", DAY, "play", "4"], engine)
    assert code == 1
    assert "invalid_transition" in lines[0]


def test_simulate_gap_reports_freeze(engine):
    engine.streaks.increment_by_challenge(today=date(2024, 3, 1))
    code, lines = run(["--today", DAY, "simulate-gap", "2"], engine)
    assert code == 0
    assert json.loads(lines[0])["loss_reason"] == "frozen"


def test_reset_clears_profile(engine):
    run(["--today", DAY, "status"], engine)
    code, lines = run(["reset"], engine)
    assert code == 0
    assert lines[0].startswith("Removed ")
    assert engine.progress.get().total_tasks_completed == 0


def test_configured_sql_backend_persists_between_runs(monkeypatch, tmp_path):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "sql")
    monkeypatch.setattr(settings, "DATABASE_URL", url)
    lines = []

    assert main(["--today", DAY, "--seed", "4", "status"], output=lines.append) == 0
    first = json.loads(lines[0])["challenges"]
    assert main(["--today", DAY, "--seed", "99", "status"], output=lines.append) == 0
    assert json.loads(lines[1])["challenges"] == first

    stored = build_engine(backend=SqlKeyValueStore(url)).store
    assert stored.exists(stored.key(ProgressStore.CHALLENGES, date(2024, 3, 4)))
