"""
Developer CLI for the progression engine.

Usage:
    python -m mathstreak.cli [--profile dev] [--db sqlite:///mathstreak.db] status
    python -m mathstreak.cli play 0
    python -m mathstreak.cli simulate-gap 2
    python -m mathstreak.cli reset

Without --db the backend comes from MATHSTREAK_STORAGE_BACKEND and
MATHSTREAK_DATABASE_URL; the default memory backend lasts one command.
"""
from __future__ import annotations

import argparse
import json
import random
from datetime import date, timedelta
from typing import Callable, List, Optional

from mathstreak.core.config import settings, validate_config
from mathstreak.core.logging import bound_request_id, configure_logging
from mathstreak.core.store import SqlKeyValueStore
from mathstreak.engine import ProgressionEngine, build_backend, build_engine


def _print_json(payload, output: Callable[[str], None]) -> None:
    output(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def cmd_status(engine: ProgressionEngine, today: date, output: Callable[[str], None]) -> int:
    _print_json(engine.status(today=today), output)
    return 0


def cmd_play(
    engine: ProgressionEngine,
    index: int,
    today: date,
    *,
    input_fn: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
) -> int:
    """Play one challenge in the terminal. An empty line abandons the run."""
    session = engine.session(today=today)
    started = session.begin_challenge(index)
    if not started.success:
        output(f"Cannot start challenge {index}: {started.reason}")
        return 1

    while session.active:
        current = session.current_task()
        if current is None:
            break
        raw = input_fn(f"[{current['task_number']}/{current['total_tasks']}] {current['task']['question']} = ")
        if not raw.strip():
            session.abandon()
            output("Challenge abandoned.")
            return 1
        result = session.submit_answer(raw)
        if result.reason == "invalid_input":
            output("Please enter a whole number.")
            continue
        if not result.success:
            output(f"Error: {result.reason}")
            return 1
        output("Correct!" if result["correct"] else "Not quite, try again.")
        if result.data.get("completed"):
            _print_json(result["completion"], output)
    return 0


def cmd_simulate_gap(engine: ProgressionEngine, days: int, today: date, output: Callable[[str], None]) -> int:
    engine.streaks.set_last_active_date(today - timedelta(days=days))
    _print_json(engine.streaks.check_status_on_load(today=today), output)
    return 0


def cmd_reset(engine: ProgressionEngine, output: Callable[[str], None]) -> int:
    removed = engine.reset_profile()
    output(f"Removed {removed} entries from profile '{engine.profile}'.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mathstreak", description="Daily progression engine developer tool.")
    parser.add_argument("--profile", default=settings.PROFILE, help="Balancing profile and key namespace.")
    parser.add_argument("--db", default=None, help="SQLAlchemy database URL; defaults to the configured storage backend.")
    parser.add_argument("--today", type=date.fromisoformat, default=None, help="Override today's date (ISO).")
    parser.add_argument("--seed", type=int, default=settings.RNG_SEED, help="Random seed for generation.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show today's challenges, streak and diamonds.")
    play = sub.add_parser("play", help="Play a challenge interactively.")
    play.add_argument("index", type=int)
    gap = sub.add_parser("simulate-gap", help="Pretend the last active day was DAYS ago.")
    gap.add_argument("days", type=int)
    sub.add_parser("reset", help="Delete all stored state of the profile.")
    return parser


def main(
    argv: Optional[List[str]] = None,
    *,
    input_fn: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
    engine: Optional[ProgressionEngine] = None,
) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.ENV, settings.LOG_LEVEL)
    validate_config()

    if engine is None:
        backend = SqlKeyValueStore(args.db) if args.db else build_backend(settings)
        engine = build_engine(backend=backend, profile=args.profile, rng=random.Random(args.seed))
    today = args.today or date.today()

    with bound_request_id():
        if args.command == "status":
            return cmd_status(engine, today, output)
        if args.command == "play":
            return cmd_play(engine, args.index, today, input_fn=input_fn, output=output)
        if args.command == "simulate-gap":
            return cmd_simulate_gap(engine, args.days, today, output)
        return cmd_reset(engine, output)


if __name__ == "__main__":
    raise SystemExit(main())
