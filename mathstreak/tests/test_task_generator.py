import random
from dataclasses import FrozenInstanceError

import pytest

from mathstreak.core.balancing import DEV_BALANCING, PRODUCTION_BALANCING
from mathstreak.core.errors import ValidationError
from mathstreak.features.tasks.generator import (
    BASIC_OPERATIONS,
    generate_hard_task,
    generate_task,
    generate_tasks,
)


def _within(value, bounds):
    return bounds.min <= value <= bounds.max


def test_addition_answer_and_bounds():
    rng = random.Random(1)
    bounds = PRODUCTION_BALANCING.operations.addition
    for _ in range(50):
        task = generate_task("addition", rng=rng, balancing=PRODUCTION_BALANCING)
        a, b = task.metadata["operands"]
        assert task.answer == a + b
        assert task.question == f"{a} + {b}"
        assert _within(a, bounds) and _within(b, bounds)


def test_subtraction_never_negative():
    rng = random.Random(2)
    for _ in range(100):
        task = generate_task("subtraction", rng=rng, balancing=PRODUCTION_BALANCING)
        larger, smaller = task.metadata["operands"]
        assert larger >= smaller
        assert task.answer == larger - smaller >= 0


def test_multiplication_uses_times_sign():
    task = generate_task("multiplication", rng=random.Random(3), balancing=PRODUCTION_BALANCING)
    a, b = task.metadata["operands"]
    assert task.question == f"{a} × {b}"
    assert task.answer == a * b


def test_division_is_exact():
    rng = random.Random(4)
    for _ in range(100):
        task = generate_task("division", rng=rng, balancing=PRODUCTION_BALANCING)
        dividend, divisor = task.metadata["operands"]
        assert dividend % divisor == 0
        assert task.answer == dividend // divisor
        assert "÷" in task.question


def test_squared():
    task = generate_task("squared", rng=random.Random(5), balancing=DEV_BALANCING)
    (base,) = task.metadata["operands"]
    assert task.question == f"{base}²"
    assert task.answer == base * base
    assert _within(base, DEV_BALANCING.operations.squared)


def test_mixed_marks_mode_and_picks_basic_operation():
    rng = random.Random(6)
    seen = set()
    for _ in range(60):
        task = generate_task("mixed", rng=rng, balancing=PRODUCTION_BALANCING)
        assert task.metadata["mixed_mode"] is True
        seen.add(task.metadata["operation"])
    assert seen <= set(BASIC_OPERATIONS)
    assert len(seen) > 1


def test_unknown_operation_raises():
    with pytest.raises(ValidationError):
        generate_task("modulo", rng=random.Random(0), balancing=PRODUCTION_BALANCING)
    with pytest.raises(ValueError):
        generate_task("", rng=random.Random(0), balancing=PRODUCTION_BALANCING)


def test_seeded_generation_is_reproducible():
    first = generate_tasks("mixed", 8, rng=random.Random(42), balancing=PRODUCTION_BALANCING)
    second = generate_tasks("mixed", 8, rng=random.Random(42), balancing=PRODUCTION_BALANCING)
    assert first == second
    assert len(first) == 8


def test_hard_task_uses_hard_bounds():
    rng = random.Random(7)
    for _ in range(40):
        task = generate_hard_task(rng=rng, balancing=PRODUCTION_BALANCING)
        assert task.metadata["is_hard"] is True
        if task.metadata["operation"] == "addition":
            a, b = task.metadata["operands"]
            assert _within(a, PRODUCTION_BALANCING.hard_operations.addition)
            assert _within(b, PRODUCTION_BALANCING.hard_operations.addition)


def test_task_is_immutable():
    task = generate_task("addition", rng=random.Random(8), balancing=PRODUCTION_BALANCING)
    with pytest.raises(FrozenInstanceError):
        task.answer = 0
