"""
Arithmetic task generation.

Pure functions: every draw comes from the caller's random.Random, so a seeded
generator reproduces the same tasks. Operand bounds come from a Balancing
preset; hard tasks (nut challenge) use its hard_operations table.
"""
from __future__ import annotations

import random
from typing import Callable, Dict, List

from mathstreak.core.balancing import Balancing, OperationBounds, Range
from mathstreak.core.errors import ValidationError
from mathstreak.models.task import Task

BASIC_OPERATIONS = ("addition", "subtraction", "multiplication", "division", "squared")


def _draw(rng: random.Random, bounds: Range) -> int:
    return rng.randint(bounds.min, bounds.max)


def _addition(rng: random.Random, bounds: OperationBounds) -> Task:
    a = _draw(rng, bounds.addition)
    b = _draw(rng, bounds.addition)
    return Task(question=f"{a} + {b}", answer=a + b, metadata={"operation": "addition", "operands": [a, b]})


def _subtraction(rng: random.Random, bounds: OperationBounds) -> Task:
    a = _draw(rng, bounds.subtraction)
    b = _draw(rng, bounds.subtraction)
    larger, smaller = max(a, b), min(a, b)
    return Task(
        question=f"{larger} - {smaller}",
        answer=larger - smaller,
        metadata={"operation": "subtraction", "operands": [larger, smaller]},
    )


def _multiplication(rng: random.Random, bounds: OperationBounds) -> Task:
    a = _draw(rng, bounds.multiplication.factor1)
    b = _draw(rng, bounds.multiplication.factor2)
    return Task(question=f"{a} × {b}", answer=a * b, metadata={"operation": "multiplication", "operands": [a, b]})


def _division(rng: random.Random, bounds: OperationBounds) -> Task:
    divisor = _draw(rng, bounds.division.divisor)
    quotient = _draw(rng, bounds.division.quotient)
    dividend = divisor * quotient
    return Task(
        question=f"{dividend} ÷ {divisor}",
        answer=quotient,
        metadata={"operation": "division", "operands": [dividend, divisor]},
    )


def _squared(rng: random.Random, bounds: OperationBounds) -> Task:
    base = _draw(rng, bounds.squared)
    return Task(question=f"{base}²", answer=base * base, metadata={"operation": "squared", "operands": [base]})


_GENERATORS: Dict[str, Callable[[random.Random, OperationBounds], Task]] = {
    "addition": _addition,
    "subtraction": _subtraction,
    "multiplication": _multiplication,
    "division": _division,
    "squared": _squared,
}


def _mixed(rng: random.Random, bounds: OperationBounds) -> Task:
    operation = rng.choice(BASIC_OPERATIONS)
    task = _GENERATORS[operation](rng, bounds)
    return Task(question=task.question, answer=task.answer, metadata={**task.metadata, "mixed_mode": True})


def generate_task(operation_type: str, *, rng: random.Random, balancing: Balancing) -> Task:
    """Generate one task for an operation type.

    Raises ValidationError for an unknown operation type.
    """
    if operation_type == "mixed":
        return _mixed(rng, balancing.operations)
    generator = _GENERATORS.get(operation_type)
    if generator is None:
        raise ValidationError(f"Unknown operation type: {operation_type}", code="unknown_operation")
    return generator(rng, balancing.operations)


def generate_hard_task(*, rng: random.Random, balancing: Balancing) -> Task:
    """High-difficulty mixed task for the nut challenge."""
    task = _mixed(rng, balancing.hard_operations)
    return Task(question=task.question, answer=task.answer, metadata={**task.metadata, "is_hard": True})


def generate_tasks(operation_type: str, count: int, *, rng: random.Random, balancing: Balancing) -> List[Task]:
    return [generate_task(operation_type, rng=rng, balancing=balancing) for _ in range(count)]


def generate_hard_tasks(count: int, *, rng: random.Random, balancing: Balancing) -> List[Task]:
    return [generate_hard_task(rng=rng, balancing=balancing) for _ in range(count)]
