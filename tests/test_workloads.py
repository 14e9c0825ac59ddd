from __future__ import annotations

import asyncio

import pytest

from flowrun.workloads import (
    SimulatedFailure,
    blocking_fail_after,
    plan_tasks,
    simulated_blocking_tasks,
    simulated_tasks,
)


def test_plan_tasks_is_reproducible_with_seed() -> None:
    first = plan_tasks(10, max_delay=0.1, failure_rate=0.5, seed=7)
    second = plan_tasks(10, max_delay=0.1, failure_rate=0.5, seed=7)
    assert first == second
    assert all(0.0 <= plan.delay <= 0.1 for plan in first)
    assert [plan.index for plan in first] == list(range(10))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_delay": -0.1},
        {"min_delay": 0.2, "max_delay": 0.1},
        {"failure_rate": 1.5},
    ],
)
def test_plan_tasks_rejects_bad_parameters(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        plan_tasks(3, **kwargs)


def test_simulated_tasks_yield_their_index() -> None:
    tasks = simulated_tasks(3, max_delay=0.0)

    async def runner() -> list[int]:
        return [await task() for task in tasks]

    assert asyncio.run(runner()) == [0, 1, 2]


def test_simulated_tasks_always_fail_at_full_failure_rate() -> None:
    task = simulated_blocking_tasks(1, max_delay=0.0, failure_rate=1.0)[0]
    with pytest.raises(SimulatedFailure, match="task 0 failed"):
        task()


def test_blocking_fail_after_raises_given_error() -> None:
    error = KeyError("missing")
    with pytest.raises(KeyError) as excinfo:
        blocking_fail_after(error, 0.0)()
    assert excinfo.value is error
