from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

T = TypeVar("T")


class SimulatedFailure(RuntimeError):
    """Error raised by simulated tasks configured to fail."""


def succeed_after(value: T, delay: float) -> Callable[[], Awaitable[T]]:
    """Return a task that sleeps for ``delay`` seconds and produces ``value``."""

    async def _task() -> T:
        await asyncio.sleep(delay)
        return value

    return _task


def fail_after(error: BaseException | str, delay: float) -> Callable[[], Awaitable[Any]]:
    """Return a task that sleeps for ``delay`` seconds and then raises ``error``.

    A string is wrapped in :class:`SimulatedFailure`.
    """

    exc = SimulatedFailure(error) if isinstance(error, str) else error

    async def _task() -> Any:
        await asyncio.sleep(delay)
        raise exc

    return _task


def blocking_succeed_after(value: T, delay: float) -> Callable[[], T]:
    """Blocking counterpart of :func:`succeed_after` for the threaded policies."""

    def _task() -> T:
        time.sleep(delay)
        return value

    return _task


def blocking_fail_after(error: BaseException | str, delay: float) -> Callable[[], Any]:
    """Blocking counterpart of :func:`fail_after`."""

    exc = SimulatedFailure(error) if isinstance(error, str) else error

    def _task() -> Any:
        time.sleep(delay)
        raise exc

    return _task


@dataclass(frozen=True, slots=True)
class TaskPlan:
    """Latency and success of one simulated task."""

    index: int
    delay: float
    fails: bool


def plan_tasks(
    count: int,
    *,
    min_delay: float = 0.0,
    max_delay: float = 0.05,
    failure_rate: float = 0.0,
    seed: int | None = None,
) -> list[TaskPlan]:
    """Draw ``count`` task plans with uniformly distributed latency.

    Passing ``seed`` makes the plan reproducible, which lets the same workload
    be replayed under every policy.
    """

    if count < 0:
        raise ValueError("count must be non-negative")
    if min_delay < 0 or max_delay < min_delay:
        raise ValueError("expected 0 <= min_delay <= max_delay")
    if not 0.0 <= failure_rate <= 1.0:
        raise ValueError("failure_rate must be between 0 and 1")
    rng = random.Random(seed)
    return [
        TaskPlan(
            index=index,
            delay=rng.uniform(min_delay, max_delay),
            fails=rng.random() < failure_rate,
        )
        for index in range(count)
    ]


def simulated_tasks(
    count: int,
    *,
    min_delay: float = 0.0,
    max_delay: float = 0.05,
    failure_rate: float = 0.0,
    seed: int | None = None,
) -> list[Callable[[], Awaitable[int]]]:
    """Build async tasks that yield their own index after a random delay."""

    plans = plan_tasks(
        count,
        min_delay=min_delay,
        max_delay=max_delay,
        failure_rate=failure_rate,
        seed=seed,
    )
    return [
        fail_after(f"task {plan.index} failed", plan.delay)
        if plan.fails
        else succeed_after(plan.index, plan.delay)
        for plan in plans
    ]


def simulated_blocking_tasks(
    count: int,
    *,
    min_delay: float = 0.0,
    max_delay: float = 0.05,
    failure_rate: float = 0.0,
    seed: int | None = None,
) -> list[Callable[[], int]]:
    """Blocking counterpart of :func:`simulated_tasks`."""

    plans = plan_tasks(
        count,
        min_delay=min_delay,
        max_delay=max_delay,
        failure_rate=failure_rate,
        seed=seed,
    )
    return [
        blocking_fail_after(f"task {plan.index} failed", plan.delay)
        if plan.fails
        else blocking_succeed_after(plan.index, plan.delay)
        for plan in plans
    ]


__all__ = [
    "SimulatedFailure",
    "TaskPlan",
    "blocking_fail_after",
    "blocking_succeed_after",
    "fail_after",
    "plan_tasks",
    "simulated_blocking_tasks",
    "simulated_tasks",
    "succeed_after",
]
