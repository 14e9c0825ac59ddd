from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from flowrun.config import POLICY_NAMES, SchedulerConfig
from flowrun.policies import BOUNDED_POLICIES
from flowrun.scheduler import RunTrace, Scheduler
from flowrun.workloads import simulated_blocking_tasks, simulated_tasks

Flavor = Literal["async", "threaded"]


@dataclass(slots=True)
class BenchmarkRecord:
    """Timing for one policy at one concurrency level."""

    policy: str
    flavor: str
    concurrency: int | None
    tasks: int
    failures: int
    peak_in_flight: int
    elapsed_ms: float


def concurrency_levels(tasks: int, *, floor: int = 4) -> list[int]:
    """Halve the window from ``tasks`` down to ``floor``.

    >>> concurrency_levels(128)
    [128, 64, 32, 16, 8, 4]
    >>> concurrency_levels(3)
    [3]
    """

    if tasks <= 0:
        return [floor]
    levels: list[int] = []
    level = tasks
    while level >= floor:
        levels.append(level)
        level //= 2
    return levels or [tasks]


def _measure(
    scheduler: Scheduler,
    *,
    policy: str,
    flavor: Flavor,
    concurrency: int | None,
    count: int,
    min_delay: float,
    max_delay: float,
    failure_rate: float,
    seed: int | None,
) -> BenchmarkRecord:
    if flavor == "threaded":
        blocking = simulated_blocking_tasks(
            count,
            min_delay=min_delay,
            max_delay=max_delay,
            failure_rate=failure_rate,
            seed=seed,
        )
        outcomes = scheduler.run_sync(
            blocking, policy=policy, concurrency=concurrency, collect=True  # type: ignore[arg-type]
        )
    else:
        tasks = simulated_tasks(
            count,
            min_delay=min_delay,
            max_delay=max_delay,
            failure_rate=failure_rate,
            seed=seed,
        )
        outcomes = asyncio.run(
            scheduler.run(tasks, policy=policy, concurrency=concurrency, collect=True)  # type: ignore[arg-type]
        )
    trace: RunTrace | None = scheduler.trace
    assert trace is not None
    return BenchmarkRecord(
        policy=policy,
        flavor=flavor,
        concurrency=concurrency,
        tasks=count,
        failures=sum(1 for outcome in outcomes if not outcome.ok),
        peak_in_flight=trace.peak_in_flight,
        elapsed_ms=trace.elapsed * 1000.0,
    )


def run_suite(
    *,
    policy: str = "all",
    flavor: Flavor = "async",
    tasks: int = 128,
    concurrency: int | None = None,
    min_delay: float = 0.0,
    max_delay: float = 0.05,
    failure_rate: float = 0.0,
    seed: int | None = 0,
) -> list[BenchmarkRecord]:
    """Time the selected policies against one reproducible simulated workload.

    Bounded policies are measured at ``concurrency`` when given, otherwise at
    every level from :func:`concurrency_levels`.
    """

    selected: Sequence[str] = POLICY_NAMES if policy == "all" else (policy,)
    unknown = [name for name in selected if name not in POLICY_NAMES]
    if unknown:
        raise ValueError(f"Unsupported policy: {unknown[0]}")

    scheduler = Scheduler(config=SchedulerConfig())
    levels = [concurrency] if concurrency is not None else concurrency_levels(tasks)
    records: list[BenchmarkRecord] = []
    try:
        for name in selected:
            for level in levels if name in BOUNDED_POLICIES else [None]:
                records.append(
                    _measure(
                        scheduler,
                        policy=name,
                        flavor=flavor,
                        concurrency=level,
                        count=tasks,
                        min_delay=min_delay,
                        max_delay=max_delay,
                        failure_rate=failure_rate,
                        seed=seed,
                    )
                )
    finally:
        scheduler.reset()
    return records


def format_table(records: Sequence[BenchmarkRecord]) -> str:
    """Render records as a fixed-width text table."""

    header = (
        f"{'policy':<12} {'flavor':<9} {'limit':>6} {'tasks':>6} "
        f"{'failed':>6} {'peak':>5} {'elapsed ms':>11}"
    )
    lines = [header, "-" * len(header)]
    for record in records:
        limit = "-" if record.concurrency is None else str(record.concurrency)
        lines.append(
            f"{record.policy:<12} {record.flavor:<9} {limit:>6} {record.tasks:>6} "
            f"{record.failures:>6} {record.peak_in_flight:>5} {record.elapsed_ms:>11.2f}"
        )
    return "\n".join(lines)


__all__ = ["BenchmarkRecord", "concurrency_levels", "format_table", "run_suite"]
