from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from concurrent.futures import Executor
from typing import Any

from . import scheduler
from .config import PolicyName, SchedulerConfig
from .scheduler import RunTrace


async def run(
    tasks: Sequence[Callable[[], Awaitable[Any]]],
    *,
    policy: PolicyName | None = None,
    concurrency: int | None = None,
    collect: bool = False,
) -> list[Any]:
    """Run async ``tasks`` under ``policy`` (default from the runtime config).

    >>> import asyncio
    >>> from flowrun.workloads import succeed_after
    >>> tasks = [succeed_after(name, 0.0) for name in "abc"]
    >>> asyncio.run(run(tasks, policy="continuous", concurrency=2))
    ['a', 'b', 'c']
    >>> asyncio.run(run(tasks, policy="serial"))
    ['a', 'b', 'c']

    Only the bounded policies accept a limit:

    >>> asyncio.run(run(tasks, policy="serial", concurrency=2))
    Traceback (most recent call last):
    ...
    flowrun.errors.InvalidConfiguration: policy 'serial' does not take a concurrency limit
    """

    return await scheduler.run(
        tasks, policy=policy, concurrency=concurrency, collect=collect
    )


def run_sync(
    tasks: Sequence[Callable[[], Any]],
    *,
    policy: PolicyName | None = None,
    concurrency: int | None = None,
    collect: bool = False,
    executor: Executor | None = None,
) -> list[Any]:
    """Run blocking ``tasks`` on a thread pool under ``policy``.

    >>> from flowrun.workloads import blocking_fail_after, blocking_succeed_after
    >>> run_sync([blocking_succeed_after(n, 0.0) for n in range(4)], policy="batch")
    [0, 1, 2, 3]
    >>> outcomes = run_sync(
    ...     [blocking_succeed_after(1, 0.0), blocking_fail_after("boom", 0.0)],
    ...     policy="all_at_once",
    ...     collect=True,
    ... )
    >>> [outcome.ok for outcome in outcomes]
    [True, False]
    >>> reset()
    """

    return scheduler.run_sync(
        tasks,
        policy=policy,
        concurrency=concurrency,
        collect=collect,
        executor=executor,
    )


def configure(config: SchedulerConfig) -> None:
    """Replace the global scheduler configuration.

    >>> import asyncio
    >>> from flowrun.workloads import succeed_after
    >>> configure(SchedulerConfig(policy="batch", concurrency=2))
    >>> asyncio.run(run([succeed_after(1, 0.0)]))
    [1]
    >>> last_trace().policy, last_trace().concurrency
    ('batch', 2)
    >>> configure(SchedulerConfig())
    """

    scheduler.configure(config)


def reset(*, cancel_futures: bool = False) -> None:
    """Tear down the shared thread pool and forget the last trace.

    >>> reset()
    """

    scheduler.reset(cancel_futures=cancel_futures)


def last_trace() -> RunTrace | None:
    """Expose the trace of the last call for observability.

    >>> import asyncio
    >>> from flowrun.workloads import succeed_after
    >>> asyncio.run(run([succeed_after(n, 0.0) for n in range(6)], policy="continuous", concurrency=3))
    [0, 1, 2, 3, 4, 5]
    >>> trace = last_trace()
    >>> trace.dispatched, trace.peak_in_flight <= 3, trace.status
    (6, True, 'ok')
    """

    return scheduler.last_trace()
