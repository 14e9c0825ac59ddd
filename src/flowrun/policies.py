"""Asyncio scheduling policies over zero-argument coroutine factories.

Every policy takes the same ordered task sequence and returns results aligned
with it, so call sites can swap one for another:

>>> import asyncio
>>> from flowrun.workloads import succeed_after
>>> tasks = [succeed_after(n, 0.0) for n in range(5)]
>>> asyncio.run(continuous_concurrency(tasks, 2))
[0, 1, 2, 3, 4]
>>> asyncio.run(batch_concurrency(tasks, 2)) == asyncio.run(serial(tasks))
True
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .config import DEFAULT_CONCURRENCY
from .errors import validate_concurrency
from .events import Observer, Probe
from .outcome import Failure, Outcome, capture

T = TypeVar("T")

Task = Callable[[], Awaitable[T]]

# Workers outlive their call when a fail-fast policy raises; the loop only
# keeps weak references to tasks.
_DETACHED: set[asyncio.Task[None]] = set()


async def _observed(
    index: int,
    task: Task[Any],
    probe: Probe,
    *,
    collect: bool,
) -> Any:
    probe.dispatched(index)
    outcome = await capture(task)
    probe.finished(index, outcome)
    if collect:
        return outcome
    return outcome.unwrap()


async def _gather(
    tasks: Sequence[Task[Any]],
    probe: Probe,
    *,
    offset: int = 0,
    collect: bool,
) -> list[Any]:
    if not tasks:
        return []
    results = await asyncio.gather(
        *(
            _observed(offset + position, task, probe, collect=collect)
            for position, task in enumerate(tasks)
        )
    )
    return list(results)


async def serial(
    tasks: Sequence[Task[Any]],
    *,
    collect: bool = False,
    observer: Observer | None = None,
) -> list[Any]:
    """Await each task before invoking the next one.

    The first failure propagates and later tasks are never invoked. With
    ``collect=True`` every task runs and each slot holds an :data:`Outcome`.
    """

    snapshot = tuple(tasks)
    probe = Probe("serial", observer)
    results: list[Any] = []
    for index, task in enumerate(snapshot):
        results.append(await _observed(index, task, probe, collect=collect))
    return results


async def all_at_once(
    tasks: Sequence[Task[Any]],
    *,
    collect: bool = False,
    observer: Observer | None = None,
) -> list[Any]:
    """Invoke every task immediately and join them with :func:`asyncio.gather`.

    On failure the first exception seen by the join propagates; siblings that
    already started are left running.
    """

    snapshot = tuple(tasks)
    return await _gather(snapshot, Probe("all_at_once", observer), collect=collect)


async def batch_concurrency(
    tasks: Sequence[Task[Any]],
    concurrency: int = DEFAULT_CONCURRENCY,
    *,
    collect: bool = False,
    observer: Observer | None = None,
) -> list[Any]:
    """Run consecutive slices of ``concurrency`` tasks with a barrier between them.

    A slow task stalls the next slice even if the rest of its slice finished.
    A failure propagates before the following slice starts.
    """

    limit = validate_concurrency(concurrency)
    snapshot = tuple(tasks)
    probe = Probe("batch", observer)
    results: list[Any] = []
    for start in range(0, len(snapshot), limit):
        batch = snapshot[start : start + limit]
        results.extend(await _gather(batch, probe, offset=start, collect=collect))
    return results


@dataclass(slots=True)
class _Window:
    """Bookkeeping for one continuous run; only the coordination loop writes it."""

    total: int
    limit: int
    results: list[Any] = field(default_factory=list)
    next_index: int = 0
    completed: int = 0
    in_flight: int = 0

    @property
    def exhausted(self) -> bool:
        return self.next_index >= self.total

    @property
    def done(self) -> bool:
        return self.completed == self.total


async def continuous_concurrency(
    tasks: Sequence[Task[Any]],
    concurrency: int = DEFAULT_CONCURRENCY,
    *,
    collect: bool = False,
    observer: Observer | None = None,
) -> list[Any]:
    """Keep up to ``concurrency`` tasks in flight, refilling a slot as soon as it frees.

    Each worker posts ``(index, outcome)`` to a queue owned by this call; the
    loop below is the only code that touches the window state or notifies the
    observer of a completion. The index is fixed when the task is dispatched,
    which keeps results aligned with the input no matter the completion order.

    The first failure stops further dispatching and is re-raised as is. Tasks
    still in flight at that point keep running. Cancelling the caller cancels
    them.
    """

    limit = validate_concurrency(concurrency)
    snapshot = tuple(tasks)
    if not snapshot:
        return []

    probe = Probe("continuous", observer)
    window = _Window(total=len(snapshot), limit=limit, results=[None] * len(snapshot))
    inbox: asyncio.Queue[tuple[int, Outcome[Any]]] = asyncio.Queue()
    workers: set[asyncio.Task[None]] = set()

    async def _report(index: int, task: Task[Any]) -> None:
        try:
            outcome = await capture(task)
        except BaseException as exc:
            inbox.put_nowait((index, Failure(exc)))
            raise
        inbox.put_nowait((index, outcome))

    def _dispatch() -> None:
        index = window.next_index
        window.next_index += 1
        window.in_flight += 1
        probe.dispatched(index)
        worker = asyncio.create_task(_report(index, snapshot[index]))
        workers.add(worker)
        _DETACHED.add(worker)
        worker.add_done_callback(workers.discard)
        worker.add_done_callback(_DETACHED.discard)

    for _ in range(min(limit, window.total)):
        _dispatch()

    while not window.done:
        try:
            index, outcome = await inbox.get()
        except asyncio.CancelledError:
            for worker in workers:
                worker.cancel()
            raise
        window.in_flight -= 1
        window.completed += 1
        probe.finished(index, outcome)
        # Signals that capture lets through propagate even in collect mode.
        escaped = isinstance(outcome, Failure) and not isinstance(outcome.error, Exception)
        if collect and not escaped:
            window.results[index] = outcome
        else:
            window.results[index] = outcome.unwrap()
        if not window.exhausted:
            _dispatch()
    return window.results


POLICIES: dict[str, Callable[..., Awaitable[list[Any]]]] = {
    "serial": serial,
    "all_at_once": all_at_once,
    "batch": batch_concurrency,
    "continuous": continuous_concurrency,
}
BOUNDED_POLICIES = frozenset({"batch", "continuous"})


__all__ = [
    "BOUNDED_POLICIES",
    "POLICIES",
    "Task",
    "all_at_once",
    "batch_concurrency",
    "continuous_concurrency",
    "serial",
]
