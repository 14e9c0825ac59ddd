"""The four scheduling policies for blocking callables.

Tasks run on a :class:`concurrent.futures.Executor`, by default the shared pool
from :mod:`flowrun.executors.threading` grown to fit the requested window.
Completion callbacks fire on worker threads, so the continuous window guards
its counters and results with a lock.

>>> from flowrun.workloads import blocking_succeed_after
>>> continuous_concurrency([blocking_succeed_after(n, 0.0) for n in range(3)], 2)
[0, 1, 2]
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import CancelledError, Executor, Future, as_completed
from dataclasses import dataclass, field
from functools import partial
from threading import Lock
from typing import Any, TypeVar

from .config import DEFAULT_CONCURRENCY
from .errors import validate_concurrency
from .events import Observer, Probe
from .executors.threading import get_thread_pool, scratch_thread_pool
from .outcome import Failure, Outcome, capture_sync

T = TypeVar("T")

SyncTask = Callable[[], T]


def _observed(index: int, task: SyncTask[Any], probe: Probe) -> Outcome[Any]:
    # Recorded on the worker, so a rejected submission is never counted.
    probe.dispatched(index)
    outcome = capture_sync(task)
    probe.finished(index, outcome)
    return outcome


def _submit(
    pool: Executor, index: int, task: SyncTask[Any], probe: Probe
) -> Future[Outcome[Any]]:
    return pool.submit(_observed, index, task, probe)


def _gather(
    pool: Executor,
    tasks: Sequence[SyncTask[Any]],
    probe: Probe,
    *,
    offset: int = 0,
    collect: bool,
) -> list[Any]:
    futures = {
        _submit(pool, offset + position, task, probe): position
        for position, task in enumerate(tasks)
    }
    results: list[Any] = [None] * len(tasks)
    for future in as_completed(futures):
        outcome = future.result()
        if not collect and not outcome.ok:
            outcome.unwrap()
        results[futures[future]] = outcome if collect else outcome.unwrap()
    return results


def serial(
    tasks: Sequence[SyncTask[Any]],
    *,
    executor: Executor | None = None,
    collect: bool = False,
    observer: Observer | None = None,
) -> list[Any]:
    """Run each task on the executor, waiting for it before submitting the next."""

    snapshot = tuple(tasks)
    pool = executor or get_thread_pool()
    probe = Probe("serial", observer)
    results: list[Any] = []
    for index, task in enumerate(snapshot):
        outcome = _submit(pool, index, task, probe).result()
        results.append(outcome if collect else outcome.unwrap())
    return results


def all_at_once(
    tasks: Sequence[SyncTask[Any]],
    *,
    executor: Executor | None = None,
    collect: bool = False,
    observer: Observer | None = None,
) -> list[Any]:
    """Submit every task at once.

    Without an executor the run gets a private pool with one worker per task,
    released when the call returns. A caller-supplied executor decides actual
    parallelism itself. The first failure to complete propagates; siblings keep
    running.
    """

    snapshot = tuple(tasks)
    probe = Probe("all_at_once", observer)
    if not snapshot:
        return []
    if executor is not None:
        return _gather(executor, snapshot, probe, collect=collect)
    pool = scratch_thread_pool(len(snapshot))
    try:
        return _gather(pool, snapshot, probe, collect=collect)
    finally:
        # Siblings still running after a failure finish on their own threads.
        pool.shutdown(wait=False)


def batch_concurrency(
    tasks: Sequence[SyncTask[Any]],
    concurrency: int = DEFAULT_CONCURRENCY,
    *,
    executor: Executor | None = None,
    collect: bool = False,
    observer: Observer | None = None,
) -> list[Any]:
    """Submit ``concurrency`` tasks at a time, waiting for the whole slice in between."""

    limit = validate_concurrency(concurrency)
    snapshot = tuple(tasks)
    pool = executor or get_thread_pool(min_workers=limit)
    probe = Probe("batch", observer)
    results: list[Any] = []
    for start in range(0, len(snapshot), limit):
        batch = snapshot[start : start + limit]
        results.extend(_gather(pool, batch, probe, offset=start, collect=collect))
    return results


@dataclass(slots=True)
class _SharedWindow:
    total: int
    results: list[Any]
    lock: Lock = field(default_factory=Lock)
    next_index: int = 0
    completed: int = 0
    in_flight: int = 0


def continuous_concurrency(
    tasks: Sequence[SyncTask[Any]],
    concurrency: int = DEFAULT_CONCURRENCY,
    *,
    executor: Executor | None = None,
    collect: bool = False,
    observer: Observer | None = None,
) -> list[Any]:
    """Keep up to ``concurrency`` tasks running, submitting the next as each finishes.

    The window is claimed and released under ``window.lock``; submission
    happens outside it because a future that is already done runs its
    callback on the submitting thread. The caller blocks on a future that the
    last completion (or the first failure) resolves.
    """

    limit = validate_concurrency(concurrency)
    snapshot = tuple(tasks)
    if not snapshot:
        return []

    pool = executor or get_thread_pool(min_workers=limit)
    probe = Probe("continuous", observer)
    window = _SharedWindow(total=len(snapshot), results=[None] * len(snapshot))
    finished: Future[list[Any]] = Future()

    def _claim() -> int | None:
        # Caller holds window.lock.
        if finished.done() or window.next_index >= window.total:
            return None
        index = window.next_index
        window.next_index += 1
        window.in_flight += 1
        return index

    def _launch(index: int) -> None:
        try:
            future = _submit(pool, index, snapshot[index], probe)
        except RuntimeError as exc:
            with window.lock:
                if not finished.done():
                    finished.set_exception(exc)
            return
        future.add_done_callback(partial(_on_done, index))

    def _on_done(index: int, future: Future[Outcome[Any]]) -> None:
        if future.cancelled():
            outcome: Outcome[Any] = Failure(CancelledError())
        elif future.exception() is not None:
            # Only non-Exception signals escape capture_sync.
            outcome = Failure(future.exception())
        else:
            outcome = future.result()
        with window.lock:
            window.in_flight -= 1
            window.completed += 1
            if finished.done():
                return
            escaped = isinstance(outcome, Failure) and not isinstance(
                outcome.error, Exception
            )
            if escaped or (not collect and not outcome.ok):
                finished.set_exception(outcome.error)
                return
            window.results[index] = outcome if collect else outcome.unwrap()
            following = _claim()
            if following is None and window.completed == window.total:
                finished.set_result(window.results)
        if following is not None:
            _launch(following)

    with window.lock:
        primed = [_claim() for _ in range(min(limit, window.total))]
    for index in primed:
        if index is not None:
            _launch(index)
    return finished.result()


POLICIES: dict[str, Callable[..., list[Any]]] = {
    "serial": serial,
    "all_at_once": all_at_once,
    "batch": batch_concurrency,
    "continuous": continuous_concurrency,
}


__all__ = [
    "POLICIES",
    "SyncTask",
    "all_at_once",
    "batch_concurrency",
    "continuous_concurrency",
    "serial",
]
