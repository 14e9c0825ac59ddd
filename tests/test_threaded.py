from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import pytest

from flowrun import (
    DispatchEvent,
    Failure,
    InvalidConfiguration,
    Success,
    last_trace,
    run_sync,
    threaded,
)
from flowrun.executors.threading import thread_pool_size
from flowrun.workloads import (
    SimulatedFailure,
    blocking_fail_after,
    blocking_succeed_after,
)

ALL_POLICIES = [
    threaded.serial,
    threaded.all_at_once,
    threaded.batch_concurrency,
    threaded.continuous_concurrency,
]


def _recording(
    value: Any,
    delay: float,
    invoked: list[int],
    index: int,
    *,
    error: BaseException | None = None,
) -> Callable[[], Any]:
    def _task() -> Any:
        invoked.append(index)
        time.sleep(delay)
        if error is not None:
            raise error
        return value

    return _task


@pytest.mark.parametrize("policy", ALL_POLICIES)
def test_results_align_with_input(policy: Callable[..., list[Any]]) -> None:
    delays = [0.02, 0.0, 0.01, 0.005, 0.0]
    tasks = [blocking_succeed_after(index, delay) for index, delay in enumerate(delays)]
    assert policy(tasks) == list(range(len(delays)))


@pytest.mark.parametrize("policy", ALL_POLICIES)
def test_empty_task_list(policy: Callable[..., list[Any]]) -> None:
    assert policy([]) == []


@pytest.mark.parametrize("policy", ALL_POLICIES)
def test_runs_on_flowrun_threads(policy: Callable[..., list[Any]]) -> None:
    names = policy([lambda: threading.current_thread().name for _ in range(3)])
    assert all(name.startswith("flowrun-thread") for name in names)


@pytest.mark.parametrize("policy", ALL_POLICIES)
def test_uses_provided_executor(policy: Callable[..., list[Any]]) -> None:
    with ThreadPoolExecutor(max_workers=4, thread_name_prefix="caller") as pool:
        names = policy(
            [lambda: threading.current_thread().name for _ in range(3)],
            executor=pool,
        )
    assert all(name.startswith("caller") for name in names)


def test_serial_fails_fast_and_skips_remaining_tasks() -> None:
    invoked: list[int] = []
    boom = SimulatedFailure("boom")
    tasks = [
        _recording("a", 0.0, invoked, 0),
        _recording(None, 0.0, invoked, 1, error=boom),
        _recording("c", 0.0, invoked, 2),
    ]
    with pytest.raises(SimulatedFailure) as excinfo:
        threaded.serial(tasks)
    assert excinfo.value is boom
    assert invoked == [0, 1]


def test_serial_never_overlaps() -> None:
    events: list[DispatchEvent] = []
    threaded.serial(
        [blocking_succeed_after(index, 0.001) for index in range(4)],
        observer=events.append,
    )
    assert [event.kind for event in events] == ["dispatch", "complete"] * 4
    assert max(event.in_flight for event in events) == 1


def test_all_at_once_dispatches_everything_before_any_completion() -> None:
    events: list[DispatchEvent] = []
    tasks = [blocking_succeed_after(index, 0.05) for index in range(5)]
    assert threaded.all_at_once(tasks, observer=events.append) == list(range(5))
    assert [event.kind for event in events[:5]] == ["dispatch"] * 5


def test_batch_concurrency_barrier_between_batches() -> None:
    events: list[DispatchEvent] = []
    delays = [0.03, 0.0, 0.0, 0.01, 0.0]
    tasks = [blocking_succeed_after(index, delay) for index, delay in enumerate(delays)]
    assert threaded.batch_concurrency(tasks, 2, observer=events.append) == list(range(5))

    completed: set[int] = set()
    for event in events:
        if event.kind == "dispatch":
            batch_start = (event.index // 2) * 2
            assert set(range(batch_start)) <= completed
        else:
            completed.add(event.index)


def test_continuous_concurrency_preserves_order_under_reverse_completion() -> None:
    tasks = [blocking_succeed_after("first", 0.1), blocking_succeed_after("second", 0.01)]
    assert threaded.continuous_concurrency(tasks, 2) == ["first", "second"]


def test_continuous_concurrency_window_bounded() -> None:
    events: list[DispatchEvent] = []
    tasks = [blocking_succeed_after(index, 0.002 * (index % 3)) for index in range(12)]
    result = threaded.continuous_concurrency(tasks, 3, observer=events.append)
    assert result == list(range(12))
    assert max(event.in_flight for event in events) <= 3
    assert sum(1 for event in events if event.kind == "dispatch") == 12


def test_continuous_concurrency_fails_fast() -> None:
    invoked: list[int] = []
    boom = SimulatedFailure("boom")
    tasks = [
        _recording(0, 0.05, invoked, 0),
        _recording(None, 0.0, invoked, 1, error=boom),
        _recording(2, 0.0, invoked, 2),
        _recording(3, 0.0, invoked, 3),
    ]
    with pytest.raises(SimulatedFailure) as excinfo:
        threaded.continuous_concurrency(tasks, 2)
    assert excinfo.value is boom
    time.sleep(0.1)
    assert sorted(invoked) == [0, 1]


def test_continuous_concurrency_reports_shutdown_executor() -> None:
    pool = ThreadPoolExecutor(max_workers=1)
    pool.shutdown()
    with pytest.raises(RuntimeError):
        threaded.continuous_concurrency([blocking_succeed_after(1, 0.0)], 1, executor=pool)


@pytest.mark.parametrize("concurrency", [0, -2, False, 1.5])
@pytest.mark.parametrize(
    "policy", [threaded.batch_concurrency, threaded.continuous_concurrency]
)
def test_bounded_policies_reject_invalid_concurrency(
    policy: Callable[..., list[Any]], concurrency: object
) -> None:
    invoked: list[int] = []
    with pytest.raises(InvalidConfiguration):
        policy([_recording(0, 0.0, invoked, 0)], concurrency)
    assert invoked == []


@pytest.mark.parametrize("policy", ALL_POLICIES)
def test_collect_mode_returns_outcomes(policy: Callable[..., list[Any]]) -> None:
    boom = SimulatedFailure("boom")
    tasks = [
        blocking_succeed_after("a", 0.0),
        blocking_fail_after(boom, 0.0),
        blocking_succeed_after("c", 0.0),
    ]
    assert policy(tasks, collect=True) == [Success("a"), Failure(boom), Success("c")]


@pytest.mark.parametrize("policy", ALL_POLICIES)
def test_rejected_submission_is_not_counted_as_dispatch(
    policy: Callable[..., list[Any]],
) -> None:
    events: list[DispatchEvent] = []
    pool = ThreadPoolExecutor(max_workers=1)
    pool.shutdown()
    with pytest.raises(RuntimeError):
        policy([blocking_succeed_after(1, 0.0)], executor=pool, observer=events.append)
    assert events == []


def test_rejected_submission_leaves_trace_empty() -> None:
    pool = ThreadPoolExecutor(max_workers=1)
    pool.shutdown()
    with pytest.raises(RuntimeError):
        run_sync([blocking_succeed_after(1, 0.0)], policy="continuous", executor=pool)
    trace = last_trace()
    assert trace is not None
    assert trace.dispatched == 0
    assert trace.peak_in_flight == 0


def test_all_at_once_leaves_shared_pool_untouched() -> None:
    tasks = [blocking_succeed_after(index, 0.0) for index in range(40)]
    assert threaded.all_at_once(tasks) == list(range(40))
    assert thread_pool_size() == 0


def test_all_at_once_failure_lets_siblings_finish() -> None:
    invoked: list[int] = []
    tasks = [
        _recording(0, 0.03, invoked, 0),
        _recording(None, 0.0, invoked, 1, error=SimulatedFailure("boom")),
    ]
    with pytest.raises(SimulatedFailure):
        threaded.all_at_once(tasks)
    time.sleep(0.1)
    assert sorted(invoked) == [0, 1]
