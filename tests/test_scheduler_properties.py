"""Property-based coverage guarding scheduling invariants.

- Results stay aligned with the input whatever the completion order.
- The continuous window never holds more than ``concurrency`` tasks and only
  grows past its primed size after a completion.
- Every task is dispatched exactly once.
- Batches never overlap.
"""

from __future__ import annotations

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from flowrun import DispatchEvent, batch_concurrency, continuous_concurrency, threaded
from flowrun.workloads import blocking_succeed_after, succeed_after

DELAYS = st.lists(
    st.integers(min_value=0, max_value=3).map(lambda ms: ms / 1000),
    min_size=0,
    max_size=12,
)
LIMITS = st.integers(min_value=1, max_value=6)


@given(delays=DELAYS, limit=LIMITS)
@settings(max_examples=60, deadline=None)
def test_continuous_results_aligned_and_window_bounded(
    delays: list[float], limit: int
) -> None:
    """Output order matches input and in-flight count never exceeds the limit."""

    events: list[DispatchEvent] = []
    tasks = [succeed_after(index, delay) for index, delay in enumerate(delays)]
    result = asyncio.run(continuous_concurrency(tasks, limit, observer=events.append))

    assert result == list(range(len(delays)))
    assert all(event.in_flight <= limit for event in events)
    dispatched = [event.index for event in events if event.kind == "dispatch"]
    assert sorted(dispatched) == list(range(len(delays)))


@given(delays=DELAYS, limit=LIMITS)
@settings(max_examples=60, deadline=None)
def test_continuous_dispatch_beyond_window_follows_a_completion(
    delays: list[float], limit: int
) -> None:
    """The (limit+1)th dispatch only happens once an earlier task finished."""

    events: list[DispatchEvent] = []
    tasks = [succeed_after(index, delay) for index, delay in enumerate(delays)]
    asyncio.run(continuous_concurrency(tasks, limit, observer=events.append))

    dispatch_count = 0
    completion_count = 0
    for event in events:
        if event.kind == "dispatch":
            dispatch_count += 1
            assert dispatch_count <= limit + completion_count
        else:
            completion_count += 1
    assert completion_count == len(delays)


@given(delays=DELAYS, limit=LIMITS)
@settings(max_examples=40, deadline=None)
def test_batches_never_overlap(delays: list[float], limit: int) -> None:
    """No task of batch i+1 starts before every task of batch i completed."""

    events: list[DispatchEvent] = []
    tasks = [succeed_after(index, delay) for index, delay in enumerate(delays)]
    result = asyncio.run(batch_concurrency(tasks, limit, observer=events.append))

    assert result == list(range(len(delays)))
    completed: set[int] = set()
    for event in events:
        if event.kind == "dispatch":
            batch_start = (event.index // limit) * limit
            assert set(range(batch_start)) <= completed
        else:
            completed.add(event.index)


@given(delays=st.lists(st.sampled_from([0.0, 0.001, 0.002]), max_size=8), limit=LIMITS)
@settings(max_examples=25, deadline=None)
def test_threaded_continuous_results_aligned_and_window_bounded(
    delays: list[float], limit: int
) -> None:
    """Same window guarantees when completions race on worker threads."""

    events: list[DispatchEvent] = []
    tasks = [blocking_succeed_after(index, delay) for index, delay in enumerate(delays)]
    result = threaded.continuous_concurrency(tasks, limit, observer=events.append)

    assert result == list(range(len(delays)))
    assert all(event.in_flight <= limit for event in events)
    dispatched = [event.index for event in events if event.kind == "dispatch"]
    assert sorted(dispatched) == list(range(len(delays)))
