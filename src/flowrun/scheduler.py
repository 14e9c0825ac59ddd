from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterator, Sequence
from concurrent.futures import Executor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Literal

from . import policies, threaded
from .config import POLICY_NAMES, PolicyName, SchedulerConfig
from .errors import InvalidConfiguration, validate_concurrency
from .events import DispatchEvent
from .executors.threading import reset_thread_pool

logger = logging.getLogger("flowrun.scheduler")

RunStatus = Literal["ok", "failed"]


@dataclass(slots=True)
class RunTrace:
    """Summary of one scheduling call made through a :class:`Scheduler`."""

    policy: str
    concurrency: int | None
    reason: str
    tasks: int
    dispatched: int = 0
    peak_in_flight: int = 0
    elapsed: float = 0.0
    status: RunStatus = "ok"
    flavor: Literal["async", "threaded"] = "async"

    def as_dict(self) -> dict[str, Any]:
        """Represent the trace as plain data for logging or testing."""

        return {
            "policy": self.policy,
            "concurrency": self.concurrency,
            "reason": self.reason,
            "tasks": self.tasks,
            "dispatched": self.dispatched,
            "peak_in_flight": self.peak_in_flight,
            "elapsed": self.elapsed,
            "status": self.status,
            "flavor": self.flavor,
        }


class _Recorder:
    """Observer handed to a policy: fans events out and fills the trace."""

    def __init__(
        self,
        trace: RunTrace,
        listeners: Sequence[Callable[[DispatchEvent], None]],
    ) -> None:
        self._trace = trace
        self._listeners = tuple(listeners)

    def __call__(self, event: DispatchEvent) -> None:
        if event.kind == "dispatch":
            self._trace.dispatched += 1
            self._trace.peak_in_flight = max(self._trace.peak_in_flight, event.in_flight)
        for listener in self._listeners:
            listener(event)


class Scheduler:
    """Resolves a policy for each call and runs the task list under it."""

    def __init__(self, *, config: SchedulerConfig | None = None) -> None:
        self._config = config or SchedulerConfig.from_env()
        self._trace: RunTrace | None = None
        self._listeners: list[Callable[[DispatchEvent], None]] = []

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def trace(self) -> RunTrace | None:
        """Return the trace of the most recent call for observability."""

        return self._trace

    def configure(self, config: SchedulerConfig) -> None:
        """Replace the scheduler configuration and forget the last trace."""

        self._config = config
        self._trace = None

    async def run(
        self,
        tasks: Sequence[Callable[[], Awaitable[Any]]],
        *,
        policy: PolicyName | None = None,
        concurrency: int | None = None,
        collect: bool = False,
    ) -> list[Any]:
        name, limit, reason = self._resolve_policy(policy, concurrency)
        snapshot = tuple(tasks)
        trace = RunTrace(policy=name, concurrency=limit, reason=reason, tasks=len(snapshot))
        recorder = _Recorder(trace, self._listeners)
        func = policies.POLICIES[name]
        args: tuple[Any, ...] = (snapshot,) if limit is None else (snapshot, limit)

        started = time.perf_counter()
        try:
            results = await func(*args, collect=collect, observer=recorder)
        except BaseException:
            trace.status = "failed"
            raise
        finally:
            self._finish(trace, started)
        return results

    def run_sync(
        self,
        tasks: Sequence[Callable[[], Any]],
        *,
        policy: PolicyName | None = None,
        concurrency: int | None = None,
        collect: bool = False,
        executor: Executor | None = None,
    ) -> list[Any]:
        """Blocking variant of :meth:`run` backed by :mod:`flowrun.threaded`."""

        name, limit, reason = self._resolve_policy(policy, concurrency)
        snapshot = tuple(tasks)
        trace = RunTrace(
            policy=name,
            concurrency=limit,
            reason=reason,
            tasks=len(snapshot),
            flavor="threaded",
        )
        recorder = _Recorder(trace, self._listeners)
        func = threaded.POLICIES[name]
        args: tuple[Any, ...] = (snapshot,) if limit is None else (snapshot, limit)

        started = time.perf_counter()
        try:
            results = func(*args, executor=executor, collect=collect, observer=recorder)
        except BaseException:
            trace.status = "failed"
            raise
        finally:
            self._finish(trace, started)
        return results

    def reset(self, *, cancel_futures: bool = False) -> None:
        reset_thread_pool(cancel_futures=cancel_futures)
        self._trace = None

    def _resolve_policy(
        self,
        policy: str | None,
        concurrency: int | None,
    ) -> tuple[PolicyName, int | None, str]:
        if policy is None:
            name: str = self._config.policy
            reason = "runtime config default policy"
        else:
            name = policy
            reason = "caller requested policy"

        if name not in POLICY_NAMES:
            valid = ", ".join(POLICY_NAMES)
            raise InvalidConfiguration(
                f"unknown policy '{name}'. Expected one of: {valid}"
            )

        if name not in policies.BOUNDED_POLICIES:
            if concurrency is not None:
                raise InvalidConfiguration(
                    f"policy '{name}' does not take a concurrency limit"
                )
            return name, None, reason  # type: ignore[return-value]

        if concurrency is None:
            limit = validate_concurrency(self._config.concurrency)
            return name, limit, f"{reason}; concurrency from runtime config"  # type: ignore[return-value]
        return name, validate_concurrency(concurrency), reason  # type: ignore[return-value]

    def _finish(self, trace: RunTrace, started: float) -> None:
        trace.elapsed = time.perf_counter() - started
        self._trace = trace
        logger.debug(
            "run policy=%s concurrency=%s tasks=%d peak=%d status=%s elapsed=%.4fs",
            trace.policy,
            trace.concurrency,
            trace.tasks,
            trace.peak_in_flight,
            trace.status,
            trace.elapsed,
        )

    def add_listener(self, listener: Callable[[DispatchEvent], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[DispatchEvent], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:  # pragma: no cover - listener not registered
            pass


_GLOBAL_SCHEDULER = Scheduler()


async def run(
    tasks: Sequence[Callable[[], Awaitable[Any]]],
    *,
    policy: PolicyName | None = None,
    concurrency: int | None = None,
    collect: bool = False,
) -> list[Any]:
    return await _GLOBAL_SCHEDULER.run(
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
    return _GLOBAL_SCHEDULER.run_sync(
        tasks,
        policy=policy,
        concurrency=concurrency,
        collect=collect,
        executor=executor,
    )


def configure(config: SchedulerConfig) -> None:
    _GLOBAL_SCHEDULER.configure(config)


def reset(*, cancel_futures: bool = False) -> None:
    _GLOBAL_SCHEDULER.reset(cancel_futures=cancel_futures)


def last_trace() -> RunTrace | None:
    """Return the most recent run trace from the global scheduler."""

    return _GLOBAL_SCHEDULER.trace


def add_dispatch_listener(listener: Callable[[DispatchEvent], None]) -> None:
    """Register a callback invoked for every task dispatch and completion."""

    _GLOBAL_SCHEDULER.add_listener(listener)


def remove_dispatch_listener(listener: Callable[[DispatchEvent], None]) -> None:
    """Remove a previously registered dispatch listener."""

    _GLOBAL_SCHEDULER.remove_listener(listener)


@contextmanager
def observe_dispatch(
    *,
    logger: logging.Logger | None = None,
    level: int = logging.INFO,
) -> Iterator[None]:
    """Context manager that logs dispatch events during its scope."""

    active_logger = logger or logging.getLogger("flowrun.scheduler")

    def _listener(event: DispatchEvent) -> None:
        active_logger.log(
            level,
            "task %s policy=%s index=%d in_flight=%d",
            event.kind,
            event.policy,
            event.index,
            event.in_flight,
        )

    add_dispatch_listener(_listener)
    try:
        yield
    finally:
        remove_dispatch_listener(_listener)
