from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any, Literal

from .outcome import Outcome

EventKind = Literal["dispatch", "complete", "fail"]


@dataclass(frozen=True, slots=True)
class DispatchEvent:
    """One task starting or finishing under a policy.

    ``in_flight`` is the number of tasks running immediately after the event
    was recorded, so a ``dispatch`` event always reports at least one.
    """

    policy: str
    index: int
    kind: EventKind
    timestamp: float
    in_flight: int

    def as_dict(self) -> dict[str, Any]:
        """Represent the event as plain data for logging or testing."""

        return {
            "policy": self.policy,
            "index": self.index,
            "kind": self.kind,
            "timestamp": self.timestamp,
            "in_flight": self.in_flight,
        }


Observer = Callable[[DispatchEvent], None]


class Probe:
    """Counts in-flight tasks for one scheduling call and reports events.

    Threaded policies call into the probe from worker threads, so updates and
    notifications happen under a lock to keep event order consistent with the
    counters.
    """

    def __init__(self, policy: str, observer: Observer | None = None) -> None:
        self.policy = policy
        self._observer = observer
        self._lock = Lock()
        self.in_flight = 0
        self.peak = 0
        self.dispatched_count = 0

    def dispatched(self, index: int) -> None:
        with self._lock:
            self.in_flight += 1
            self.dispatched_count += 1
            self.peak = max(self.peak, self.in_flight)
            self._emit(index, "dispatch")

    def finished(self, index: int, outcome: Outcome[Any]) -> None:
        with self._lock:
            self.in_flight -= 1
            self._emit(index, "complete" if outcome.ok else "fail")

    def _emit(self, index: int, kind: EventKind) -> None:
        if self._observer is None:
            return
        self._observer(
            DispatchEvent(
                policy=self.policy,
                index=index,
                kind=kind,
                timestamp=time.perf_counter(),
                in_flight=self.in_flight,
            )
        )


__all__ = ["DispatchEvent", "EventKind", "Observer", "Probe"]
