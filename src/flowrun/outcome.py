"""Tagged success/failure values produced by scheduled tasks.

Collect mode fills the result list with these instead of raising, and the
continuous policy uses them as the message payload between a finished task and
its coordination loop.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, NoReturn, TypeVar, Union

T_co = TypeVar("T_co", covariant=True)
T = TypeVar("T")
D = TypeVar("D")


@dataclass(frozen=True, slots=True)
class Success(Generic[T_co]):  # noqa: UP046
    """A task that produced ``value``."""

    value: T_co

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T_co:
        return self.value

    def unwrap_or(self, default: object) -> T_co:
        return self.value


@dataclass(frozen=True, slots=True)
class Failure:
    """A task that raised ``error``.

    ``unwrap`` re-raises the original exception object so tracebacks point at
    the task rather than the scheduler.
    """

    error: BaseException

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> NoReturn:
        raise self.error

    def unwrap_or(self, default: D) -> D:
        return default


Outcome = Union[Success[T], Failure]


async def capture(task: Callable[[], Awaitable[T]]) -> Outcome[T]:
    """Invoke ``task`` and fold its result into an :data:`Outcome`.

    Only :class:`Exception` subclasses are captured; cancellation and
    interpreter-exit signals keep propagating.

    >>> import asyncio
    >>> async def boom() -> int:
    ...     raise KeyError("boom")
    >>> asyncio.run(capture(boom)).ok
    False
    """

    try:
        awaitable = task()
        if not inspect.isawaitable(awaitable):
            raise TypeError(f"task {task!r} did not return an awaitable")
        value = await awaitable
    except Exception as exc:  # noqa: BLE001 - folded into the outcome
        return Failure(exc)
    return Success(value)


def capture_sync(task: Callable[[], T]) -> Outcome[T]:
    """Blocking counterpart of :func:`capture` for the threaded policies."""

    try:
        value = task()
    except Exception as exc:  # noqa: BLE001 - folded into the outcome
        return Failure(exc)
    return Success(value)


__all__ = ["Failure", "Outcome", "Success", "capture", "capture_sync"]
