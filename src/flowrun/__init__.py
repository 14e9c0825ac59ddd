"""Ordered, policy-driven execution of zero-argument tasks.

`flowrun` runs a fixed list of tasks under one of four interchangeable
policies (``serial``, ``all_at_once``, ``batch`` and ``continuous``) and hands
back results in input order. The asyncio policies live in
:mod:`flowrun.policies`, their thread-pool twins in :mod:`flowrun.threaded`;
see individual modules for details.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from . import threaded
from .api import configure, last_trace, reset, run, run_sync
from .config import SchedulerConfig
from .errors import InvalidConfiguration
from .events import DispatchEvent
from .outcome import Failure, Outcome, Success
from .policies import all_at_once, batch_concurrency, continuous_concurrency, serial
from .scheduler import (
    RunTrace,
    Scheduler,
    add_dispatch_listener,
    observe_dispatch,
    remove_dispatch_listener,
)

__all__ = [
    "DispatchEvent",
    "Failure",
    "InvalidConfiguration",
    "Outcome",
    "RunTrace",
    "Scheduler",
    "SchedulerConfig",
    "Success",
    "add_dispatch_listener",
    "all_at_once",
    "batch_concurrency",
    "configure",
    "continuous_concurrency",
    "last_trace",
    "observe_dispatch",
    "remove_dispatch_listener",
    "reset",
    "run",
    "run_sync",
    "serial",
    "threaded",
]

try:
    __version__ = version("flowrun")
except PackageNotFoundError:  # pragma: no cover - during local dev
    __version__ = "0.0.0"
