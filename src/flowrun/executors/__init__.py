"""Executor plumbing for the threaded policies.

Blocking tasks run on a standard :class:`concurrent.futures.Executor`; by
default the shared pool from :mod:`flowrun.executors.threading`.
"""

from . import threading

__all__ = ["threading"]
