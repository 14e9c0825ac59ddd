from __future__ import annotations

import atexit
from concurrent.futures import ThreadPoolExecutor
from threading import Lock

_THREAD_POOL: ThreadPoolExecutor | None = None
_THREAD_POOL_WORKERS = 0
_LOCK = Lock()
_PREFIX = "flowrun-thread"
_ATEXIT_REGISTERED = False


def get_thread_pool(*, min_workers: int = 1) -> ThreadPoolExecutor:
    """Return the process-wide :class:`ThreadPoolExecutor` used by threaded policies.

    The pool only grows. When a caller needs more workers than the current pool
    holds (a wider window), a larger pool replaces it.
    The old pool is released rather than shut down: callers still holding it
    keep submitting to it, and its threads exit once it is collected.
    """

    global _THREAD_POOL, _THREAD_POOL_WORKERS
    with _LOCK:
        if _THREAD_POOL is not None and _THREAD_POOL_WORKERS < min_workers:
            _THREAD_POOL = None
        if _THREAD_POOL is None:
            _THREAD_POOL_WORKERS = max(min_workers, _THREAD_POOL_WORKERS, 1)
            _THREAD_POOL = ThreadPoolExecutor(
                max_workers=_THREAD_POOL_WORKERS,
                thread_name_prefix=_PREFIX,
            )
            _register_atexit()
        pool = _THREAD_POOL
    return pool


def scratch_thread_pool(workers: int) -> ThreadPoolExecutor:
    """Return a private pool of ``workers`` threads for one unthrottled run.

    The caller shuts it down when the run ends, so a wide run never widens the
    shared pool.
    """

    return ThreadPoolExecutor(max_workers=max(workers, 1), thread_name_prefix=_PREFIX)


def thread_pool_size() -> int:
    """Number of workers in the shared pool, ``0`` when none was created yet."""

    with _LOCK:
        return _THREAD_POOL_WORKERS if _THREAD_POOL is not None else 0


def reset_thread_pool(*, cancel_futures: bool = False) -> None:
    """Tear down the shared thread pool if it has been created."""

    global _THREAD_POOL, _THREAD_POOL_WORKERS
    with _LOCK:
        pool = _THREAD_POOL
        _THREAD_POOL = None
        _THREAD_POOL_WORKERS = 0
    if pool is not None:
        pool.shutdown(wait=True, cancel_futures=cancel_futures)


def _register_atexit() -> None:
    global _ATEXIT_REGISTERED
    if _ATEXIT_REGISTERED:
        return
    atexit.register(reset_thread_pool)
    _ATEXIT_REGISTERED = True
