from __future__ import annotations

from collections.abc import Iterator

import pytest

from flowrun import SchedulerConfig, configure, reset


@pytest.fixture(autouse=True)
def restore_runtime() -> Iterator[None]:
    reset()
    configure(SchedulerConfig())
    yield
    configure(SchedulerConfig())
    reset()
