from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

PolicyName = Literal["serial", "all_at_once", "batch", "continuous"]

POLICY_NAMES: tuple[PolicyName, ...] = ("serial", "all_at_once", "batch", "continuous")
DEFAULT_CONCURRENCY = 4


@dataclass(slots=True)
class SchedulerConfig:
    """User-tunable defaults applied when a call does not pick a policy.

    ``concurrency`` only matters for the bounded policies (``batch`` and
    ``continuous``).
    """

    policy: PolicyName = "continuous"
    concurrency: int = DEFAULT_CONCURRENCY

    @classmethod
    def from_env(cls) -> SchedulerConfig:
        """Load overrides from environment variables.

        Supported variables (all optional):

        ``FLOWRUN_POLICY``
            One of ``serial``, ``all_at_once``, ``batch``, ``continuous``.
        ``FLOWRUN_CONCURRENCY``
            Positive integer used as the default window or batch size.

        Invalid values are ignored and the defaults kept.
        """

        def _parse_policy(value: str | None) -> PolicyName | None:
            if value is None:
                return None
            lowered = value.strip().lower().replace("-", "_")
            if lowered in POLICY_NAMES:
                return lowered  # type: ignore[return-value]
            return None

        def _parse_int(value: str | None) -> int | None:
            if value is None:
                return None
            try:
                parsed = int(value)
            except ValueError:
                return None
            return parsed if parsed > 0 else None

        env = os.environ
        policy = _parse_policy(env.get("FLOWRUN_POLICY"))
        concurrency = _parse_int(env.get("FLOWRUN_CONCURRENCY"))

        return cls(
            policy=policy or "continuous",
            concurrency=concurrency or DEFAULT_CONCURRENCY,
        )
