from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from typing import Any

from flowrun.config import POLICY_NAMES

from .engine import BenchmarkRecord, format_table, run_suite


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the benchmark CLI."""

    parser = argparse.ArgumentParser(
        prog="flowrun-bench",
        description="Compare flowrun scheduling policies on simulated tasks.",
    )
    parser.add_argument(
        "--policy",
        choices=(*POLICY_NAMES, "all"),
        default="all",
        help="Policy to measure",
    )
    parser.add_argument(
        "--threads",
        action="store_true",
        help="Measure the thread-pool policies instead of the asyncio ones",
    )
    parser.add_argument("--tasks", type=int, default=128, help="Number of simulated tasks")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Single limit for bounded policies (default: halve from --tasks down to 4)",
    )
    parser.add_argument("--min-delay", type=float, default=0.0, help="Shortest task latency (s)")
    parser.add_argument("--max-delay", type=float, default=0.05, help="Longest task latency (s)")
    parser.add_argument(
        "--failure-rate",
        type=float,
        default=0.0,
        help="Probability that a simulated task fails",
    )
    parser.add_argument("--seed", type=int, default=0, help="Seed for the simulated workload")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit JSON instead of a formatted table",
    )
    return parser


def run_benchmarks(args: argparse.Namespace) -> list[BenchmarkRecord]:
    """Execute benchmarks based on parsed CLI arguments."""

    return run_suite(
        policy=args.policy,
        flavor="threaded" if args.threads else "async",
        tasks=args.tasks,
        concurrency=args.concurrency,
        min_delay=args.min_delay,
        max_delay=args.max_delay,
        failure_rate=args.failure_rate,
        seed=args.seed,
    )


def main(argv: list[str] | None = None) -> int:
    """CLI entry point used by ``flowrun-bench`` and ``python -m flowrun_bench``."""

    parser = build_parser()
    args = parser.parse_args(argv)
    records = run_benchmarks(args)
    if args.json:
        payload: dict[str, Any] = {
            "records": [asdict(record) for record in records],
        }
        print(json.dumps(payload, indent=2))
    else:
        print(format_table(records))
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
