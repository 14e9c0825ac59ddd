"""Optional benchmark comparing flowrun policies on simulated workloads."""

from .engine import BenchmarkRecord, concurrency_levels, format_table, run_suite

__all__ = ["BenchmarkRecord", "concurrency_levels", "format_table", "run_suite"]
