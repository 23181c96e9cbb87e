"""Helpers for reading host CPU and memory utilization."""
from __future__ import annotations

import psutil


class PsutilSampler:
    """Reads instantaneous host utilization through psutil."""

    def cpu_percent(self) -> float:
        # interval=0 compares against the previous call instead of blocking.
        return float(psutil.cpu_percent(interval=0))

    def memory_percent(self) -> float:
        return float(psutil.virtual_memory().percent)


def prime_cpu_counter() -> None:
    """Take a throwaway CPU reading so the first real one is not 0.0."""
    psutil.cpu_percent(interval=0)
