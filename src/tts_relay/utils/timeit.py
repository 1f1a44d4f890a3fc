"""
Timing helper for log lines and metrics.

    with timeit("storage_write") as t:
        await store.save(...)
    info(log, "saved", seconds=round(t.timing.seconds, 4))

Uses time.perf_counter(); works around awaits as well since it only
measures wall time between enter and exit.
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """Context manager that records a Timing on exit, including on error."""

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: Optional[float] = None
        self.timing: Optional[Timing] = None

    @property
    def elapsed(self) -> float:
        """Seconds since enter; usable inside the block."""
        assert self._t0 is not None
        return perf_counter() - self._t0

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.timing = Timing(name=self.name, seconds=self.elapsed, meta=self.meta)
