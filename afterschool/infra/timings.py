from __future__ import annotations
import logging
import math
import time
from typing import Dict, List

log = logging.getLogger(__name__)


class _Running:
    """Count, mean and spread of one timing kind (Welford), O(1) memory."""
    __slots__ = ("n", "mean", "m2")

    def __init__(self) -> None:
        self.n = 0
        self.mean = 0.0
        self.m2 = 0.0

    def add(self, value: float) -> None:
        self.n += 1
        delta = value - self.mean
        self.mean += delta / self.n
        self.m2 += delta * (value - self.mean)

    @property
    def std(self) -> float:
        # sample standard deviation
        return math.sqrt(self.m2 / (self.n - 1)) if self.n > 1 else 0.0


# ------------ hot path: constant work per sample ------------
# one accumulator per kind; no locks, single-threaded event loop
_TIMINGS: Dict[str, _Running] = {}


def now_ts() -> float:
    # monotonic for durations
    return time.perf_counter()


def record_timing(kind: str, value: float) -> None:
    acc = _TIMINGS.get(kind)
    if acc is None:
        acc = _TIMINGS[kind] = _Running()
    acc.add(float(value))


class timeit:
    """async usage:
        async with timeit("seats.reserve"):
            await fn()
    """
    __slots__ = ("_kind", "_t0")

    def __init__(self, kind: str):
        self._kind = kind
        self._t0 = 0.0

    async def __aenter__(self):
        self._t0 = now_ts()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        record_timing(self._kind, now_ts() - self._t0)


# ------------ stats on demand ------------

def aggregates() -> List[Dict[str, float]]:
    return [
        {"kind": kind, "n": acc.n, "mean": acc.mean, "std": acc.std}
        for kind, acc in sorted(_TIMINGS.items())
    ]


def log_aggregates() -> None:
    for rec in aggregates():
        log.info("timing %-24s n=%-6d mean=%.4fs std=%.4fs",
                 rec["kind"], rec["n"], rec["mean"], rec["std"])


def reset() -> None:
    _TIMINGS.clear()
