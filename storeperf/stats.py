"""
Summary statistics over a bucket of duration samples.

Percentiles use the nearest-rank estimator ``sorted[floor(n * p)]`` that
load-test reports conventionally print.  It is not interpolated, so small
buckets give coarse answers; keep the formula as-is so numbers stay
comparable with earlier reports.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class SummaryStatistics:
    """Read-only view over one bucket.

    Every field is ``0`` for an empty bucket; check ``count`` to tell
    "no data" apart from "zero latency".
    """

    count: int = 0
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    p50: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0

    @property
    def empty(self) -> bool:
        return self.count == 0


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Value at 0-indexed rank ``floor(len * p)``, clamped to the last index."""
    if not sorted_values:
        return 0
    rank = math.floor(len(sorted_values) * p)
    rank = min(max(rank, 0), len(sorted_values) - 1)
    return sorted_values[rank]


def compute_statistics(values: Sequence[float]) -> SummaryStatistics:
    if not values:
        return SummaryStatistics()

    ordered = sorted(values)
    n = len(ordered)
    return SummaryStatistics(
        count=n,
        min=ordered[0],
        max=ordered[-1],
        avg=sum(ordered) / n,
        p50=percentile(ordered, 0.50),
        p90=percentile(ordered, 0.90),
        p95=percentile(ordered, 0.95),
        p99=percentile(ordered, 0.99),
    )
