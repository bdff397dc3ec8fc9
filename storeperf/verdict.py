"""
Threshold evaluation and run verdict.

The verdict is a plain decision table evaluated once per report: the run
lands in the first tier whose limits it meets, otherwise it FAILs.  Each
configured threshold is also reported on its own so the dashboard can show
exactly which limit was breached.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable

from storeperf.aggregate import Aggregation


class Verdict(str, enum.Enum):
    PASS = "PASS"
    WARNING = "WARNING"
    FAIL = "FAIL"


@dataclass(frozen=True)
class Tier:
    """Limits a run must meet to reach a tier.

    p95 is an exclusive upper bound; ``None`` leaves latency unchecked.  The
    error-rate bound is exclusive unless *error_rate_inclusive* is set, for
    tiers phrased as "success rate of at least N%".
    """

    max_error_rate: float
    max_p95_ms: float | None = None
    error_rate_inclusive: bool = False

    def admits(self, error_rate: float, p95_ms: float) -> bool:
        if error_rate > self.max_error_rate:
            return False
        if error_rate == self.max_error_rate and not self.error_rate_inclusive:
            return False
        if self.max_p95_ms is not None and p95_ms >= self.max_p95_ms:
            return False
        return True


@dataclass(frozen=True)
class Threshold:
    """One reportable limit: ``observed(stat) <op> target``.

    *stat* is a key of the observer table, or ``success_rate:<Name>`` for the
    check success rate of one tagged endpoint.
    """

    name: str
    stat: str
    target: float
    unit: str = ""
    op: str = "<"

    def holds(self, actual: float) -> bool:
        if self.op == ">":
            return actual > self.target
        return actual < self.target


@dataclass(frozen=True)
class ThresholdPolicy:
    pass_tier: Tier
    warn_tier: Tier | None = None
    thresholds: tuple[Threshold, ...] = ()


@dataclass(frozen=True)
class ThresholdResult:
    name: str
    target: float
    actual: float
    passed: bool
    unit: str = ""
    op: str = "<"


def evaluate_verdict(error_rate: float, p95_ms: float, policy: ThresholdPolicy) -> Verdict:
    if policy.pass_tier.admits(error_rate, p95_ms):
        return Verdict.PASS
    if policy.warn_tier is not None and policy.warn_tier.admits(error_rate, p95_ms):
        return Verdict.WARNING
    return Verdict.FAIL


# ── Observed statistics ──────────────────────────────────────────────

_OBSERVERS: dict[str, Callable[[Aggregation], float]] = {
    "p95": lambda a: a.overall.p95,
    "p99": lambda a: a.overall.p99,
    "error_rate": lambda a: a.error_rate,
    "success_rate": lambda a: 1.0 - a.error_rate,
    "http_req_failed": lambda a: a.request_failure_rate,
    "slow_responses_3s": lambda a: float(a.slow_responses_3s),
    "slow_responses_5s": lambda a: float(a.slow_responses_5s),
}

_PER_NAME = "success_rate:"


def observed(aggregation: Aggregation, stat: str) -> float | None:
    """Current value of *stat*; ``None`` when an endpoint saw no checks."""
    if stat.startswith(_PER_NAME):
        counts = aggregation.checks_by_name.get(stat[len(_PER_NAME):])
        if counts is None or counts.total == 0:
            return None
        return counts.success_rate
    try:
        return _OBSERVERS[stat](aggregation)
    except KeyError:
        raise ValueError(f"unknown threshold statistic: {stat!r}") from None


def evaluate_thresholds(aggregation: Aggregation, policy: ThresholdPolicy) -> list[ThresholdResult]:
    """Check every configured limit; endpoints that never ran are left out."""
    results: list[ThresholdResult] = []
    for t in policy.thresholds:
        actual = observed(aggregation, t.stat)
        if actual is None:
            continue
        results.append(
            ThresholdResult(
                name=t.name,
                target=t.target,
                actual=actual,
                passed=t.holds(actual),
                unit=t.unit,
                op=t.op,
            )
        )
    return results
