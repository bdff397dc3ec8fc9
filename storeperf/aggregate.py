"""
Single-pass aggregation of a sample log.

The pass is an explicit fold: each line is classified into an
:class:`Accumulator`, and once the input is exhausted the accumulator is
frozen into an :class:`Aggregation` that the report layer reads.  Samples
are never modified; buckets only ever grow during the pass.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import reduce
from types import MappingProxyType
from typing import Iterable, Mapping

from storeperf import samples as m
from storeperf.errors import ResultsNotFoundError
from storeperf.samples import Sample, parse_line
from storeperf.stats import SummaryStatistics, compute_statistics

logger = logging.getLogger(__name__)

UNKNOWN_STAGE = "unknown"


@dataclass
class Bucket:
    """Append-only series of observations for one (metric, tag) key."""

    values: list[float] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.values)

    def add(self, value: float) -> None:
        self.values.append(value)


@dataclass
class CheckCounts:
    """Passed and failed checks for one tagged endpoint."""

    passed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.passed + self.failed

    @property
    def success_rate(self) -> float:
        return self.passed / self.total if self.total > 0 else 0.0


@dataclass
class Accumulator:
    track_stages: bool = False
    durations: Bucket = field(default_factory=Bucket)
    by_name: dict[str, Bucket] = field(default_factory=dict)
    by_stage: dict[str, Bucket] = field(default_factory=dict)
    checks_passed: int = 0
    checks_failed: int = 0
    checks_by_name: dict[str, CheckCounts] = field(default_factory=dict)
    requests_failed: int = 0
    requests_total: int = 0
    data_sent: float = 0.0
    data_received: float = 0.0
    iterations: int = 0
    max_vus: float = 0.0
    slow_responses_3s: int = 0
    slow_responses_5s: int = 0
    errors_by_stage: dict[str, int] = field(default_factory=dict)
    start_time: str | None = None
    end_time: str | None = None
    lines_read: int = 0
    lines_skipped: int = 0

    def bucket(self, group: dict[str, Bucket], key: str) -> Bucket:
        if key not in group:
            group[key] = Bucket()
        return group[key]

    def freeze(self) -> "Aggregation":
        return Aggregation(
            overall=compute_statistics(self.durations.values),
            by_name=MappingProxyType({k: compute_statistics(b.values) for k, b in self.by_name.items()}),
            by_stage=MappingProxyType({k: compute_statistics(b.values) for k, b in self.by_stage.items()}),
            checks_passed=self.checks_passed,
            checks_failed=self.checks_failed,
            checks_by_name=MappingProxyType(
                {k: CheckCounts(c.passed, c.failed) for k, c in self.checks_by_name.items()}
            ),
            requests_failed=self.requests_failed,
            requests_total=self.requests_total,
            data_sent=self.data_sent,
            data_received=self.data_received,
            iterations=self.iterations,
            max_vus=self.max_vus,
            slow_responses_3s=self.slow_responses_3s,
            slow_responses_5s=self.slow_responses_5s,
            errors_by_stage=MappingProxyType(dict(self.errors_by_stage)),
            start_time=self.start_time,
            end_time=self.end_time,
            lines_read=self.lines_read,
            lines_skipped=self.lines_skipped,
        )


@dataclass(frozen=True)
class Aggregation:
    """Immutable result of one ingestion pass."""

    overall: SummaryStatistics
    by_name: Mapping[str, SummaryStatistics]
    by_stage: Mapping[str, SummaryStatistics]
    checks_passed: int = 0
    checks_failed: int = 0
    checks_by_name: Mapping[str, CheckCounts] = field(default_factory=lambda: MappingProxyType({}))
    requests_failed: int = 0
    requests_total: int = 0
    data_sent: float = 0.0
    data_received: float = 0.0
    iterations: int = 0
    max_vus: float = 0.0
    slow_responses_3s: int = 0
    slow_responses_5s: int = 0
    errors_by_stage: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    start_time: str | None = None
    end_time: str | None = None
    lines_read: int = 0
    lines_skipped: int = 0

    @property
    def checks_total(self) -> int:
        return self.checks_passed + self.checks_failed

    @property
    def error_rate(self) -> float:
        """Failed / total checks; 0 when no check was observed."""
        total = self.checks_total
        return self.checks_failed / total if total > 0 else 0.0

    @property
    def success_rate(self) -> float:
        total = self.checks_total
        return self.checks_passed / total if total > 0 else 0.0

    @property
    def request_failure_rate(self) -> float:
        """Share of requests flagged in http_req_failed; 0 when none were recorded."""
        return self.requests_failed / self.requests_total if self.requests_total > 0 else 0.0


# ── Classification ───────────────────────────────────────────────────


def classify(sample: Sample, acc: Accumulator) -> None:
    """Route *sample* into the bucket(s) and counters it contributes to."""
    name = sample.metric

    if name == m.HTTP_REQ_DURATION:
        acc.durations.add(sample.value)
        _widen_window(acc, sample.time)
        endpoint = sample.tag("name")
        if endpoint:
            acc.bucket(acc.by_name, endpoint).add(sample.value)
        if acc.track_stages:
            stage = sample.tag("stage") or UNKNOWN_STAGE
            acc.bucket(acc.by_stage, stage).add(sample.value)
    elif name == m.CHECKS:
        passed = sample.value == 1
        if passed:
            acc.checks_passed += 1
        else:
            acc.checks_failed += 1
        endpoint = sample.tag("name")
        if endpoint:
            counts = acc.checks_by_name.setdefault(endpoint, CheckCounts())
            if passed:
                counts.passed += 1
            else:
                counts.failed += 1
    elif name == m.HTTP_REQ_FAILED:
        acc.requests_total += 1
        if sample.value:
            acc.requests_failed += 1
    elif name == m.DATA_SENT:
        acc.data_sent += sample.value
    elif name == m.DATA_RECEIVED:
        acc.data_received += sample.value
    elif name == m.ITERATIONS:
        acc.iterations += 1
    elif name == m.VUS:
        acc.max_vus = max(acc.max_vus, sample.value)
    elif name == m.SLOW_RESPONSES_3S:
        acc.slow_responses_3s += 1
    elif name == m.SLOW_RESPONSES_5S:
        acc.slow_responses_5s += 1
    elif name == m.ERRORS_BY_STAGE:
        stage = sample.tag("stage") or UNKNOWN_STAGE
        acc.errors_by_stage[stage] = acc.errors_by_stage.get(stage, 0) + 1


def _widen_window(acc: Accumulator, time: str) -> None:
    # ISO-8601 strings in one zone compare chronologically
    if not time:
        return
    if acc.start_time is None or time < acc.start_time:
        acc.start_time = time
    if acc.end_time is None or time > acc.end_time:
        acc.end_time = time


def fold_line(acc: Accumulator, line: str) -> Accumulator:
    if not line.strip():
        return acc
    acc.lines_read += 1
    sample = parse_line(line)
    if sample is None:
        acc.lines_skipped += 1
        return acc
    classify(sample, acc)
    return acc


# ── Entry points ─────────────────────────────────────────────────────


def aggregate_lines(lines: Iterable[str], *, track_stages: bool = False) -> Aggregation:
    acc = reduce(fold_line, lines, Accumulator(track_stages=track_stages))
    return acc.freeze()


def aggregate_file(path: str, *, track_stages: bool = False, hint: str = "") -> Aggregation:
    """Aggregate an NDJSON results file; fail fast when it is missing."""
    if not os.path.exists(path):
        raise ResultsNotFoundError(path, hint)

    with open(path, encoding="utf-8") as f:
        result = aggregate_lines(f, track_stages=track_stages)

    logger.info(
        "Aggregated %s: %d lines, %d skipped, %d duration samples",
        path,
        result.lines_read,
        result.lines_skipped,
        result.overall.count,
    )
    return result
