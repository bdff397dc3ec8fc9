"""
Raw sample rows – the newline-delimited JSON the traffic generator emits
and the aggregation engine consumes.

One row per line::

    {"type": "Point", "metric": "http_req_duration",
     "data": {"time": "2026-01-01T12:00:00Z", "value": 123.4,
              "tags": {"name": "BrowseProducts", "stage": "ramp_to_100"}}}
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping


class SampleKind(str, enum.Enum):
    METRIC = "Metric"
    POINT = "Point"


# ── Metric names ─────────────────────────────────────────────────────
HTTP_REQ_DURATION = "http_req_duration"
HTTP_REQ_FAILED = "http_req_failed"
CHECKS = "checks"
DATA_SENT = "data_sent"
DATA_RECEIVED = "data_received"
ITERATIONS = "iterations"
VUS = "vus"
SLOW_RESPONSES_3S = "slow_responses_over_3s"
SLOW_RESPONSES_5S = "very_slow_responses_over_5s"
ERRORS_BY_STAGE = "errors_by_stage"


@dataclass(frozen=True)
class Sample:
    metric: str
    value: float
    kind: SampleKind = SampleKind.POINT
    time: str = ""
    tags: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def tag(self, key: str, default: str | None = None) -> str | None:
        return self.tags.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"time": self.time, "value": self.value}
        if self.tags:
            data["tags"] = dict(self.tags)
        return {"type": self.kind.value, "metric": self.metric, "data": data}

    def to_line(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_sample(
    metric: str,
    value: float,
    tags: Mapping[str, str] | None = None,
    *,
    kind: SampleKind = SampleKind.POINT,
    time: str | None = None,
) -> Sample:
    return Sample(
        metric=metric,
        value=value,
        kind=kind,
        time=time or now_iso(),
        tags=MappingProxyType(dict(tags or {})),
    )


def parse_line(line: str) -> Sample | None:
    """Decode one NDJSON row.

    Returns ``None`` for anything that is not a well-formed ``Metric`` /
    ``Point`` row with a numeric ``data.value``; truncated lines at the end
    of a log are expected and must never abort a pass.
    """
    try:
        row = json.loads(line)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(row, dict):
        return None

    try:
        kind = SampleKind(row.get("type"))
    except ValueError:
        return None

    metric = row.get("metric")
    data = row.get("data")
    if not isinstance(metric, str) or not isinstance(data, dict):
        return None

    value = data.get("value")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None

    raw_tags = data.get("tags")
    tags = {str(k): str(v) for k, v in raw_tags.items()} if isinstance(raw_tags, dict) else {}
    time = data.get("time")

    return Sample(
        metric=metric,
        value=float(value),
        kind=kind,
        time=time if isinstance(time, str) else "",
        tags=MappingProxyType(tags),
    )
