"""
Traffic generator – the per-iteration logic a virtual user runs.

One iteration is strictly:

    select action → one HTTP call → validate → record samples

followed by think time before the load engine schedules the next
iteration.  Scheduling, ramping and concurrency belong to the engine
(see ``storeperf.loadtest``); nothing here keeps state across iterations
except the append-only :class:`MetricsSink`.
"""

from __future__ import annotations

import logging
import os
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import httpx

from storeperf import samples as m
from storeperf.aggregate import UNKNOWN_STAGE
from storeperf.http_client import ApiClient
from storeperf.profiles import BROWSE_PRODUCTS, CHECK_BRANDS, SEARCH_ITEMS, SEARCH_TERMS, Profile
from storeperf.samples import Sample, make_sample
from storeperf.selector import choose_action, select_action

logger = logging.getLogger(__name__)

SLOW_MS = 3000
VERY_SLOW_MS = 5000


# ── Metrics sink ─────────────────────────────────────────────────────


class SampleSink(Protocol):
    def record(self, sample: Sample) -> None: ...


class MetricsSink:
    """Thread-safe NDJSON appender; one complete line per sample."""

    def __init__(self, path: str):
        self.path = path
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        self._lock = threading.Lock()
        self._fh = open(path, "a", encoding="utf-8")

    def record(self, sample: Sample) -> None:
        line = sample.to_line() + "\n"
        with self._lock:
            self._fh.write(line)
            self._fh.flush()

    def close(self) -> None:
        with self._lock:
            if not self._fh.closed:
                self._fh.close()

    def __enter__(self) -> "MetricsSink":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# ── Actions ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ActionSpec:
    name: str
    tag: str
    label: str
    endpoint: str
    method: str
    path: str
    payload_key: str
    require_array: bool = True
    form: Callable[[random.Random], dict[str, str]] | None = None

    def request_kwargs(self, rng: random.Random) -> dict[str, Any]:
        if self.form is None:
            return {}
        return {"data": self.form(rng)}


def random_search_term(rng: random.Random) -> str:
    return SEARCH_TERMS[int(rng.random() * len(SEARCH_TERMS))]


ACTIONS: dict[str, ActionSpec] = {
    BROWSE_PRODUCTS: ActionSpec(
        name=BROWSE_PRODUCTS,
        tag="BrowseProducts",
        label="browse products",
        endpoint="browse",
        method="GET",
        path="/productsList",
        payload_key="products",
    ),
    SEARCH_ITEMS: ActionSpec(
        name=SEARCH_ITEMS,
        tag="SearchItems",
        label="search items",
        endpoint="search",
        method="POST",
        path="/searchProduct",
        payload_key="products",
        require_array=False,
        form=lambda rng: {"search_product": random_search_term(rng)},
    ),
    CHECK_BRANDS: ActionSpec(
        name=CHECK_BRANDS,
        tag="CheckBrands",
        label="check brands",
        endpoint="brands",
        method="GET",
        path="/brandsList",
        payload_key="brands",
    ),
}


# ── Iteration ────────────────────────────────────────────────────────


@dataclass
class IterationResult:
    action: str
    tag: str
    stage: str | None = None
    status_code: int | None = None
    duration_ms: float = 0.0
    success: bool = False
    checks: dict[str, bool] = field(default_factory=dict)
    error: str = ""


def _payload(resp: httpx.Response) -> dict[str, Any] | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def run_checks(spec: ActionSpec, resp: httpx.Response, duration_ms: float, profile: Profile) -> dict[str, bool]:
    label = spec.label
    body = _payload(resp)
    value = body.get(spec.payload_key) if body else None
    has_data = isinstance(value, list) if spec.require_array else value is not None

    checks = {
        f"{label}: status is 200": resp.status_code == 200,
        f"{label}: has {spec.payload_key} data": has_data,
    }
    if profile.max_response_check_ms is not None:
        limit_s = profile.max_response_check_ms / 1000
        checks[f"{label}: response time < {limit_s:g}s"] = duration_ms < profile.max_response_check_ms
    return checks


def _wire_size(headers: httpx.Headers, body: bytes, start_line: str) -> int:
    head = sum(len(k) + len(v) + 4 for k, v in headers.raw)
    return len(start_line) + 2 + head + 2 + len(body)


def _sent_bytes(request: httpx.Request) -> int:
    start = f"{request.method} {request.url.raw_path.decode('ascii', 'replace')} HTTP/1.1"
    return _wire_size(request.headers, request.content, start)


def _received_bytes(resp: httpx.Response) -> int:
    start = f"HTTP/1.1 {resp.status_code} {resp.reason_phrase}"
    return _wire_size(resp.headers, resp.content, start)


def run_iteration(
    client: ApiClient,
    profile: Profile,
    sink: SampleSink,
    *,
    rng: random.Random | None = None,
    draw: float | None = None,
    stage: str | None = None,
    vus: int | None = None,
) -> IterationResult:
    """Run one select → call → validate → record cycle.

    *draw* (in ``[0, 100)``) pins the action choice; otherwise one fresh
    draw is taken from *rng*.  Network errors are recorded as failed checks
    and never propagate, so the virtual user keeps iterating.
    """
    rng = rng or random.Random()
    if draw is None:
        spec = ACTIONS[select_action(profile.weights, rng)]
    else:
        spec = ACTIONS[choose_action(profile.weights, draw)]

    tags: dict[str, str] = {"name": spec.tag}
    if profile.track_stages:
        stage = stage or UNKNOWN_STAGE
        tags["stage"] = stage
    result = IterationResult(action=spec.name, tag=spec.tag, stage=stage if profile.track_stages else None)

    if vus is not None:
        sink.record(make_sample(m.VUS, vus))

    try:
        resp, duration_ms = client.timed_request(spec.method, spec.path, **spec.request_kwargs(rng))
    except httpx.HTTPError as exc:
        logger.warning("%s %s failed: %s", spec.method, spec.path, exc)
        result.error = f"{type(exc).__name__}: {exc}"
        result.checks = {f"{spec.label}: status is 200": False, f"{spec.label}: request completed": False}
        _record_outcome(sink, profile, spec, tags, result)
        return result

    result.status_code = resp.status_code
    result.duration_ms = duration_ms
    result.checks = run_checks(spec, resp, duration_ms, profile)

    sink.record(make_sample(m.HTTP_REQ_DURATION, duration_ms, tags))
    sink.record(make_sample(m.DATA_SENT, _sent_bytes(resp.request), tags))
    sink.record(make_sample(m.DATA_RECEIVED, _received_bytes(resp), tags))

    if profile.track_stages:
        slow_tags = {"endpoint": spec.endpoint, "stage": tags["stage"]}
        if duration_ms > SLOW_MS:
            sink.record(make_sample(m.SLOW_RESPONSES_3S, 1, slow_tags))
        if duration_ms > VERY_SLOW_MS:
            sink.record(make_sample(m.SLOW_RESPONSES_5S, 1, slow_tags))

    _record_outcome(sink, profile, spec, tags, result)
    return result


def _record_outcome(
    sink: SampleSink,
    profile: Profile,
    spec: ActionSpec,
    tags: dict[str, str],
    result: IterationResult,
) -> None:
    result.success = bool(result.checks) and all(result.checks.values())

    for check_name, ok in result.checks.items():
        sink.record(make_sample(m.CHECKS, 1 if ok else 0, {**tags, "check": check_name}))

    failed = result.status_code is None or result.status_code >= 400
    sink.record(make_sample(m.HTTP_REQ_FAILED, 1 if failed else 0, tags))

    if profile.track_stages and not result.success:
        sink.record(make_sample(m.ERRORS_BY_STAGE, 1, {"endpoint": spec.endpoint, "stage": tags["stage"]}))

    sink.record(make_sample(m.ITERATIONS, 1, tags))


# ── Standalone virtual user ──────────────────────────────────────────


def run_virtual_user(
    client: ApiClient,
    profile: Profile,
    sink: SampleSink,
    iterations: int,
    *,
    rng: random.Random | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> list[IterationResult]:
    """Drive one virtual user for a fixed number of iterations.

    Stage tags follow the elapsed time since the first iteration.  Handy
    for quick local runs; real ramped runs go through locust.
    """
    rng = rng or random.Random()
    results: list[IterationResult] = []
    t0 = time.monotonic()
    for _ in range(iterations):
        stage = profile.stage_at(time.monotonic() - t0) if profile.track_stages else None
        results.append(run_iteration(client, profile, sink, rng=rng, stage=stage, vus=1))
        sleep(profile.think_time(rng.random()))
    return results
