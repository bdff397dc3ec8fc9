"""
Traffic profiles: who does what, how often, and under which limits.

  smoke   – 3 users for a minute, relaxed limits; "do the endpoints work?"
  load    – lunch-hour traffic: ramp to 50 users, hold, ramp down
  stress  – Prime Day peak: 100 → 200 users, hold at 200 to find the breaking point
"""

from __future__ import annotations

from dataclasses import dataclass

from storeperf.errors import UnknownProfileError
from storeperf.verdict import Threshold, ThresholdPolicy, Tier

# ── Action names ─────────────────────────────────────────────────────
BROWSE_PRODUCTS = "browseProducts"
SEARCH_ITEMS = "searchItems"
CHECK_BRANDS = "checkBrands"


@dataclass(frozen=True)
class Stage:
    name: str
    duration_s: float
    target_users: int


@dataclass(frozen=True)
class Profile:
    name: str
    title: str
    weights: tuple[tuple[str, float], ...]
    stages: tuple[Stage, ...]
    think_time_s: tuple[float, float]
    policy: ThresholdPolicy
    start_users: int = 0
    track_stages: bool = False
    max_response_check_ms: float | None = None

    @property
    def total_duration_s(self) -> float:
        return sum(s.duration_s for s in self.stages)

    @property
    def peak_users(self) -> int:
        return max([self.start_users] + [s.target_users for s in self.stages])

    def stage_at(self, elapsed_s: float) -> str:
        """Name of the stage running *elapsed_s* seconds into the test."""
        boundary = 0.0
        for stage in self.stages:
            boundary += stage.duration_s
            if elapsed_s < boundary:
                return stage.name
        return self.stages[-1].name

    def target_users_at(self, elapsed_s: float) -> int | None:
        """Linearly interpolated user count, ``None`` once the schedule ends."""
        start = 0.0
        previous = self.start_users
        for stage in self.stages:
            end = start + stage.duration_s
            if elapsed_s < end:
                fraction = (elapsed_s - start) / stage.duration_s if stage.duration_s else 1.0
                return round(previous + (stage.target_users - previous) * fraction)
            start = end
            previous = stage.target_users
        return None

    def think_time(self, draw: float) -> float:
        """Map a draw in ``[0, 1)`` onto the profile's think-time range."""
        low, high = self.think_time_s
        return low + (high - low) * draw


# ── Profiles ─────────────────────────────────────────────────────────

SMOKE = Profile(
    name="smoke",
    title="Smoke Test: Quick API Health Check",
    weights=((BROWSE_PRODUCTS, 60), (SEARCH_ITEMS, 25), (CHECK_BRANDS, 15)),
    stages=(Stage("smoke", 60, 3),),
    start_users=3,
    think_time_s=(2.0, 2.0),
    policy=ThresholdPolicy(
        pass_tier=Tier(max_error_rate=0.05, max_p95_ms=3000),
        thresholds=(
            Threshold("http_req_duration p(95)", "p95", 3000, "ms"),
            Threshold("error rate", "error_rate", 0.05, "rate"),
            Threshold("http_req_failed rate", "http_req_failed", 0.05, "rate"),
            Threshold("api health rate", "success_rate", 0.95, "rate", op=">"),
        ),
    ),
)

LOAD = Profile(
    name="load",
    title="Load Test: Lunch Hour Traffic Simulation",
    weights=((BROWSE_PRODUCTS, 60), (SEARCH_ITEMS, 25), (CHECK_BRANDS, 15)),
    stages=(
        Stage("ramp_up", 120, 50),
        Stage("sustain", 300, 50),
        Stage("ramp_down", 60, 0),
    ),
    think_time_s=(1.0, 5.0),
    max_response_check_ms=2000,
    policy=ThresholdPolicy(
        # PASS at >= 99% check success with p95 under 2s, WARNING at >= 95%
        pass_tier=Tier(max_error_rate=0.01, max_p95_ms=2000, error_rate_inclusive=True),
        warn_tier=Tier(max_error_rate=0.05, error_rate_inclusive=True),
        thresholds=(
            Threshold("http_req_duration p(95)", "p95", 2000, "ms"),
            Threshold("http_req_duration p(99)", "p99", 5000, "ms"),
            Threshold("error rate", "error_rate", 0.01, "rate"),
            Threshold("http_req_failed rate", "http_req_failed", 0.01, "rate"),
            Threshold("browse_success_rate", "success_rate:BrowseProducts", 0.99, "rate", op=">"),
            Threshold("search_success_rate", "success_rate:SearchItems", 0.99, "rate", op=">"),
            Threshold("check_brands_success_rate", "success_rate:CheckBrands", 0.99, "rate", op=">"),
        ),
    ),
)

STRESS = Profile(
    name="stress",
    title="Stress Test: Prime Day / Cyber Monday Preparation",
    weights=((BROWSE_PRODUCTS, 70), (SEARCH_ITEMS, 30)),
    stages=(
        Stage("ramp_to_100", 120, 100),
        Stage("ramp_to_200", 120, 200),
        Stage("sustain_200_CRITICAL", 180, 200),
        Stage("ramp_down", 60, 0),
    ),
    think_time_s=(1.0, 3.0),
    track_stages=True,
    policy=ThresholdPolicy(
        pass_tier=Tier(max_error_rate=0.01, max_p95_ms=3000),
        warn_tier=Tier(max_error_rate=0.05, max_p95_ms=5000),
        thresholds=(
            Threshold("http_req_duration p(95)", "p95", 3000, "ms"),
            Threshold("http_req_duration p(99)", "p99", 5000, "ms"),
            Threshold("error rate", "error_rate", 0.01, "rate"),
            Threshold("http_req_failed rate", "http_req_failed", 0.01, "rate"),
            Threshold("browse_success_rate", "success_rate:BrowseProducts", 0.99, "rate", op=">"),
            Threshold("search_success_rate", "success_rate:SearchItems", 0.99, "rate", op=">"),
            Threshold("slow_responses_over_3s count", "slow_responses_3s", 100),
            Threshold("very_slow_responses_over_5s count", "slow_responses_5s", 50),
        ),
    ),
)

PROFILES: dict[str, Profile] = {p.name: p for p in (SMOKE, LOAD, STRESS)}

SEARCH_TERMS: tuple[str, ...] = (
    "top",
    "dress",
    "jeans",
    "shirt",
    "tshirt",
    "saree",
    "cotton",
    "blue",
    "men",
    "women",
    "kids",
    "polo",
    "winter",
    "summer",
)


def get_profile(name: str) -> Profile:
    try:
        return PROFILES[name]
    except KeyError:
        raise UnknownProfileError(name) from None
