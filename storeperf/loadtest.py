"""
Locust adapter for the traffic generator.

Locust owns virtual-user scheduling, ramping and concurrency.  This module
only plugs the per-iteration logic from :mod:`storeperf.traffic` into it:

* :class:`ShopperUser` – runs one :func:`run_iteration` per task call,
  mirrors every request into locust's own statistics and appends the raw
  samples to the profile's NDJSON results file.
* :class:`StageShape` – turns the profile's stage schedule into a ramping
  user count.

Both are abstract; ``locustfiles/<profile>.py`` bind them to a profile.
"""

from __future__ import annotations

import logging
import random
import threading

from locust import LoadTestShape, User, events, task

from storeperf.config import results_path
from storeperf.http_client import ApiClient
from storeperf.profiles import Profile
from storeperf.traffic import MetricsSink, run_iteration

logger = logging.getLogger(__name__)

_sinks: dict[str, MetricsSink] = {}
_sinks_lock = threading.Lock()


def shared_sink(path: str) -> MetricsSink:
    """One sink per results file, shared by every user in this process."""
    with _sinks_lock:
        if path not in _sinks:
            logger.info("Writing samples to %s", path)
            _sinks[path] = MetricsSink(path)
        return _sinks[path]


@events.quitting.add_listener
def _close_sinks(environment, **kwargs) -> None:
    with _sinks_lock:
        for sink in _sinks.values():
            sink.close()
        _sinks.clear()


class ShopperUser(User):
    """A shopper that browses, searches and checks brands."""

    abstract = True
    profile: Profile

    def __init__(self, environment):
        super().__init__(environment)
        self.rng = random.Random()
        self.client = ApiClient(base_url=self.host, max_retries=0) if self.host else ApiClient(max_retries=0)
        self.sink = shared_sink(results_path(self.profile.name))

    def wait_time(self) -> float:
        return self.profile.think_time(self.rng.random())

    def _elapsed(self) -> float:
        shape = self.environment.shape_class
        return shape.get_run_time() if shape is not None else 0.0

    def _user_count(self) -> int | None:
        runner = self.environment.runner
        return runner.user_count if runner is not None else None

    @task
    def shop(self) -> None:
        stage = self.profile.stage_at(self._elapsed()) if self.profile.track_stages else None
        result = run_iteration(self.client, self.profile, self.sink, rng=self.rng, stage=stage, vus=self._user_count())

        failed = [name for name, ok in result.checks.items() if not ok]
        self.environment.events.request.fire(
            request_type=result.action,
            name=result.tag,
            response_time=result.duration_ms,
            response_length=0,
            exception=AssertionError(", ".join(failed)) if failed else None,
            context={"stage": stage},
        )

    def on_stop(self) -> None:
        self.client.close()


class StageShape(LoadTestShape):
    """Ramping user count following ``profile.stages``."""

    abstract = True
    profile: Profile

    def tick(self):
        run_time = self.get_run_time()
        users = self.profile.target_users_at(run_time)
        if users is None:
            return None
        # Enough spawn rate to reach the next stage target within one tick
        spawn_rate = max(1, self.profile.peak_users)
        return users, spawn_rate
