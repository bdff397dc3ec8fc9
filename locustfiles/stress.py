"""Stress profile – ``locust -f locustfiles/stress.py --headless --host $BASE_URL``."""

from storeperf.loadtest import ShopperUser, StageShape
from storeperf.profiles import STRESS


class StressShopper(ShopperUser):
    profile = STRESS


class StressShape(StageShape):
    profile = STRESS
