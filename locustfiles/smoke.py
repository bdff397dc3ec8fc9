"""Smoke profile – ``locust -f locustfiles/smoke.py --headless --host $BASE_URL``."""

from storeperf.loadtest import ShopperUser, StageShape
from storeperf.profiles import SMOKE


class SmokeShopper(ShopperUser):
    profile = SMOKE


class SmokeShape(StageShape):
    profile = SMOKE
