"""Load profile – ``locust -f locustfiles/load.py --headless --host $BASE_URL``."""

from storeperf.loadtest import ShopperUser, StageShape
from storeperf.profiles import LOAD


class LoadShopper(ShopperUser):
    profile = LOAD


class LoadShape(StageShape):
    profile = LOAD
