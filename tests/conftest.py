"""Test fixtures for storeperf."""

import json
import os

import pytest

os.environ["BASE_URL"] = "http://store.test/api"
os.environ["TEST_EMAIL"] = ""
os.environ["TEST_PASSWORD"] = ""
os.environ["HTTP_MAX_RETRIES"] = "0"
os.environ["LOG_FORMAT"] = "text"
os.environ.pop("RESULTS_FILE", None)

import httpx

from storeperf.contract import LOGIN_PARAM_MISSING, METHOD_NOT_SUPPORTED, SEARCH_PARAM_MISSING, USER_EXISTS
from storeperf.http_client import ApiClient

BASE_URL = "http://store.test/api"

PRODUCT = {
    "id": 1,
    "name": "Blue Top",
    "price": "Rs. 500",
    "brand": "Polo",
    "category": {"usertype": {"usertype": "Women"}, "category": "Tops"},
}
BRAND = {"id": 1, "brand": "Polo"}


class FakeStore:
    """In-memory stand-in for the store API.

    Like the real service it always answers HTTP 200 and carries its own
    status in ``responseCode``.
    """

    def __init__(self):
        self.products = [dict(PRODUCT)]
        self.brands = [dict(BRAND)]
        self.email = "shopper@example.com"
        self.password = "secret"
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]
        method = request.method
        body = request.content

        if endpoint == "productsList":
            if method == "GET":
                return self._ok({"responseCode": 200, "products": self.products})
            return self._ok({"responseCode": 405, "message": METHOD_NOT_SUPPORTED})

        if endpoint == "brandsList":
            if method == "GET":
                return self._ok({"responseCode": 200, "brands": self.brands})
            return self._ok({"responseCode": 405, "message": METHOD_NOT_SUPPORTED})

        if endpoint == "searchProduct":
            if method != "POST":
                return self._ok({"responseCode": 405, "message": METHOD_NOT_SUPPORTED})
            if b"search_product" not in body:
                return self._ok({"responseCode": 400, "message": SEARCH_PARAM_MISSING})
            return self._ok({"responseCode": 200, "products": self.products})

        if endpoint == "verifyLogin":
            if method != "POST":
                return self._ok({"responseCode": 405, "message": METHOD_NOT_SUPPORTED})
            if b'name="email"' not in body or b'name="password"' not in body:
                return self._ok({"responseCode": 400, "message": LOGIN_PARAM_MISSING})
            if self.email.encode() in body and self.password.encode() in body:
                return self._ok({"responseCode": 200, "message": USER_EXISTS})
            return self._ok({"responseCode": 404, "message": "User not found!"})

        return httpx.Response(404, text="Not Found")

    @staticmethod
    def _ok(payload: dict) -> httpx.Response:
        return httpx.Response(200, json=payload)


class ListSink:
    """Collects samples in memory instead of appending NDJSON."""

    def __init__(self):
        self.samples = []

    def record(self, sample) -> None:
        self.samples.append(sample)

    def metrics(self) -> list[str]:
        return [s.metric for s in self.samples]

    def of(self, metric: str) -> list:
        return [s for s in self.samples if s.metric == metric]


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def api_client(store):
    client = ApiClient(base_url=BASE_URL, transport=httpx.MockTransport(store), max_retries=0)
    yield client
    client.close()


@pytest.fixture
def sink():
    return ListSink()


@pytest.fixture
def make_client():
    """Build an ApiClient around an arbitrary request handler."""
    clients: list[ApiClient] = []

    def _make(handler) -> ApiClient:
        client = ApiClient(base_url=BASE_URL, transport=httpx.MockTransport(handler), max_retries=0)
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.close()


def duration_line(value: float, name: str | None = None, stage: str | None = None, kind: str = "Point", time: str = "2026-01-01T12:00:00+00:00") -> str:
    tags = {}
    if name:
        tags["name"] = name
    if stage:
        tags["stage"] = stage
    data = {"time": time, "value": value}
    if tags:
        data["tags"] = tags
    return json.dumps({"type": kind, "metric": "http_req_duration", "data": data})


@pytest.fixture
def line():
    return duration_line
