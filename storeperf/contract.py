"""
HTTP contract scenarios for the store API.

Each scenario returns a ``StepResult`` so the CLI can aggregate
PASS / FAIL status.  The API always answers transport status 200 and puts
its own status in ``responseCode``, so every scenario checks both.

Scenarios:
  1. GET    /productsList  → product list matches schema
  2. POST   /productsList  → 405 method not supported
  3. GET    /brandsList    → brand list matches schema
  4. PUT    /brandsList    → 405 method not supported
  5. POST   /searchProduct → searched products match schema
  6. POST   /searchProduct without parameter → 400
  7. POST   /verifyLogin with valid credentials → 200 "User exists!"
  8. POST   /verifyLogin without email → 400
  9. DELETE /verifyLogin   → 405 method not supported
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
from pydantic import BaseModel, ValidationError

from storeperf.config import TEST_EMAIL, TEST_PASSWORD
from storeperf.http_client import ApiClient
from storeperf.schemas import ApiResponse, BrandsListResponse, ProductsListResponse

logger = logging.getLogger(__name__)

METHOD_NOT_SUPPORTED = "This request method is not supported."
SEARCH_PARAM_MISSING = "Bad request, search_product parameter is missing in POST request."
LOGIN_PARAM_MISSING = "Bad request, email or password parameter is missing in POST request."
USER_EXISTS = "User exists!"


# ── Result model ─────────────────────────────────────────────────────


@dataclass
class StepResult:
    name: str
    passed: bool
    duration_ms: float = 0.0
    detail: str = ""
    assertions: list[str] = field(default_factory=list)


@dataclass
class ContractReport:
    steps: list[StepResult] = field(default_factory=list)
    passed: bool = True
    total_duration_ms: float = 0.0

    def add(self, step: StepResult) -> None:
        self.steps.append(step)
        if not step.passed:
            self.passed = False


# ── Helpers ──────────────────────────────────────────────────────────


def _assert(condition: bool, msg: str, assertions: list[str]) -> None:
    assertions.append(f"{'✓' if condition else '✗'} {msg}")
    if not condition:
        raise AssertionError(msg)


def _body(resp: httpx.Response, assertions: list[str]) -> dict[str, Any]:
    _assert(resp.status_code == 200, f"transport status {resp.status_code} == 200", assertions)
    try:
        data = resp.json()
    except ValueError:
        data = None
    _assert(isinstance(data, dict), "body is a JSON object", assertions)
    return data  # type: ignore[return-value]


def _assert_schema(data: dict[str, Any], model: type[BaseModel], assertions: list[str]) -> BaseModel:
    try:
        parsed = model.model_validate(data)
    except ValidationError as exc:
        assertions.append(f"✗ body matches {model.__name__}")
        raise AssertionError(f"body does not match {model.__name__}: {exc.error_count()} error(s)") from exc
    assertions.append(f"✓ body matches {model.__name__}")
    return parsed


def _assert_envelope(data: dict[str, Any], code: int, message: str, assertions: list[str]) -> None:
    envelope = _assert_schema(data, ApiResponse, assertions)
    _assert(envelope.responseCode == code, f"responseCode {envelope.responseCode} == {code}", assertions)
    _assert(envelope.message is not None, "message is present", assertions)
    _assert(message in (envelope.message or ""), f"message contains {message!r}", assertions)


def _step(name: str, body: Callable[[list[str]], str]) -> StepResult:
    """Run *body* and turn its outcome into a StepResult."""
    t0 = time.monotonic()
    assertions: list[str] = []
    try:
        detail = body(assertions)
        passed = True
    except (AssertionError, httpx.HTTPError) as exc:
        detail = str(exc)
        passed = False
        logger.warning("Contract step %s failed: %s", name, detail)
    return StepResult(
        name=name,
        passed=passed,
        duration_ms=(time.monotonic() - t0) * 1000,
        detail=detail,
        assertions=assertions,
    )


# ── Scenarios ────────────────────────────────────────────────────────


def get_all_products(client: ApiClient) -> StepResult:
    def body(assertions: list[str]) -> str:
        data = _body(client.get("/productsList"), assertions)
        parsed = _assert_schema(data, ProductsListResponse, assertions)
        return f"{len(parsed.products)} products"

    return _step("api_1_get_all_products", body)


def post_to_products_list(client: ApiClient) -> StepResult:
    def body(assertions: list[str]) -> str:
        data = _body(client.post("/productsList"), assertions)
        _assert_envelope(data, 405, METHOD_NOT_SUPPORTED, assertions)
        return "POST rejected with 405"

    return _step("api_2_post_products_list", body)


def get_all_brands(client: ApiClient) -> StepResult:
    def body(assertions: list[str]) -> str:
        data = _body(client.get("/brandsList"), assertions)
        parsed = _assert_schema(data, BrandsListResponse, assertions)
        return f"{len(parsed.brands)} brands"

    return _step("api_3_get_all_brands", body)


def put_to_brands_list(client: ApiClient) -> StepResult:
    def body(assertions: list[str]) -> str:
        data = _body(client.put("/brandsList"), assertions)
        _assert_envelope(data, 405, METHOD_NOT_SUPPORTED, assertions)
        return "PUT rejected with 405"

    return _step("api_4_put_brands_list", body)


def search_product(client: ApiClient, term: str = "top") -> StepResult:
    def body(assertions: list[str]) -> str:
        data = _body(client.post("/searchProduct", files={"search_product": (None, term)}), assertions)
        parsed = _assert_schema(data, ProductsListResponse, assertions)
        return f"{len(parsed.products)} products for {term!r}"

    return _step("api_5_search_product", body)


def search_product_without_parameter(client: ApiClient) -> StepResult:
    def body(assertions: list[str]) -> str:
        data = _body(client.post("/searchProduct"), assertions)
        _assert_envelope(data, 400, SEARCH_PARAM_MISSING, assertions)
        return "missing search_product rejected with 400"

    return _step("api_6_search_without_parameter", body)


def verify_login_valid(client: ApiClient, email: str = TEST_EMAIL, password: str = TEST_PASSWORD) -> StepResult:
    def body(assertions: list[str]) -> str:
        if not email or not password:
            assertions.append("- skipped: TEST_EMAIL / TEST_PASSWORD not configured")
            return "skipped (no credentials)"
        files = {"email": (None, email), "password": (None, password)}
        data = _body(client.post("/verifyLogin", files=files), assertions)
        _assert_envelope(data, 200, USER_EXISTS, assertions)
        return "credentials accepted"

    return _step("api_7_verify_login_valid", body)


def verify_login_without_email(client: ApiClient, password: str = TEST_PASSWORD) -> StepResult:
    def body(assertions: list[str]) -> str:
        files = {"password": (None, password or "placeholder")}
        data = _body(client.post("/verifyLogin", files=files), assertions)
        _assert_envelope(data, 400, LOGIN_PARAM_MISSING, assertions)
        return "missing email rejected with 400"

    return _step("api_8_verify_login_without_email", body)


def delete_verify_login(client: ApiClient) -> StepResult:
    def body(assertions: list[str]) -> str:
        data = _body(client.delete("/verifyLogin"), assertions)
        _assert_envelope(data, 405, METHOD_NOT_SUPPORTED, assertions)
        return "DELETE rejected with 405"

    return _step("api_9_delete_verify_login", body)


SCENARIOS: tuple[Callable[[ApiClient], StepResult], ...] = (
    get_all_products,
    post_to_products_list,
    get_all_brands,
    put_to_brands_list,
    search_product,
    search_product_without_parameter,
    verify_login_valid,
    verify_login_without_email,
    delete_verify_login,
)


def run_all(client: ApiClient | None = None) -> ContractReport:
    """Execute every scenario and return a structured report."""
    report = ContractReport()
    t0 = time.monotonic()
    own_client = client is None
    client = client or ApiClient()
    try:
        for scenario in SCENARIOS:
            report.add(scenario(client))
    finally:
        if own_client:
            client.close()
    report.total_duration_ms = (time.monotonic() - t0) * 1000
    return report
