"""
Traffic generator tests.

Covers:
  - One iteration per action: request shape, checks, recorded samples
  - Stage tagging and slow-response counters for the stress profile
  - Network errors and server errors recorded as failures
  - NDJSON sink → aggregation round trip
  - Standalone virtual-user loop
"""

import random
from unittest.mock import patch

import httpx

from storeperf.aggregate import aggregate_file
from storeperf.config import USER_AGENT
from storeperf.profiles import LOAD, SEARCH_TERMS, SMOKE, STRESS
from storeperf.selector import select_action
from storeperf.traffic import ACTIONS, MetricsSink, random_search_term, run_iteration, run_virtual_user


# ═══════════════════════════════════════════════════════════════════════
#  Actions
# ═══════════════════════════════════════════════════════════════════════


def test_browse_products_iteration(api_client, store, sink):
    result = run_iteration(api_client, LOAD, sink, draw=10)

    assert result.action == "browseProducts"
    assert result.tag == "BrowseProducts"
    assert result.status_code == 200
    assert result.success
    assert result.checks == {
        "browse products: status is 200": True,
        "browse products: has products data": True,
        "browse products: response time < 2s": True,
    }
    assert store.requests[-1].method == "GET"
    assert store.requests[-1].url.path == "/api/productsList"

    durations = sink.of("http_req_duration")
    assert len(durations) == 1
    assert durations[0].tag("name") == "BrowseProducts"
    assert durations[0].tag("stage") is None
    assert len(sink.of("checks")) == 3
    assert all(s.value == 1 for s in sink.of("checks"))
    assert [s.value for s in sink.of("http_req_failed")] == [0]
    assert len(sink.of("iterations")) == 1
    assert sink.of("data_sent")[0].value > 0
    assert sink.of("data_received")[0].value > 0


def test_search_items_posts_a_known_term(api_client, store, sink):
    result = run_iteration(api_client, LOAD, sink, rng=random.Random(7), draw=70)

    assert result.action == "searchItems"
    assert result.success
    request = store.requests[-1]
    assert request.method == "POST"
    assert request.url.path == "/api/searchProduct"
    form = dict(httpx.QueryParams(request.content.decode()))
    assert form["search_product"] in SEARCH_TERMS


def test_check_brands_iteration(api_client, store, sink):
    result = run_iteration(api_client, SMOKE, sink, draw=95)

    assert result.action == "checkBrands"
    assert result.success
    # Smoke has no response-time check
    assert set(result.checks) == {"check brands: status is 200", "check brands: has brands data"}


def test_missing_payload_fails_check(api_client, store, sink):
    store.brands = None
    result = run_iteration(api_client, SMOKE, sink, draw=95)

    assert not result.success
    assert result.checks["check brands: has brands data"] is False
    assert [s.value for s in sink.of("checks")] == [1, 0]


def test_random_search_term_covers_catalogue():
    rng = random.Random(11)
    seen = {random_search_term(rng) for _ in range(2000)}
    assert seen == set(SEARCH_TERMS)


def test_fresh_draw_uses_weighted_selector(api_client, sink):
    for seed in range(20):
        expected = select_action(STRESS.weights, random.Random(seed))
        result = run_iteration(api_client, STRESS, sink, rng=random.Random(seed), stage="ramp_to_100")
        assert result.action == expected


def test_requests_carry_only_the_user_agent(api_client, store, sink):
    run_iteration(api_client, SMOKE, sink, draw=10)

    headers = store.requests[-1].headers
    assert headers["User-Agent"] == USER_AGENT
    assert "X-Run-Id" not in headers


def test_vus_sample_recorded_when_known(api_client, sink):
    run_iteration(api_client, SMOKE, sink, draw=10, vus=3)
    assert [s.value for s in sink.of("vus")] == [3]


# ═══════════════════════════════════════════════════════════════════════
#  Stress profile
# ═══════════════════════════════════════════════════════════════════════


def test_stress_tags_stage(api_client, sink):
    result = run_iteration(api_client, STRESS, sink, draw=10, stage="ramp_to_200")

    assert result.stage == "ramp_to_200"
    assert sink.of("http_req_duration")[0].tag("stage") == "ramp_to_200"
    assert sink.of("slow_responses_over_3s") == []
    assert sink.of("errors_by_stage") == []


def test_stress_without_stage_uses_unknown(api_client, sink):
    result = run_iteration(api_client, STRESS, sink, draw=10)
    assert result.stage == "unknown"


def test_stress_counts_slow_responses(api_client, sink):
    request = httpx.Request("GET", "http://store.test/api/productsList")
    resp = httpx.Response(200, json={"responseCode": 200, "products": []}, request=request)

    with patch.object(api_client, "timed_request", return_value=(resp, 6000.0)):
        result = run_iteration(api_client, STRESS, sink, draw=10, stage="sustain_200_CRITICAL")

    assert result.success
    slow = sink.of("slow_responses_over_3s")
    very_slow = sink.of("very_slow_responses_over_5s")
    assert len(slow) == 1 and len(very_slow) == 1
    assert slow[0].tag("endpoint") == "browse"
    assert slow[0].tag("stage") == "sustain_200_CRITICAL"


def test_load_response_time_check_fails_when_slow(api_client, sink):
    request = httpx.Request("GET", "http://store.test/api/productsList")
    resp = httpx.Response(200, json={"responseCode": 200, "products": []}, request=request)

    with patch.object(api_client, "timed_request", return_value=(resp, 2500.0)):
        result = run_iteration(api_client, LOAD, sink, draw=10)

    assert not result.success
    assert result.checks["browse products: response time < 2s"] is False


# ═══════════════════════════════════════════════════════════════════════
#  Failures
# ═══════════════════════════════════════════════════════════════════════


def test_network_error_is_recorded_not_raised(make_client, sink):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(refuse)
    result = run_iteration(client, STRESS, sink, draw=80, stage="ramp_to_100")

    assert not result.success
    assert result.status_code is None
    assert "ConnectError" in result.error
    assert all(ok is False for ok in result.checks.values())
    assert sink.of("http_req_duration") == []
    assert [s.value for s in sink.of("http_req_failed")] == [1]
    errors = sink.of("errors_by_stage")
    assert len(errors) == 1
    assert errors[0].tag("endpoint") == "search"
    assert errors[0].tag("stage") == "ramp_to_100"
    assert len(sink.of("iterations")) == 1


def test_server_error_marks_request_failed(make_client, sink):
    client = make_client(lambda request: httpx.Response(503, text="Service Unavailable"))
    result = run_iteration(client, SMOKE, sink, draw=10)

    assert result.status_code == 503
    assert not result.success
    assert [s.value for s in sink.of("http_req_failed")] == [1]
    assert len(sink.of("http_req_duration")) == 1


# ═══════════════════════════════════════════════════════════════════════
#  Sink + virtual user
# ═══════════════════════════════════════════════════════════════════════


def test_sink_output_aggregates(tmp_path, api_client):
    path = tmp_path / "reports" / "stress-test-results.json"
    rng = random.Random(42)
    with MetricsSink(str(path)) as file_sink:
        for stage in ("ramp_to_100", "ramp_to_100", "ramp_to_200", "sustain_200_CRITICAL"):
            run_iteration(api_client, STRESS, file_sink, rng=rng, stage=stage)

    result = aggregate_file(str(path), track_stages=True)

    assert result.overall.count == 4
    assert result.iterations == 4
    assert result.checks_failed == 0
    assert result.checks_passed == 8
    assert result.by_stage["ramp_to_100"].count == 2
    assert sum(s.count for s in result.by_name.values()) == 4
    assert set(result.by_name) <= {ACTIONS["browseProducts"].tag, ACTIONS["searchItems"].tag}
    assert sum(c.total for c in result.checks_by_name.values()) == 8


def test_virtual_user_loop(api_client, sink):
    pauses = []
    results = run_virtual_user(api_client, LOAD, sink, 5, rng=random.Random(3), sleep=pauses.append)

    assert len(results) == 5
    assert all(r.success for r in results)
    assert len(pauses) == 5
    assert all(1.0 <= p <= 5.0 for p in pauses)
    assert [s.value for s in sink.of("vus")] == [1] * 5
