"""CLI entry-point tests."""

import json
import os
from unittest.mock import MagicMock, patch

import httpx
import pytest

from storeperf import run
from storeperf.http_client import ApiClient


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("storeperf.run.setup_logging"):
        yield


@pytest.fixture
def results_file(tmp_path, line):
    path = tmp_path / "smoke-test-results.json"
    rows = [line(120, name="BrowseProducts"), line(180, name="CheckBrands")]
    rows += ['{"type":"Point","metric":"checks","data":{"value":1}}'] * 4
    path.write_text("\n".join(rows) + "\n", encoding="utf-8")
    return path


# ═══════════════════════════════════════════════════════════════════════
#  report
# ═══════════════════════════════════════════════════════════════════════


def test_report_command_writes_files(tmp_path, results_file):
    out = tmp_path / "out"
    code = run.main(["report", "--profile", "smoke", "--results", str(results_file), "--out", str(out)])

    assert code == 0
    assert sorted(os.listdir(out)) == ["smoke-test-report.html", "smoke-test-report.json", "smoke-test-report.md"]


def test_report_command_fails_on_fail_verdict(tmp_path, line):
    path = tmp_path / "load.json"
    rows = [line(9000, name="SearchItems")] * 5
    rows += ['{"type":"Point","metric":"checks","data":{"value":0,"tags":{"name":"SearchItems"}}}'] * 5
    path.write_text("\n".join(rows), encoding="utf-8")

    code = run.main(["report", "--profile", "load", "--results", str(path), "--out", str(tmp_path)])
    assert code == 1


def test_report_command_missing_results(tmp_path, capsys):
    missing = tmp_path / "stress-test-results.json"
    code = run.main(["report", "--profile", "stress", "--results", str(missing), "--out", str(tmp_path)])

    assert code == 1
    err = capsys.readouterr().err
    assert "No test results found" in err
    assert "storeperf load --profile stress" in err


def test_unknown_profile_rejected_by_parser():
    with pytest.raises(SystemExit):
        run.main(["report", "--profile", "soak"])


def test_unexpected_arguments_rejected_outside_load(results_file):
    with pytest.raises(SystemExit):
        run.main(["report", "--results", str(results_file), "--users", "10"])


# ═══════════════════════════════════════════════════════════════════════
#  contract
# ═══════════════════════════════════════════════════════════════════════


def test_contract_command(store, capsys):
    def fake_client(base_url):
        return ApiClient(base_url=base_url, transport=httpx.MockTransport(store), max_retries=0)

    with patch("storeperf.run.ApiClient", side_effect=fake_client):
        code = run.main(["contract", "--base-url", "http://store.test/api"])

    assert code == 0
    assert "9/9 scenarios passed" in capsys.readouterr().out


def test_contract_command_reports_failures(store, capsys):
    store.brands = []

    def fake_client(base_url):
        return ApiClient(base_url=base_url, transport=httpx.MockTransport(store), max_retries=0)

    with patch("storeperf.run.ApiClient", side_effect=fake_client):
        code = run.main(["contract"])

    assert code == 1
    assert "api_3_get_all_brands" in capsys.readouterr().err


# ═══════════════════════════════════════════════════════════════════════
#  load
# ═══════════════════════════════════════════════════════════════════════


def test_locust_command():
    cmd = run.locust_command("stress", "http://store.test/api", extra=["--csv", "out"])

    assert cmd[0] == "locust"
    assert cmd[cmd.index("-f") + 1].endswith(os.path.join("locustfiles", "stress.py"))
    assert cmd[cmd.index("--host") + 1] == "http://store.test/api"
    assert "--headless" in cmd
    assert cmd[-2:] == ["--csv", "out"]
    assert "--headless" not in run.locust_command("smoke", "http://x", headless=False)


def test_load_requires_locust(capsys):
    with patch("storeperf.run.shutil.which", return_value=None):
        code = run.main(["load", "--profile", "smoke"])

    assert code == 1
    assert "locust is not installed" in capsys.readouterr().err


def test_load_runs_locust_then_reports(tmp_path, results_file):
    target = tmp_path / "smoke-test-results.json"

    with patch("storeperf.run.shutil.which", return_value="/usr/bin/locust"), \
         patch("storeperf.run.results_path", return_value=str(target)), \
         patch("storeperf.run.os.remove") as mock_remove, \
         patch("storeperf.run.subprocess.run", return_value=MagicMock(returncode=0)) as mock_run:
        code = run.main(["load", "--profile", "smoke", "--out", str(tmp_path / "out"), "--users", "3"])

    assert code == 0
    mock_remove.assert_called_once_with(str(target))
    cmd = mock_run.call_args.args[0]
    assert "--headless" in cmd
    assert cmd[-2:] == ["--users", "3"]
    assert mock_run.call_args.kwargs["env"]["RESULTS_FILE"] == str(target)
    assert (tmp_path / "out" / "smoke-test-report.json").exists()


def test_load_no_report_returns_locust_code(tmp_path):
    with patch("storeperf.run.shutil.which", return_value="/usr/bin/locust"), \
         patch("storeperf.run.results_path", return_value=str(tmp_path / "r.json")), \
         patch("storeperf.run.subprocess.run", return_value=MagicMock(returncode=3)):
        code = run.main(["load", "--profile", "load", "--no-report", "--no-headless"])

    assert code == 3


def test_load_local_runs_in_process(tmp_path, store):
    target = tmp_path / "smoke-test-results.json"
    target.write_text("stale\n", encoding="utf-8")

    def fake_client(base_url, **kwargs):
        return ApiClient(base_url=base_url, transport=httpx.MockTransport(store), **kwargs)

    with patch("storeperf.run.ApiClient", side_effect=fake_client) as mock_client, \
         patch("storeperf.run.results_path", return_value=str(target)), \
         patch("storeperf.run.time.sleep") as mock_sleep, \
         patch("storeperf.run.subprocess.run") as mock_run:
        code = run.main(["load", "--profile", "smoke", "--local", "4", "--out", str(tmp_path / "out")])

    assert code == 0
    mock_run.assert_not_called()
    assert mock_client.call_args.kwargs["max_retries"] == 0
    assert mock_sleep.call_count == 4
    assert len(store.requests) == 4
    assert "stale" not in target.read_text(encoding="utf-8")
    data = json.loads((tmp_path / "out" / "smoke-test-report.json").read_text(encoding="utf-8"))
    assert data["counters"]["iterations"] == 4
    assert data["verdict"] == "PASS"


def test_load_local_rejects_locust_arguments():
    with pytest.raises(SystemExit):
        run.main(["load", "--local", "2", "--users", "10"])


def test_load_local_needs_iterations(capsys):
    code = run.main(["load", "--profile", "smoke", "--local", "0", "--no-report"])

    assert code == 1
    assert "at least one iteration" in capsys.readouterr().err
