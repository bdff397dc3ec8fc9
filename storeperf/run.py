#!/usr/bin/env python3
"""
storeperf – single entry-point for the store API harness.

Commands:
  contract   run the HTTP contract scenarios against the live API
  load       run a traffic profile through locust (or in-process with --local), then build its report
  report     aggregate an NDJSON results file and write the dashboards

Usage:
  storeperf contract                              # BASE_URL from env
  storeperf load --profile smoke                  # quick health check
  storeperf load --profile stress --no-report     # samples only
  storeperf load --profile smoke --local 20       # one in-process user, no locust
  storeperf report --profile stress               # reports/stress-test-results.json
  storeperf report --profile load --results out.json --out build/
"""

from __future__ import annotations

import argparse
import logging
import os
import shutil
import subprocess
import sys
import time

from rich.console import Console
from rich.markup import escape

from storeperf.aggregate import aggregate_file
from storeperf.config import BASE_URL, LOCUSTFILES_DIR, PERF_PROFILE, REPORTS_DIR, results_path
from storeperf.contract import ContractReport, run_all as run_contract_all
from storeperf.errors import ContractError, HarnessError
from storeperf.http_client import ApiClient
from storeperf.logging import new_run_id, setup_logging
from storeperf.profiles import PROFILES, get_profile
from storeperf.report import Report, build_report, write_reports
from storeperf.traffic import MetricsSink, run_virtual_user

logger = logging.getLogger("storeperf.run")


def _log(icon: str, msg: str) -> None:
    print(f"  {icon}  {msg}", flush=True)


# ── Commands ─────────────────────────────────────────────────────────


def cmd_report(profile_name: str, results: str | None, out_dir: str, console: Console | None = None) -> Report:
    """Aggregate *results* (or the profile's default file) and write reports."""
    profile = get_profile(profile_name)
    path = results or results_path(profile.name)
    aggregation = aggregate_file(
        path,
        track_stages=profile.track_stages,
        hint=f"storeperf load --profile {profile.name}",
    )
    report = build_report(aggregation, profile)
    write_reports(report, out_dir, console=console)
    return report


def cmd_contract(base_url: str, console: Console | None = None) -> ContractReport:
    _log("🌐", f"Running contract scenarios against {base_url} …")
    with ApiClient(base_url=base_url) as client:
        report = run_contract_all(client)

    console = console or Console()
    for step in report.steps:
        status = "[green]PASS[/green]" if step.passed else "[red]FAIL[/red]"
        console.print(f"  {status} {step.name:<36} {step.duration_ms:>7.0f}ms  {escape(step.detail[:80])}")
        if not step.passed:
            for a in step.assertions:
                console.print(f"        {a}", markup=False)
    n_pass = sum(1 for s in report.steps if s.passed)
    console.print(f"\n  {n_pass}/{len(report.steps)} scenarios passed in {report.total_duration_ms:.0f}ms\n")
    return report


def locust_command(profile_name: str, base_url: str, *, headless: bool = True, extra: list[str] | None = None) -> list[str]:
    locustfile = os.path.join(LOCUSTFILES_DIR, f"{profile_name}.py")
    cmd = ["locust", "-f", locustfile, "--host", base_url]
    if headless:
        cmd += ["--headless", "--only-summary"]
    return cmd + list(extra or [])


def cmd_load(profile_name: str, base_url: str, *, headless: bool = True, append: bool = False, extra: list[str] | None = None) -> int:
    """Run a profile through locust; returns locust's exit code."""
    profile = get_profile(profile_name)
    if not shutil.which("locust"):
        raise HarnessError("locust is not installed – pip install locust")

    results = results_path(profile.name)
    if not append and os.path.exists(results):
        os.remove(results)

    _log("🔥", f"{profile.title} ({profile.total_duration_s / 60:.0f}m, peak {profile.peak_users} users)")
    env = os.environ.copy()
    env["RESULTS_FILE"] = results
    t0 = time.monotonic()
    r = subprocess.run(locust_command(profile.name, base_url, headless=headless, extra=extra), env=env)
    logger.info("locust exited with %d after %.0fs", r.returncode, time.monotonic() - t0)
    return r.returncode


def cmd_local(profile_name: str, base_url: str, iterations: int, *, append: bool = False) -> int:
    """Drive a single virtual user in-process; returns the number of failed iterations."""
    profile = get_profile(profile_name)
    if iterations < 1:
        raise HarnessError("--local needs at least one iteration")

    results = results_path(profile.name)
    if not append and os.path.exists(results):
        os.remove(results)

    _log("🧪", f"{profile.title}: {iterations} local iteration(s), one user")
    with ApiClient(base_url=base_url, max_retries=0) as client, MetricsSink(results) as sink:
        outcomes = run_virtual_user(client, profile, sink, iterations, sleep=time.sleep)
    failed = sum(1 for o in outcomes if not o.success)
    logger.info("local run finished: %d/%d iteration(s) failed", failed, iterations)
    return failed


# ── Main ─────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storeperf", description="Store API contract, load and report harness")
    sub = parser.add_subparsers(dest="command", required=True)

    p_report = sub.add_parser("report", help="Build reports from an NDJSON results file")
    p_report.add_argument("--profile", choices=sorted(PROFILES), default=PERF_PROFILE)
    p_report.add_argument("--results", help="Results file (default: reports/<profile>-test-results.json)")
    p_report.add_argument("--out", default=REPORTS_DIR, help="Output directory")

    p_contract = sub.add_parser("contract", help="Run the HTTP contract scenarios")
    p_contract.add_argument("--base-url", default=BASE_URL)

    p_load = sub.add_parser("load", help="Run a traffic profile through locust")
    p_load.add_argument("--profile", choices=sorted(PROFILES), default=PERF_PROFILE)
    p_load.add_argument("--base-url", default=BASE_URL)
    p_load.add_argument("--headless", action=argparse.BooleanOptionalAction, default=True, help="Run without the locust web UI")
    p_load.add_argument("--append", action="store_true", help="Keep samples from earlier runs")
    p_load.add_argument("--no-report", action="store_true", help="Skip report generation")
    p_load.add_argument(
        "--local", type=int, metavar="N", help="Run N iterations as one in-process user instead of spawning locust"
    )
    p_load.add_argument("--out", default=REPORTS_DIR, help="Output directory for reports")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args, extra = parser.parse_known_args(argv)
    if extra and (args.command != "load" or args.local is not None):
        parser.error(f"unrecognized arguments: {' '.join(extra)}")
    setup_logging()
    new_run_id()

    try:
        if args.command == "report":
            report = cmd_report(args.profile, args.results, args.out)
            return 0 if report.passed else 1

        if args.command == "contract":
            contract = cmd_contract(args.base_url)
            failed = [s.name for s in contract.steps if not s.passed]
            if failed:
                raise ContractError(f"{len(failed)} contract scenario(s) failed: {', '.join(failed)}")
            return 0

        if args.local is not None:
            # Failed iterations are judged by the report, not the exit code
            cmd_local(args.profile, args.base_url, args.local, append=args.append)
            code = 0
        else:
            code = cmd_load(args.profile, args.base_url, headless=args.headless, append=args.append, extra=extra)
        if args.no_report:
            return code
        report = cmd_report(args.profile, None, args.out)
        return 0 if report.passed else 1
    except HarnessError as exc:
        print(f"Error: {exc.detail}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
