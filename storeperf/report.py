"""
Report generator – turns one aggregation pass into console, JSON,
Markdown and HTML outputs.

Contents:
  - verdict banner (PASS / WARNING / FAIL) for the profile's policy
  - per-threshold results
  - overall response-time statistics
  - per-endpoint breakdown
  - per-stage breaking-point analysis (stress profile)
  - top-line counters: iterations, bytes, checks, slow responses, peak users
  - recommendations
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from jinja2 import Template
from rich.console import Console
from rich.table import Table

from storeperf.aggregate import Aggregation
from storeperf.profiles import Profile
from storeperf.stats import SummaryStatistics
from storeperf.verdict import ThresholdResult, Verdict, evaluate_thresholds, evaluate_verdict

logger = logging.getLogger(__name__)

STAGE_GOOD_P95_MS = 3000
STAGE_DEGRADED_P95_MS = 5000


# ── Data models ──────────────────────────────────────────────────────


@dataclass
class EndpointStat:
    name: str
    stats: SummaryStatistics
    share_pct: float = 0.0
    success_pct: float | None = None


@dataclass
class StageStat:
    name: str
    stats: SummaryStatistics
    errors: int = 0
    status: str = "Good"


@dataclass
class Counters:
    total_requests: int = 0
    iterations: int = 0
    data_sent: float = 0.0
    data_received: float = 0.0
    checks_passed: int = 0
    checks_failed: int = 0
    success_rate_pct: float = 0.0
    error_rate_pct: float = 0.0
    requests_failed: int = 0
    slow_responses_3s: int = 0
    slow_responses_5s: int = 0
    max_vus: int = 0
    start_time: str | None = None
    end_time: str | None = None
    duration_s: float | None = None


@dataclass
class Report:
    profile: str
    title: str
    verdict: str
    verdict_message: str
    overall: SummaryStatistics
    generated_at: str = ""
    endpoints: list[EndpointStat] = field(default_factory=list)
    stages: list[StageStat] = field(default_factory=list)
    thresholds: list[ThresholdResult] = field(default_factory=list)
    counters: Counters = field(default_factory=Counters)
    recommendations: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.verdict != Verdict.FAIL.value


# ── Assembly ─────────────────────────────────────────────────────────


def stage_status(stats: SummaryStatistics, errors: int) -> str:
    if stats.p95 < STAGE_GOOD_P95_MS and errors == 0:
        return "Good"
    if stats.p95 < STAGE_DEGRADED_P95_MS:
        return "Degraded"
    return "Critical"


def _verdict_message(verdict: Verdict, profile: Profile) -> str:
    users = profile.peak_users
    if verdict is Verdict.PASS:
        return f"System can handle {users} concurrent users"
    if verdict is Verdict.WARNING:
        return f"System is at its limits with {users} users"
    return f"System cannot sustain {users} concurrent users"


def _duration_s(start: str | None, end: str | None) -> float | None:
    if not start or not end:
        return None
    try:
        t0 = datetime.fromisoformat(start.replace("Z", "+00:00"))
        t1 = datetime.fromisoformat(end.replace("Z", "+00:00"))
    except ValueError:
        return None
    return (t1 - t0).total_seconds()


def build_report(aggregation: Aggregation, profile: Profile) -> Report:
    overall = aggregation.overall
    verdict = evaluate_verdict(aggregation.error_rate, overall.p95, profile.policy)

    report = Report(
        profile=profile.name,
        title=profile.title,
        verdict=verdict.value,
        verdict_message=_verdict_message(verdict, profile),
        overall=overall,
        generated_at=datetime.now(timezone.utc).isoformat(),
        thresholds=evaluate_thresholds(aggregation, profile.policy),
    )

    for name in sorted(aggregation.by_name):
        stats = aggregation.by_name[name]
        share = stats.count / overall.count * 100 if overall.count else 0.0
        counts = aggregation.checks_by_name.get(name)
        success = counts.success_rate * 100 if counts is not None and counts.total else None
        report.endpoints.append(EndpointStat(name=name, stats=stats, share_pct=share, success_pct=success))

    if profile.track_stages:
        scheduled = [s.name for s in profile.stages]
        extra = sorted(k for k in aggregation.by_stage if k not in scheduled)
        for name in scheduled + extra:
            stats = aggregation.by_stage.get(name)
            if stats is None or stats.empty:
                continue
            errors = aggregation.errors_by_stage.get(name, 0)
            report.stages.append(StageStat(name=name, stats=stats, errors=errors, status=stage_status(stats, errors)))

    report.counters = Counters(
        total_requests=overall.count,
        iterations=aggregation.iterations,
        data_sent=aggregation.data_sent,
        data_received=aggregation.data_received,
        checks_passed=aggregation.checks_passed,
        checks_failed=aggregation.checks_failed,
        success_rate_pct=aggregation.success_rate * 100,
        error_rate_pct=aggregation.error_rate * 100,
        requests_failed=aggregation.requests_failed,
        slow_responses_3s=aggregation.slow_responses_3s,
        slow_responses_5s=aggregation.slow_responses_5s,
        max_vus=int(aggregation.max_vus),
        start_time=aggregation.start_time,
        end_time=aggregation.end_time,
        duration_s=_duration_s(aggregation.start_time, aggregation.end_time),
    )
    report.recommendations = _recommendations(report)
    return report


def _recommendations(report: Report) -> list[str]:
    recs: list[str] = []
    c = report.counters

    if report.overall.empty:
        return ["No http_req_duration samples found. Check that the test actually sent traffic."]

    for t in report.thresholds:
        if not t.passed:
            recs.append(
                f"Threshold '{t.name}' breached: {_fmt_value(t.actual, t.unit)} "
                f"(target {t.op} {_fmt_value(t.target, t.unit)})."
            )

    for st in report.stages:
        if st.status == "Critical":
            recs.append(
                f"Stage {st.name}: p95 {st.stats.p95:.0f}ms with {st.errors} error(s). "
                "This is where the system breaks; check server CPU, memory and DB during this window."
            )
        elif st.status == "Degraded":
            recs.append(f"Stage {st.name} is degraded (p95 {st.stats.p95:.0f}ms, {st.errors} error(s)).")

    if report.endpoints:
        slowest = max(report.endpoints, key=lambda e: e.stats.p95)
        if len(report.endpoints) > 1 and slowest.stats.p95 > report.overall.p95:
            recs.append(f"{slowest.name} is the slowest endpoint (p95 {slowest.stats.p95:.0f}ms); it will fail first.")

    if c.slow_responses_5s > 0:
        recs.append(f"{c.slow_responses_5s} request(s) took longer than 5s.")

    if not recs:
        recs.append("All thresholds met. The system is within its limits for this profile.")
    return recs


def _fmt_value(value: float, unit: str) -> str:
    if unit == "ms":
        return f"{value:.2f}ms"
    if unit == "rate":
        return f"{value * 100:.2f}%"
    return f"{value:g}"


def _fmt_pct(pct: float | None) -> str:
    return "N/A" if pct is None else f"{pct:.2f}%"


def _stats_rows(report: Report) -> list[tuple[str, SummaryStatistics, float | None]]:
    """Overall row first, then one row per endpoint, each with its check success."""
    c = report.counters
    overall_success = c.success_rate_pct if c.checks_passed + c.checks_failed else None
    return [("overall", report.overall, overall_success)] + [
        (ep.name, ep.stats, ep.success_pct) for ep in report.endpoints
    ]


def _fmt_bytes(n: float) -> str:
    for unit in ("B", "kB", "MB", "GB"):
        if abs(n) < 1000:
            return f"{n:.1f} {unit}"
        n /= 1000
    return f"{n:.1f} TB"


# ── Report writers ───────────────────────────────────────────────────


def write_reports(report: Report, out_dir: str, console: Console | None = None) -> dict[str, str]:
    """Write JSON, Markdown and HTML reports, then print the console summary."""
    os.makedirs(out_dir, exist_ok=True)
    base = os.path.join(out_dir, f"{report.profile}-test-report")
    paths = {
        "json": _write_json(report, base + ".json"),
        "markdown": _write_markdown(report, base + ".md"),
        "html": _write_html(report, base + ".html"),
    }
    write_console(report, console or Console())
    for kind, path in paths.items():
        logger.info("%s report: %s", kind, path)
    return paths


def to_dict(report: Report) -> dict[str, Any]:
    data = asdict(report)
    data["passed"] = report.passed
    return data


def _write_json(report: Report, path: str) -> str:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_dict(report), f, indent=2, default=str)
    return path


def render_markdown(report: Report) -> str:
    c = report.counters
    icon = {"PASS": "✅", "WARNING": "⚠️", "FAIL": "❌"}[report.verdict]
    lines = [
        f"# {report.title}",
        "",
        f"**Verdict**: {icon} {report.verdict} – {report.verdict_message}  ",
        f"**Generated**: {report.generated_at}  ",
        f"**Duration**: {f'{c.duration_s:.0f}s' if c.duration_s is not None else 'N/A'}  ",
        f"**Peak virtual users**: {c.max_vus}",
        "",
        "## Thresholds",
        "",
        "| Threshold | Target | Actual | Status |",
        "|-----------|--------|--------|--------|",
    ]
    for t in report.thresholds:
        lines.append(
            f"| {t.name} | {t.op} {_fmt_value(t.target, t.unit)} | {_fmt_value(t.actual, t.unit)} | "
            f"{'✅' if t.passed else '❌'} |"
        )

    lines += [
        "",
        "## Response Times",
        "",
        "| Scope | Count | Min | Avg | p50 | p90 | p95 | p99 | Max | Success |",
        "|-------|-------|-----|-----|-----|-----|-----|-----|-----|---------|",
    ]
    for name, s, success in _stats_rows(report):
        lines.append(_md_stats_row(name, s, success))

    if report.stages:
        lines += [
            "",
            "## Stage Analysis",
            "",
            "| Stage | Requests | Avg | p95 | p99 | Errors | Status |",
            "|-------|----------|-----|-----|-----|--------|--------|",
        ]
        for st in report.stages:
            lines.append(
                f"| {st.name} | {st.stats.count:,} | {st.stats.avg:.2f}ms | {st.stats.p95:.2f}ms | "
                f"{st.stats.p99:.2f}ms | {st.errors} | {st.status} |"
            )

    lines += [
        "",
        "## Counters",
        "",
        "| Counter | Value |",
        "|---------|-------|",
        f"| Requests | {c.total_requests:,} |",
        f"| Iterations | {c.iterations:,} |",
        f"| Checks passed | {c.checks_passed:,} |",
        f"| Checks failed | {c.checks_failed:,} |",
        f"| Success rate | {c.success_rate_pct:.2f}% |",
        f"| Error rate | {c.error_rate_pct:.2f}% |",
        f"| Data sent | {_fmt_bytes(c.data_sent)} |",
        f"| Data received | {_fmt_bytes(c.data_received)} |",
        f"| Responses > 3s | {c.slow_responses_3s:,} |",
        f"| Responses > 5s | {c.slow_responses_5s:,} |",
    ]

    if report.recommendations:
        lines += ["", "## Recommendations", ""]
        for i, r in enumerate(report.recommendations, 1):
            lines.append(f"{i}. {r}")

    return "\n".join(lines) + "\n"


def _md_stats_row(name: str, s: SummaryStatistics, success: float | None = None) -> str:
    return (
        f"| {name} | {s.count:,} | {s.min:.2f} | {s.avg:.2f} | {s.p50:.2f} | {s.p90:.2f} | "
        f"{s.p95:.2f} | {s.p99:.2f} | {s.max:.2f} | {_fmt_pct(success)} |"
    )


def _write_markdown(report: Report, path: str) -> str:
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_markdown(report))
    return path


_HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ report.title }}</title>
  <style>
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; background: #f4f5f7; padding: 20px; color: #333; }
    .container { max-width: 1200px; margin: 0 auto; background: white; border-radius: 10px; box-shadow: 0 10px 40px rgba(0,0,0,0.2); overflow: hidden; }
    .header { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 30px; text-align: center; }
    .content { padding: 30px; }
    .verdict { border-radius: 10px; padding: 25px; margin-bottom: 30px; text-align: center; border: 3px solid; }
    .verdict.PASS { background: #d4edda; border-color: #28a745; color: #155724; }
    .verdict.WARNING { background: #fff3cd; border-color: #ffc107; color: #856404; }
    .verdict.FAIL { background: #f8d7da; border-color: #dc3545; color: #721c24; }
    .summary { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 20px; margin-bottom: 30px; }
    .card { background: #f8f9fa; padding: 20px; border-radius: 8px; border-left: 4px solid #667eea; }
    .card .label { font-size: 0.9em; color: #666; }
    .card .value { font-size: 1.8em; font-weight: bold; }
    h2 { margin: 30px 0 15px; }
    table { width: 100%; border-collapse: collapse; }
    th, td { padding: 10px; text-align: left; border-bottom: 1px solid #ddd; }
    th { background: #f2f2f2; }
    .status-pass { color: #28a745; font-weight: bold; }
    .status-warning { color: #ffc107; font-weight: bold; }
    .status-fail { color: #dc3545; font-weight: bold; }
  </style>
</head>
<body>
<div class="container">
  <div class="header">
    <h1>{{ report.title }}</h1>
    <p>Generated {{ report.generated_at }}</p>
  </div>
  <div class="content">
    <div class="verdict {{ report.verdict }}">
      <h2>{{ report.verdict }}</h2>
      <p>{{ report.verdict_message }}</p>
    </div>

    <div class="summary">
      <div class="card"><div class="label">Requests</div><div class="value">{{ "{:,}".format(c.total_requests) }}</div></div>
      <div class="card"><div class="label">Iterations</div><div class="value">{{ "{:,}".format(c.iterations) }}</div></div>
      <div class="card"><div class="label">Success rate</div><div class="value">{{ "%.2f" | format(c.success_rate_pct) }}%</div></div>
      <div class="card"><div class="label">Error rate</div><div class="value">{{ "%.2f" | format(c.error_rate_pct) }}%</div></div>
      <div class="card"><div class="label">p95</div><div class="value">{{ "%.0f" | format(report.overall.p95) }} ms</div></div>
      <div class="card"><div class="label">p99</div><div class="value">{{ "%.0f" | format(report.overall.p99) }} ms</div></div>
      <div class="card"><div class="label">Peak users</div><div class="value">{{ c.max_vus }}</div></div>
      <div class="card"><div class="label">Duration</div><div class="value">{{ "%.0f s" | format(c.duration_s) if c.duration_s is not none else "N/A" }}</div></div>
    </div>

    <h2>Thresholds</h2>
    <table>
      <tr><th>Threshold</th><th>Target</th><th>Actual</th><th>Status</th></tr>
      {% for t in report.thresholds %}
      <tr>
        <td>{{ t.name }}</td>
        <td>{{ t.op }} {{ fmt(t.target, t.unit) }}</td>
        <td>{{ fmt(t.actual, t.unit) }}</td>
        <td class="{{ 'status-pass' if t.passed else 'status-fail' }}">{{ 'PASS' if t.passed else 'FAIL' }}</td>
      </tr>
      {% endfor %}
    </table>

    <h2>Response Times</h2>
    <table>
      <tr><th>Scope</th><th>Count</th><th>Min</th><th>Avg</th><th>p50</th><th>p90</th><th>p95</th><th>p99</th><th>Max</th><th>Success</th></tr>
      {% for name, s, success in rows %}
      <tr>
        <td><strong>{{ name }}</strong></td>
        <td>{{ s.count }}</td>
        <td>{{ "%.2f" | format(s.min) }} ms</td>
        <td>{{ "%.2f" | format(s.avg) }} ms</td>
        <td>{{ "%.2f" | format(s.p50) }} ms</td>
        <td>{{ "%.2f" | format(s.p90) }} ms</td>
        <td>{{ "%.2f" | format(s.p95) }} ms</td>
        <td>{{ "%.2f" | format(s.p99) }} ms</td>
        <td>{{ "%.2f" | format(s.max) }} ms</td>
        <td>{{ pct(success) }}</td>
      </tr>
      {% endfor %}
    </table>

    {% if report.stages %}
    <h2>Stage Analysis</h2>
    <table>
      <tr><th>Stage</th><th>Requests</th><th>Avg</th><th>p95</th><th>p99</th><th>Errors</th><th>Status</th></tr>
      {% for st in report.stages %}
      <tr>
        <td><strong>{{ st.name.replace('_', ' ').upper() }}</strong></td>
        <td>{{ st.stats.count }}</td>
        <td>{{ "%.2f" | format(st.stats.avg) }} ms</td>
        <td class="{{ 'status-pass' if st.stats.p95 < 3000 else 'status-fail' }}">{{ "%.2f" | format(st.stats.p95) }} ms</td>
        <td class="{{ 'status-pass' if st.stats.p99 < 5000 else 'status-fail' }}">{{ "%.2f" | format(st.stats.p99) }} ms</td>
        <td>{{ st.errors }}</td>
        <td class="{{ stage_class[st.status] }}">{{ st.status }}</td>
      </tr>
      {% endfor %}
    </table>
    {% endif %}

    <h2>Counters</h2>
    <table>
      <tr><td>Checks passed</td><td>{{ c.checks_passed }}</td></tr>
      <tr><td>Checks failed</td><td>{{ c.checks_failed }}</td></tr>
      <tr><td>Data sent</td><td>{{ bytes(c.data_sent) }}</td></tr>
      <tr><td>Data received</td><td>{{ bytes(c.data_received) }}</td></tr>
      <tr><td>Responses &gt; 3s</td><td>{{ c.slow_responses_3s }}</td></tr>
      <tr><td>Responses &gt; 5s</td><td>{{ c.slow_responses_5s }}</td></tr>
    </table>

    <h2>Recommendations</h2>
    <ul>
      {% for r in report.recommendations %}<li>{{ r }}</li>{% endfor %}
    </ul>
  </div>
</div>
</body>
</html>
"""

_template = Template(_HTML_TEMPLATE, autoescape=True)


def render_html(report: Report) -> str:
    return _template.render(
        report=report,
        c=report.counters,
        rows=_stats_rows(report),
        fmt=_fmt_value,
        pct=_fmt_pct,
        bytes=_fmt_bytes,
        stage_class={"Good": "status-pass", "Degraded": "status-warning", "Critical": "status-fail"},
    )


def _write_html(report: Report, path: str) -> str:
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_html(report))
    return path


def write_console(report: Report, console: Console) -> None:
    c = report.counters
    colour = {"PASS": "green", "WARNING": "yellow", "FAIL": "red"}[report.verdict]

    console.print()
    console.rule(f"[bold]{report.title}[/bold]")
    console.print(f"\n[bold]Verdict:[/bold] [{colour}]{report.verdict}[/{colour}] – {report.verdict_message}")
    console.print(
        f"[bold]Requests:[/bold] {c.total_requests:,}, "
        f"[green]{c.checks_passed:,} checks passed[/green], "
        f"[red]{c.checks_failed:,} failed[/red], "
        f"error rate {c.error_rate_pct:.2f}%"
    )

    th_table = Table(show_header=True, header_style="bold cyan")
    th_table.add_column("Threshold")
    th_table.add_column("Target", justify="right")
    th_table.add_column("Actual", justify="right")
    th_table.add_column("Status")
    for t in report.thresholds:
        status = "[green]PASS[/green]" if t.passed else "[red]FAIL[/red]"
        th_table.add_row(t.name, f"{t.op} {_fmt_value(t.target, t.unit)}", _fmt_value(t.actual, t.unit), status)
    console.print(th_table)

    ep_table = Table(show_header=True, header_style="bold yellow")
    ep_table.add_column("Scope")
    for col in ("Count", "Avg", "p50", "p95", "p99", "Max", "Success"):
        ep_table.add_column(col, justify="right")
    for name, s, success in _stats_rows(report):
        ep_table.add_row(
            name,
            f"{s.count:,}",
            f"{s.avg:.0f}ms",
            f"{s.p50:.0f}ms",
            f"{s.p95:.0f}ms",
            f"{s.p99:.0f}ms",
            f"{s.max:.0f}ms",
            _fmt_pct(success),
        )
    console.print(ep_table)

    if report.stages:
        st_table = Table(show_header=True, header_style="bold magenta")
        st_table.add_column("Stage")
        for col in ("Requests", "Avg", "p95", "p99", "Errors"):
            st_table.add_column(col, justify="right")
        st_table.add_column("Status")
        stage_colour = {"Good": "green", "Degraded": "yellow", "Critical": "red"}
        for st in report.stages:
            sc = stage_colour[st.status]
            st_table.add_row(
                st.name,
                f"{st.stats.count:,}",
                f"{st.stats.avg:.0f}ms",
                f"{st.stats.p95:.0f}ms",
                f"{st.stats.p99:.0f}ms",
                str(st.errors),
                f"[{sc}]{st.status}[/{sc}]",
            )
        console.print(st_table)

    if report.recommendations:
        console.print("\n[bold]Recommendations:[/bold]")
        for i, r in enumerate(report.recommendations, 1):
            console.print(f"  {i}. {r}")
    console.print()
