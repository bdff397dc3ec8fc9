"""
Centralised harness configuration.

Every value is overridable via environment variables so CI and local
invocations share the same harness with different knobs.

Hierarchy:  env var → default here.
"""

from __future__ import annotations

import os


def env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def env_int(key: str, default: int = 0) -> int:
    return int(os.environ.get(key, str(default)))


def env_float(key: str, default: float = 0.0) -> float:
    return float(os.environ.get(key, str(default)))


# ── API under test ───────────────────────────────────────────────────
BASE_URL = env("BASE_URL", "https://automationexercise.com/api")
TEST_EMAIL = env("TEST_EMAIL")
TEST_PASSWORD = env("TEST_PASSWORD")
USER_AGENT = env("USER_AGENT", "storeperf/1.0 (E-commerce Traffic Simulation)")

# ── HTTP settings ────────────────────────────────────────────────────
REQUEST_TIMEOUT = env_float("REQUEST_TIMEOUT", 15.0)
HTTP_MAX_RETRIES = env_int("HTTP_MAX_RETRIES", 0)

# ── Logging ──────────────────────────────────────────────────────────
LOG_LEVEL = env("LOG_LEVEL", "INFO")
LOG_FORMAT = env("LOG_FORMAT", "text")

# ── Paths ────────────────────────────────────────────────────────────
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
REPORTS_DIR = env("REPORTS_DIR", os.path.join(PROJECT_ROOT, "reports"))
LOCUSTFILES_DIR = os.path.join(PROJECT_ROOT, "locustfiles")

# ── Load engine ──────────────────────────────────────────────────────
PERF_PROFILE = env("PERF_PROFILE", "load")
RESULTS_FILE = env("RESULTS_FILE")


def results_path(profile_name: str) -> str:
    """NDJSON sample file for *profile_name* (``RESULTS_FILE`` wins when set)."""
    if RESULTS_FILE:
        return RESULTS_FILE
    return os.path.join(REPORTS_DIR, f"{profile_name}-test-results.json")
