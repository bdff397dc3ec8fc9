"""
Structured logging configuration.

Call ``setup_logging()`` once from an entry point (CLI or locustfile).
"""

from __future__ import annotations

import contextvars
import logging
import sys
import uuid

from pythonjsonlogger.json import JsonFormatter

from storeperf.config import LOG_FORMAT, LOG_LEVEL

_run_id: contextvars.ContextVar[str] = contextvars.ContextVar("run_id", default="-")


def new_run_id() -> str:
    """Start a new run: generate an id and bind it to the current context."""
    run_id = uuid.uuid4().hex[:12]
    _run_id.set(run_id)
    return run_id


def get_run_id() -> str:
    return _run_id.get()


class _RunIdFilter(logging.Filter):
    """Inject run_id from contextvars into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = get_run_id()  # type: ignore[attr-defined]
        return True


def setup_logging(name: str = "storeperf", level: str = LOG_LEVEL, fmt: str = LOG_FORMAT) -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)

    if fmt == "json":
        formatter: logging.Formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(run_id)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s (%(run_id)s) %(message)s")

    handler.setFormatter(formatter)
    handler.addFilter(_RunIdFilter())

    root.handlers.clear()
    root.addHandler(handler)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logging.getLogger(name).debug("Logging initialised", extra={"format": fmt})
