"""
Harness error types.

The CLI catches :class:`HarnessError` at the top level and turns it into a
user-facing message plus a non-zero exit code.  Threshold breaches are
*not* errors: they surface as a WARNING / FAIL verdict in the report.
"""

from __future__ import annotations


class HarnessError(Exception):
    """Generic harness failure."""

    def __init__(self, detail: str = "Harness error"):
        super().__init__(detail)
        self.detail = detail


class ResultsNotFoundError(HarnessError):
    """The NDJSON results file a report is built from does not exist."""

    def __init__(self, path: str, hint: str = ""):
        detail = f"No test results found at {path}."
        if hint:
            detail += f" Run the test first with: {hint}"
        super().__init__(detail)
        self.path = path


class UnknownProfileError(HarnessError):
    """Requested traffic profile is not defined."""

    def __init__(self, name: str):
        super().__init__(f"Unknown traffic profile: {name!r}")
        self.name = name


class ContractError(HarnessError):
    """The API answered with a payload that breaks its documented contract."""
