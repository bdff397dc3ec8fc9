"""Store API contract checks, traffic generation and performance reporting."""

__version__ = "1.0.0"
