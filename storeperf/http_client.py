"""
HTTP client for the store API.

Uses a *persistent* ``httpx.Client`` per ``ApiClient`` instance to benefit
from connection pooling and keep-alive.  The client is created lazily on
first use and closed via :meth:`close` (or the context manager).

Retries are bounded with exponential backoff and only cover transport
errors.  Traffic generation runs with ``max_retries=0`` so a retry never
hides a slow or failed request from the latency numbers.
"""

from __future__ import annotations

import logging
import time

import httpx

from storeperf.config import BASE_URL, HTTP_MAX_RETRIES, REQUEST_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)

_BACKOFF_BASE = 0.3


class ApiClient:
    """Thin wrapper around httpx.Client for calls against the store API."""

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = HTTP_MAX_RETRIES,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Lazily initialise the persistent HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers=self._headers(),
                limits=httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=20,
                    keepalive_expiry=30,
                ),
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": USER_AGENT}

    def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with bounded retries + exponential backoff."""
        client = self._get_client()
        last_exc: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                return client.request(method, path, **kwargs)
            except (httpx.ConnectError, httpx.ReadTimeout, httpx.WriteTimeout) as exc:
                last_exc = exc
                if attempt < self.max_retries:
                    backoff = _BACKOFF_BASE * (2**attempt)
                    logger.warning(
                        "HTTP %s %s%s failed (attempt %d/%d): %s – retrying in %.1fs",
                        method,
                        self.base_url,
                        path,
                        attempt + 1,
                        self.max_retries + 1,
                        exc,
                        backoff,
                    )
                    time.sleep(backoff)

        # All retries exhausted
        raise last_exc  # type: ignore[misc]

    def timed_request(self, method: str, path: str, **kwargs) -> tuple[httpx.Response, float]:
        """Like :meth:`request`, also returning the wall-clock duration in ms."""
        t0 = time.monotonic()
        resp = self.request(method, path, **kwargs)
        return resp, (time.monotonic() - t0) * 1000

    def get(self, path: str, **kwargs) -> httpx.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> httpx.Response:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs) -> httpx.Response:
        return self.request("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs) -> httpx.Response:
        return self.request("DELETE", path, **kwargs)

    def close(self) -> None:
        """Close the underlying HTTP client (releases connections)."""
        if self._client and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
