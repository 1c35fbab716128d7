"""
Async HTTP client wrapper for upstream provider requests.
Includes retry logic, timeout management, and metrics collection.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import httpx

from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS

logger = get_logger(__name__)


class ProviderHTTPClient:
    """
    Async HTTP client tailored for football data provider APIs.
    Handles timeouts, retries, and records metrics per request.

    Quota-metered providers should run with ``max_retries=1``: a retried
    request can be billed upstream even when it fails locally.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float = 10.0,
        max_retries: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s
        self._max_retries = max(1, max_retries)
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider(self) -> str:
        return self._provider

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        extra_headers: dict[str, str] | None = None,
        endpoint: str = "unknown",
    ) -> httpx.Response:
        """
        Perform a GET request with retry, metrics, and structured logging.

        Args:
            path: API path relative to base_url.
            params: Query parameters.
            extra_headers: Request-specific headers (credentials go here).
            endpoint: Endpoint label for metrics.

        Returns:
            httpx.Response with a 2xx status.

        Raises:
            httpx.HTTPStatusError: On non-retryable HTTP errors.
            httpx.TransportError: If all retries are exhausted on network errors.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        last_exc: Optional[Exception] = None
        merged_headers = {**self._default_headers}
        if extra_headers:
            merged_headers.update(extra_headers)

        for attempt in range(1, self._max_retries + 1):
            start_time = time.perf_counter()
            status = "unknown"

            try:
                resp = await self._client.get(path, params=params, headers=merged_headers)
                status = str(resp.status_code)

                if resp.status_code == 429 and attempt < self._max_retries:
                    logger.warning(
                        "provider_rate_limited",
                        provider=self._provider,
                        path=path,
                        attempt=attempt,
                    )
                    retry_after = float(resp.headers.get("Retry-After", "2"))
                    await asyncio.sleep(min(retry_after, 10.0))
                    continue

                if resp.status_code >= 500 and attempt < self._max_retries:
                    logger.warning(
                        "provider_server_error",
                        provider=self._provider,
                        path=path,
                        status=resp.status_code,
                        attempt=attempt,
                    )
                    await asyncio.sleep(1.0 * attempt)
                    continue

                resp.raise_for_status()

                logger.debug(
                    "provider_request_success",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                    latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                return resp

            except httpx.HTTPStatusError as exc:
                status = str(exc.response.status_code)
                logger.error(
                    "provider_http_error",
                    provider=self._provider,
                    path=path,
                    status=exc.response.status_code,
                    attempt=attempt,
                )
                raise

            except httpx.TransportError as exc:
                status = "timeout" if isinstance(exc, httpx.TimeoutException) else "error"
                last_exc = exc
                logger.warning(
                    "provider_transport_error",
                    provider=self._provider,
                    path=path,
                    error=str(exc),
                    attempt=attempt,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(1.0 * attempt)

            finally:
                PROVIDER_REQUESTS.labels(
                    provider=self._provider, endpoint=endpoint, status=status
                ).inc()
                PROVIDER_LATENCY.labels(provider=self._provider).observe(
                    time.perf_counter() - start_time
                )

        if last_exc:
            raise last_exc
        raise RuntimeError(f"Provider request failed after {self._max_retries} attempts")
