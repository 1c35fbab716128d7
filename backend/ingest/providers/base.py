"""
Shared contract and error taxonomy for upstream football data providers.
"""
from __future__ import annotations

import abc
from typing import Any

import httpx

from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class ProviderError(Exception):
    """Base class for a failed upstream call."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class TransportError(ProviderError):
    """Network failure, timeout, non-2xx status, or an unreadable body."""


class ProviderLogicalError(ProviderError):
    """HTTP 200 whose payload reports an error (rate limit, suspended key, bad token)."""

    def __init__(self, provider: str, errors: dict[str, Any] | list[Any]) -> None:
        self.errors = errors
        values = errors.values() if isinstance(errors, dict) else errors
        super().__init__(provider, "; ".join(str(v) for v in values))


class BaseProvider(abc.ABC):
    """
    Base class for provider connectors.

    Owns the HTTP lifecycle and turns httpx failures into ``TransportError``
    so callers only deal with the provider error taxonomy.
    """

    def __init__(self, http_client: ProviderHTTPClient) -> None:
        self._http = http_client

    @property
    def name(self) -> str:
        return self._http.provider

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def _get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        endpoint: str = "unknown",
    ) -> Any:
        try:
            resp = await self._http.get(path, params=params, extra_headers=headers, endpoint=endpoint)
        except httpx.HTTPStatusError as exc:
            raise TransportError(self.name, f"HTTP {exc.response.status_code} on {path}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(self.name, f"{type(exc).__name__} on {path}: {exc}") from exc
        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError(self.name, f"invalid JSON on {path}") from exc
