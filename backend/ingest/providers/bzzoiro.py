"""
Bzzoiro sports connector: free, unmetered live-score feed.

Records come back in the feed's own shape (free-text team names and status
tokens); the live reconciler maps them onto cached fixtures.
"""
from __future__ import annotations

from typing import Any

from ingest.providers.base import BaseProvider, TransportError
from shared.config import Settings
from shared.utils.http_client import ProviderHTTPClient

PROVIDER_NAME = "bzzoiro"
LIVE_PATH = "/live/"


class BzzoiroClient(BaseProvider):
    def __init__(self, http_client: ProviderHTTPClient, api_key: str) -> None:
        super().__init__(http_client)
        self._api_key = api_key

    @classmethod
    def from_settings(cls, settings: Settings) -> "BzzoiroClient":
        http = ProviderHTTPClient(
            PROVIDER_NAME,
            settings.secondary_base_url,
            timeout_s=settings.provider_request_timeout_s,
            max_retries=2,
        )
        return cls(http, settings.secondary_api_key)

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def live_now(self) -> list[dict[str, Any]]:
        """Matches currently in progress, as raw feed records."""
        data = await self._get_json(
            LIVE_PATH,
            headers={"Authorization": f"Token {self._api_key}"},
            endpoint="live",
        )
        if not isinstance(data, dict):
            raise TransportError(self.name, "unexpected live payload")
        results = data.get("results") or []
        return [r for r in results if isinstance(r, dict)]
