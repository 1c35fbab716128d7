"""
Credential selection and rotation for the primary provider.

Credentials are tried in configured priority order. Any provider failure on a
credential force-exhausts it for the rest of the UTC day, because local call
counting can lag what the provider has actually billed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from ingest.providers.base import ProviderError, ProviderLogicalError
from shared.utils.logging import get_logger
from shared.utils.metrics import CREDENTIAL_EXHAUSTIONS
from sync.quota import QuotaTracker

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Credential:
    index: int
    key: str = field(repr=False)

    @property
    def label(self) -> str:
        return f"key{self.index + 1}"


class NoProviderAvailable(Exception):
    """Every configured credential is exhausted or failed."""


class KeyRotator:
    def __init__(self, keys: list[str], tracker: QuotaTracker) -> None:
        self._credentials = [Credential(index=i, key=k) for i, k in enumerate(keys)]
        self._tracker = tracker

    async def available_credential(self) -> Optional[Credential]:
        """First credential, in priority order, with calls left today."""
        for credential in self._credentials:
            quota = await self._tracker.quota_for(credential.index)
            if quota.remaining > 0:
                return credential
        return None

    async def mark_exhausted(self, index: int) -> None:
        await self._tracker.exhaust(index)
        CREDENTIAL_EXHAUSTIONS.labels(credential=str(index + 1)).inc()
        logger.warning("credential_exhausted", credential=index + 1)

    async def resilient_call(self, request_fn: Callable[[Credential], Awaitable[T]]) -> Optional[T]:
        """
        Run ``request_fn`` on each usable credential in order until one succeeds.

        A failing credential is marked exhausted before moving on. Returns
        ``None`` when no credential produced a result.
        """
        for credential in self._credentials:
            quota = await self._tracker.quota_for(credential.index)
            if quota.remaining <= 0:
                continue
            try:
                return await request_fn(credential)
            except ProviderError as exc:
                logger.error(
                    "credential_call_failed",
                    credential=credential.label,
                    error=str(exc),
                )
                await self.mark_exhausted(credential.index)
        logger.warning("no_provider_available", credentials=len(self._credentials))
        return None

    async def call(self, request_fn: Callable[[Credential], Awaitable[T]]) -> T:
        """
        Run ``request_fn`` on the first usable credential.

        Used by enrichment calls. Transport errors are re-raised without a
        retry, as the provider may have billed the call. A provider-reported
        error exhausts the credential and the call is tried once more on the
        next usable one; a second rejection is re-raised.
        """
        credential = await self.available_credential()
        if credential is None:
            raise NoProviderAvailable("no credential has quota left today")
        try:
            return await request_fn(credential)
        except ProviderLogicalError as exc:
            await self.mark_exhausted(credential.index)
            retry = await self.available_credential()
            if retry is None:
                raise
            logger.info("credential_rotated", failed=credential.label, credential=retry.label, error=str(exc))
        try:
            return await request_fn(retry)
        except ProviderLogicalError:
            await self.mark_exhausted(retry.index)
            raise
