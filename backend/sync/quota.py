"""
Per-credential daily call accounting for the primary provider.

Counters live in the cache store under ``(UTC date, credential index)`` so a
new calendar day starts from zero without any cleanup.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from shared.models.domain import CredentialQuota, Quota
from shared.models.enums import DocumentKind
from shared.store import CacheStore
from shared.utils.logging import get_logger
from shared.utils.metrics import QUOTA_CALLS, QUOTA_REMAINING

logger = get_logger(__name__)


def utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def counter_key(day: str, index: int) -> str:
    return f"{day}-key{index + 1}"


class QuotaTracker:
    def __init__(
        self,
        store: CacheStore,
        key_count: int,
        daily_limit: int = 100,
        today: Callable[[], str] = utc_today,
    ) -> None:
        self._store = store
        self._key_count = key_count
        self._daily_limit = daily_limit
        self._today = today

    @property
    def key_count(self) -> int:
        return self._key_count

    @property
    def daily_limit(self) -> int:
        return self._daily_limit

    async def record_call(self, index: int) -> int:
        """Count one upstream call against credential ``index``. Returns today's new total."""
        used = await self._store.increment(DocumentKind.API_QUOTA.value, counter_key(self._today(), index))
        QUOTA_CALLS.labels(credential=str(index + 1)).inc()
        logger.debug("quota_call_recorded", credential=index + 1, used=used)
        return used

    async def quota_for(self, index: int) -> CredentialQuota:
        used = await self._store.get_counter(DocumentKind.API_QUOTA.value, counter_key(self._today(), index))
        return CredentialQuota(
            index=index,
            used=used,
            remaining=max(0, self._daily_limit - used),
            limit=self._daily_limit,
        )

    async def exhaust(self, index: int) -> None:
        """Force credential ``index`` to the daily limit until the date rolls over."""
        await self._store.set_counter(
            DocumentKind.API_QUOTA.value, counter_key(self._today(), index), self._daily_limit
        )

    async def per_credential(self) -> list[CredentialQuota]:
        return [await self.quota_for(i) for i in range(self._key_count)]

    async def aggregate_quota(self) -> Quota:
        credentials = await self.per_credential()
        used = sum(c.used for c in credentials)
        limit = self._key_count * self._daily_limit
        quota = Quota(
            used=used,
            remaining=max(0, limit - used),
            limit=limit,
            date=self._today(),
            key_count=self._key_count,
        )
        QUOTA_REMAINING.set(quota.remaining)
        return quota
