"""
Fixture-day synchronization: the cache-versus-upstream policy.

Per date the orchestrator serves a fresh snapshot as-is, otherwise refreshes
it from the free secondary live feed, then from the quota-metered primary
provider (throttled by remaining quota), and finally falls back to whatever
is cached. It never invents fixtures.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Callable, Optional

from ingest.normalization.reconciler import LiveReconciler
from ingest.providers.api_football import ApiFootballClient
from ingest.providers.base import ProviderError
from ingest.providers.bzzoiro import BzzoiroClient
from shared.config import Settings
from shared.leagues import ALL_LEAGUE_IDS, league_meta
from shared.models.domain import Fixture, FixtureDaySnapshot, Quota, SyncResult, utc_now
from shared.models.enums import SyncSource
from shared.store import CacheStoreError
from shared.utils.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from shared.utils.logging import get_logger
from shared.utils.metrics import SYNC_RESULTS
from sync.documents import DocumentRepository
from sync.keys import KeyRotator
from sync.quota import QuotaTracker

logger = get_logger(__name__)

PRIMARY_SOURCE = "api-football"


class SyncUnavailableError(Exception):
    """The cache store is unreachable, so neither cached nor upstream data can be served."""


def track_fixtures(fixtures: list[Fixture]) -> list[Fixture]:
    """Keep catalogue leagues only and attach their league metadata."""
    tracked = []
    for fixture in fixtures:
        if fixture.league.id not in ALL_LEAGUE_IDS:
            continue
        meta = league_meta(fixture.league.id, fixture.league.country, fixture.league.name)
        tracked.append(fixture.model_copy(update={"league_meta": meta, "live_source": PRIMARY_SOURCE}))
    return tracked


def _countdown(threshold_s: float, age_s: float) -> int:
    return max(0, math.ceil(threshold_s - age_s))


class FixtureSyncOrchestrator:
    def __init__(
        self,
        documents: DocumentRepository,
        tracker: QuotaTracker,
        rotator: KeyRotator,
        primary: ApiFootballClient,
        reconciler: LiveReconciler,
        settings: Settings,
        secondary: Optional[BzzoiroClient] = None,
        breaker: Optional[CircuitBreaker] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._documents = documents
        self._tracker = tracker
        self._rotator = rotator
        self._primary = primary
        self._reconciler = reconciler
        self._settings = settings
        self._secondary = secondary
        self._breaker = breaker or CircuitBreaker(
            "secondary_live",
            failure_threshold=settings.secondary_failure_threshold,
            recovery_timeout_s=settings.secondary_recovery_timeout_s,
        )
        self._clock = clock

    def freshness_ttl_s(self, snapshot: FixtureDaySnapshot) -> float:
        if snapshot.has_live:
            return self._settings.live_cache_ttl_s
        return self._settings.idle_cache_ttl_s

    async def get_fixtures(self, day: str) -> SyncResult:
        """Fixtures for ``day``, from cache when fresh enough, else refreshed."""
        try:
            snapshot = await self._documents.get_snapshot(day)
            if snapshot is not None and snapshot.matches:
                age = snapshot.age_s(self._clock())
                ttl = self.freshness_ttl_s(snapshot)
                if age < ttl:
                    quota = await self._tracker.aggregate_quota()
                    return self._finish(SyncResult(
                        date=day,
                        matches=snapshot.matches,
                        source=SyncSource.CACHE,
                        quota=quota,
                        updated_at=snapshot.fetched_at,
                        cache_age_s=int(age),
                        next_refresh_in=_countdown(ttl, age),
                    ))
            return await self._refresh(day, snapshot)
        except CacheStoreError as exc:
            logger.error("sync_store_unreachable", date=day, error=str(exc))
            raise SyncUnavailableError(str(exc)) from exc

    async def refresh_live(self, day: str) -> SyncResult:
        """Live polling entry point: skips the freshness check and goes straight to refresh."""
        try:
            snapshot = await self._documents.get_snapshot(day)
            return await self._refresh(day, snapshot)
        except CacheStoreError as exc:
            logger.error("sync_store_unreachable", date=day, error=str(exc))
            raise SyncUnavailableError(str(exc)) from exc

    async def _refresh(self, day: str, snapshot: Optional[FixtureDaySnapshot]) -> SyncResult:
        cached = snapshot.matches if snapshot is not None else []

        # Secondary feed first: free, but can only update fixtures we already hold.
        if cached:
            records = await self._secondary_live()
            if records is not None:
                return await self._apply_secondary(day, cached, records)

        now = self._clock()
        age = snapshot.age_s(now) if snapshot is not None else math.inf
        quota = await self._tracker.aggregate_quota()
        interval = self._settings.refetch_interval_s(quota.remaining)
        api_calls = 0

        if quota.remaining > 0 and age >= interval:
            fetched = await self._rotator.resilient_call(
                lambda cred: self._primary.fixtures_by_date(day, cred)
            )
            quota = await self._tracker.aggregate_quota()
            if fetched is not None:
                api_calls = 1
                tracked = track_fixtures(fetched)
                if tracked or not cached:
                    return await self._apply_primary(day, tracked, quota, now)
                logger.info("primary_empty_kept_cache", date=day, cached=len(cached))
        elif quota.remaining > 0:
            logger.debug("primary_throttled", date=day, age_s=round(age), interval_s=interval)

        if cached:
            return self._finish(SyncResult(
                date=day,
                matches=cached,
                source=SyncSource.CACHE,
                api_calls=api_calls,
                quota=quota,
                updated_at=snapshot.fetched_at if snapshot is not None else None,
                cache_age_s=int(age),
                next_refresh_in=_countdown(interval, age),
            ))

        logger.warning("sync_exhausted", date=day, remaining=quota.remaining)
        return self._finish(SyncResult(date=day, source=SyncSource.EMPTY, quota=quota, api_calls=api_calls))

    async def _secondary_live(self) -> Optional[list[dict]]:
        """Live records, or None when the feed is unconfigured or unavailable this cycle."""
        if self._secondary is None or not self._secondary.configured:
            return None
        try:
            return await self._breaker.call(self._secondary.live_now)
        except CircuitBreakerOpen as exc:
            logger.info("secondary_circuit_open", retry_after=round(exc.retry_after), **self._breaker.stats)
        except ProviderError as exc:
            logger.warning("secondary_unavailable", error=str(exc))
        return None

    async def _apply_secondary(self, day: str, cached: list[Fixture], records: list[dict]) -> SyncResult:
        result = self._reconciler.reconcile(cached, records)
        now = self._clock()
        await self._documents.save_snapshot(FixtureDaySnapshot(date=day, matches=result.fixtures, fetched_at=now))
        quota = await self._tracker.aggregate_quota()
        return self._finish(SyncResult(
            date=day,
            matches=result.fixtures,
            source=SyncSource.SECONDARY_FEED,
            quota=quota,
            live_updated=len(result.updated),
            updated_at=now,
        ))

    async def _apply_primary(self, day: str, tracked: list[Fixture], quota: Quota, now: datetime) -> SyncResult:
        saved = await self._documents.save_snapshot(FixtureDaySnapshot(date=day, matches=tracked, fetched_at=now))
        logger.info("primary_fixtures_synced", date=day, fixtures=len(tracked), saved=saved, remaining=quota.remaining)
        return self._finish(SyncResult(
            date=day,
            matches=tracked,
            source=SyncSource.PRIMARY_PROVIDER,
            api_calls=1,
            quota=quota,
            live_updated=sum(1 for f in tracked if f.is_in_progress),
            updated_at=now,
        ))

    def _finish(self, result: SyncResult) -> SyncResult:
        SYNC_RESULTS.labels(source=result.source.value).inc()
        logger.info(
            "fixtures_served",
            date=result.date,
            source=result.source.value,
            matches=len(result.matches),
            api_calls=result.api_calls,
        )
        return result
